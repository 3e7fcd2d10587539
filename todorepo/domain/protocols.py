"""Protocol definitions for dependency injection."""

from typing import Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from .models import Task, TaskEvent


TaskOrId = Union[Task, str]


@runtime_checkable
class TaskDataSource(Protocol):
    """Protocol for a store of tasks (local database, remote service, fake).

    Every operation raises SourceUnavailableError when the source cannot
    answer. "Not found" is reported as None, never as an error.
    """

    name: str

    async def get_tasks(self) -> list[Task]:
        """Return all tasks."""
        ...

    async def get_task(self, task_id: str) -> Optional[Task]:
        """Return a task by id, or None if it does not exist."""
        ...

    async def save_task(self, task: Task) -> None:
        """Insert or overwrite a task by id."""
        ...

    async def complete_task(self, task: TaskOrId) -> None:
        """Mark a task as completed."""
        ...

    async def activate_task(self, task: TaskOrId) -> None:
        """Mark a task as active."""
        ...

    async def clear_completed_tasks(self) -> None:
        """Delete every completed task."""
        ...

    async def delete_all_tasks(self) -> None:
        """Delete every task."""
        ...

    async def delete_task(self, task_id: str) -> None:
        """Delete a task by id. Unknown ids are ignored."""
        ...


TaskEventListener = Callable[[TaskEvent], Union[None, Awaitable[None]]]
