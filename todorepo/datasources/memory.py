"""In-memory task data source, used as the simulated remote and in tests."""

import asyncio
from collections import Counter
from dataclasses import replace
from typing import Iterable, Optional

from todorepo.domain.errors import SourceUnavailableError
from todorepo.domain.models import Task
from todorepo.domain.protocols import TaskOrId


class InMemoryTaskDataSource:
    """In-memory implementation of TaskDataSource.

    Setting ``tasks`` to None makes the source unavailable: every operation
    then raises SourceUnavailableError, which is how outages are simulated.
    """

    def __init__(
        self,
        tasks: Optional[Iterable[Task]] = (),
        *,
        name: str = "memory",
        latency: float = 0.0,
    ) -> None:
        self.name = name
        self.latency = latency
        self.calls: Counter[str] = Counter()
        self._tasks: Optional[dict[str, Task]] = None
        self.tasks = tasks

    @property
    def tasks(self) -> Optional[list[Task]]:
        """Current content in insertion order, or None when unavailable."""
        if self._tasks is None:
            return None
        return list(self._tasks.values())

    @tasks.setter
    def tasks(self, tasks: Optional[Iterable[Task]]) -> None:
        if tasks is None:
            self._tasks = None
        else:
            self._tasks = {t.id: t for t in tasks}

    @property
    def is_available(self) -> bool:
        return self._tasks is not None

    async def _access(self, operation: str) -> dict[str, Task]:
        """Count the call, simulate latency and check availability."""
        self.calls[operation] += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._tasks is None:
            raise SourceUnavailableError(self.name)
        return self._tasks

    async def get_tasks(self) -> list[Task]:
        """Return all tasks."""
        tasks = await self._access("get_tasks")
        return list(tasks.values())

    async def get_task(self, task_id: str) -> Optional[Task]:
        """Return a task by id."""
        tasks = await self._access("get_task")
        return tasks.get(task_id)

    async def save_task(self, task: Task) -> None:
        """Insert or overwrite a task."""
        tasks = await self._access("save_task")
        tasks[task.id] = task

    async def complete_task(self, task: TaskOrId) -> None:
        """Mark a task as completed."""
        tasks = await self._access("complete_task")
        self._set_completed(tasks, task, True)

    async def activate_task(self, task: TaskOrId) -> None:
        """Mark a task as active."""
        tasks = await self._access("activate_task")
        self._set_completed(tasks, task, False)

    async def clear_completed_tasks(self) -> None:
        """Delete completed tasks."""
        tasks = await self._access("clear_completed_tasks")
        for task_id in [k for k, t in tasks.items() if t.is_completed]:
            del tasks[task_id]

    async def delete_all_tasks(self) -> None:
        """Delete all tasks."""
        tasks = await self._access("delete_all_tasks")
        tasks.clear()

    async def delete_task(self, task_id: str) -> None:
        """Delete a task."""
        tasks = await self._access("delete_task")
        tasks.pop(task_id, None)

    @staticmethod
    def _set_completed(tasks: dict[str, Task], task: TaskOrId, completed: bool) -> None:
        if isinstance(task, Task):
            tasks[task.id] = replace(task, is_completed=completed)
            return
        existing = tasks.get(task)
        if existing is not None:
            tasks[task] = replace(existing, is_completed=completed)
