"""Domain models for the to-do list data layer."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional
import uuid


def generate_task_id() -> str:
    """Generate a new unique task identifier."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Task:
    """Immutable task value object.

    Equality is structural over all four fields, so two tasks with the same
    id but a different completion state compare unequal.
    """

    title: str = ""
    description: str = ""
    is_completed: bool = False
    id: str = field(default_factory=generate_task_id)

    @property
    def is_active(self) -> bool:
        return not self.is_completed

    @property
    def title_for_list(self) -> str:
        """Title to show in a list, falling back to the description."""
        return self.title if self.title else self.description

    @property
    def is_empty(self) -> bool:
        return not self.title and not self.description

    def completed(self) -> "Task":
        """Return a copy of this task marked as completed."""
        return replace(self, is_completed=True)

    def activated(self) -> "Task":
        """Return a copy of this task marked as active."""
        return replace(self, is_completed=False)


class TasksFilterType(Enum):
    """Which tasks a listing should show."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"

    def apply(self, tasks: Iterable[Task]) -> list[Task]:
        """Filter tasks according to this filter type."""
        if self is TasksFilterType.ACTIVE:
            return [t for t in tasks if t.is_active]
        if self is TasksFilterType.COMPLETED:
            return [t for t in tasks if t.is_completed]
        return list(tasks)


@dataclass(frozen=True)
class TaskStatistics:
    """Active/completed counts over a task collection."""

    active: int = 0
    completed: int = 0

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "TaskStatistics":
        active = 0
        completed = 0
        for task in tasks:
            if task.is_completed:
                completed += 1
            else:
                active += 1
        return cls(active=active, completed=completed)

    @property
    def total(self) -> int:
        return self.active + self.completed

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    @property
    def active_percent(self) -> float:
        if self.is_empty:
            return 0.0
        return 100.0 * self.active / self.total

    @property
    def completed_percent(self) -> float:
        if self.is_empty:
            return 0.0
        return 100.0 * self.completed / self.total


class TaskEventType(Enum):
    """Kinds of change the repository announces to subscribers."""

    SAVED = "saved"
    COMPLETED = "completed"
    ACTIVATED = "activated"
    DELETED = "deleted"
    CLEARED_COMPLETED = "cleared_completed"
    DELETED_ALL = "deleted_all"
    REFRESHED = "refreshed"


@dataclass(frozen=True)
class TaskEvent:
    """Notification emitted after a repository change has been applied."""

    type: TaskEventType
    task_id: Optional[str] = None
    task: Optional[Task] = None
    created_at: datetime = field(default_factory=datetime.now)
