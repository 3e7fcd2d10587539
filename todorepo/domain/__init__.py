"""Domain models and protocols."""

from .models import (
    Task,
    TasksFilterType,
    TaskStatistics,
    TaskEvent,
    TaskEventType,
    generate_task_id,
)
from .errors import (
    TaskDataError,
    TaskNotFoundError,
    SourceUnavailableError,
    RefreshFailedError,
    AggregateUnavailableError,
)
from .protocols import TaskDataSource, TaskEventListener, TaskOrId

__all__ = [
    "Task",
    "TasksFilterType",
    "TaskStatistics",
    "TaskEvent",
    "TaskEventType",
    "generate_task_id",
    "TaskDataError",
    "TaskNotFoundError",
    "SourceUnavailableError",
    "RefreshFailedError",
    "AggregateUnavailableError",
    "TaskDataSource",
    "TaskEventListener",
    "TaskOrId",
]
