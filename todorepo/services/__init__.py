"""Service layer implementations."""

from .tasks_repository import TasksRepository

__all__ = [
    "TasksRepository",
]
