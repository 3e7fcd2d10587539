"""Errors raised by data sources and the tasks repository."""

from typing import Sequence


class TaskDataError(Exception):
    """Base class for task data layer errors."""


class TaskNotFoundError(TaskDataError):
    """A task that an operation requires does not exist."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class SourceUnavailableError(TaskDataError):
    """A data source cannot answer at all (outage, closed store, transport error)."""

    def __init__(self, source: str, reason: str = "data source is unavailable") -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class RefreshFailedError(SourceUnavailableError):
    """A forced refresh could not reach the remote data source."""


class AggregateUnavailableError(TaskDataError):
    """Every data source in a read fallback chain was unavailable."""

    def __init__(self, errors: Sequence[SourceUnavailableError]) -> None:
        sources = ", ".join(e.source for e in errors) or "no sources"
        super().__init__(f"No data available (unavailable: {sources})")
        self.errors = list(errors)
