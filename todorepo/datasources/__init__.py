"""Task data source implementations."""

from .memory import InMemoryTaskDataSource
from .sqlite import SqliteTaskDataSource
from .http import HttpTaskDataSource

__all__ = [
    "InMemoryTaskDataSource",
    "SqliteTaskDataSource",
    "HttpTaskDataSource",
]
