"""Dependency wiring for the tasks repository and its data sources."""

from dataclasses import dataclass
from typing import TypeVar, Generic, Callable, Optional, Any

from todorepo.domain.protocols import TaskDataSource
from todorepo.services.tasks_repository import TasksRepository


T = TypeVar("T")


class Provider(Generic[T]):
    """Lazy provider that creates instance on first access."""

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._instance: Optional[T] = None

    @property
    def is_created(self) -> bool:
        return self._instance is not None

    def get(self) -> T:
        """Get the instance, creating it if necessary."""
        if self._instance is None:
            self._instance = self._factory()
        return self._instance

    def reset(self) -> None:
        """Reset the instance (for testing)."""
        self._instance = None

    def override(self, instance: T) -> None:
        """Override with a specific instance (for testing)."""
        self._instance = instance


@dataclass
class Container:
    """Holds the data sources and builds the repository from them.

    The repository receives its data sources through its constructor; the
    container only decides which implementations to create.
    """

    _local_data_source: Optional[Provider[TaskDataSource]] = None
    _remote_data_source: Optional[Provider[TaskDataSource]] = None
    _tasks_repository: Optional[TasksRepository] = None
    strict_refresh: bool = False

    @property
    def local_data_source(self) -> TaskDataSource:
        """Get the local data source."""
        if self._local_data_source is None:
            raise RuntimeError("Local data source not configured")
        return self._local_data_source.get()

    @property
    def remote_data_source(self) -> TaskDataSource:
        """Get the remote data source."""
        if self._remote_data_source is None:
            raise RuntimeError("Remote data source not configured")
        return self._remote_data_source.get()

    @property
    def tasks_repository(self) -> TasksRepository:
        """Get the tasks repository, building it on first access."""
        if self._tasks_repository is None:
            self._tasks_repository = TasksRepository(
                remote=self.remote_data_source,
                local=self.local_data_source,
                strict_refresh=self.strict_refresh,
            )
        return self._tasks_repository

    def configure_local_data_source(
        self, factory: Callable[[], TaskDataSource]
    ) -> "Container":
        """Configure the local data source."""
        self._local_data_source = Provider(factory)
        self._tasks_repository = None
        return self

    def configure_remote_data_source(
        self, factory: Callable[[], TaskDataSource]
    ) -> "Container":
        """Configure the remote data source."""
        self._remote_data_source = Provider(factory)
        self._tasks_repository = None
        return self

    async def start(self) -> None:
        """Open data sources that need a connection (e.g. SQLite)."""
        for source in self._data_sources():
            connect = getattr(source, "connect", None)
            if connect is not None:
                await connect()

    async def stop(self) -> None:
        """Close data sources that hold a connection."""
        for source in self._data_sources():
            close = getattr(source, "close", None)
            if close is not None:
                await close()

    def _data_sources(self) -> list[Any]:
        return [
            provider.get()
            for provider in (self._local_data_source, self._remote_data_source)
            if provider is not None
        ]

    def reset(self) -> None:
        """Reset all providers (for testing)."""
        if self._local_data_source:
            self._local_data_source.reset()
        if self._remote_data_source:
            self._remote_data_source.reset()
        self._tasks_repository = None


def build_container(settings: Optional[Any] = None) -> Container:
    """Create a container wired from application settings."""
    from todorepo.config.settings import get_settings
    from todorepo.datasources import (
        HttpTaskDataSource,
        InMemoryTaskDataSource,
        SqliteTaskDataSource,
    )

    settings = settings or get_settings()
    local_settings = settings.local
    remote_settings = settings.remote

    container = Container(strict_refresh=settings.repository.strict_refresh)

    if local_settings.backend == "sqlite":
        container.configure_local_data_source(
            lambda: SqliteTaskDataSource(local_settings.database_path)
        )
    else:
        container.configure_local_data_source(
            lambda: InMemoryTaskDataSource(name="local")
        )

    if remote_settings.backend == "http":
        api_key = remote_settings.api_key
        container.configure_remote_data_source(
            lambda: HttpTaskDataSource(
                remote_settings.base_url,
                api_key=api_key.get_secret_value() if api_key else None,
                timeout=remote_settings.timeout,
            )
        )
    else:
        # simulated
        container.configure_remote_data_source(
            lambda: InMemoryTaskDataSource(
                None if remote_settings.unavailable else (),
                name="remote",
                latency=remote_settings.latency,
            )
        )

    return container
