"""Tasks repository: one task collection over a remote, a local store and a memory cache."""

from typing import Callable, Iterable, Optional
import asyncio
import inspect
import logging

from todorepo.domain.errors import (
    AggregateUnavailableError,
    RefreshFailedError,
    SourceUnavailableError,
    TaskNotFoundError,
)
from todorepo.domain.models import (
    Task,
    TaskEvent,
    TaskEventType,
    TasksFilterType,
    TaskStatistics,
)
from todorepo.domain.protocols import TaskDataSource, TaskEventListener, TaskOrId


logger = logging.getLogger(__name__)


class TasksRepository:
    """Task repository with an in-memory cache and explicit staleness control.

    Reads consult the cache, then the remote and local data sources. Writes
    go to the remote and the local source before the cache is updated.

    Cache lifecycle:
        - the cache starts uninitialized and dirty
        - a successful remote read replaces it and marks it clean
        - a local fallback read fills it but leaves it dirty, so the next
          plain get_tasks() retries the remote
        - writes only change cache contents, never the dirty flag

    All operations are serialized by an asyncio lock. Cache mutations happen
    after the awaited I/O of a call has finished, so a cancelled call leaves
    the cache as it was.
    """

    def __init__(
        self,
        remote: TaskDataSource,
        local: TaskDataSource,
        *,
        strict_refresh: bool = False,
    ) -> None:
        """Initialize the repository.

        Args:
            remote: Remote data source, consulted first on refreshes
            local: Durable local data source, mirror of the remote
            strict_refresh: If True, a forced refresh fails with
                RefreshFailedError when the remote is unavailable instead of
                falling back to the local source
        """
        self._remote = remote
        self._local = local
        self._strict_refresh = strict_refresh
        self._cached_tasks: Optional[dict[str, Task]] = None
        self._cache_is_dirty = True
        self._lock = asyncio.Lock()
        self._listeners: list[TaskEventListener] = []

    @property
    def cache_is_dirty(self) -> bool:
        return self._cache_is_dirty

    @property
    def is_cache_initialized(self) -> bool:
        return self._cached_tasks is not None

    def invalidate_cache(self) -> None:
        """Mark the cache as stale so the next read goes to the remote."""
        self._cache_is_dirty = True

    # Event channel

    def subscribe(self, listener: TaskEventListener) -> Callable[[], None]:
        """Register a listener for change events.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, event: TaskEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Task event listener failed on {event.type.value}: {e}")

    # Reads

    async def get_tasks(self, force_update: bool = False) -> list[Task]:
        """Return all tasks.

        Args:
            force_update: Query the remote even if the cache is clean

        Raises:
            AggregateUnavailableError: Neither remote nor local could answer
            RefreshFailedError: Strict mode only, forced refresh hit a remote outage
        """
        async with self._lock:
            tasks, refreshed = await self._load_tasks(force_update)
        if refreshed:
            await self._emit(TaskEvent(TaskEventType.REFRESHED))
        return tasks

    async def refresh_tasks(self) -> list[Task]:
        """Reload every task from the remote."""
        return await self.get_tasks(force_update=True)

    async def get_filtered_tasks(
        self,
        filter_type: TasksFilterType = TasksFilterType.ALL,
        force_update: bool = False,
    ) -> list[Task]:
        """Return all, active or completed tasks."""
        return filter_type.apply(await self.get_tasks(force_update))

    async def get_statistics(self, force_update: bool = False) -> TaskStatistics:
        """Count active and completed tasks."""
        return TaskStatistics.from_tasks(await self.get_tasks(force_update))

    async def get_task(self, task_id: str, force_update: bool = False) -> Optional[Task]:
        """Return a task by id, or None if no source has it.

        Args:
            task_id: Task id
            force_update: Ask the remote first instead of the cache

        Raises:
            AggregateUnavailableError: Neither remote nor local could answer
            SourceUnavailableError: Local does not have the task and the
                remote could not be asked
        """
        async with self._lock:
            return await self._load_task(task_id, force_update)

    async def _load_tasks(self, force_update: bool) -> tuple[list[Task], bool]:
        if not force_update and not self._cache_is_dirty and self._cached_tasks is not None:
            return list(self._cached_tasks.values()), False

        try:
            remote_tasks = await self._remote.get_tasks()
        except SourceUnavailableError as remote_error:
            if force_update and self._strict_refresh:
                raise RefreshFailedError(
                    remote_error.source, f"can't force refresh: {remote_error.reason}"
                ) from remote_error
            logger.warning(f"Remote unavailable, reading tasks from local: {remote_error}")
            try:
                local_tasks = await self._local.get_tasks()
            except SourceUnavailableError as local_error:
                raise AggregateUnavailableError([remote_error, local_error]) from local_error
            self._cached_tasks = {t.id: t for t in local_tasks}
            self._cache_is_dirty = True
            return local_tasks, False

        await self._replace_local(remote_tasks)
        self._cached_tasks = {t.id: t for t in remote_tasks}
        self._cache_is_dirty = False
        logger.info(f"Refreshed {len(remote_tasks)} task(s) from {self._remote.name}")
        return list(self._cached_tasks.values()), True

    async def _load_task(self, task_id: str, force_update: bool) -> Optional[Task]:
        if not force_update and self._cached_tasks is not None:
            cached = self._cached_tasks.get(task_id)
            if cached is not None:
                return cached

        if force_update:
            return await self._load_task_remote_first(task_id)

        local_error: Optional[SourceUnavailableError] = None
        try:
            task = await self._local.get_task(task_id)
        except SourceUnavailableError as e:
            local_error = e
        else:
            if task is not None:
                self._cache_task(task)
                return task

        try:
            task = await self._remote.get_task(task_id)
        except SourceUnavailableError as remote_error:
            if local_error is not None:
                raise AggregateUnavailableError([local_error, remote_error]) from remote_error
            raise

        if task is None:
            return None
        if local_error is None:
            await self._mirror_to_local(task)
        self._cache_task(task)
        return task

    async def _load_task_remote_first(self, task_id: str) -> Optional[Task]:
        try:
            task = await self._remote.get_task(task_id)
        except SourceUnavailableError as remote_error:
            logger.warning(f"Remote unavailable, reading task {task_id} from local: {remote_error}")
            try:
                task = await self._local.get_task(task_id)
            except SourceUnavailableError as local_error:
                raise AggregateUnavailableError([remote_error, local_error]) from local_error
            if task is None:
                raise remote_error
            self._cache_task(task)
            return task

        if task is None:
            if self._cached_tasks is not None:
                self._cached_tasks.pop(task_id, None)
            return None
        await self._mirror_to_local(task)
        self._cache_task(task)
        return task

    async def _replace_local(self, tasks: list[Task]) -> None:
        """Make the local source hold exactly the given tasks.

        Tasks are upserted before stale ones are pruned, so an interrupted
        mirror leaves local with old and new tasks, never with fewer.
        """
        remote_ids = {task.id for task in tasks}
        try:
            for task in tasks:
                await self._local.save_task(task)
            for stale in await self._local.get_tasks():
                if stale.id not in remote_ids:
                    await self._local.delete_task(stale.id)
        except SourceUnavailableError as e:
            logger.warning(f"Could not mirror refreshed tasks to local: {e}")

    async def _mirror_to_local(self, task: Task) -> None:
        try:
            await self._local.save_task(task)
        except SourceUnavailableError as e:
            logger.warning(f"Could not mirror task {task.id} to local: {e}")

    def _cache_task(self, task: Task) -> None:
        if self._cached_tasks is None:
            self._cached_tasks = {}
        self._cached_tasks[task.id] = task

    # Writes

    async def save_task(self, task: Task) -> Task:
        """Save a task to the remote and the local source, then cache it."""
        async with self._lock:
            await self._remote.save_task(task)
            await self._local.save_task(task)
            self._cache_task(task)
        logger.info(f"Saved task {task.id}")
        await self._emit(TaskEvent(TaskEventType.SAVED, task.id, task))
        return task

    async def complete_task(self, task: TaskOrId) -> Task:
        """Mark a task as completed.

        Raises:
            TaskNotFoundError: Only an id was given and no source has it
        """
        return await self._set_completed(task, True)

    async def activate_task(self, task: TaskOrId) -> Task:
        """Mark a task as active.

        Raises:
            TaskNotFoundError: Only an id was given and no source has it
        """
        return await self._set_completed(task, False)

    async def _set_completed(self, task_or_id: TaskOrId, completed: bool) -> Task:
        async with self._lock:
            task = await self._resolve(task_or_id)
            updated = task.completed() if completed else task.activated()
            if completed:
                await self._remote.complete_task(updated)
                await self._local.complete_task(updated)
            else:
                await self._remote.activate_task(updated)
                await self._local.activate_task(updated)
            self._cache_task(updated)
        event_type = TaskEventType.COMPLETED if completed else TaskEventType.ACTIVATED
        logger.info(f"Task {updated.id} {event_type.value}")
        await self._emit(TaskEvent(event_type, updated.id, updated))
        return updated

    async def _resolve(self, task_or_id: TaskOrId) -> Task:
        if isinstance(task_or_id, Task):
            return task_or_id
        task = await self._load_task(task_or_id, force_update=False)
        if task is None:
            raise TaskNotFoundError(task_or_id)
        return task

    async def clear_completed_tasks(self) -> None:
        """Delete completed tasks everywhere."""
        async with self._lock:
            await self._remote.clear_completed_tasks()
            await self._local.clear_completed_tasks()
            if self._cached_tasks is not None:
                self._cached_tasks = _without_completed(self._cached_tasks.values())
        logger.info("Cleared completed tasks")
        await self._emit(TaskEvent(TaskEventType.CLEARED_COMPLETED))

    async def delete_all_tasks(self) -> None:
        """Delete every task everywhere."""
        async with self._lock:
            await self._remote.delete_all_tasks()
            await self._local.delete_all_tasks()
            self._cached_tasks = {}
        logger.info("Deleted all tasks")
        await self._emit(TaskEvent(TaskEventType.DELETED_ALL))

    async def delete_task(self, task_id: str) -> None:
        """Delete a task everywhere."""
        async with self._lock:
            await self._remote.delete_task(task_id)
            await self._local.delete_task(task_id)
            if self._cached_tasks is not None:
                self._cached_tasks.pop(task_id, None)
        logger.info(f"Deleted task {task_id}")
        await self._emit(TaskEvent(TaskEventType.DELETED, task_id))


def _without_completed(tasks: Iterable[Task]) -> dict[str, Task]:
    return {t.id: t for t in tasks if not t.is_completed}
