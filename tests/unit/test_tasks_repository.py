"""Tests for TasksRepository."""

import asyncio

import pytest

from todorepo.datasources.memory import InMemoryTaskDataSource
from todorepo.domain.errors import (
    AggregateUnavailableError,
    RefreshFailedError,
    SourceUnavailableError,
    TaskNotFoundError,
)
from todorepo.domain.models import Task, TaskEventType, TasksFilterType
from todorepo.services.tasks_repository import TasksRepository


class TestTasksRepository:
    """Tests for the cache and refresh policy."""

    @pytest.fixture
    def repository(self, remote_source, local_source) -> TasksRepository:
        return TasksRepository(remote_source, local_source)

    @pytest.mark.asyncio
    async def test_empty_sources_and_uninitialized_cache(self):
        """Should return no tasks when both sources are empty."""
        empty = InMemoryTaskDataSource()
        repository = TasksRepository(empty, empty)

        assert await repository.get_tasks() == []

    @pytest.mark.asyncio
    async def test_initial_state_is_dirty_and_uninitialized(self, repository):
        assert repository.cache_is_dirty
        assert not repository.is_cache_initialized

    @pytest.mark.asyncio
    async def test_get_tasks_requests_all_tasks_from_remote(
        self, repository, task1, task2
    ):
        """Should load tasks from the remote when the cache is dirty."""
        tasks = await repository.get_tasks()

        assert tasks == [task1, task2]
        assert not repository.cache_is_dirty

    @pytest.mark.asyncio
    async def test_cache_hit_avoids_io(self, repository, remote_source, local_source):
        """A clean cache should answer without touching either source."""
        first = await repository.get_tasks()
        remote_calls = sum(remote_source.calls.values())
        local_calls = sum(local_source.calls.values())

        second = await repository.get_tasks()

        assert second == first
        assert sum(remote_source.calls.values()) == remote_calls
        assert sum(local_source.calls.values()) == local_calls

    @pytest.mark.asyncio
    async def test_repository_caches_after_first_api_call(
        self, repository, remote_source, new_task
    ):
        """Should keep returning cached tasks until a forced refresh."""
        initial = await repository.get_tasks(force_update=True)

        remote_source.tasks = [new_task]
        second = await repository.get_tasks()

        assert second == initial

    @pytest.mark.asyncio
    async def test_force_update_bypasses_cache(self, repository, remote_source, new_task):
        """Should query the remote when forced, even with a clean cache."""
        await repository.get_tasks()
        remote_source.tasks = [new_task]

        refreshed = await repository.get_tasks(force_update=True)

        assert refreshed == [new_task]

    @pytest.mark.asyncio
    async def test_refresh_mirrors_remote_into_local(
        self, repository, local_source, task1, task2
    ):
        """Should make the local store hold exactly the remote content."""
        tasks = await repository.get_tasks(force_update=True)

        assert tasks == [task1, task2]
        assert local_source.tasks == [task1, task2]

    @pytest.mark.asyncio
    async def test_refresh_emits_event(self, repository):
        events = []
        repository.subscribe(events.append)

        await repository.refresh_tasks()

        assert [e.type for e in events] == [TaskEventType.REFRESHED]

    @pytest.mark.asyncio
    async def test_remote_unavailable_reads_from_local(
        self, repository, remote_source, task3
    ):
        """Should fall back to the local store when the remote is down."""
        remote_source.tasks = None

        assert await repository.get_tasks() == [task3]

    @pytest.mark.asyncio
    async def test_local_fallback_keeps_cache_dirty(
        self, repository, remote_source, task1, task2, task3
    ):
        """The next plain read after a fallback should retry the remote."""
        remote_source.tasks = None
        assert await repository.get_tasks() == [task3]
        assert repository.cache_is_dirty
        assert repository.is_cache_initialized

        remote_source.tasks = [task1, task2]
        assert await repository.get_tasks() == [task1, task2]
        assert not repository.cache_is_dirty

    @pytest.mark.asyncio
    async def test_forced_fallback_marks_clean_cache_dirty(
        self, repository, remote_source, task1, task2, task3
    ):
        """A forced refresh served by local should not leave the cache clean."""
        await repository.get_tasks()
        assert not repository.cache_is_dirty

        remote_source.tasks = None
        assert await repository.get_tasks(force_update=True) == [task1, task2]
        assert repository.cache_is_dirty

        remote_source.tasks = [task3]
        assert await repository.get_tasks() == [task3]
        assert not repository.cache_is_dirty

    @pytest.mark.asyncio
    async def test_local_fallback_answers_again_while_remote_is_down(
        self, repository, remote_source, task3
    ):
        remote_source.tasks = None
        await repository.get_tasks()

        assert await repository.get_tasks() == [task3]
        assert remote_source.calls["get_tasks"] == 2

    @pytest.mark.asyncio
    async def test_both_sources_unavailable_raises(
        self, repository, remote_source, local_source
    ):
        """Should fail with AggregateUnavailableError when nothing can answer."""
        remote_source.tasks = None
        local_source.tasks = None

        with pytest.raises(AggregateUnavailableError) as exc_info:
            await repository.get_tasks()

        assert [e.source for e in exc_info.value.errors] == ["remote", "local"]

    @pytest.mark.asyncio
    async def test_forced_refresh_falls_back_by_default(
        self, repository, remote_source, task3
    ):
        remote_source.tasks = None

        assert await repository.get_tasks(force_update=True) == [task3]

    @pytest.mark.asyncio
    async def test_strict_forced_refresh_with_remote_unavailable_raises(
        self, remote_source, local_source
    ):
        """Strict mode should refuse to fall back on a forced refresh."""
        repository = TasksRepository(remote_source, local_source, strict_refresh=True)
        remote_source.tasks = None

        with pytest.raises(RefreshFailedError):
            await repository.get_tasks(force_update=True)

    @pytest.mark.asyncio
    async def test_strict_mode_still_falls_back_on_plain_reads(
        self, remote_source, local_source, task3
    ):
        repository = TasksRepository(remote_source, local_source, strict_refresh=True)
        remote_source.tasks = None

        assert await repository.get_tasks() == [task3]

    @pytest.mark.asyncio
    async def test_local_mirror_failure_does_not_fail_refresh(
        self, repository, local_source, task1, task2
    ):
        local_source.tasks = None

        assert await repository.get_tasks() == [task1, task2]
        assert not repository.cache_is_dirty

    @pytest.mark.asyncio
    async def test_invalidate_cache_forces_remote_read(
        self, repository, remote_source, new_task
    ):
        await repository.get_tasks()
        remote_source.tasks = [new_task]

        repository.invalidate_cache()

        assert repository.cache_is_dirty
        assert await repository.get_tasks() == [new_task]

    @pytest.mark.asyncio
    async def test_save_task_writes_through(
        self, repository, remote_source, local_source, new_task
    ):
        """Should store the task in remote, local and cache."""
        assert new_task not in remote_source.tasks
        assert new_task not in local_source.tasks

        await repository.save_task(new_task)

        assert new_task in remote_source.tasks
        assert new_task in local_source.tasks
        assert await repository.get_task(new_task.id) == new_task
        assert local_source.calls["get_task"] == 0

    @pytest.mark.asyncio
    async def test_save_task_does_not_change_dirty_flag(self, repository, new_task):
        await repository.save_task(new_task)
        assert repository.cache_is_dirty

        await repository.get_tasks()
        await repository.save_task(Task(title="Another"))
        assert not repository.cache_is_dirty

    @pytest.mark.asyncio
    async def test_save_task_with_remote_unavailable_raises(
        self, repository, remote_source, local_source, new_task
    ):
        """Writes have no degraded local-only mode."""
        remote_source.tasks = None

        with pytest.raises(SourceUnavailableError):
            await repository.save_task(new_task)

        assert new_task not in local_source.tasks

    @pytest.mark.asyncio
    async def test_complete_task_updates_sources_and_cache(
        self, repository, remote_source, local_source, new_task
    ):
        await repository.save_task(new_task)
        assert (await repository.get_task(new_task.id)).is_completed is False

        await repository.complete_task(new_task.id)

        assert (await repository.get_task(new_task.id)).is_completed is True
        assert new_task.completed() in remote_source.tasks
        assert new_task.completed() in local_source.tasks

    @pytest.mark.asyncio
    async def test_activate_task_updates_cache(self, repository, new_task):
        await repository.save_task(new_task)
        await repository.complete_task(new_task.id)
        assert (await repository.get_task(new_task.id)).is_active is False

        await repository.activate_task(new_task.id)

        assert (await repository.get_task(new_task.id)).is_active is True

    @pytest.mark.asyncio
    async def test_complete_then_activate_restores_task(self, repository, new_task):
        """Toggling twice should only round-trip the completion flag."""
        await repository.save_task(new_task)

        await repository.complete_task(new_task.id)
        restored = await repository.activate_task(new_task.id)

        assert restored == new_task
        assert await repository.get_task(new_task.id) == new_task

    @pytest.mark.asyncio
    async def test_complete_task_by_object(self, repository, remote_source, task1):
        completed = await repository.complete_task(task1)

        assert completed == task1.completed()
        assert task1.completed() in remote_source.tasks

    @pytest.mark.asyncio
    async def test_complete_unknown_task_raises_not_found(self, repository):
        with pytest.raises(TaskNotFoundError):
            await repository.complete_task("missing")

    @pytest.mark.asyncio
    async def test_clear_completed_tasks(self, repository, remote_source, task1, task2):
        """Should drop completed tasks from every layer."""
        completed_task = task1.completed()
        remote_source.tasks = [completed_task, task2]

        await repository.clear_completed_tasks()
        tasks = await repository.get_tasks(force_update=True)

        assert tasks == [task2]

    @pytest.mark.asyncio
    async def test_clear_completed_updates_cache(self, repository, task1, task2):
        await repository.get_tasks()
        await repository.complete_task(task1.id)

        await repository.clear_completed_tasks()

        assert await repository.get_tasks() == [task2]
        assert not repository.cache_is_dirty

    @pytest.mark.asyncio
    async def test_delete_all_tasks(self, repository, remote_source, local_source):
        initial = await repository.get_tasks()
        assert len(initial) == 2

        await repository.delete_all_tasks()

        assert await repository.get_tasks() == []
        assert remote_source.tasks == []
        assert local_source.tasks == []

    @pytest.mark.asyncio
    async def test_delete_single_task(self, repository, task1):
        initial_size = len(await repository.get_tasks(force_update=True))

        await repository.delete_task(task1.id)
        after_delete = await repository.get_tasks(force_update=True)

        assert len(after_delete) == initial_size - 1
        assert task1 not in after_delete

    @pytest.mark.asyncio
    async def test_delete_task_removes_from_cache(self, repository, task1):
        await repository.get_tasks()

        await repository.delete_task(task1.id)

        assert task1 not in await repository.get_tasks()

    @pytest.mark.asyncio
    async def test_filtered_tasks_and_statistics(self, repository, task1, task2):
        await repository.get_tasks()
        await repository.complete_task(task1.id)

        active = await repository.get_filtered_tasks(TasksFilterType.ACTIVE)
        completed = await repository.get_filtered_tasks(TasksFilterType.COMPLETED)
        statistics = await repository.get_statistics()

        assert active == [task2]
        assert completed == [task1.completed()]
        assert statistics.active == 1
        assert statistics.completed == 1


class TestGetTask:
    """Tests for single task lookups."""

    @pytest.fixture
    def repository(self, remote_source, local_source) -> TasksRepository:
        return TasksRepository(remote_source, local_source)

    @pytest.mark.asyncio
    async def test_repository_caches_after_first_call(
        self, repository, remote_source, local_source, task1, new_task
    ):
        local_source.tasks = [task1]
        initial = await repository.get_task(task1.id)

        remote_source.tasks = [new_task]
        second = await repository.get_task(task1.id)

        assert second == initial

    @pytest.mark.asyncio
    async def test_reads_local_before_remote(self, repository, remote_source, task3):
        assert await repository.get_task(task3.id) == task3
        assert remote_source.calls["get_task"] == 0

    @pytest.mark.asyncio
    async def test_remote_hit_is_mirrored_to_local(self, repository, local_source, task1):
        assert await repository.get_task(task1.id) == task1
        assert task1 in local_source.tasks

    @pytest.mark.asyncio
    async def test_missing_everywhere_returns_none(self, repository):
        assert await repository.get_task("missing") is None

    @pytest.mark.asyncio
    async def test_force_refresh(self, repository, remote_source, task1, task2):
        """Forced lookups should ask the remote every time."""
        remote_source.tasks = [task1]
        first = await repository.get_task(task1.id, force_update=True)
        assert first.id == task1.id

        remote_source.tasks = [task2]
        task1_second_time = await repository.get_task(task1.id, force_update=True)
        task2_second_time = await repository.get_task(task2.id, force_update=True)

        assert task1_second_time is None
        assert task2_second_time.id == task2.id

    @pytest.mark.asyncio
    async def test_forced_lookup_returns_new_content(self, repository, remote_source, task1):
        await repository.get_task(task1.id, force_update=True)
        renamed = Task(title="Renamed", description=task1.description, id=task1.id)
        remote_source.tasks = [renamed]

        assert await repository.get_task(task1.id) == task1
        assert await repository.get_task(task1.id, force_update=True) == renamed
        assert await repository.get_task(task1.id) == renamed

    @pytest.mark.asyncio
    async def test_forced_lookup_falls_back_to_local(self, repository, remote_source, task3):
        remote_source.tasks = None

        assert await repository.get_task(task3.id, force_update=True) == task3

    @pytest.mark.asyncio
    async def test_remote_unavailable_and_missing_locally_raises(
        self, repository, remote_source
    ):
        """Remote outage must not be reported as "not found"."""
        remote_source.tasks = None

        with pytest.raises(SourceUnavailableError):
            await repository.get_task("missing")

    @pytest.mark.asyncio
    async def test_both_unavailable_raises(self, repository, remote_source, local_source, task1):
        remote_source.tasks = None
        local_source.tasks = None

        with pytest.raises(AggregateUnavailableError):
            await repository.get_task(task1.id)

        with pytest.raises(AggregateUnavailableError):
            await repository.get_task(task1.id, force_update=True)


class TestEventsAndConcurrency:
    """Tests for change notifications and cancellation."""

    @pytest.mark.asyncio
    async def test_write_events(self, remote_source, local_source, new_task):
        repository = TasksRepository(remote_source, local_source)
        events = []
        repository.subscribe(events.append)

        await repository.save_task(new_task)
        await repository.complete_task(new_task.id)
        await repository.activate_task(new_task.id)
        await repository.delete_task(new_task.id)
        await repository.clear_completed_tasks()
        await repository.delete_all_tasks()

        assert [e.type for e in events] == [
            TaskEventType.SAVED,
            TaskEventType.COMPLETED,
            TaskEventType.ACTIVATED,
            TaskEventType.DELETED,
            TaskEventType.CLEARED_COMPLETED,
            TaskEventType.DELETED_ALL,
        ]
        assert events[0].task == new_task

    @pytest.mark.asyncio
    async def test_async_listener_and_unsubscribe(self, remote_source, local_source, new_task):
        repository = TasksRepository(remote_source, local_source)
        received = []

        async def listener(event):
            received.append(event.task_id)

        unsubscribe = repository.subscribe(listener)
        await repository.save_task(new_task)
        unsubscribe()
        await repository.delete_task(new_task.id)

        assert received == [new_task.id]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_write(
        self, remote_source, local_source, new_task
    ):
        repository = TasksRepository(remote_source, local_source)

        def listener(event):
            raise RuntimeError("boom")

        repository.subscribe(listener)

        assert await repository.save_task(new_task) == new_task
        assert new_task in local_source.tasks

    @pytest.mark.asyncio
    async def test_cancelled_refresh_leaves_cache_untouched(self, task1, task2, task3):
        remote = InMemoryTaskDataSource([task1, task2], name="remote", latency=0.05)
        local = InMemoryTaskDataSource([task3], name="local")
        repository = TasksRepository(remote, local)

        call = asyncio.create_task(repository.get_tasks())
        await asyncio.sleep(0.01)
        call.cancel()
        with pytest.raises(asyncio.CancelledError):
            await call

        assert not repository.is_cache_initialized
        assert repository.cache_is_dirty
        assert local.tasks == [task3]

    @pytest.mark.asyncio
    async def test_cancelled_mirroring_keeps_local_tasks(self, task1, task2, task3):
        """Interrupting the local mirror should never leave local emptier than before."""
        remote = InMemoryTaskDataSource([task1, task2], name="remote")
        local = InMemoryTaskDataSource([task3], name="local", latency=0.1)
        repository = TasksRepository(remote, local)

        call = asyncio.create_task(repository.get_tasks())
        await asyncio.sleep(0.15)
        call.cancel()
        with pytest.raises(asyncio.CancelledError):
            await call

        assert local.tasks == [task3, task1]
        assert not repository.is_cache_initialized

    @pytest.mark.asyncio
    async def test_refresh_prunes_tasks_missing_from_remote(self, task1, task2, task3):
        remote = InMemoryTaskDataSource([task1, task2], name="remote")
        local = InMemoryTaskDataSource([task3, task1], name="local")
        repository = TasksRepository(remote, local)

        await repository.refresh_tasks()

        assert local.tasks == [task1, task2]
        assert local.calls["delete_all_tasks"] == 0
        assert local.calls["delete_task"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_reads_hit_remote_once(self, task1, task2):
        remote = InMemoryTaskDataSource([task1, task2], name="remote", latency=0.01)
        local = InMemoryTaskDataSource(name="local")
        repository = TasksRepository(remote, local)

        results = await asyncio.gather(*(repository.get_tasks() for _ in range(3)))

        assert all(r == [task1, task2] for r in results)
        assert remote.calls["get_tasks"] == 1
