"""Shared pytest fixtures."""

import pytest

from todorepo.datasources.memory import InMemoryTaskDataSource
from todorepo.domain.models import Task


@pytest.fixture
def task1() -> Task:
    return Task(title="Title1", description="Description1")


@pytest.fixture
def task2() -> Task:
    return Task(title="Title2", description="Description2")


@pytest.fixture
def task3() -> Task:
    return Task(title="Title3", description="Description3")


@pytest.fixture
def new_task() -> Task:
    return Task(title="Title new", description="Description new")


@pytest.fixture
def remote_source(task1, task2) -> InMemoryTaskDataSource:
    """Simulated remote holding task1 and task2."""
    return InMemoryTaskDataSource([task1, task2], name="remote")


@pytest.fixture
def local_source(task3) -> InMemoryTaskDataSource:
    """Local store holding task3."""
    return InMemoryTaskDataSource([task3], name="local")
