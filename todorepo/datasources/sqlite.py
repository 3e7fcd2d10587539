"""SQLite task data source (the durable local store), using aiosqlite."""

from pathlib import Path
from typing import Optional, Union
import logging

import aiosqlite

from todorepo.domain.errors import SourceUnavailableError
from todorepo.domain.models import Task
from todorepo.domain.protocols import TaskOrId


logger = logging.getLogger(__name__)

TABLE_NAME = "tasks"

_TASKS_DDL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    entryid     TEXT PRIMARY KEY,
    title       TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    completed   INTEGER NOT NULL DEFAULT 0,
    position    INTEGER NOT NULL DEFAULT 0
);
"""


class SqliteTaskDataSource:
    """Local task store backed by a SQLite database file.

    The source is unavailable until connect() is called and after close().
    """

    def __init__(
        self,
        database_path: Union[str, Path] = ":memory:",
        *,
        name: str = "local",
    ) -> None:
        """Initialize the SQLite data source.

        Args:
            database_path: Path to the database file, or ":memory:"
            name: Source name used in logs and errors
        """
        self.name = name
        self._database_path = str(database_path)
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> "SqliteTaskDataSource":
        """Open the database and create the schema if needed."""
        if self._conn is not None:
            return self
        if self._database_path != ":memory:":
            Path(self._database_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = await aiosqlite.connect(self._database_path)
            await conn.execute(_TASKS_DDL)
            await conn.commit()
        except aiosqlite.Error as e:
            raise SourceUnavailableError(self.name, str(e)) from e
        conn.row_factory = aiosqlite.Row
        self._conn = conn
        logger.debug(f"Opened local task store at {self._database_path}")
        return self

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()

    async def __aenter__(self) -> "SqliteTaskDataSource":
        return await self.connect()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise SourceUnavailableError(self.name, "database is not open")
        return self._conn

    async def _execute(self, sql: str, params: tuple = ()) -> None:
        conn = self._connection()
        try:
            await conn.execute(sql, params)
            await conn.commit()
        except aiosqlite.Error as e:
            raise SourceUnavailableError(self.name, str(e)) from e

    async def _fetch(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        conn = self._connection()
        try:
            cursor = await conn.execute(sql, params)
            return list(await cursor.fetchall())
        except aiosqlite.Error as e:
            raise SourceUnavailableError(self.name, str(e)) from e

    async def get_tasks(self) -> list[Task]:
        """Return all tasks in insertion order."""
        rows = await self._fetch(
            f"SELECT * FROM {TABLE_NAME} ORDER BY position, rowid"
        )
        return [self._row_to_task(row) for row in rows]

    async def get_task(self, task_id: str) -> Optional[Task]:
        """Return a task by id, or None."""
        rows = await self._fetch(
            f"SELECT * FROM {TABLE_NAME} WHERE entryid = ?", (task_id,)
        )
        if not rows:
            return None
        return self._row_to_task(rows[0])

    async def save_task(self, task: Task) -> None:
        """Insert a task or overwrite the one with the same id."""
        await self._execute(
            f"""
            INSERT INTO {TABLE_NAME} (entryid, title, description, completed, position)
            VALUES (?, ?, ?, ?, (SELECT COALESCE(MAX(position), 0) + 1 FROM {TABLE_NAME}))
            ON CONFLICT(entryid) DO UPDATE SET
                title = excluded.title,
                description = excluded.description,
                completed = excluded.completed
            """,
            (task.id, task.title, task.description, int(task.is_completed)),
        )

    async def complete_task(self, task: TaskOrId) -> None:
        """Mark a task as completed."""
        await self._set_completed(task, True)

    async def activate_task(self, task: TaskOrId) -> None:
        """Mark a task as active."""
        await self._set_completed(task, False)

    async def clear_completed_tasks(self) -> None:
        """Delete completed tasks."""
        await self._execute(f"DELETE FROM {TABLE_NAME} WHERE completed = 1")

    async def delete_all_tasks(self) -> None:
        """Delete all tasks."""
        await self._execute(f"DELETE FROM {TABLE_NAME}")

    async def delete_task(self, task_id: str) -> None:
        """Delete a task by id."""
        await self._execute(f"DELETE FROM {TABLE_NAME} WHERE entryid = ?", (task_id,))

    async def _set_completed(self, task: TaskOrId, completed: bool) -> None:
        if isinstance(task, Task):
            # Saving the object keeps a task that was never stored locally.
            await self.save_task(task.completed() if completed else task.activated())
            return
        await self._execute(
            f"UPDATE {TABLE_NAME} SET completed = ? WHERE entryid = ?",
            (int(completed), task),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        return Task(
            id=row["entryid"],
            title=row["title"],
            description=row["description"],
            is_completed=bool(row["completed"]),
        )
