"""
Local backend using aiosqlite and the filesystem.

Stands in for the hosted backend when working offline:
- Rows: a `tasks` table in a SQLite file, scoped to the session's user
- Blobs: files under a directory, one subdirectory per bucket
- Creation function: inserts the row as given (no AI enrichment)
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

import aiosqlite

from taskmate.backend.interface import BlobStore, RowStore, Session, TaskFunction
from taskmate.errors import BackendError

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS tasks (
        task_id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        completed INTEGER NOT NULL DEFAULT 0,
        priority TEXT DEFAULT 'Medium',
        label TEXT,
        due_date TEXT,
        image_url TEXT,
        created_at TEXT,
        updated_at TEXT
    )
"""

COLUMNS = (
    "task_id", "user_id", "title", "description", "completed", "priority",
    "label", "due_date", "image_url", "created_at", "updated_at",
)


def _check_columns(columns) -> None:
    unknown = [c for c in columns if c not in COLUMNS]
    if unknown:
        raise BackendError(f"Unknown column(s): {', '.join(unknown)}")


def _to_sql(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _from_sql(row: aiosqlite.Row) -> dict:
    data = dict(row)
    data["completed"] = bool(data.get("completed"))
    return data


class SQLiteRowStore(RowStore):
    """
    Task rows in a SQLite file.

    Every query is restricted to the session's user, like row-level security
    on the hosted backend. The file and its parent directories are created on
    first connect.
    """

    def __init__(self, db_path: str, session: Session):
        """
        Initialize the row store.

        Args:
            db_path: Path to SQLite database file. Supports ~ expansion.
            session: Session whose rows are visible
        """
        self.db_path = Path(db_path).expanduser()
        self.session = session
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        """Open the database and create the tasks table if needed."""
        if self._conn is not None:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.db_path))
        await self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute(SCHEMA)
        await self._conn.commit()

        logger.info(f"SQLite database connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite connection closed")

    async def _get_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.connect()
        return self._conn

    async def _execute(self, query: str, *args) -> int:
        conn = await self._get_conn()
        try:
            cursor = await conn.execute(query, args)
            await conn.commit()
        except aiosqlite.Error as e:
            raise BackendError(str(e)) from e
        return cursor.rowcount

    async def _fetch(self, query: str, *args) -> list[dict]:
        conn = await self._get_conn()
        try:
            cursor = await conn.execute(query, args)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise BackendError(str(e)) from e
        return [_from_sql(row) for row in rows]

    async def select(
        self,
        filters: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> list[dict]:
        filters = dict(filters or {})
        _check_columns(filters)

        conditions = ["user_id = ?"]
        params = [self.session.user_id]
        for column, value in filters.items():
            conditions.append(f"{column} = ?")
            params.append(_to_sql(value))

        sql = f"SELECT * FROM tasks WHERE {' AND '.join(conditions)}"
        if order_by:
            _check_columns([order_by])
            sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"

        return await self._fetch(sql, *params)

    async def insert(self, row: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        row = {
            "task_id": str(uuid4()),
            "completed": False,
            "priority": "Medium",
            "created_at": now,
            "updated_at": now,
            **row,
            "user_id": self.session.user_id,
        }
        _check_columns(row)

        columns = list(row)
        placeholders = ", ".join("?" for _ in columns)
        await self._execute(
            f"INSERT INTO tasks ({', '.join(columns)}) VALUES ({placeholders})",
            *[_to_sql(row[c]) for c in columns],
        )

        rows = await self._fetch(
            "SELECT * FROM tasks WHERE task_id = ? AND user_id = ?",
            row["task_id"], self.session.user_id,
        )
        return rows[0]

    async def update(self, task_id: str, patch: dict) -> None:
        patch = {k: v for k, v in patch.items() if k not in ("task_id", "user_id")}
        if not patch:
            return
        _check_columns(patch)

        set_clause = ", ".join(f"{column} = ?" for column in patch)
        await self._execute(
            f"UPDATE tasks SET {set_clause} WHERE task_id = ? AND user_id = ?",
            *[_to_sql(v) for v in patch.values()], task_id, self.session.user_id,
        )

    async def delete(self, task_id: str) -> None:
        await self._execute(
            "DELETE FROM tasks WHERE task_id = ? AND user_id = ?",
            task_id, self.session.user_id,
        )


class FileBlobStore(BlobStore):
    """Attachments as plain files under <root>/<bucket>/<path>."""

    def __init__(self, root: str, bucket: str = "task-attachments"):
        self.root = Path(root).expanduser()
        self.bucket = bucket

    @property
    def public_base(self) -> str:
        return self.root.resolve().as_uri()

    def _target(self, path: str) -> Path:
        base = (self.root / self.bucket).resolve()
        target = (base / path).resolve()
        if base not in target.parents:
            raise BackendError(f"Invalid object path: {path}")
        return target

    async def upload(
        self,
        path: str,
        content: bytes,
        content_type: str,
        overwrite: bool = True,
    ) -> None:
        target = self._target(path)
        if target.exists() and not overwrite:
            raise BackendError("The resource already exists", 409)

        target.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_bytes, content)
        logger.info(f"Stored {len(content)} bytes ({content_type}) at {target}")

    async def remove(self, path: str) -> None:
        target = self._target(path)
        await asyncio.to_thread(target.unlink, True)
        logger.info(f"Removed {target}")


class LocalTaskFunction(TaskFunction):
    """Creates tasks by inserting them directly into the local row store."""

    def __init__(self, rows: SQLiteRowStore):
        self.rows = rows

    async def create_task(self, title: str, description: str, priority: str) -> Optional[dict]:
        return await self.rows.insert({
            "title": title,
            "description": description,
            "priority": priority,
        })
