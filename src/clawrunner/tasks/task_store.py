# src/clawrunner/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path

from ..errors import StoreError
from .task_models import Task, TaskStatus, format_ts, parse_ts

logger = logging.getLogger(__name__)

_UNSET = object()


class TaskStore:
    """
    SQLite task store (+ a small key-value table used by the auth flow).

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - one connection shared by the scheduler thread and the CLI,
      every read/write is serialized through a single RLock
    """

    def __init__(self, db_path: str | Path = "clawrunner.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(str(self._db_path), timeout=30.0, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreError(f"cannot open task database {self._db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._configure_conn(self._conn)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        with self._lock:
            with contextlib.suppress(sqlite3.Error):
                self._conn.close()

    # ---- low-level helpers ----

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _cursor(self, what: str) -> Iterator[sqlite3.Cursor]:
        """Locked cursor; commits on success, rolls back and raises StoreError on failure."""
        with self._lock:
            try:
                cur = self._conn.cursor()
                yield cur
                self._conn.commit()
            except sqlite3.Error as e:
                with contextlib.suppress(sqlite3.Error):
                    self._conn.rollback()
                raise StoreError(f"{what} failed: {e}") from e

    def _ensure_schema(self) -> None:
        with self._cursor("schema init") as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    target TEXT NOT NULL,
                    prompt TEXT NOT NULL,
                    schedule TEXT NOT NULL,
                    last_run TEXT,
                    next_run TEXT,
                    status TEXT NOT NULL DEFAULT 'active'
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS auth_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("last_run", "TEXT")
            add_col("next_run", "TEXT")
            add_col("status", "TEXT NOT NULL DEFAULT 'active'")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            target=str(row["target"] or ""),
            prompt=str(row["prompt"] or ""),
            schedule=str(row["schedule"] or ""),
            last_run=parse_ts(row["last_run"]),
            next_run=parse_ts(row["next_run"]),
            status=TaskStatus.from_db(row["status"]),
        )

    # ---- tasks ----

    def count_tasks(self) -> int:
        with self._cursor("count_tasks") as cur:
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)

    def upsert_task(self, task: Task) -> None:
        """Insert or fully replace a task record (management operations)."""
        if not task.id or not task.id.strip():
            raise ValueError("task id is required")
        if not task.prompt or not task.prompt.strip():
            raise ValueError("prompt is required")
        if not task.schedule or not task.schedule.strip():
            raise ValueError("schedule is required")

        with self._cursor("upsert_task") as cur:
            cur.execute(
                """
                INSERT OR REPLACE INTO tasks(id, target, prompt, schedule, last_run, next_run, status)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id.strip(),
                    task.target,
                    task.prompt,
                    task.schedule.strip(),
                    format_ts(task.last_run),
                    format_ts(task.next_run),
                    task.status.value,
                ),
            )
        logger.debug("Task upserted id=%s schedule=%s status=%s", task.id, task.schedule, task.status.value)

    def get_task(self, task_id: str) -> Task | None:
        with self._cursor("get_task") as cur:
            cur.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None

    def list_tasks(self) -> list[Task]:
        with self._cursor("list_tasks") as cur:
            cur.execute("SELECT * FROM tasks ORDER BY id ASC")
            return [self._row_to_task(r) for r in cur.fetchall()]

    def get_active_tasks(self) -> list[Task]:
        with self._cursor("get_active_tasks") as cur:
            cur.execute("SELECT * FROM tasks WHERE status = 'active' ORDER BY id ASC")
            return [self._row_to_task(r) for r in cur.fetchall()]

    def update_run_times(
        self,
        task_id: str,
        *,
        last_run: datetime | None | object = _UNSET,
        next_run: datetime | None | object = _UNSET,
    ) -> None:
        """
        Partial update of the scheduling columns only.

        Pass None explicitly to clear a column; omit an argument to leave it as-is.
        """
        fields: list[str] = []
        params: list[str | None] = []

        if last_run is not _UNSET:
            fields.append("last_run = ?")
            params.append(format_ts(last_run))  # type: ignore[arg-type]

        if next_run is not _UNSET:
            fields.append("next_run = ?")
            params.append(format_ts(next_run))  # type: ignore[arg-type]

        if not fields:
            return

        params.append(task_id)
        with self._cursor("update_run_times") as cur:
            cur.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)

    def set_task_status(self, task_id: str, status: TaskStatus) -> bool:
        with self._cursor("set_task_status") as cur:
            cur.execute("UPDATE tasks SET status = ? WHERE id = ?", (status.value, task_id))
            return cur.rowcount == 1

    def delete_task(self, task_id: str) -> bool:
        with self._cursor("delete_task") as cur:
            cur.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cur.rowcount == 1

    # ---- key-value (auth flow) ----

    def get_auth_key(self, key: str) -> str | None:
        with self._cursor("get_auth_key") as cur:
            cur.execute("SELECT value FROM auth_store WHERE key = ?", (key,))
            row = cur.fetchone()
            return str(row["value"]) if row else None

    def set_auth_key(self, key: str, value: str) -> None:
        with self._cursor("set_auth_key") as cur:
            cur.execute("INSERT OR REPLACE INTO auth_store(key, value) VALUES (?, ?)", (key, value))

    def delete_auth_key(self, key: str) -> None:
        with self._cursor("delete_auth_key") as cur:
            cur.execute("DELETE FROM auth_store WHERE key = ?", (key,))
