# src/clawrunner/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Only ACTIVE tasks are evaluated by the scheduler. Tasks are never deleted
    by the scheduler itself; pausing/removing is a management operation.
    """

    ACTIVE = "active"
    PAUSED = "paused"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.ACTIVE
        try:
            return cls(raw.strip().lower())
        except ValueError:
            # Unknown status: don't fire something we can't classify.
            return cls.PAUSED


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def format_ts(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None


@dataclass(slots=True)
class Task:
    id: str
    target: str
    prompt: str
    schedule: str

    last_run: datetime | None = None
    next_run: datetime | None = None
    status: TaskStatus = TaskStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == TaskStatus.ACTIVE
