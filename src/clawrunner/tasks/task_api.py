# src/clawrunner/tasks/task_api.py

from __future__ import annotations

import logging
from datetime import datetime

from ..core.ports import TaskRepo
from .recurrence import next_due, parse_schedule
from .task_models import Task, TaskStatus, utcnow

logger = logging.getLogger(__name__)


def add_task(
    store: TaskRepo,
    *,
    task_id: str,
    prompt: str,
    schedule: str,
    target: str = "main",
    now: datetime | None = None,
) -> Task:
    """
    Create (or replace) an active task.

    The schedule is validated up front (raises InvalidSchedule) and the first
    next_run is projected so `task list` shows it right away.
    """
    spec = parse_schedule(schedule)
    task = Task(
        id=task_id.strip(),
        target=target.strip() or "main",
        prompt=prompt.strip(),
        schedule=schedule.strip(),
        next_run=next_due(spec, None, now or utcnow()),
        status=TaskStatus.ACTIVE,
    )
    store.upsert_task(task)
    logger.info("Task %s scheduled (%s) next_run=%s", task.id, task.schedule, task.next_run)
    return task


def pause_task(store: TaskRepo, task_id: str) -> bool:
    return store.set_task_status(task_id, TaskStatus.PAUSED)


def resume_task(store: TaskRepo, task_id: str) -> bool:
    """
    Re-activate a task. next_run is cleared so the scheduler re-projects it
    instead of firing a stale slot from before the pause.
    """
    task = store.get_task(task_id)
    if task is None:
        return False
    task.status = TaskStatus.ACTIVE
    task.next_run = None
    store.upsert_task(task)
    return True


def remove_task(store: TaskRepo, task_id: str) -> bool:
    return store.delete_task(task_id)


def describe_task(task: Task) -> str:
    def ts(dt: datetime | None) -> str:
        return dt.strftime("%Y-%m-%d %H:%M:%S %Z") if dt else "-"

    return (
        f"{task.id} [{task.status.value}] target={task.target} schedule={task.schedule!r} "
        f"last_run={ts(task.last_run)} next_run={ts(task.next_run)}"
    )
