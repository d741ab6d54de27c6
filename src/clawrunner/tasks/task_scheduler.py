# src/clawrunner/tasks/task_scheduler.py

"""
Task scheduler.

A small polling loop that, every tick:
- fetches active tasks,
- parses each schedule and computes its next due time,
- keeps the stored next_run projection current,
- fires due tasks through an injected AgentRunner port,
- records last_run / next_run after every fire (even a failed one).

Tasks are evaluated one after another; a broken task never stops the others.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from ..agent.models import ExecutionRequest
from ..core.ports import AgentRunner, TaskRepo
from ..errors import InvalidSchedule
from .recurrence import ScheduleSpec, next_due, parse_schedule
from .task_models import Task, ensure_utc, utcnow

logger = logging.getLogger(__name__)

SCHEDULED_SESSION_ID = "scheduled-task"


@dataclass(slots=True)
class TickReport:
    """What happened during one evaluation pass."""

    evaluated: int = 0
    fired: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    refreshed: list[str] = field(default_factory=list)
    skipped_invalid: list[str] = field(default_factory=list)
    exhausted: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def build_request(task: Task) -> ExecutionRequest:
    return ExecutionRequest(
        prompt=task.prompt,
        session_id=SCHEDULED_SESSION_ID,
        target_context=task.target,
        correlation_id=f"{SCHEDULED_SESSION_ID}-{task.id}",
        is_primary=False,
        is_scheduled=True,
    )


class TaskScheduler:
    def __init__(
        self,
        task_store: TaskRepo,
        runner: AgentRunner,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = task_store
        self._runner = runner
        self._clock = clock

    def run_tick(self, now: datetime | None = None) -> TickReport:
        """
        One evaluation pass over all active tasks.

        Store errors while listing tasks propagate to the caller (the loop logs
        them); everything else is isolated per task.
        """
        now = ensure_utc(now or self._clock())
        report = TickReport()

        tasks = self._store.get_active_tasks()
        for task in tasks:
            report.evaluated += 1
            try:
                self._evaluate(task, now, report)
            except Exception:
                logger.exception("Task %s evaluation failed", task.id)
                report.errors.append(task.id)

        logger.info(
            "Scheduler tick: evaluated=%d fired=%d failed=%d invalid=%d",
            report.evaluated,
            len(report.fired),
            len(report.failed),
            len(report.skipped_invalid),
        )
        return report

    def _evaluate(self, task: Task, now: datetime, report: TickReport) -> None:
        try:
            spec = parse_schedule(task.schedule)
        except InvalidSchedule as e:
            logger.error("Task %s skipped: %s", task.id, e)
            report.skipped_invalid.append(task.id)
            return

        upcoming = next_due(spec, task.last_run, now)
        if upcoming is None:
            logger.info("No upcoming runs for task %s. Consider deactivating.", task.id)
            report.exhausted.append(task.id)
            return

        # The stored next_run is the due time. `upcoming` is always in the future:
        # it fills a missing projection or pulls in one that would skip a slot,
        # but never pushes a pending slot further out.
        due = task.next_run
        if due is not None and due <= now:
            self._fire(task, spec, now, report)
            return

        if due is None or due > upcoming:
            self._store.update_run_times(task.id, next_run=upcoming)
            task.next_run = upcoming
            report.refreshed.append(task.id)
            logger.info("Updated next_run for task %s: %s", task.id, upcoming.isoformat())

    def _fire(self, task: Task, spec: ScheduleSpec, now: datetime, report: TickReport) -> None:
        logger.info("Running task %s target=%s", task.id, task.target)
        report.fired.append(task.id)

        try:
            result = self._runner.execute(build_request(task))
        except Exception:
            logger.exception("Task %s agent invocation crashed", task.id)
            report.failed.append(task.id)
        else:
            if result.ok:
                logger.info("Task %s result: %s", task.id, result.transcript)
            else:
                logger.error("Task %s error: %s", task.id, result.error)
                report.failed.append(task.id)

        # A failed run still consumes its slot.
        new_next = next_due(spec, now, now)
        self._store.update_run_times(task.id, last_run=now, next_run=new_next)
        task.last_run = now
        task.next_run = new_next
        logger.info("Task %s completed, next run: %s", task.id, new_next.isoformat() if new_next else None)


async def run_task_scheduler(
        scheduler: TaskScheduler,
        *,
        interval_seconds: float = 60.0,
) -> None:
    """
    Fixed-period tick loop.

    Each tick runs in a worker thread (the agent call blocks on subprocess I/O)
    and fully completes before the next one is considered. To stop the
    scheduler, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    logger.info("Task scheduler started (interval=%ss)", sleep_s)

    while True:
        try:
            await asyncio.to_thread(scheduler.run_tick)
        except Exception:
            logger.exception("Error in scheduler tick")

        await asyncio.sleep(sleep_s)


@dataclass(slots=True)
class SchedulerBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Scheduler loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _run_until_stopped(scheduler: TaskScheduler, interval_seconds: float, stop_event: asyncio.Event) -> None:
    ticker = asyncio.create_task(run_task_scheduler(scheduler, interval_seconds=interval_seconds))
    try:
        await stop_event.wait()
    finally:
        ticker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await ticker


def start_scheduler_in_background(
        scheduler: TaskScheduler,
        *,
        interval_seconds: float = 60.0,
) -> SchedulerBackgroundRunner | None:
    """
    Start the tick loop in a background thread with its own event loop, so the
    blocking console REPL can own the main thread.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_until_stopped(scheduler, interval_seconds, stop_event))
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="task-scheduler", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Scheduler thread did not initialize properly.")
        return None

    logger.info("Scheduler background thread started.")
    return SchedulerBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
