# src/clawrunner/tasks/recurrence.py

"""
Recurrence calculator.

Two schedule flavours are stored as plain strings on a task:
- "every <amount><unit>" with unit in s/m/h/d, e.g. "every 30m"
- a cron expression, e.g. "0 9 * * 1-5"; with 6 fields the first one is
  seconds ("0 */5 * * * *")

Nothing here does I/O; the scheduler parses the stored string on every tick.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Final

from croniter import CroniterError, croniter

from ..errors import InvalidSchedule
from .task_models import ensure_utc

logger = logging.getLogger(__name__)

EVERY_PREFIX: Final = "every "

UNIT_SECONDS: Final[dict[str, int]] = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
}

_AMOUNT_UNIT_RE = re.compile(r"(?P<amount>\d*)(?P<unit>.*)")


@dataclass(slots=True, frozen=True)
class CronSchedule:
    expression: str


@dataclass(slots=True, frozen=True)
class EverySchedule:
    amount: int
    unit: str

    @property
    def interval(self) -> timedelta:
        return timedelta(seconds=self.amount * UNIT_SECONDS[self.unit])


ScheduleSpec = CronSchedule | EverySchedule


def _seconds_first(expression: str) -> bool:
    """6+ field expressions carry seconds as the leading field."""
    return len(expression.split()) >= 6


def parse_schedule(text: str) -> ScheduleSpec:
    """Parse a stored schedule string. Raises InvalidSchedule."""
    raw = (text or "").strip()
    if not raw:
        raise InvalidSchedule(text, "empty schedule")

    if raw.startswith(EVERY_PREFIX):
        parts = raw.split()
        if len(parts) != 2:
            raise InvalidSchedule(text, "expected 'every <amount><unit>'")

        m = _AMOUNT_UNIT_RE.fullmatch(parts[1])
        amount_str = m.group("amount") if m else ""
        unit = m.group("unit") if m else ""

        if not amount_str:
            raise InvalidSchedule(text, f"non-numeric amount in {parts[1]!r}")
        if unit not in UNIT_SECONDS:
            raise InvalidSchedule(text, f"unknown unit {unit!r} (use s, m, h or d)")

        amount = int(amount_str)
        if amount <= 0:
            raise InvalidSchedule(text, "amount must be positive")
        try:
            timedelta(seconds=amount * UNIT_SECONDS[unit])
        except OverflowError as e:
            raise InvalidSchedule(text, "interval too large") from e
        return EverySchedule(amount=amount, unit=unit)

    if not croniter.is_valid(raw, second_at_beginning=_seconds_first(raw)):
        raise InvalidSchedule(text, "bad cron expression")
    return CronSchedule(expression=raw)


def next_due(
    spec: ScheduleSpec,
    last_run: datetime | None,
    now: datetime,
) -> datetime | None:
    """
    Next due timestamp, always strictly after `now`.

    Every: without last_run -> now + interval. With last_run -> the first
    last_run + k*interval that is after now. Missed intervals collapse into
    that single slot; they are never queued.
    None if that slot is past datetime.max.

    Cron: next occurrence after now, or None if none can be computed.
    """
    now = ensure_utc(now)

    if isinstance(spec, EverySchedule):
        try:
            step = spec.interval
            if last_run is None:
                return now + step

            candidate = ensure_utc(last_run) + step
            if candidate > now:
                return candidate
            missed = (now - candidate) // step + 1
            return candidate + missed * step
        except OverflowError:
            logger.debug("every interval runs past datetime.max: %s", spec, exc_info=True)
            return None

    try:
        it = croniter(spec.expression, now, second_at_beginning=_seconds_first(spec.expression))
        nxt = ensure_utc(it.get_next(datetime))
        while nxt <= now:
            nxt = ensure_utc(it.get_next(datetime))
    except (CroniterError, ValueError, KeyError):
        logger.debug("cron expression yields no next run: %s", spec.expression, exc_info=True)
        return None
    return nxt
