# src/clawrunner/logging_setup.py

from __future__ import annotations

import collections
import logging
import sys
import threading
from pathlib import Path


class _ConsoleNoiseFilter(logging.Filter):
    """
    Make interactive console usable:
    - allow clawrunner logs
    - but keep the scheduler quiet (it runs in the background) unless WARNING+
    - suppress Python warnings (captured as 'py.warnings') unless ERROR+
    - suppress third-party noise unless ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("clawrunner."):
            if name.startswith("clawrunner.tasks.task_scheduler"):
                return record.levelno >= logging.WARNING
            return True

        if name == "py.warnings":
            return record.levelno >= logging.ERROR

        return record.levelno >= logging.ERROR


class RecentLogsHandler(logging.Handler):
    """Keeps the last `capacity` formatted lines in memory (backs the /logs command)."""

    def __init__(self, capacity: int = 100) -> None:
        super().__init__()
        self._lines: collections.deque[str] = collections.deque(maxlen=capacity)
        self._lines_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record).strip()
        except Exception:
            self.handleError(record)
            return
        with self._lines_lock:
            self._lines.append(line)

    def get_lines(self, limit: int | None = None) -> list[str]:
        with self._lines_lock:
            lines = list(self._lines)
        if limit is not None and limit >= 0:
            return lines[-limit:] if limit else []
        return lines


_recent_handler: RecentLogsHandler | None = None


def get_recent_logs(limit: int | None = None) -> list[str]:
    if _recent_handler is None:
        return []
    return _recent_handler.get_lines(limit)


def setup_logging(
    *,
    log_dir: str | Path = ".local/clawrunner",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    console: bool = True,
) -> None:
    """
    Configure logging with:
    - Console handler: readable + filtered for interactive use
    - File handler: full logs (including raw backend stderr) for debugging
    - In-memory handler: recent lines for the console /logs command

    Call this ONCE, very early (before first logger.info).
    """
    global _recent_handler

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "clawrunner.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if console:
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(console_level)
        ch.setFormatter(fmt)
        ch.addFilter(_ConsoleNoiseFilter())
        root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    _recent_handler = RecentLogsHandler()
    _recent_handler.setLevel(logging.INFO)
    _recent_handler.setFormatter(fmt)
    root.addHandler(_recent_handler)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
