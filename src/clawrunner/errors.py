# src/clawrunner/errors.py

"""
Error taxonomy.

- InvalidSchedule     -> bad cron / "every X" syntax (scheduler skips the task)
- BackendUnreachable  -> backend could not be created/started/made healthy in time
- TransportError      -> could not spawn or talk to the backend at all
- ApplicationFailure  -> backend ran but exited non-zero with real diagnostics
- StoreError          -> persistence I/O failure (propagates to the caller)
"""

from __future__ import annotations


class ClawRunnerError(Exception):
    """Base class for all project errors."""


class InvalidSchedule(ClawRunnerError):
    def __init__(self, schedule: str, reason: str) -> None:
        super().__init__(f"Invalid schedule {schedule!r}: {reason}")
        self.schedule = schedule
        self.reason = reason


class BackendError(ClawRunnerError):
    """Anything that prevents a request from reaching a ready backend."""


class BackendUnreachable(BackendError):
    pass


class TransportError(BackendError):
    pass


class ApplicationFailure(ClawRunnerError):
    def __init__(self, exit_code: int, diagnostics: str) -> None:
        super().__init__(f"Exit code {exit_code}: {diagnostics}")
        self.exit_code = exit_code
        self.diagnostics = diagnostics


class StoreError(ClawRunnerError):
    pass
