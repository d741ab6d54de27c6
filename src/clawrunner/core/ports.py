# src/clawrunner/core/ports.py

"""
Ports (interfaces) used by the core.

The scheduler and the interactive path depend on Protocols instead of concrete
implementations. This keeps the backend technology and the storage swappable
and makes testing easier.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..agent.backend import BackendSpec, BackendStatus, ExecOutcome
    from ..agent.models import ExecutionRequest, ExecutionResult
    from ..tasks.task_models import Task


class AgentRunner(Protocol):
    """Hands one request to the backend and waits for it. Never raises for backend errors."""

    def execute(self, request: ExecutionRequest) -> ExecutionResult: ...


class BackendDriver(Protocol):
    """How we observe and drive the backend (docker CLI, another runtime, a fake...)."""

    def inspect(self, name: str) -> BackendStatus: ...
    def start(self, name: str) -> None: ...
    def create(self, spec: BackendSpec) -> None: ...
    def exec_agent(self, spec: BackendSpec, payload: str) -> ExecOutcome: ...


class TaskRepo(Protocol):
    # Scheduler API
    def get_active_tasks(self) -> list[Task]: ...
    def update_run_times(
            self,
            task_id: str,
            *,
            last_run: datetime | None | Any = ...,
            next_run: datetime | None | Any = ...,
    ) -> None: ...

    # Management API (CLI / console)
    def upsert_task(self, task: Task) -> None: ...
    def get_task(self, task_id: str) -> Task | None: ...
    def list_tasks(self) -> list[Task]: ...
    def set_task_status(self, task_id: str, status: Any) -> bool: ...
    def delete_task(self, task_id: str) -> bool: ...
