# src/clawrunner/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..agent.controller import ExecutionController
    from ..agent.worker import AgentWorker
    from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    task_store: TaskStore
    controller: ExecutionController

    # Set by the interactive path (console) once its worker thread is running.
    worker: AgentWorker | None = None
