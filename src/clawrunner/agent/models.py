# src/clawrunner/agent/models.py

from __future__ import annotations

import json
from dataclasses import asdict, dataclass


@dataclass(slots=True, frozen=True)
class ExecutionRequest:
    """One agent invocation. Serialized as a single JSON object on the backend's stdin."""

    prompt: str
    session_id: str
    target_context: str
    correlation_id: str
    is_primary: bool = False
    is_scheduled: bool = False

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    ok: bool
    transcript: str = ""
    error: str | None = None
    duration_s: float = 0.0

    @classmethod
    def success(cls, transcript: str, *, duration_s: float = 0.0) -> ExecutionResult:
        return cls(ok=True, transcript=transcript, duration_s=duration_s)

    @classmethod
    def failure(cls, message: str, *, duration_s: float = 0.0) -> ExecutionResult:
        return cls(ok=False, error=message, duration_s=duration_s)

    def display_text(self) -> str:
        """What a user-facing surface should show for this result."""
        if self.ok:
            return self.transcript
        return f"Error: {self.error}"
