# src/clawrunner/agent/worker.py

"""
Interactive invocation path.

A UI (console REPL, one-shot command) never calls the backend on its own
thread: it hands requests to an AgentWorker over a request channel and reads
results from a response channel. At most one request is in flight per worker;
a second submit() while busy is refused.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass

from ..core.ports import AgentRunner
from .models import ExecutionRequest, ExecutionResult

logger = logging.getLogger(__name__)

PRIMARY_TARGET = "main"
INTERACTIVE_SESSION_ID = "interactive"


def build_interactive_request(
    prompt: str,
    *,
    target: str = PRIMARY_TARGET,
    correlation_id: str = "console-user",
) -> ExecutionRequest:
    return ExecutionRequest(
        prompt=prompt,
        session_id=INTERACTIVE_SESSION_ID,
        target_context=target,
        correlation_id=correlation_id,
        is_primary=target == PRIMARY_TARGET,
        is_scheduled=False,
    )


@dataclass(slots=True, frozen=True)
class WorkerReply:
    request: ExecutionRequest
    result: ExecutionResult


class WorkerBusy(RuntimeError):
    pass


class AgentWorker:
    def __init__(self, runner: AgentRunner, *, name: str = "agent-worker") -> None:
        self._runner = runner
        self._requests: queue.Queue[ExecutionRequest | None] = queue.Queue()
        self._responses: queue.Queue[WorkerReply] = queue.Queue()
        self._busy = threading.Event()
        self._thread = threading.Thread(target=self._loop, name=name, daemon=True)

    @property
    def busy(self) -> bool:
        return self._busy.is_set()

    def start(self) -> AgentWorker:
        self._thread.start()
        logger.info("Worker thread started.")
        return self

    def stop(self, timeout: float | None = 5.0) -> None:
        self._requests.put(None)
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)

    def submit(self, request: ExecutionRequest) -> None:
        if self._busy.is_set():
            raise WorkerBusy("a request is already in flight")
        self._busy.set()
        self._requests.put(request)

    def get_reply(self, timeout: float | None = None) -> WorkerReply | None:
        try:
            return self._responses.get(timeout=timeout)
        except queue.Empty:
            return None

    def ask(self, request: ExecutionRequest, timeout: float | None = None) -> ExecutionResult:
        """
        submit() + wait. Returns a failure result if no reply arrives in time.

        Late replies to earlier (timed out) requests are dropped, so the caller
        only ever sees the result of its own request.
        """
        self.submit(request)
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            reply = self.get_reply(timeout=remaining)
            if reply is None:
                return ExecutionResult.failure("Timed out waiting for the agent worker.")
            if reply.request is request:
                return reply.result
            logger.warning("Dropping stale reply correlation_id=%s", reply.request.correlation_id)

    def _loop(self) -> None:
        while True:
            request = self._requests.get()
            if request is None:
                break

            logger.info("Processing input correlation_id=%s", request.correlation_id)
            try:
                result = self._runner.execute(request)
            except Exception as e:
                logger.exception("Agent runner crashed correlation_id=%s", request.correlation_id)
                result = ExecutionResult.failure(f"Internal error: {e}")

            self._busy.clear()
            self._responses.put(WorkerReply(request=request, result=result))

        logger.info("Worker thread finished.")
