# src/clawrunner/agent/controller.py

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable

from ..core.ports import BackendDriver
from ..errors import ApplicationFailure, BackendError, BackendUnreachable, TransportError
from .backend import BackendAction, BackendSpec, BackendState, classify, next_action
from .models import ExecutionRequest, ExecutionResult
from .transcript import decode_stream

logger = logging.getLogger(__name__)

# Benign stderr lines (substring match) that must not turn a run into a failure.
DEFAULT_NOISE_PATTERNS: tuple[str, ...] = (
    "DeprecationWarning",
    "punycode",
    "YOLO mode",
    "Loaded cached credentials",
    "Hook registry",
)


def filter_diagnostics(stderr: str, patterns: Iterable[str] = DEFAULT_NOISE_PATTERNS) -> str:
    pats = [p for p in patterns if p]
    kept = [line for line in stderr.splitlines() if not any(p in line for p in pats)]
    return "\n".join(kept).strip()


class ExecutionController:
    """
    Guarantees the named backend is ready, then performs one request/response
    exchange with it.

    Readiness:
      READY    -> proceed
      STOPPED  -> start, then poll
      ABSENT   -> create (mounts, uid:gid, keep-alive command), then poll
      STARTING -> poll every poll_interval_s, up to health_timeout_s
      timeout  -> BackendUnreachable (this invocation only)

    Executions are serialized: the scheduler and the interactive worker share
    one controller and never run two exec sessions at the same time.
    """

    def __init__(
        self,
        driver: BackendDriver,
        spec: BackendSpec,
        *,
        health_timeout_s: float = 10.0,
        poll_interval_s: float = 0.2,
        noise_patterns: Iterable[str] = DEFAULT_NOISE_PATTERNS,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._driver = driver
        self._spec = spec
        self._health_timeout_s = max(0.0, float(health_timeout_s))
        self._poll_interval_s = max(0.01, float(poll_interval_s))
        self._noise_patterns = tuple(noise_patterns)
        self._sleep = sleep
        self._monotonic = monotonic
        self._exec_lock = threading.Lock()

    @property
    def spec(self) -> BackendSpec:
        return self._spec

    def probe(self) -> BackendState:
        return classify(self._driver.inspect(self._spec.name))

    def ensure_ready(self) -> None:
        """Drive the backend to READY or raise BackendUnreachable / TransportError."""
        name = self._spec.name
        state = self.probe()
        logger.debug("Backend %s state=%s", name, state.value)

        while True:
            action = next_action(state)
            if action == BackendAction.PROCEED:
                return
            if action == BackendAction.START:
                logger.info("Backend %s is stopped; starting", name)
                self._driver.start(name)
                state = BackendState.STARTING
            elif action == BackendAction.CREATE:
                logger.info("Backend %s does not exist; creating", name)
                self._driver.create(self._spec)
                state = BackendState.STARTING
            elif action == BackendAction.POLL:
                state = self._wait_until_ready()
            else:
                raise BackendUnreachable(
                    f"backend {name} not ready after {self._health_timeout_s:.1f}s"
                )

    def _wait_until_ready(self) -> BackendState:
        deadline = self._monotonic() + self._health_timeout_s
        while True:
            state = self.probe()
            if state == BackendState.READY:
                logger.info("Backend %s is ready", self._spec.name)
                return state
            if self._monotonic() >= deadline:
                logger.error("Backend %s still %s at readiness timeout", self._spec.name, state.value)
                return BackendState.UNREACHABLE
            self._sleep(self._poll_interval_s)

    def run(self, request: ExecutionRequest) -> str:
        """
        Raising variant: returns the transcript, or raises BackendUnreachable,
        TransportError or ApplicationFailure.
        """
        with self._exec_lock:
            self.ensure_ready()

            logger.info(
                "Executing request correlation_id=%s target=%s scheduled=%s",
                request.correlation_id,
                request.target_context,
                request.is_scheduled,
            )
            outcome = self._driver.exec_agent(self._spec, request.to_json())

        if outcome.stderr:
            logger.debug("backend stderr (raw) correlation_id=%s:\n%s", request.correlation_id, outcome.stderr)

        filtered = filter_diagnostics(outcome.stderr, self._noise_patterns)
        if outcome.exit_code != 0:
            if filtered:
                raise ApplicationFailure(outcome.exit_code, filtered)
            logger.warning(
                "Backend exited with %s but only benign diagnostics; decoding output anyway",
                outcome.exit_code,
            )

        return decode_stream(outcome.stdout_lines)

    def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Structured variant used by the scheduler and the interactive path."""
        started = time.monotonic()
        try:
            transcript = self.run(request)
        except ApplicationFailure as e:
            logger.error("Agent failed correlation_id=%s: %s", request.correlation_id, e)
            return ExecutionResult.failure(str(e), duration_s=time.monotonic() - started)
        except TransportError as e:
            logger.error("Backend transport error correlation_id=%s: %s", request.correlation_id, e)
            return ExecutionResult.failure(f"Transport error: {e}", duration_s=time.monotonic() - started)
        except BackendError as e:
            logger.error("Backend unavailable correlation_id=%s: %s", request.correlation_id, e)
            return ExecutionResult.failure(f"Backend unreachable: {e}", duration_s=time.monotonic() - started)

        elapsed = time.monotonic() - started
        logger.info("Agent finished correlation_id=%s in %.1fs", request.correlation_id, elapsed)
        return ExecutionResult.success(transcript, duration_s=elapsed)
