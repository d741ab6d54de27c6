# src/clawrunner/agent/backend.py

"""
Execution backend: one long-lived container addressed by name.

Detection ("what does docker say?") and decision ("what do we do about it?")
are kept apart:
- a BackendDriver reports a BackendStatus (exists / running / health)
- classify() maps it onto BackendState
- next_action() is the single transition table

DockerCliDriver talks to the docker CLI through subprocess; any other
container/process technology only needs another driver.
"""

from __future__ import annotations

import json
import logging
import subprocess
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..errors import BackendUnreachable, TransportError

logger = logging.getLogger(__name__)


class BackendState(str, Enum):
    ABSENT = "absent"
    STOPPED = "stopped"
    STARTING = "starting"
    READY = "ready"
    UNREACHABLE = "unreachable"


class BackendAction(str, Enum):
    PROCEED = "proceed"
    START = "start"
    CREATE = "create"
    POLL = "poll"
    FAIL = "fail"


_TRANSITIONS: dict[BackendState, BackendAction] = {
    BackendState.READY: BackendAction.PROCEED,
    BackendState.STOPPED: BackendAction.START,
    BackendState.ABSENT: BackendAction.CREATE,
    BackendState.STARTING: BackendAction.POLL,
    BackendState.UNREACHABLE: BackendAction.FAIL,
}


def next_action(state: BackendState) -> BackendAction:
    return _TRANSITIONS[state]


@dataclass(slots=True, frozen=True)
class BackendStatus:
    """Raw observation of the backend, as reported by a driver."""

    exists: bool
    running: bool = False
    health: str | None = None  # None = no health check defined


def classify(status: BackendStatus) -> BackendState:
    if not status.exists:
        return BackendState.ABSENT
    if not status.running:
        return BackendState.STOPPED
    if status.health is None or status.health == "healthy":
        return BackendState.READY
    # "starting" / "unhealthy": keep polling until the readiness timeout.
    return BackendState.STARTING


@dataclass(slots=True, frozen=True)
class Mount:
    source: Path
    target: str
    read_only: bool = False

    def as_arg(self) -> str:
        spec = f"{self.source}:{self.target}"
        return f"{spec}:ro" if self.read_only else spec


@dataclass(slots=True, frozen=True)
class BackendSpec:
    """How to create the backend if it does not exist yet."""

    name: str
    image: str
    workspace_dir: Path
    workspace_target: str = "/workspace"
    credential_mounts: tuple[Mount, ...] = ()
    user: str | None = None  # "uid:gid"
    keepalive_command: tuple[str, ...] = ("sleep", "infinity")
    agent_command: tuple[str, ...] = ("node", "/app/entrypoint.js")

    def mounts(self) -> list[Mount]:
        """Workspace first, then every credential dir that actually exists on the host."""
        out = [Mount(self.workspace_dir, self.workspace_target)]
        for m in self.credential_mounts:
            if m.source.is_dir():
                out.append(m)
            else:
                logger.debug("Skipping missing credential dir %s", m.source)
        return out


def parse_credential_mount(raw: str, *, default_parent: str = "/home/agent") -> Mount:
    """
    "host_path"                -> mounted at <default_parent>/<basename>
    "host_path:container_path" -> mounted where asked
    """
    raw = raw.strip()
    host, sep, target = raw.partition(":")
    source = Path(host).expanduser()
    if not sep or not target:
        target = f"{default_parent}/{source.name}"
    return Mount(source, target)


@dataclass(slots=True)
class ExecOutcome:
    exit_code: int
    stdout_lines: list[str] = field(default_factory=list)
    stderr: str = ""


class DockerCliDriver:
    """BackendDriver implementation on top of the `docker` command line."""

    def __init__(self, docker_bin: str = "docker", *, command_timeout_s: float = 60.0) -> None:
        self._docker = docker_bin
        self._timeout = command_timeout_s

    def _call(self, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        cmd = [self._docker, *args]
        logger.debug("docker call: %s", cmd)
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise TransportError(f"{self._docker!r} not found. Is docker installed and in PATH?") from e
        except subprocess.TimeoutExpired as e:
            raise TransportError(f"docker {args[0]} timed out after {self._timeout:.0f}s") from e
        except OSError as e:
            raise TransportError(f"cannot run docker: {e}") from e

    def inspect(self, name: str) -> BackendStatus:
        proc = self._call(["inspect", "--type", "container", name])
        if proc.returncode != 0:
            err = (proc.stderr or "").strip()
            if "no such" in err.lower():
                return BackendStatus(exists=False)
            raise TransportError(f"docker inspect failed: {err or proc.returncode}")

        try:
            data = json.loads(proc.stdout or "[]")
            state = data[0].get("State") or {}
        except (ValueError, IndexError, AttributeError) as e:
            raise TransportError(f"unexpected docker inspect output: {e}") from e

        health = state.get("Health")
        return BackendStatus(
            exists=True,
            running=bool(state.get("Running")),
            health=health.get("Status") if isinstance(health, dict) else None,
        )

    def start(self, name: str) -> None:
        proc = self._call(["start", name])
        if proc.returncode != 0:
            raise BackendUnreachable(f"docker start {name} failed: {(proc.stderr or '').strip()}")
        logger.info("Backend %s started", name)

    def create(self, spec: BackendSpec) -> None:
        args = ["run", "-d", "--name", spec.name]
        for m in spec.mounts():
            args += ["-v", m.as_arg()]
        if spec.user:
            args += ["--user", spec.user]
        args += ["-w", spec.workspace_target, "--entrypoint", spec.keepalive_command[0]]
        args += [spec.image, *spec.keepalive_command[1:]]

        proc = self._call(args)
        if proc.returncode != 0:
            raise BackendUnreachable(f"docker run {spec.name} failed: {(proc.stderr or '').strip()}")
        logger.info("Backend %s created from image %s", spec.name, spec.image)

    def exec_agent(self, spec: BackendSpec, payload: str) -> ExecOutcome:
        """
        Open a new exec session in the running backend, write the request to
        stdin, then drain stdout and stderr fully before waiting for exit.
        """
        cmd = [self._docker, "exec", "-i"]
        if spec.user:
            cmd += ["--user", spec.user]
        cmd += ["-w", spec.workspace_target, spec.name, *spec.agent_command]

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise TransportError(f"cannot spawn docker exec: {e}") from e

        # stderr is read in a thread so neither pipe can fill up and deadlock.
        stderr_chunks: list[str] = []

        def _read_stderr() -> None:
            assert process.stderr is not None
            for line in process.stderr:
                stderr_chunks.append(line)

        stderr_thread = threading.Thread(target=_read_stderr, name="backend-stderr", daemon=True)
        stderr_thread.start()

        assert process.stdin is not None and process.stdout is not None
        try:
            process.stdin.write(payload)
            process.stdin.write("\n")
            process.stdin.close()
        except BrokenPipeError:
            logger.debug("backend closed stdin early")

        stdout_lines = [line.rstrip("\n") for line in process.stdout]
        stderr_thread.join()
        exit_code = process.wait()

        return ExecOutcome(exit_code=exit_code, stdout_lines=stdout_lines, stderr="".join(stderr_chunks))
