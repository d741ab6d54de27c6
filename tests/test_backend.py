# tests/test_backend.py

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from clawrunner.agent import backend as backend_mod
from clawrunner.agent.backend import (
    BackendAction,
    BackendSpec,
    BackendState,
    BackendStatus,
    DockerCliDriver,
    Mount,
    classify,
    next_action,
    parse_credential_mount,
)
from clawrunner.errors import BackendUnreachable, TransportError


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (BackendStatus(exists=False), BackendState.ABSENT),
        (BackendStatus(exists=True, running=False), BackendState.STOPPED),
        (BackendStatus(exists=True, running=True), BackendState.READY),
        (BackendStatus(exists=True, running=True, health="healthy"), BackendState.READY),
        (BackendStatus(exists=True, running=True, health="starting"), BackendState.STARTING),
        (BackendStatus(exists=True, running=True, health="unhealthy"), BackendState.STARTING),
    ],
)
def test_classify(status, expected) -> None:
    assert classify(status) == expected


def test_transition_table_covers_every_state() -> None:
    assert next_action(BackendState.READY) == BackendAction.PROCEED
    assert next_action(BackendState.STOPPED) == BackendAction.START
    assert next_action(BackendState.ABSENT) == BackendAction.CREATE
    assert next_action(BackendState.STARTING) == BackendAction.POLL
    assert next_action(BackendState.UNREACHABLE) == BackendAction.FAIL


def test_parse_credential_mount() -> None:
    m = parse_credential_mount("/home/me/.gemini")
    assert m == Mount(Path("/home/me/.gemini"), "/home/agent/.gemini")

    m = parse_credential_mount("/srv/keys:/opt/keys")
    assert m == Mount(Path("/srv/keys"), "/opt/keys")


def test_spec_mounts_skip_missing_credential_dirs(tmp_path: Path) -> None:
    present = tmp_path / "present"
    present.mkdir()
    spec = BackendSpec(
        name="agent",
        image="img",
        workspace_dir=tmp_path / "ws",
        credential_mounts=(Mount(present, "/home/agent/present"), Mount(tmp_path / "absent", "/x")),
    )
    assert [m.target for m in spec.mounts()] == ["/workspace", "/home/agent/present"]
    assert Mount(present, "/c", read_only=True).as_arg() == f"{present}:/c:ro"


class _FakeRun:
    def __init__(self, *results: subprocess.CompletedProcess) -> None:
        self.results = list(results)
        self.calls: list[list[str]] = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        return self.results.pop(0)


def _done(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test_inspect_parses_running_and_health(monkeypatch) -> None:
    payload = json.dumps([{"State": {"Running": True, "Health": {"Status": "starting"}}}])
    fake = _FakeRun(_done(stdout=payload))
    monkeypatch.setattr(backend_mod.subprocess, "run", fake)

    status = DockerCliDriver("docker").inspect("agent")

    assert status == BackendStatus(exists=True, running=True, health="starting")
    assert fake.calls == [["docker", "inspect", "--type", "container", "agent"]]


def test_inspect_without_healthcheck(monkeypatch) -> None:
    payload = json.dumps([{"State": {"Running": False}}])
    monkeypatch.setattr(backend_mod.subprocess, "run", _FakeRun(_done(stdout=payload)))

    assert DockerCliDriver().inspect("agent") == BackendStatus(exists=True, running=False, health=None)


def test_inspect_missing_container_is_absent(monkeypatch) -> None:
    fake = _FakeRun(_done(returncode=1, stderr="Error: No such container: agent\n"))
    monkeypatch.setattr(backend_mod.subprocess, "run", fake)

    assert DockerCliDriver().inspect("agent") == BackendStatus(exists=False)


def test_inspect_other_failures_are_transport_errors(monkeypatch) -> None:
    fake = _FakeRun(_done(returncode=1, stderr="Cannot connect to the Docker daemon"))
    monkeypatch.setattr(backend_mod.subprocess, "run", fake)

    with pytest.raises(TransportError):
        DockerCliDriver().inspect("agent")


def test_missing_docker_binary_is_a_transport_error(monkeypatch) -> None:
    def boom(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(backend_mod.subprocess, "run", boom)

    with pytest.raises(TransportError, match="not found"):
        DockerCliDriver("no-such-docker").inspect("agent")


def test_create_builds_run_command(monkeypatch, tmp_path: Path) -> None:
    fake = _FakeRun(_done())
    monkeypatch.setattr(backend_mod.subprocess, "run", fake)
    spec = BackendSpec(name="agent", image="agent:latest", workspace_dir=tmp_path, user="1000:1000")

    DockerCliDriver().create(spec)

    assert fake.calls == [
        [
            "docker", "run", "-d", "--name", "agent",
            "-v", f"{tmp_path}:/workspace",
            "--user", "1000:1000",
            "-w", "/workspace",
            "--entrypoint", "sleep",
            "agent:latest", "infinity",
        ]
    ]


def test_failed_start_is_unreachable(monkeypatch) -> None:
    monkeypatch.setattr(backend_mod.subprocess, "run", _FakeRun(_done(returncode=1, stderr="oops")))

    with pytest.raises(BackendUnreachable):
        DockerCliDriver().start("agent")
