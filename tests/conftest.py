# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from clawrunner.cli.bootstrap import create_initial_state
from clawrunner.core.state import AppState
from clawrunner.tasks.task_store import TaskStore

from .fakes import FakeDriver


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap helpers.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="clawrunner-test",
        log_level="INFO",
        console_enabled=False,
        # Paths (tmp per test run)
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "clawrunner.sqlite3",
        workspace_dir=tmp_path / "workspace",
        workspace_target="/workspace",
        credential_dirs=[str(tmp_path / "creds")],
        build_script=tmp_path / "missing-build.sh",
        seed_memory_dir=tmp_path / "seed",
        # Backend
        docker_bin="docker",
        backend_name="agent-test",
        backend_image="agent:test",
        backend_user="1000:1000",
        agent_command=["node", "/app/entrypoint.js"],
        extra_noise_patterns=[],
        # Timings
        health_timeout_s=1.0,
        health_poll_interval_s=0.2,
        tick_interval_s=60.0,
    )


@pytest.fixture()
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture()
def state(settings: SimpleNamespace, driver: FakeDriver) -> AppState:
    """
    AppState wired with a fake backend driver.

    NOTE: We keep the real SQLite TaskStore here because its correctness is
    part of what we want to test.
    """
    st = create_initial_state(settings=settings, driver=driver)
    yield st
    st.task_store.close()


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    s = TaskStore(tmp_path / "tasks.sqlite3")
    yield s
    s.close()
