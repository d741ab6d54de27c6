# tests/test_cli.py

from __future__ import annotations

from pathlib import Path

import pytest

from clawrunner.agent.backend import ExecOutcome
from clawrunner.cli import main as cli_main
from clawrunner.cli.bootstrap import build_backend_spec, provision_backend, seed_workspace_memory
from clawrunner.config import Settings
from clawrunner.connectors import console_connector
from clawrunner.errors import BackendUnreachable
from clawrunner.tasks.task_store import TaskStore

from .fakes import ABSENT, RUNNING_HEALTHY, STARTING, ndjson


@pytest.fixture()
def cli(settings, monkeypatch):
    """Run `clawrunner ...` against the tmp settings, without touching real logging."""
    monkeypatch.setattr(cli_main, "get_settings", lambda: settings)
    monkeypatch.setattr(cli_main, "setup_logging", lambda **kw: None)
    return cli_main.main


def test_task_add_list_pause_resume_remove(cli, settings, capsys) -> None:
    assert cli(["task", "add", "--id", "nightly", "--prompt", "tidy up", "--schedule", "0 2 * * *"]) == 0
    assert "nightly [active]" in capsys.readouterr().out

    assert cli(["task", "list"]) == 0
    assert "schedule='0 2 * * *'" in capsys.readouterr().out

    assert cli(["task", "pause", "nightly"]) == 0
    assert cli(["task", "resume", "nightly"]) == 0
    assert cli(["task", "remove", "nightly"]) == 0
    assert cli(["task", "remove", "nightly"]) == 1
    assert "No task with id=nightly" in capsys.readouterr().err

    store = TaskStore(settings.db_path)
    try:
        assert store.count_tasks() == 0
    finally:
        store.close()


def test_task_add_rejects_bad_schedule(cli, capsys) -> None:
    assert cli(["task", "add", "--id", "x", "--prompt", "p", "--schedule", "every Xq"]) == 2
    assert "Invalid schedule" in capsys.readouterr().err


def test_task_add_rejects_oversized_interval(cli, capsys) -> None:
    assert cli(["task", "add", "--id", "x", "--prompt", "p", "--schedule", "every 99999999999d"]) == 2
    assert "interval too large" in capsys.readouterr().err


def test_db_check_initializes_database(cli, settings) -> None:
    assert cli(["db-check"]) == 0
    assert Path(settings.db_path).is_file()


def test_no_command_prints_help(cli, capsys) -> None:
    assert cli([]) == 0
    assert "usage:" in capsys.readouterr().out


def test_seed_workspace_memory_never_overwrites(tmp_path: Path) -> None:
    seed = tmp_path / "seed"
    (seed / "notes").mkdir(parents=True)
    (seed / "MEMORY.md").write_text("seed", encoding="utf-8")
    (seed / "notes" / "a.md").write_text("a", encoding="utf-8")

    ws = tmp_path / "ws"
    (ws / "memory").mkdir(parents=True)
    (ws / "memory" / "MEMORY.md").write_text("agent edited", encoding="utf-8")

    assert seed_workspace_memory(seed, ws) == 1
    assert (ws / "memory" / "MEMORY.md").read_text(encoding="utf-8") == "agent edited"
    assert (ws / "memory" / "notes" / "a.md").read_text(encoding="utf-8") == "a"

    assert seed_workspace_memory(seed, ws) == 0
    assert seed_workspace_memory(tmp_path / "missing", ws) == 0


def test_provision_backend_creates_missing_backend(state, driver) -> None:
    driver.statuses = [ABSENT, RUNNING_HEALTHY]
    provision_backend(state)
    assert "create:agent-test" in driver.calls


def test_provision_backend_propagates_unreachable(state, driver) -> None:
    driver.statuses = [STARTING]
    with pytest.raises(BackendUnreachable):
        provision_backend(state)


def test_backend_spec_from_settings(settings) -> None:
    spec = build_backend_spec(settings)
    assert spec.name == "agent-test"
    assert spec.user == "1000:1000"
    assert spec.agent_command == ("node", "/app/entrypoint.js")
    assert spec.credential_mounts[0].target == "/home/agent/creds"


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("CLAWRUNNER_DB_PATH", raising=False)
    monkeypatch.setenv("CLAWRUNNER_DATA_DIR", str(tmp_path / "d"))
    monkeypatch.setenv("CLAWRUNNER_CONSOLE_ENABLED", "no")
    monkeypatch.setenv("CLAWRUNNER_CREDENTIAL_DIRS", "/a, /b:/opt/b ,")
    monkeypatch.setenv("CLAWRUNNER_AGENT_COMMAND", "gemini --yolo")
    monkeypatch.setenv("CLAWRUNNER_BACKEND_UID", "1001")
    monkeypatch.setenv("CLAWRUNNER_BACKEND_GID", "")
    monkeypatch.setenv("CLAWRUNNER_TICK_INTERVAL_S", "not-a-number")

    s = Settings.from_env()

    assert s.console_enabled is False
    assert s.db_path == tmp_path / "d" / "clawrunner.sqlite3"
    assert s.credential_dirs == ["/a", "/b:/opt/b"]
    assert s.agent_command == ["gemini", "--yolo"]
    assert s.backend_user in ("1001", f"1001:{s.backend_gid}")
    assert s.tick_interval_s == 60.0


def test_console_loop_runs_commands_and_prompts(state, driver, monkeypatch, capsys) -> None:
    driver.outcome = ExecOutcome(
        exit_code=0,
        stdout_lines=ndjson([{"type": "message", "role": "assistant", "content": "hello back"}]),
    )
    lines = iter(["/tasks", "", "hello", "/exit"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(lines))

    console_connector.run_console_loop(state)

    out = capsys.readouterr().out
    assert "No tasks." in out
    assert "hello back" in out
    assert state.worker is None
    assert driver.calls.count("exec:agent-test") == 1


def test_console_loop_stops_on_eof(state, monkeypatch) -> None:
    def eof(_prompt=""):
        raise EOFError

    monkeypatch.setattr("builtins.input", eof)
    console_connector.run_console_loop(state)
    assert state.worker is None
