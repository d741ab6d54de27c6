# src/clawrunner/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (task store, backend controller),
- provisions the backend for the `setup` command.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from ..agent.backend import BackendSpec, DockerCliDriver, parse_credential_mount
from ..agent.controller import DEFAULT_NOISE_PATTERNS, ExecutionController
from ..config import get_settings
from ..core.ports import BackendDriver
from ..core.state import AppState
from ..errors import ClawRunnerError
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.workspace_dir.mkdir(parents=True, exist_ok=True)


def build_backend_spec(settings) -> BackendSpec:
    return BackendSpec(
        name=settings.backend_name,
        image=settings.backend_image,
        workspace_dir=Path(settings.workspace_dir).resolve(),
        workspace_target=settings.workspace_target,
        credential_mounts=tuple(parse_credential_mount(raw) for raw in settings.credential_dirs),
        user=settings.backend_user,
        agent_command=tuple(settings.agent_command),
    )


def create_controller(settings, *, driver: BackendDriver | None = None) -> ExecutionController:
    return ExecutionController(
        driver or DockerCliDriver(settings.docker_bin),
        build_backend_spec(settings),
        health_timeout_s=settings.health_timeout_s,
        poll_interval_s=settings.health_poll_interval_s,
        noise_patterns=(*DEFAULT_NOISE_PATTERNS, *settings.extra_noise_patterns),
    )


def create_initial_state(*, settings=None, driver: BackendDriver | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    return AppState(
        settings=settings,
        task_store=TaskStore(settings.db_path),
        controller=create_controller(settings, driver=driver),
    )


def seed_workspace_memory(source: Path, workspace: Path) -> int:
    """
    Copy the initial memory files into <workspace>/memory.

    Existing files are never overwritten (the agent owns them after the first run).
    Returns the number of files copied.
    """
    if not source.is_dir():
        logger.info("No seed memory at %s; skipping", source)
        return 0

    dest_root = workspace / "memory"
    copied = 0
    for src in sorted(source.rglob("*")):
        if not src.is_file():
            continue
        dest = dest_root / src.relative_to(source)
        if dest.exists():
            continue
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
        copied += 1

    logger.info("Initial memory synced to workspace (%d new files).", copied)
    return copied


def provision_backend(state: AppState) -> None:
    """
    `setup` command body: build the image (if a build script exists), seed the
    workspace, and bring the backend up. Raises ClawRunnerError on failure.
    """
    settings = state.settings
    script = Path(settings.build_script)

    if script.is_file():
        logger.info("Building agent image with %s ...", script)
        try:
            proc = subprocess.run(["bash", str(script)], check=False)
        except OSError as e:
            raise ClawRunnerError(f"cannot run build script {script}: {e}") from e
        if proc.returncode != 0:
            raise ClawRunnerError(f"build script failed with exit code {proc.returncode}")
        logger.info("Agent image built successfully.")
    else:
        logger.info("No build script at %s; using image %s as-is", script, settings.backend_image)

    seed_workspace_memory(Path(settings.seed_memory_dir), Path(settings.workspace_dir))

    state.controller.ensure_ready()
    logger.info("Backend %s is ready.", settings.backend_name)
