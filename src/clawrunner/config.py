# src/clawrunner/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Backend name, image, mounts and timings are configuration, never hard-coded.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "CLAWRUNNER"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str], *, sep: str = ",") -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.split(sep) if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_command(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return shlex.split(raw)


def _default_uid() -> int | None:
    getuid = getattr(os, "getuid", None)
    return getuid() if getuid else None


def _default_gid() -> int | None:
    getgid = getattr(os, "getgid", None)
    return getgid() if getgid else None


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Local data paths ----
    data_dir: Path
    db_path: Path

    # ---- Backend ----
    docker_bin: str
    backend_name: str
    backend_image: str
    workspace_dir: Path
    workspace_target: str
    credential_dirs: list[str]
    backend_uid: int | None
    backend_gid: int | None
    agent_command: list[str]
    extra_noise_patterns: list[str]

    # ---- Timings ----
    health_timeout_s: float
    health_poll_interval_s: float
    tick_interval_s: float

    # ---- Provisioning (setup command) ----
    build_script: Path
    seed_memory_dir: Path

    @property
    def backend_user(self) -> str | None:
        if self.backend_uid is None:
            return None
        if self.backend_gid is None:
            return str(self.backend_uid)
        return f"{self.backend_uid}:{self.backend_gid}"

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "clawrunner")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/clawrunner"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "clawrunner.sqlite3")

        home = Path.home()
        credential_dirs = _env_list(
            _k("CREDENTIAL_DIRS"),
            [str(home / ".gemini"), str(home / ".config" / "gcloud")],
        )

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            db_path=db_path,
            docker_bin=_env(_k("DOCKER_BIN"), "docker"),
            backend_name=_env(_k("BACKEND_NAME"), "clawrunner-agent"),
            backend_image=_env(_k("BACKEND_IMAGE"), "clawrunner-agent:latest"),
            workspace_dir=_env_path(_k("WORKSPACE_DIR"), Path("workspace").resolve()),
            workspace_target=_env(_k("WORKSPACE_TARGET"), "/workspace"),
            credential_dirs=credential_dirs,
            backend_uid=_env_int(_k("BACKEND_UID"), _default_uid()),
            backend_gid=_env_int(_k("BACKEND_GID"), _default_gid()),
            agent_command=_env_command(_k("AGENT_COMMAND"), ["node", "/app/entrypoint.js"]),
            extra_noise_patterns=_env_list(_k("NOISE_PATTERNS"), []),
            health_timeout_s=_env_float(_k("HEALTH_TIMEOUT_S"), 10.0),
            health_poll_interval_s=_env_float(_k("HEALTH_POLL_INTERVAL_S"), 0.2),
            tick_interval_s=_env_float(_k("TICK_INTERVAL_S"), 60.0),
            build_script=_env_path(_k("BUILD_SCRIPT"), Path("container/build.sh")),
            seed_memory_dir=_env_path(_k("SEED_MEMORY_DIR"), Path("container/setup/memory")),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
