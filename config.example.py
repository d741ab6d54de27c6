# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real credentials. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "CLAWRUNNER_APP_NAME": "App display name (default: clawrunner).",
    "CLAWRUNNER_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "CLAWRUNNER_CONSOLE_ENABLED": "Run the console REPL with `start` (true/false, default: true).",
    # Paths (gitignored)
    "CLAWRUNNER_DATA_DIR": "Local data directory (default: .local/clawrunner).",
    "CLAWRUNNER_DB_PATH": "Task store SQLite path (default: <data_dir>/clawrunner.sqlite3).",
    # Backend
    "CLAWRUNNER_DOCKER_BIN": "docker executable (default: docker).",
    "CLAWRUNNER_BACKEND_NAME": "Container name of the singleton backend (default: clawrunner-agent).",
    "CLAWRUNNER_BACKEND_IMAGE": "Image used when the backend has to be created (default: clawrunner-agent:latest).",
    "CLAWRUNNER_WORKSPACE_DIR": "Host directory mounted as the agent workspace (default: ./workspace).",
    "CLAWRUNNER_WORKSPACE_TARGET": "Mount point of the workspace inside the container (default: /workspace).",
    "CLAWRUNNER_CREDENTIAL_DIRS": (
        "Comma separated host dirs to mount when they exist; 'host' or 'host:container' "
        "(default: ~/.gemini,~/.config/gcloud)."
    ),
    "CLAWRUNNER_BACKEND_UID": "uid the backend runs as (default: current uid).",
    "CLAWRUNNER_BACKEND_GID": "gid the backend runs as (default: current gid).",
    "CLAWRUNNER_AGENT_COMMAND": "Command exec'd in the backend per request (default: node /app/entrypoint.js).",
    "CLAWRUNNER_NOISE_PATTERNS": "Extra comma separated stderr substrings treated as benign.",
    # Timings
    "CLAWRUNNER_HEALTH_TIMEOUT_S": "Readiness timeout in seconds (default: 10).",
    "CLAWRUNNER_HEALTH_POLL_INTERVAL_S": "Readiness poll interval in seconds (default: 0.2).",
    "CLAWRUNNER_TICK_INTERVAL_S": "Scheduler tick period in seconds (default: 60).",
    # Provisioning
    "CLAWRUNNER_BUILD_SCRIPT": "Image build script run by `setup` (default: container/build.sh).",
    "CLAWRUNNER_SEED_MEMORY_DIR": "Initial memory copied into <workspace>/memory (default: container/setup/memory).",
}
