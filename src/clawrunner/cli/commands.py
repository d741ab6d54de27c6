# src/clawrunner/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..errors import ClawRunnerError
from ..logging_setup import get_recent_logs
from ..tasks.task_api import describe_task, pause_task, resume_task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  /exit - Quit.")
        return "\n".join(lines)


registry = CommandRegistry()


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    settings = state.settings
    if emit:
        emit("[BACKEND] Inspecting backend...")
    try:
        backend = state.controller.probe().value
    except ClawRunnerError as e:
        backend = f"error ({e})"

    busy = "busy" if state.worker is not None and state.worker.busy else "idle"
    return (
        "Status:\n"
        f"  Backend: {getattr(settings, 'backend_name', '?')} -> {backend}\n"
        f"  Image: {getattr(settings, 'backend_image', '?')}\n"
        f"  Worker: {busy}\n"
        f"  Tasks: {len(state.task_store.list_tasks())} "
        f"(tick every {getattr(settings, 'tick_interval_s', 60.0):.0f}s)"
    )


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks             -> list tasks
    /tasks pause ID    -> pause a task
    /tasks resume ID   -> resume a task
    """
    if not args:
        tasks = state.task_store.list_tasks()
        if not tasks:
            return "No tasks."
        return "\n".join(["Tasks:", *(f"  {describe_task(t)}" for t in tasks)])

    sub = args[0].lower()
    if sub in ("pause", "resume") and len(args) == 2:
        task_id = args[1]
        ok = pause_task(state.task_store, task_id) if sub == "pause" else resume_task(state.task_store, task_id)
        if not ok:
            return f"No task with id={task_id}."
        return f"Task {task_id} {'paused' if sub == 'pause' else 'resumed'}."

    return "Usage: /tasks | /tasks pause ID | /tasks resume ID"


def cmd_logs(state: AppState, args: list[str]) -> str:
    limit = 20
    if args:
        try:
            limit = max(1, int(args[0]))
        except ValueError:
            return "Usage: /logs [N]"
    lines = get_recent_logs(limit)
    if not lines:
        return "No log lines captured yet."
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend state, worker and task counts.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks | /tasks pause ID | /tasks resume ID.")
registry.register("logs", cmd_logs, help_text="Show recent log lines: /logs [N].")
