# src/clawrunner/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..agent.transcript import END_RESULT_MARKER, TOOL_RESULT_MARKER, TOOL_USE_MARKER
from ..agent.worker import AgentWorker, build_interactive_request
from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def render_transcript(text: str) -> str:
    """Make tool markers readable in a plain terminal."""
    return (
        text.replace(TOOL_USE_MARKER, "> tool: ")
        .replace(TOOL_RESULT_MARKER, "> result:\n")
        .replace(END_RESULT_MARKER, "\n> end of result")
    )


def run_console_loop(state: AppState) -> None:
    """
    Blocking REPL. Prompts go to the agent worker thread; the loop waits for
    the reply before reading the next line (one request in flight).
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type a prompt for the agent. Use /help for commands. Use /exit to quit.\n")

    app_name = str(getattr(state.settings, "app_name", "clawrunner"))

    worker = state.worker
    own_worker = worker is None
    if worker is None:
        worker = AgentWorker(state.controller).start()
        state.worker = worker

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    try:
        while True:
            try:
                user_input = input(">>> You: ").strip()
                _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                cmd_response = command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                cmd_response = "Internal error while handling a command."

            if cmd_response is not None:
                print(f"[{_ts_local()}] {cmd_response}")
                continue

            emit("[AGENT] Working...")
            result = worker.ask(build_interactive_request(user_input))

            if result.ok and not result.transcript:
                _print_ts("[AGENT] No output (agent produced no content).")
                continue

            text = render_transcript(result.transcript) if result.ok else result.display_text()
            print(f"[{_ts_local()}] <<< {app_name} ({result.duration_s:.1f}s):\n{text}\n")
    finally:
        if own_worker:
            worker.stop()
            state.worker = None

    logger.info("Console connector finished.")
