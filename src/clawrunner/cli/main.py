# src/clawrunner/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then dispatches a subcommand:
- start    : task scheduler (background) + console REPL (optional)
- run      : one-shot agent execution, prints the transcript
- setup    : build image / seed workspace / bring the backend up
- db-check : initialise or check the database
- task     : add / list / pause / resume / remove scheduled tasks
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading

from ..agent.worker import PRIMARY_TARGET, AgentWorker, build_interactive_request
from ..cli.bootstrap import create_initial_state, provision_backend
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..errors import ClawRunnerError, InvalidSchedule, StoreError
from ..logging_setup import setup_logging
from ..tasks import task_api
from ..tasks.task_scheduler import TaskScheduler, start_scheduler_in_background

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clawrunner",
        description="Run an AI coding agent in a container, on demand or on a schedule.",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("start", help="Start the task scheduler and the interactive console.")

    run = sub.add_parser("run", help="Run a single agent execution (headless).")
    run.add_argument("-p", "--prompt", required=True, help="Prompt for the agent.")
    run.add_argument("-t", "--target", default=PRIMARY_TARGET, help="Execution context (default: main).")

    sub.add_parser("setup", help="Build the agent image, seed the workspace and start the backend.")
    sub.add_parser("db-check", help="Initialize or check the database.")

    task = sub.add_parser("task", help="Manage scheduled tasks.")
    task_sub = task.add_subparsers(dest="task_command", required=True)

    add = task_sub.add_parser("add", help="Create or replace a scheduled task.")
    add.add_argument("--id", required=True, dest="task_id")
    add.add_argument("--prompt", required=True)
    add.add_argument("--schedule", required=True, help='Cron expression or "every <N><s|m|h|d>".')
    add.add_argument("--target", default=PRIMARY_TARGET)

    task_sub.add_parser("list", help="List tasks.")
    for name in ("pause", "resume", "remove"):
        p = task_sub.add_parser(name, help=f"{name.capitalize()} a task.")
        p.add_argument("task_id")

    return parser


def _shutdown(state: AppState) -> None:
    """Best-effort shutdown."""
    if state.worker is not None:
        state.worker.stop()
    state.task_store.close()


def _run_start(state: AppState) -> None:
    settings = state.settings
    scheduler = TaskScheduler(state.task_store, state.controller)
    runner = start_scheduler_in_background(scheduler, interval_seconds=settings.tick_interval_s)
    logger.info("Task scheduler initialized.")

    state.worker = AgentWorker(state.controller).start()

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            signal.signal(signal.SIGINT, _handle_signal)
            signal.signal(signal.SIGTERM, _handle_signal)
            logger.info("Console disabled. Running the scheduler only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        if runner is not None:
            runner.stop()
            runner.join(timeout=10.0)

def _cmd_run(state: AppState, args: argparse.Namespace) -> int:
    logger.info("Running agent for target '%s'", args.target)
    worker = AgentWorker(state.controller).start()
    state.worker = worker
    result = worker.ask(
        build_interactive_request(args.prompt, target=args.target, correlation_id="cli-run")
    )
    if result.ok:
        print(result.transcript)
        return 0
    print(result.display_text(), file=sys.stderr)
    return 1


def _cmd_task(state: AppState, args: argparse.Namespace) -> int:
    store = state.task_store
    sub = args.task_command

    if sub == "add":
        try:
            task = task_api.add_task(
                store,
                task_id=args.task_id,
                prompt=args.prompt,
                schedule=args.schedule,
                target=args.target,
            )
        except (InvalidSchedule, ValueError) as e:
            print(f"Cannot add task: {e}", file=sys.stderr)
            return 2
        print(task_api.describe_task(task))
        return 0

    if sub == "list":
        tasks = store.list_tasks()
        if not tasks:
            print("No tasks.")
        for t in tasks:
            print(task_api.describe_task(t))
        return 0

    actions = {
        "pause": task_api.pause_task,
        "resume": task_api.resume_task,
        "remove": task_api.remove_task,
    }
    if not actions[sub](store, args.task_id):
        print(f"No task with id={args.task_id}.", file=sys.stderr)
        return 1
    print(f"Task {args.task_id}: {sub} ok.")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    try:
        state = create_initial_state(settings=settings)
    except StoreError as e:
        logger.error("Failed to init DB: %s", e)
        return 1

    try:
        if args.command == "start":
            logger.info("Starting %s...", settings.app_name)
            _run_start(state)
            return 0

        if args.command == "run":
            return _cmd_run(state, args)

        if args.command == "setup":
            try:
                provision_backend(state)
            except ClawRunnerError as e:
                logger.error("Setup failed: %s", e)
                return 1
            return 0

        if args.command == "db-check":
            logger.info(
                "Database initialized successfully at %s (%d tasks)",
                state.task_store.db_path,
                state.task_store.count_tasks(),
            )
            return 0

        if args.command == "task":
            return _cmd_task(state, args)

        parser.error(f"unknown command {args.command!r}")
        return 2
    except StoreError as e:
        logger.error("Database error: %s", e)
        return 1
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    sys.exit(main())
