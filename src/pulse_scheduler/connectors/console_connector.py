# src/pulse_scheduler/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.task_api import handle_user_text
from ..tasks.task_models import FiringRecord

logger = logging.getLogger(__name__)

_print_lock = threading.Lock()


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    with _print_lock:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)


def _print_ts(text: str) -> None:
    with _print_lock:
        print(f"[{_ts_local()}] {text}", flush=True)


def make_console_sink(state: AppState):
    """
    Firing sink for the console: remembers the record on the state and prints it.

    Called from the scheduler thread. Persistent (HIGH priority) firings are
    marked so they stand out until the user deals with them.
    """
    app_name = str(getattr(state.settings, "app_name", "pulse"))

    def sink(record: FiringRecord) -> None:
        state.record_firing(record)
        marker = "[PERSISTENT] " if record.persistent else ""
        tail = ""
        if record.next_run is not None:
            tail = f"\n(next run: {record.next_run.astimezone().strftime('%Y-%m-%d %H:%M:%S')})"
        _print_ts(f"<<< {app_name}: {marker}{record.render()}{tail}\n")

    return sink


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts(
        "[CONSOLE] Describe a task, e.g. 'remind me every 10 seconds to stand up'. "
        "Use /help for commands. Use /exit to quit.\n"
    )
    app_name = str(getattr(state.settings, "app_name", "pulse"))

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
            reply = command_registry.handle(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            _print_ts(f"<<< {app_name}: (thinking...)")
            reply = handle_user_text(state, user_input)

        _print_ts(f"<<< {app_name}: {reply}\n")

    logger.info("Console connector finished.")
