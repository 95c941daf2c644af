# src/pulse_scheduler/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the scheduler in a background thread (always),
- the HTTP persistence endpoint in a background thread (optional),
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..api.server import ApiBackgroundRunner, start_api_in_background
from ..config import get_settings
from ..connectors.console_connector import make_console_sink, run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import start_scheduler_in_background
from .bootstrap import create_initial_state, create_scheduler

logger = logging.getLogger(__name__)


def _shutdown(state: AppState) -> None:
    """Final save of the task collection (the store never raises on save)."""
    state.task_store.close()


def _wait_for_signal() -> None:
    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    logger.info("Console disabled. Scheduler running in background. Press Ctrl+C to stop.")
    stop_main.wait()


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    sink = make_console_sink(state) if settings.console_enabled else state.record_firing
    scheduler_runner = start_scheduler_in_background(create_scheduler(state, sink))
    if scheduler_runner is None:
        logger.error("Scheduler could not be started; exiting.")
        _shutdown(state)
        return

    api_runner: ApiBackgroundRunner | None = None
    if settings.api_enabled:
        api_runner = start_api_in_background(
            state.task_store, host=settings.api_host, port=settings.api_port
        )

    try:
        if settings.console_enabled:
            # Ctrl+C / EOF are handled by the REPL itself.
            run_console_loop(state)
        else:
            _wait_for_signal()

    finally:
        scheduler_runner.stop()
        scheduler_runner.join(timeout=10.0)

        if api_runner is not None:
            api_runner.stop()
            api_runner.join(timeout=10.0)

        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
