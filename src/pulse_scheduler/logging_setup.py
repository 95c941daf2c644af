# src/pulse_scheduler/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from collections.abc import Iterable
from pathlib import Path

APP_LOGGER_PREFIX = "pulse_scheduler."

# Loggers that fire once per task execution; the console already shows firings.
_PER_FIRING_LOGGERS = frozenset({"pulse_scheduler.tasks.task_scheduler"})

# HTTP/LLM client libraries that log every request.
DEFAULT_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console rules while the REPL is on screen:
    - app logs pass, except per-firing scheduler lines below WARNING
    - everything else (third-party, py.warnings) only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(APP_LOGGER_PREFIX):
            if record.name in _PER_FIRING_LOGGERS:
                return record.levelno >= logging.WARNING
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/pulse",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_file_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    noisy_loggers: Iterable[str] = DEFAULT_NOISY_LOGGERS,
) -> Path:
    """
    Configure the root logger for a long-running scheduler process.

    - stderr: filtered, at console_level
    - <log_dir>/pulse.log: everything at file_level, rotated by size; lines
      carry the thread name (main / pulse-scheduler / pulse-api)
    - noisy client libraries are capped at WARNING in both

    Returns the log file path. Call once, before the first log line.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "pulse.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console_fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    file_fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(console_fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_file_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    fh.setLevel(file_level)
    fh.setFormatter(file_fmt)
    root.addHandler(fh)

    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    return log_file
