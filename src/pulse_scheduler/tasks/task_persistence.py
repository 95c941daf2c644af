# src/pulse_scheduler/tasks/task_persistence.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from collections.abc import Sequence
from pathlib import Path

from .task_models import Task

logger = logging.getLogger(__name__)


class JsonTaskFile:
    """
    JSON file persistence for the task collection.

    The file holds the whole ordered collection as one JSON array (the same shape
    served by GET /api/tasks). Saves replace the file wholesale.

    Contract:
    - load() never raises; unreadable/malformed data yields [] (bad entries are skipped)
    - save() never raises; returns False on failure
    """

    def __init__(self, path: str | Path = "tasks.json") -> None:
        self._path = Path(path)
        self._ensure_file()
        logger.info("JsonTaskFile ready path=%s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_file(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if not self._path.exists():
                self._path.write_text("[]", "utf-8")
        except OSError:
            logger.exception("Failed to initialize task file %s", self._path)

    def load(self) -> list[Task]:
        if not self._path.exists():
            return []

        try:
            data = json.loads(self._path.read_text("utf-8") or "[]")
        except (OSError, ValueError):
            logger.exception("Failed to read tasks from %s", self._path)
            return []

        if not isinstance(data, list):
            logger.error("Task file %s does not contain a JSON array; ignoring it.", self._path)
            return []

        out: list[Task] = []
        for i, entry in enumerate(data):
            try:
                out.append(Task.from_dict(entry))
            except ValueError as e:
                logger.warning("Skipping malformed task entry #%d in %s: %s", i, self._path, e)
        logger.info("Loaded %d tasks from %s", len(out), self._path)
        return out

    def save(self, tasks: Sequence[Task]) -> bool:
        try:
            payload = json.dumps([t.to_dict() for t in tasks], ensure_ascii=False, indent=2)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(payload, "utf-8")
            os.replace(tmp, self._path)
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to save %d tasks to %s", len(tasks), self._path)
            return False

        with contextlib.suppress(OSError):
            os.chmod(self._path, 0o600)
        logger.debug("Saved %d tasks to %s", len(tasks), self._path)
        return True
