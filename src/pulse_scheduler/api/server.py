# src/pulse_scheduler/api/server.py

"""HTTP persistence endpoint for the task collection.

GET  /api/tasks -> the whole ordered collection (JSON array, wire shape of Task.to_dict)
POST /api/tasks -> replaces the whole collection (not a patch); last writer wins

The endpoint is served from the same process as the scheduler, so a POST
replaces the live in-memory store (which then persists itself).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Annotated, Any

import uvicorn
from fastapi import Body, FastAPI, HTTPException

from ..tasks.task_models import DuplicateTaskIdError, Task
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def create_app(store: TaskStore) -> FastAPI:
    """Application factory; tests build a fresh app around their own store."""
    app = FastAPI(title="pulse_scheduler", version="0.1.0")
    app.state.store = store

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/tasks")
    def list_tasks() -> list[dict[str, Any]]:
        return [t.to_dict() for t in app.state.store.all()]

    @app.post("/api/tasks")
    def replace_tasks(payload: Annotated[list[dict[str, Any]], Body()]) -> dict[str, bool]:
        tasks: list[Task] = []
        for i, entry in enumerate(payload):
            try:
                tasks.append(Task.from_dict(entry))
            except ValueError as e:
                raise HTTPException(status_code=422, detail=f"Invalid task at index {i}: {e}") from e

        try:
            app.state.store.replace_all(tasks)
        except DuplicateTaskIdError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e

        logger.info("api event=replace_tasks total=%d", len(tasks))
        return {"success": True}

    return app


@dataclass
class ApiBackgroundRunner:
    thread: threading.Thread
    server: uvicorn.Server

    def stop(self) -> None:
        self.server.should_exit = True

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_api_in_background(store: TaskStore, *, host: str, port: int) -> ApiBackgroundRunner:
    config = uvicorn.Config(create_app(store), host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)

    t = threading.Thread(target=server.run, name="pulse-api", daemon=True)
    t.start()
    logger.info("API listening on http://%s:%d/api/tasks", host, port)
    return ApiBackgroundRunner(thread=t, server=server)
