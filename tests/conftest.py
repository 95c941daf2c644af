# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

from pulse_scheduler.core.state import AppState
from pulse_scheduler.llm.executor import LLMActionExecutor
from pulse_scheduler.llm.intent import IntentTranslator
from pulse_scheduler.tasks.task_models import (
    Priority,
    RecurrencePattern,
    Task,
    TaskStatus,
    TaskType,
    new_task_id,
)
from pulse_scheduler.tasks.task_store import TaskStore

from .fakes import FakeLLMClient, MemoryPersistence


def make_task(
    *,
    next_run: datetime,
    description: str = "stand up",
    pattern: RecurrencePattern = RecurrencePattern.NONE,
    interval: int = 1,
    status: TaskStatus = TaskStatus.PENDING,
    type: TaskType = TaskType.REMINDER,
    priority: Priority = Priority.NORMAL,
    task_id: str | None = None,
) -> Task:
    return Task(
        id=task_id or new_task_id(),
        description=description,
        type=type,
        status=status,
        created_at=next_run - timedelta(minutes=1),
        next_run=next_run,
        is_recurring=pattern != RecurrencePattern.NONE,
        recurrence_pattern=pattern,
        interval_value=interval,
        priority=priority,
        persistent=priority == Priority.HIGH,
    )


@pytest.fixture()
def t0() -> datetime:
    return datetime(2024, 1, 5, 9, 0, tzinfo=UTC)  # a Friday


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the command handlers.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="pulse-test",
        tasks_path=tmp_path / "tasks.json",
        llm_api_key=None,
        llm_models=["fake-model"],
        tick_seconds=1.0,
    )


@pytest.fixture()
def persistence() -> MemoryPersistence:
    return MemoryPersistence()


@pytest.fixture()
def store(persistence: MemoryPersistence) -> TaskStore:
    s = TaskStore(persistence, debounce_seconds=0.01)
    yield s
    s.close()


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, llm: FakeLLMClient) -> AppState:
    """AppState wired with deterministic fakes and a real in-memory TaskStore."""
    return AppState(
        settings=settings,
        llm=llm,
        task_store=store,
        translator=IntentTranslator(llm),
        executor=LLMActionExecutor(llm),
    )
