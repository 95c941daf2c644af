# src/pulse_scheduler/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..llm.executor import LLMActionExecutor
from ..llm.intent import IntentTranslator
from ..tasks.task_models import FiringRecord
from ..tasks.task_store import TaskStore
from .ports import LLMClient


@dataclass
class AppState:
    # Settings object (config.Settings in the app, SimpleNamespace in tests).
    settings: Any

    llm: LLMClient
    task_store: TaskStore
    translator: IntentTranslator
    executor: LLMActionExecutor

    # Firings seen during this session (most recent last), for /history.
    firings: list[FiringRecord] = field(default_factory=list)
    max_firings: int = 200

    def record_firing(self, record: FiringRecord) -> None:
        self.firings.append(record)
        if len(self.firings) > self.max_firings:
            del self.firings[: len(self.firings) - self.max_firings]
