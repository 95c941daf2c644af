# src/pulse_scheduler/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (LLM, task store, translator, executor),
- builds the scheduler around the state.
"""

from __future__ import annotations

import logging

from ..config import Settings, get_settings
from ..core.ports import FiringSink, LLMClient
from ..core.state import AppState
from ..llm.client import LLMNotConfiguredError, OpenAICompatLLMClient
from ..llm.executor import LLMActionExecutor
from ..llm.intent import IntentTranslator
from ..llm.offline import OfflineLLMClient
from ..tasks.task_persistence import JsonTaskFile
from ..tasks.task_scheduler import TaskScheduler
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def build_llm_client(settings: Settings) -> LLMClient:
    try:
        return OpenAICompatLLMClient(settings)
    except LLMNotConfiguredError as e:
        # Scheduling and plain reminders keep working without an LLM.
        logger.warning("LLM disabled: %s", e)
        return OfflineLLMClient(str(e))


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings and load persisted tasks.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_path.parent.mkdir(parents=True, exist_ok=True)

    llm_client = build_llm_client(settings)
    store = TaskStore(
        JsonTaskFile(settings.tasks_path),
        debounce_seconds=settings.save_debounce_seconds,
    )
    store.load()

    return AppState(
        settings=settings,
        llm=llm_client,
        task_store=store,
        translator=IntentTranslator(llm_client),
        executor=LLMActionExecutor(llm_client),
    )


def create_scheduler(state: AppState, sink: FiringSink | None = None) -> TaskScheduler:
    settings = state.settings
    return TaskScheduler(
        state.task_store,
        state.executor,
        sink=sink if sink is not None else state.record_firing,
        tick_seconds=settings.tick_seconds,
        action_timeout_seconds=settings.action_timeout_seconds or None,
    )
