# src/pulse_scheduler/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The scheduler and store depend on Protocols instead of concrete implementations.
This keeps the LLM provider and the persistence backend swappable and lets tests
drive the scheduler with deterministic fakes.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..tasks.task_models import FiringRecord, Task

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Blocking chat completion client (OpenAI-compatible)."""
    def complete(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            *,
            json_mode: bool = False,
    ) -> str: ...


class TaskPersistence(Protocol):
    """
    Load/save boundary for the whole task collection.

    load() must not raise (failures -> empty list).
    save() returns False on failure instead of raising.
    """

    def load(self) -> list[Task]: ...
    def save(self, tasks: Sequence[Task]) -> bool: ...


class ActionExecutor(Protocol):
    """
    Performs a task's action and returns a human-readable (markdown) result.

    Failures are reported as result text, not raised.
    """

    async def execute(self, task: Task) -> str: ...


class FiringSink(Protocol):
    """Receives a record for every firing (console printer, notifications, tests)."""
    def __call__(self, record: FiringRecord) -> None: ...
