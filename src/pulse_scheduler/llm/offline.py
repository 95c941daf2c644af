# src/pulse_scheduler/llm/offline.py

from __future__ import annotations

from ..core.ports import ChatMessage
from .client import LLMNotConfiguredError


class OfflineLLMClient:
    """
    Stand-in LLM client used when no external API is configured.

    Every call raises LLMNotConfiguredError, so the intent translator reports
    "no schedule determined" and the action executor answers with an explicit
    "not configured" text. Reminders keep working without an LLM.
    """

    def __init__(self, reason: str = "LLM API key is not set. Set PULSE_LLM_API_KEY in your .env.") -> None:
        self.reason = reason

    def complete(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            *,
            json_mode: bool = False,
    ) -> str:
        raise LLMNotConfiguredError(self.reason)
