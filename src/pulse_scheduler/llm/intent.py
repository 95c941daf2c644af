# src/pulse_scheduler/llm/intent.py

from __future__ import annotations

"""
Intent translator: free text -> TaskDraft via the LLM.

Anything unusable (LLM not configured, LLM error, non-JSON reply, missing or
invalid nextRun) is reported as None ("no schedule determined"), never raised.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any

from ..core.ports import LLMClient
from ..tasks.task_models import (
    Priority,
    RecurrencePattern,
    TaskDraft,
    TaskType,
    as_utc,
    coerce_interval,
    format_ts,
    parse_ts,
    utc_now,
)
from .client import LLMNotConfiguredError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

SYSTEM_PROMPT = (
    "You are a scheduling assistant. You turn a user's request into one task "
    "described as a single JSON object. Reply with JSON only."
)

_INSTRUCTIONS = """Parse the user request into a structured task JSON object.
Supported patterns: NONE, SECOND, MINUTE, HOUR, DAILY, WEEKLY, WORKDAYS, MONTHLY.
If the user wants a recurring task (e.g., "every 10 minutes"), set isRecurring to true and select the appropriate recurrencePattern and intervalValue.
nextRun is the first time the task should run, as an ISO-8601 timestamp with timezone.

Example JSON structure:
{
  "description": "string",
  "type": "AI_SEARCH_NEWS" | "REMINDER" | "AUTOMATION",
  "nextRun": "ISOString",
  "isRecurring": boolean,
  "recurrencePattern": "RecurrencePattern",
  "intervalValue": number,
  "priority": "NORMAL" | "HIGH"
}"""


def extract_json(text: str) -> Any:
    """
    Parse JSON from a reply that may be wrapped in markdown fences or prose.

    Raises ValueError if nothing parsable is found.
    """
    clean = _FENCE_RE.sub("", text or "").strip()
    try:
        return json.loads(clean)
    except ValueError:
        pass

    start = clean.find("{")
    end = clean.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(clean[start : end + 1])
        except ValueError as e:
            raise ValueError("Failed to parse JSON from AI response") from e
    raise ValueError("No JSON object in AI response")


def build_prompt(text: str, now: datetime) -> str:
    now = as_utc(now)
    context = f"Current time: {format_ts(now)}. Today is {now.strftime('%A')}."
    return f'{context}\n\n{_INSTRUCTIONS}\n\nUser Request: "{text}"'


def draft_from_payload(payload: Any) -> TaskDraft | None:
    if not isinstance(payload, dict):
        return None

    raw_next = payload.get("nextRun")
    if not raw_next:
        return None
    try:
        next_run = parse_ts(raw_next)
    except ValueError:
        logger.info("Intent: invalid nextRun %r", raw_next)
        return None

    description = str(payload.get("description") or "").strip()
    if not description:
        return None

    pattern = RecurrencePattern.parse(payload.get("recurrencePattern"))
    priority = Priority.parse(payload.get("priority"))
    is_recurring = bool(payload.get("isRecurring")) and pattern != RecurrencePattern.NONE

    return TaskDraft(
        description=description,
        next_run=next_run,
        type=TaskType.parse(payload.get("type")),
        is_recurring=is_recurring,
        recurrence_pattern=pattern,
        interval_value=coerce_interval(payload.get("intervalValue") or 1),
        priority=priority,
        persistent=bool(payload.get("persistent")) or priority == Priority.HIGH,
    )


class IntentTranslator:
    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm

    def translate(self, text: str, now: datetime | None = None) -> TaskDraft | None:
        text = (text or "").strip()
        if not text:
            return None

        prompt = build_prompt(text, now or utc_now())
        try:
            reply = self.llm.complete(
                [{"role": "user", "content": prompt}],
                SYSTEM_PROMPT,
                json_mode=True,
            )
        except LLMNotConfiguredError:
            logger.info("Intent: LLM not configured; cannot translate request")
            return None
        except Exception:
            logger.exception("Intent parsing failed (LLM call)")
            return None

        try:
            payload = extract_json(reply)
        except ValueError:
            logger.info("Intent: unparsable LLM reply: %.200r", reply)
            return None

        draft = draft_from_payload(payload)
        if draft is None:
            logger.info("Intent: reply has no usable schedule: %.200r", reply)
        return draft
