# src/pulse_scheduler/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class TaskStoreError(Exception):
    """Base error for task store invariant violations."""


class DuplicateTaskIdError(TaskStoreError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task id already exists: {task_id}")
        self.task_id = task_id


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - PENDING is the only status the scheduler acts on.
    - The scheduler claims a due task by switching it to COMPLETED before the
      action runs; recurring tasks are switched back to PENDING when they settle.
    - FAILED is never set by the scheduler.
    """

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, raw: Any) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.PENDING


class TaskType(StrEnum):
    AI_SEARCH_NEWS = "AI_SEARCH_NEWS"
    REMINDER = "REMINDER"
    AUTOMATION = "AUTOMATION"

    @classmethod
    def parse(cls, raw: Any) -> TaskType:
        try:
            return cls(str(raw or "").strip().upper())
        except ValueError:
            return cls.REMINDER


class RecurrencePattern(StrEnum):
    NONE = "NONE"
    SECOND = "SECOND"
    MINUTE = "MINUTE"
    HOUR = "HOUR"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    WORKDAYS = "WORKDAYS"
    MONTHLY = "MONTHLY"

    @classmethod
    def parse(cls, raw: Any) -> RecurrencePattern:
        try:
            return cls(str(raw or "").strip().upper())
        except ValueError:
            return cls.NONE


class Priority(StrEnum):
    NORMAL = "NORMAL"
    HIGH = "HIGH"

    @classmethod
    def parse(cls, raw: Any) -> Priority:
        try:
            return cls(str(raw or "").strip().upper())
        except ValueError:
            return cls.NORMAL


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_task_id() -> str:
    return uuid.uuid4().hex


def as_utc(ts: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def format_ts(ts: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    return as_utc(ts).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_ts(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return as_utc(raw)
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"Invalid timestamp: {raw!r}")
    s = raw.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(s))


# Upper bound for intervalValue; SECOND x 1_000_000 is ~11.5 days, HOUR x 1_000_000 ~114 years.
MAX_INTERVAL_VALUE = 1_000_000


def coerce_interval(raw: Any) -> int:
    """Interval multiplier clamped to 1..MAX_INTERVAL_VALUE (garbage -> 1)."""
    try:
        value = int(raw)
    except (TypeError, ValueError, OverflowError):
        return 1
    return min(MAX_INTERVAL_VALUE, max(1, value))


def _coerce_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes", "y", "on"}
    return bool(raw)


@dataclass(slots=True)
class Task:
    id: str
    description: str
    type: TaskType
    status: TaskStatus
    created_at: datetime
    next_run: datetime

    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern = RecurrencePattern.NONE
    interval_value: int = 1
    priority: Priority = Priority.NORMAL
    persistent: bool = False
    last_run: datetime | None = None

    @property
    def rearms(self) -> bool:
        return self.is_recurring and self.recurrence_pattern != RecurrencePattern.NONE

    def is_due(self, now: datetime) -> bool:
        return self.status == TaskStatus.PENDING and self.next_run <= now

    def to_dict(self) -> dict[str, Any]:
        """Wire shape shared by the JSON file and the HTTP endpoint (camelCase keys)."""
        out: dict[str, Any] = {
            "id": self.id,
            "description": self.description,
            "type": self.type.value,
            "status": self.status.value,
            "createdAt": format_ts(self.created_at),
            "nextRun": format_ts(self.next_run),
            "isRecurring": self.is_recurring,
            "recurrencePattern": self.recurrence_pattern.value,
            "intervalValue": self.interval_value,
            "priority": self.priority.value,
            "persistent": self.persistent,
        }
        if self.last_run is not None:
            out["lastRun"] = format_ts(self.last_run)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> Task:
        if not isinstance(data, dict):
            raise ValueError("Task entry must be a JSON object")

        task_id = str(data.get("id") or "").strip()
        if not task_id:
            raise ValueError("Task entry is missing 'id'")

        last_run_raw = data.get("lastRun")
        return cls(
            id=task_id,
            description=str(data.get("description") or ""),
            type=TaskType.parse(data.get("type")),
            status=TaskStatus.parse(data.get("status")),
            created_at=parse_ts(data.get("createdAt")),
            next_run=parse_ts(data.get("nextRun")),
            is_recurring=_coerce_bool(data.get("isRecurring", False)),
            recurrence_pattern=RecurrencePattern.parse(data.get("recurrencePattern")),
            interval_value=coerce_interval(data.get("intervalValue", 1)),
            priority=Priority.parse(data.get("priority")),
            persistent=_coerce_bool(data.get("persistent", False)),
            last_run=parse_ts(last_run_raw) if last_run_raw else None,
        )


@dataclass(slots=True)
class TaskDraft:
    """What the intent translator produces; the store assigns id/status/created_at."""

    description: str
    next_run: datetime
    type: TaskType = TaskType.REMINDER
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern = RecurrencePattern.NONE
    interval_value: int = 1
    priority: Priority = Priority.NORMAL
    persistent: bool = False


@dataclass(slots=True, frozen=True)
class FiringRecord:
    """One execution of a task, for display/notification."""

    task_id: str
    description: str
    result_text: str
    fired_at: datetime
    persistent: bool
    rearmed: bool
    next_run: datetime | None = None

    def render(self) -> str:
        return f"**[Automatic Execution]** {self.description}\n\n{self.result_text}"
