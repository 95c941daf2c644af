# src/pulse_scheduler/tasks/task_api.py

from __future__ import annotations

import logging
from datetime import datetime

from ..core.state import AppState
from .task_models import RecurrencePattern, Task, TaskStatus, as_utc, utc_now

logger = logging.getLogger(__name__)

NO_SCHEDULE_TEXT = (
    "I understood your request but couldn't determine a specific schedule. "
    "Please try specifying a time or interval, like 'every 5 minutes'."
)
CREATE_ERROR_TEXT = (
    "I encountered an error while processing that task. Please try again with a clearer schedule."
)


def _local(ts: datetime) -> str:
    return as_utc(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def describe_schedule(task: Task) -> str:
    if not task.rearms:
        return "Once"
    pattern = task.recurrence_pattern
    if pattern == RecurrencePattern.WORKDAYS:
        return "Every workday (Mon-Fri)"
    if pattern in (RecurrencePattern.SECOND, RecurrencePattern.MINUTE, RecurrencePattern.HOUR):
        return f"Every {task.interval_value} {pattern.value.lower()}(s)"
    return pattern.value.capitalize()


def format_created_message(task: Task) -> str:
    return (
        "✅ **Task Created Successfully**\n\n"
        f"**Action:** {task.description}\n"
        f"**Schedule:** {describe_schedule(task)}\n"
        f"**Next Run:** {_local(task.next_run)}"
    )


def format_task_line(task: Task) -> str:
    flags = []
    if task.persistent:
        flags.append("persistent")
    if task.priority.value == "HIGH":
        flags.append("high")
    flag_str = f" [{', '.join(flags)}]" if flags else ""
    last = f", last {_local(task.last_run)}" if task.last_run else ""
    return (
        f"{task.id[:8]} {task.status.value:<9} {task.type.value:<14} "
        f"{describe_schedule(task)}, next {_local(task.next_run)}{last} - {task.description}{flag_str}"
    )


def create_task_from_text(state: AppState, text: str, *, now: datetime | None = None) -> Task | None:
    """
    Translate free text into a task and store it as PENDING.

    Returns None when no schedule could be determined (nothing is stored).
    """
    draft = state.translator.translate(text, now=now)
    if draft is None:
        return None

    task = state.task_store.add_draft(draft)
    logger.info(
        "Task created id=%s pattern=%s interval=%s next_run=%s",
        task.id,
        task.recurrence_pattern.value,
        task.interval_value,
        task.next_run.isoformat(),
    )
    return task


def handle_user_text(state: AppState, text: str) -> str:
    """Conversational front door: returns the reply to show the user."""
    try:
        task = create_task_from_text(state, text)
    except Exception:
        logger.exception("Task creation crashed")
        return CREATE_ERROR_TEXT

    if task is None:
        return NO_SCHEDULE_TEXT
    return format_created_message(task)


def resolve_task(state: AppState, ref: str) -> Task | str:
    """
    Find a task by id or unique id prefix.

    Returns the Task, or a user-facing error string.
    """
    ref = (ref or "").strip()
    if not ref:
        return "Missing task id."

    exact = state.task_store.get(ref)
    if exact is not None:
        return exact

    matches = state.task_store.find_by_prefix(ref)
    if not matches:
        return f"No task matches id {ref!r}."
    if len(matches) > 1:
        return f"Id prefix {ref!r} is ambiguous ({len(matches)} tasks)."
    return matches[0]


def make_due_now(state: AppState, task_id: str, *, now: datetime | None = None) -> Task | None:
    """Pull a PENDING task's next_run to now so the next tick fires it."""
    task = state.task_store.get(task_id)
    if task is None or task.status != TaskStatus.PENDING:
        return None
    return state.task_store.update(task_id, next_run=now or utc_now())
