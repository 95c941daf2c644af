# src/pulse_scheduler/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.state import AppState
from ..tasks.task_api import describe_schedule, format_task_line, make_due_now, resolve_task
from ..tasks.task_models import RecurrencePattern, TaskStatus

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)

_EDIT_USAGE = (
    "Usage: /edit <id> <field> <value>\n"
    "  fields: description <text> | pattern <NONE|SECOND|MINUTE|HOUR|DAILY|WEEKLY|WORKDAYS|MONTHLY>\n"
    "          interval <n> | persistent <on|off>"
)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return handler(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    tasks = state.task_store.all()
    pending = sum(1 for t in tasks if t.status == TaskStatus.PENDING)
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    llm_ok = "configured" if getattr(state.settings, "llm_api_key", None) else "NOT configured"
    return (
        "Status:\n"
        f"  Tasks: {len(tasks)} total, {pending} pending\n"
        f"  Tick: {getattr(state.settings, 'tick_seconds', 1.0)}s\n"
        f"  LLM: {llm_ok}\n"
        f"  Models (priority -> fallback): {models}"
    )


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks      -> pending tasks
    /tasks all  -> every task, any status
    """
    show_all = bool(args) and args[0].lower() == "all"
    tasks = state.task_store.all() if show_all else state.task_store.list_pending()
    if not tasks:
        return "No tasks." if show_all else "No pending tasks."

    title = "All tasks:" if show_all else "Active schedule:"
    return "\n".join([title, *(f"  {format_task_line(t)}" for t in tasks)])


def cmd_cancel(state: AppState, args: list[str]) -> str:
    found = resolve_task(state, args[0] if args else "")
    if isinstance(found, str):
        return found
    if state.task_store.cancel(found.id) is None:
        return f"Task {found.id[:8]} is {found.status.value}; only PENDING tasks can be cancelled."
    return f"Task {found.id[:8]} cancelled."


def cmd_delete(state: AppState, args: list[str]) -> str:
    found = resolve_task(state, args[0] if args else "")
    if isinstance(found, str):
        return found
    if not state.task_store.delete(found.id):
        return f"Task {found.id[:8]} was already removed."
    return f"Task {found.id[:8]} deleted."


def cmd_edit(state: AppState, args: list[str]) -> str:
    if len(args) < 3:
        return _EDIT_USAGE

    found = resolve_task(state, args[0])
    if isinstance(found, str):
        return found

    field_name = args[1].lower()
    value = " ".join(args[2:]).strip()
    store = state.task_store

    if field_name in ("description", "desc"):
        updated = store.update(found.id, description=value)
    elif field_name == "pattern":
        pattern = RecurrencePattern.parse(value)
        if pattern.value != value.upper():
            return f"Unknown pattern: {value}.\n{_EDIT_USAGE}"
        updated = store.update(found.id, recurrence_pattern=pattern)
    elif field_name == "interval":
        try:
            interval = int(value)
        except ValueError:
            return f"Interval must be a whole number, got {value!r}."
        updated = store.update(found.id, interval_value=interval)
    elif field_name == "persistent":
        flag = value.lower()
        if flag not in ("on", "off", "true", "false", "yes", "no", "1", "0"):
            return "Usage: /edit <id> persistent on|off"
        updated = store.update(found.id, persistent=flag in ("on", "true", "yes", "1"))
    else:
        return _EDIT_USAGE

    if updated is None:
        return f"Task {found.id[:8]} was removed meanwhile."
    return f"Task {updated.id[:8]} updated: {describe_schedule(updated)} - {updated.description}"


def cmd_run(state: AppState, args: list[str]) -> str:
    """/run <id> -> make a pending task due now (fires on the next tick)."""
    found = resolve_task(state, args[0] if args else "")
    if isinstance(found, str):
        return found
    if make_due_now(state, found.id) is None:
        return f"Task {found.id[:8]} is {found.status.value}; only PENDING tasks can be run."
    return f"Task {found.id[:8]} will run on the next tick."


def cmd_history(state: AppState, args: list[str]) -> str:
    if not state.firings:
        return "No executions yet in this session."
    lines = ["Recent executions:"]
    for rec in state.firings[-10:]:
        ts = rec.fired_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        first_line = (rec.result_text.strip().splitlines() or [""])[0]
        lines.append(f"  [{ts}] {rec.description}: {first_line[:80]}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show task counts and LLM settings.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks | /tasks all.", aliases=["ls"])
registry.register("cancel", cmd_cancel, help_text="Cancel a pending task: /cancel <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> <field> <value>.")
registry.register("run", cmd_run, help_text="Fire a pending task on the next tick: /run <id>.")
registry.register("history", cmd_history, help_text="Show recent executions.")
