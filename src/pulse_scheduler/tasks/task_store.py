# src/pulse_scheduler/tasks/task_store.py

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime

from ..core.ports import TaskPersistence
from .task_models import (
    DuplicateTaskIdError,
    Priority,
    RecurrencePattern,
    Task,
    TaskDraft,
    TaskStatus,
    as_utc,
    coerce_interval,
    new_task_id,
    utc_now,
)

logger = logging.getLogger(__name__)


class TaskStore:
    """
    In-memory task collection with debounced persistence.

    Ordering: tasks keep insertion order (dict order); that is the scan order
    of the scheduler and the order written to persistence.

    Thread-safety:
    - every public method takes the store lock
    - callers only ever receive copies, never the stored Task objects

    Persistence:
    - load() pulls the collection once (failures -> empty store)
    - each mutation restarts a quiet-period timer; when it elapses the current
      snapshot is handed to persistence.save()
    - save failures are logged; the next mutation triggers another attempt
    """

    def __init__(
        self,
        persistence: TaskPersistence | None = None,
        *,
        debounce_seconds: float = 0.5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._persistence = persistence
        self._debounce_s = max(0.0, float(debounce_seconds))
        self._clock = clock

        self._lock = threading.RLock()
        self._tasks: dict[str, Task] = {}

        self._save_lock = threading.Lock()
        self._save_timer: threading.Timer | None = None
        self._dirty = False

        # Held for the whole snapshot+write; flush() waits on it.
        self._write_lock = threading.Lock()
        self._last_save_ok = True

    # ---- persistence ----

    def load(self) -> int:
        """Replace the in-memory collection with the persisted one. Returns task count."""
        if self._persistence is None:
            return 0

        try:
            loaded = list(self._persistence.load())
        except Exception:
            logger.exception("Task persistence load failed; starting with an empty store.")
            loaded = []

        tasks: dict[str, Task] = {}
        for t in loaded:
            if t.id in tasks:
                logger.warning("Duplicate task id %s in persisted data; keeping the first one.", t.id)
                continue
            tasks[t.id] = t

        with self._lock:
            self._tasks = tasks
        logger.info("TaskStore loaded total=%d", len(tasks))
        return len(tasks)

    def _schedule_save(self) -> None:
        if self._persistence is None:
            return

        with self._save_lock:
            self._dirty = True
            if self._save_timer is not None:
                self._save_timer.cancel()
            timer = threading.Timer(self._debounce_s, self._save_now)
            timer.daemon = True
            self._save_timer = timer
            timer.start()

    def _save_now(self) -> bool:
        if self._persistence is None:
            return True

        # The write lock is taken before the dirty flag is released, so a
        # concurrent flush() either sees dirty or waits for this write.
        with self._save_lock:
            self._save_timer = None
            self._dirty = False
            self._write_lock.acquire()

        try:
            snapshot = self.all()
            try:
                ok = bool(self._persistence.save(snapshot))
            except Exception:
                logger.exception("Task persistence save raised (tasks=%d)", len(snapshot))
                ok = False
            else:
                if not ok:
                    logger.warning(
                        "Task persistence save failed (tasks=%d); will retry on next change.", len(snapshot)
                    )
            self._last_save_ok = ok
            return ok
        finally:
            self._write_lock.release()

    def flush(self) -> bool:
        """
        Save immediately if there are unsaved changes.

        If a debounced save is already being written, waits for it and returns
        its outcome.
        """
        with self._save_lock:
            if self._save_timer is not None:
                self._save_timer.cancel()
                self._save_timer = None
            dirty = self._dirty
        if dirty:
            return self._save_now()

        with self._write_lock:
            return self._last_save_ok

    def close(self) -> None:
        self.flush()

    # ---- reads ----

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def all(self) -> list[Task]:
        with self._lock:
            return [replace(t) for t in self._tasks.values()]

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            t = self._tasks.get(task_id)
            return replace(t) if t is not None else None

    def find_by_prefix(self, prefix: str) -> list[Task]:
        prefix = (prefix or "").strip()
        if not prefix:
            return []
        with self._lock:
            return [replace(t) for t in self._tasks.values() if t.id.startswith(prefix)]

    def list_pending(self) -> list[Task]:
        with self._lock:
            return [replace(t) for t in self._tasks.values() if t.status == TaskStatus.PENDING]

    def list_due(self, now: datetime) -> list[Task]:
        now = as_utc(now)
        with self._lock:
            return [replace(t) for t in self._tasks.values() if t.is_due(now)]

    # ---- creation / removal ----

    def add(self, task: Task) -> Task:
        with self._lock:
            if task.id in self._tasks:
                raise DuplicateTaskIdError(task.id)
            self._tasks[task.id] = replace(task)
        logger.debug("Task added id=%s type=%s next_run=%s", task.id, task.type, task.next_run)
        self._schedule_save()
        return replace(task)

    def add_draft(self, draft: TaskDraft) -> Task:
        pattern = draft.recurrence_pattern
        task = Task(
            id=new_task_id(),
            description=draft.description.strip(),
            type=draft.type,
            status=TaskStatus.PENDING,
            created_at=self._clock(),
            next_run=as_utc(draft.next_run),
            is_recurring=bool(draft.is_recurring) and pattern != RecurrencePattern.NONE,
            recurrence_pattern=pattern,
            interval_value=coerce_interval(draft.interval_value),
            priority=draft.priority,
            persistent=bool(draft.persistent) or draft.priority == Priority.HIGH,
        )
        return self.add(task)

    def delete(self, task_id: str) -> bool:
        with self._lock:
            removed = self._tasks.pop(task_id, None)
        if removed is None:
            return False
        logger.info("Task %s deleted", task_id)
        self._schedule_save()
        return True

    def replace_all(self, tasks: Iterable[Task]) -> int:
        """Wholesale replace (last writer wins)."""
        fresh: dict[str, Task] = {}
        for t in tasks:
            if t.id in fresh:
                raise DuplicateTaskIdError(t.id)
            fresh[t.id] = replace(t)

        with self._lock:
            self._tasks = fresh
        logger.info("TaskStore replaced total=%d", len(fresh))
        self._schedule_save()
        return len(fresh)

    # ---- scheduler transitions ----

    def try_claim(self, task_id: str) -> Task | None:
        """
        Claim a PENDING task for firing.

        Atomically transitions:
          PENDING -> COMPLETED

        Returns a snapshot of the claimed task, or None when the task is gone
        or no longer PENDING (already claimed by an overlapping tick).
        """
        with self._lock:
            t = self._tasks.get(task_id)
            if t is None or t.status != TaskStatus.PENDING:
                return None
            t.status = TaskStatus.COMPLETED
            claimed = replace(t)
        self._schedule_save()
        return claimed

    def settle(self, task_id: str, *, fired_at: datetime, next_run: datetime | None) -> Task | None:
        """
        Finish a firing started by try_claim().

        next_run given -> re-arm (PENDING, new next_run)
        next_run None  -> stays COMPLETED

        A task deleted while its action was running is not resurrected (returns None).
        A task the user cancelled meanwhile keeps CANCELLED; only last_run is recorded.
        """
        with self._lock:
            t = self._tasks.get(task_id)
            if t is None:
                logger.info("Task %s vanished while firing; result not written back", task_id)
                return None

            t.last_run = as_utc(fired_at)
            if t.status == TaskStatus.COMPLETED and next_run is not None:
                t.status = TaskStatus.PENDING
                t.next_run = as_utc(next_run)
            settled = replace(t)
        self._schedule_save()
        return settled

    def release(self, task_id: str) -> Task | None:
        """
        Undo a try_claim() whose firing never settled (cancelled or crashed).

        COMPLETED -> PENDING with next_run unchanged, so the task is due again
        on the next tick (or the next start). Returns None if the task is gone
        or no longer in the claimed state.
        """
        with self._lock:
            t = self._tasks.get(task_id)
            if t is None or t.status != TaskStatus.COMPLETED:
                return None
            t.status = TaskStatus.PENDING
            released = replace(t)
        logger.info("Task %s claim released; it will fire again", task_id)
        self._schedule_save()
        return released

    # ---- user edits ----

    def update(
        self,
        task_id: str,
        *,
        description: str | None = None,
        recurrence_pattern: RecurrencePattern | None = None,
        interval_value: int | None = None,
        persistent: bool | None = None,
        next_run: datetime | None = None,
    ) -> Task | None:
        with self._lock:
            t = self._tasks.get(task_id)
            if t is None:
                return None

            if description is not None:
                t.description = description.strip()
            if recurrence_pattern is not None:
                t.recurrence_pattern = recurrence_pattern
                t.is_recurring = recurrence_pattern != RecurrencePattern.NONE
            if interval_value is not None:
                t.interval_value = coerce_interval(interval_value)
            if persistent is not None:
                t.persistent = bool(persistent)
            if next_run is not None:
                t.next_run = as_utc(next_run)
            updated = replace(t)
        self._schedule_save()
        return updated

    def cancel(self, task_id: str) -> Task | None:
        with self._lock:
            t = self._tasks.get(task_id)
            if t is None or t.status != TaskStatus.PENDING:
                return None
            t.status = TaskStatus.CANCELLED
            cancelled = replace(t)
        logger.info("Task %s cancelled", task_id)
        self._schedule_save()
        return cancelled
