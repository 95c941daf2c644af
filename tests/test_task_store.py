# tests/test_task_store.py

from __future__ import annotations

import threading
import time
from datetime import timedelta

import pytest

from pulse_scheduler.tasks.task_models import (
    DuplicateTaskIdError,
    Priority,
    RecurrencePattern,
    TaskDraft,
    TaskStatus,
)
from pulse_scheduler.tasks.task_store import TaskStore

from .conftest import make_task
from .fakes import FixedClock, MemoryPersistence


class ExplodingPersistence:
    def load(self):
        raise RuntimeError("disk on fire")

    def save(self, tasks):
        raise RuntimeError("disk on fire")


def test_add_rejects_duplicate_id(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="same"))
    with pytest.raises(DuplicateTaskIdError):
        store.add(make_task(next_run=t0, task_id="same"))
    assert len(store) == 1


def test_returned_tasks_are_copies(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="a"))

    snapshot = store.get("a")
    snapshot.description = "mutated outside"

    assert store.get("a").description == "stand up"


def test_add_draft_assigns_identity_and_flags(persistence: MemoryPersistence, t0) -> None:
    store = TaskStore(persistence, clock=FixedClock(t0))
    try:
        task = store.add_draft(
            TaskDraft(
                description="  Check the build  ",
                next_run=t0 + timedelta(minutes=5),
                is_recurring=True,
                recurrence_pattern=RecurrencePattern.MINUTE,
                interval_value=0,
                priority=Priority.HIGH,
            )
        )
    finally:
        store.close()

    assert task.id
    assert task.status == TaskStatus.PENDING
    assert task.created_at == t0
    assert task.description == "Check the build"
    assert task.interval_value == 1
    assert task.persistent is True
    assert task.is_recurring is True


def test_add_draft_never_recurs_with_none_pattern(store: TaskStore, t0) -> None:
    task = store.add_draft(TaskDraft(description="once", next_run=t0, is_recurring=True))
    assert task.is_recurring is False
    assert not task.rearms


def test_list_due_only_pending_in_insertion_order(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="late", description="late"))
    store.add(make_task(next_run=t0 - timedelta(hours=1), task_id="early"))
    store.add(make_task(next_run=t0 + timedelta(seconds=1), task_id="future"))
    store.add(make_task(next_run=t0, task_id="done", status=TaskStatus.COMPLETED))
    store.add(make_task(next_run=t0, task_id="off", status=TaskStatus.CANCELLED))

    assert [t.id for t in store.list_due(t0)] == ["late", "early"]


def test_claim_is_exclusive(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="a"))

    first = store.try_claim("a")
    second = store.try_claim("a")

    assert first is not None and first.status == TaskStatus.COMPLETED
    assert second is None
    assert store.list_due(t0) == []
    assert store.try_claim("missing") is None


def test_settle_rearms_recurring(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="a", pattern=RecurrencePattern.HOUR))
    store.try_claim("a")

    settled = store.settle("a", fired_at=t0, next_run=t0 + timedelta(hours=1))

    assert settled.status == TaskStatus.PENDING
    assert settled.next_run == t0 + timedelta(hours=1)
    assert settled.last_run == t0


def test_settle_without_next_run_completes(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="a"))
    store.try_claim("a")

    settled = store.settle("a", fired_at=t0, next_run=None)

    assert settled.status == TaskStatus.COMPLETED
    assert settled.next_run == t0
    assert settled.last_run == t0


def test_settle_does_not_resurrect_deleted_task(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="a", pattern=RecurrencePattern.MINUTE))
    store.try_claim("a")
    assert store.delete("a") is True

    assert store.settle("a", fired_at=t0, next_run=t0 + timedelta(minutes=1)) is None
    assert store.get("a") is None


def test_settle_keeps_cancellation_made_during_firing(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="a", pattern=RecurrencePattern.MINUTE))
    claimed = store.try_claim("a")
    # cancel() only acts on PENDING tasks; simulate a wholesale edit racing the firing.
    claimed.status = TaskStatus.CANCELLED
    store.replace_all([claimed])

    settled = store.settle("a", fired_at=t0, next_run=t0 + timedelta(minutes=1))

    assert settled.status == TaskStatus.CANCELLED
    assert settled.next_run == t0
    assert settled.last_run == t0


def test_cancel_only_pending(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="a"))
    store.add(make_task(next_run=t0, task_id="b", status=TaskStatus.COMPLETED))

    assert store.cancel("a").status == TaskStatus.CANCELLED
    assert store.cancel("a") is None
    assert store.cancel("b") is None
    assert store.cancel("nope") is None


def test_update_pattern_toggles_recurring(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="a"))

    updated = store.update("a", recurrence_pattern=RecurrencePattern.DAILY, interval_value=-3)
    assert updated.is_recurring is True
    assert updated.interval_value == 1

    updated = store.update("a", recurrence_pattern=RecurrencePattern.NONE)
    assert updated.is_recurring is False

    assert store.update("missing", description="x") is None


def test_find_by_prefix(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="abc123"))
    store.add(make_task(next_run=t0, task_id="abd456"))

    assert [t.id for t in store.find_by_prefix("abc")] == ["abc123"]
    assert len(store.find_by_prefix("ab")) == 2
    assert store.find_by_prefix("  ") == []


def test_replace_all_rejects_duplicates_and_keeps_old_state(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="keep"))

    with pytest.raises(DuplicateTaskIdError):
        store.replace_all([make_task(next_run=t0, task_id="x"), make_task(next_run=t0, task_id="x")])

    assert [t.id for t in store.all()] == ["keep"]

    assert store.replace_all([make_task(next_run=t0, task_id="y")]) == 1
    assert [t.id for t in store.all()] == ["y"]


def test_load_dedupes_and_survives_broken_persistence(t0) -> None:
    first = make_task(next_run=t0, task_id="dup", description="first")
    second = make_task(next_run=t0, task_id="dup", description="second")
    store = TaskStore(MemoryPersistence([first, second]))

    assert store.load() == 1
    assert store.get("dup").description == "first"

    broken = TaskStore(ExplodingPersistence())
    assert broken.load() == 0
    assert broken.all() == []


def test_mutations_are_batched_into_one_save(t0) -> None:
    persistence = MemoryPersistence()
    store = TaskStore(persistence, debounce_seconds=30)

    store.add(make_task(next_run=t0, task_id="a"))
    store.add(make_task(next_run=t0, task_id="b"))
    store.cancel("a")
    assert persistence.saves == []

    assert store.flush() is True
    assert len(persistence.saves) == 1
    assert [t.id for t in persistence.saves[0]] == ["a", "b"]
    assert persistence.saves[0][0].status == TaskStatus.CANCELLED

    # Nothing changed since: no second write.
    store.flush()
    assert len(persistence.saves) == 1


def test_debounce_timer_saves_after_quiet_period(t0) -> None:
    persistence = MemoryPersistence()
    store = TaskStore(persistence, debounce_seconds=0.05)
    try:
        store.add(make_task(next_run=t0, task_id="a"))

        deadline = time.monotonic() + 2.0
        while not persistence.saves and time.monotonic() < deadline:
            time.sleep(0.01)

        assert len(persistence.saves) == 1
    finally:
        store.close()


def test_failed_save_is_retried_on_next_change(t0) -> None:
    persistence = MemoryPersistence(fail_saves=True)
    store = TaskStore(persistence, debounce_seconds=30)

    store.add(make_task(next_run=t0, task_id="a"))
    assert store.flush() is False

    persistence.fail_saves = False
    store.add(make_task(next_run=t0, task_id="b"))
    assert store.flush() is True

    assert len(persistence.saves) == 2
    assert [t.id for t in persistence.saves[-1]] == ["a", "b"]


def test_save_exception_is_contained(t0) -> None:
    store = TaskStore(ExplodingPersistence(), debounce_seconds=30)
    store.add(make_task(next_run=t0, task_id="a"))

    assert store.flush() is False
    assert store.get("a") is not None


def test_release_returns_claimed_task_to_pending(store: TaskStore, t0) -> None:
    store.add(make_task(next_run=t0, task_id="a"))
    store.add(make_task(next_run=t0, task_id="off", status=TaskStatus.CANCELLED))
    store.try_claim("a")

    released = store.release("a")

    assert released.status == TaskStatus.PENDING
    assert released.next_run == t0
    assert [t.id for t in store.list_due(t0)] == ["a"]
    assert store.release("a") is None
    assert store.release("off") is None
    assert store.release("missing") is None


class BlockingPersistence(MemoryPersistence):
    """save() blocks until `gate` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.started = threading.Event()
        self.gate = threading.Event()

    def save(self, tasks):
        self.started.set()
        self.gate.wait(timeout=5.0)
        return super().save(tasks)


def test_flush_waits_for_save_already_in_progress(t0) -> None:
    persistence = BlockingPersistence()
    store = TaskStore(persistence, debounce_seconds=0.0)
    store.add(make_task(next_run=t0, task_id="a"))
    assert persistence.started.wait(timeout=2.0)

    outcome: list[bool] = []
    flusher = threading.Thread(target=lambda: outcome.append(store.flush()))
    flusher.start()
    flusher.join(timeout=0.1)
    assert flusher.is_alive()

    persistence.gate.set()
    flusher.join(timeout=2.0)

    assert outcome == [True]
    assert [t.id for t in persistence.saves[-1]] == ["a"]
