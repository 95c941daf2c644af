# tests/test_task_models.py

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from pulse_scheduler.tasks.task_models import (
    MAX_INTERVAL_VALUE,
    FiringRecord,
    Priority,
    RecurrencePattern,
    Task,
    TaskStatus,
    TaskType,
    coerce_interval,
)


def test_task_reads_original_wire_format() -> None:
    task = Task.from_dict(
        {
            "id": "0b6c",
            "description": "Tech news digest",
            "type": "AI_SEARCH_NEWS",
            "status": "PENDING",
            "createdAt": "2024-01-05T08:59:00.000Z",
            "nextRun": "2024-01-05T09:00:00.000Z",
            "isRecurring": True,
            "recurrencePattern": "WORKDAYS",
            "intervalValue": 1,
            "priority": "HIGH",
            "persistent": True,
        }
    )

    assert task.type == TaskType.AI_SEARCH_NEWS
    assert task.next_run == datetime(2024, 1, 5, 9, 0, tzinfo=UTC)
    assert task.recurrence_pattern == RecurrencePattern.WORKDAYS
    assert task.priority == Priority.HIGH
    assert task.last_run is None
    assert task.rearms


def test_to_dict_uses_camel_case_and_z_suffix() -> None:
    task = Task(
        id="abc",
        description="ping",
        type=TaskType.REMINDER,
        status=TaskStatus.COMPLETED,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
        next_run=datetime(2024, 1, 1, 0, 0, 10, tzinfo=UTC),
    )

    data = task.to_dict()

    assert data["nextRun"] == "2024-01-01T00:00:10.000Z"
    assert data["createdAt"] == "2024-01-01T00:00:00.000Z"
    assert data["recurrencePattern"] == "NONE"
    assert data["intervalValue"] == 1
    assert "lastRun" not in data

    task.last_run = datetime(2024, 1, 1, 0, 0, 11, tzinfo=UTC)
    assert Task.from_dict(task.to_dict()) == task


def test_from_dict_coerces_soft_fields() -> None:
    task = Task.from_dict(
        {
            "id": "x",
            "description": "d",
            "type": "SOMETHING_NEW",
            "status": "weird",
            "createdAt": "2024-01-01T00:00:00Z",
            "nextRun": "2024-01-01T00:00:00+02:00",
            "intervalValue": -4,
            "priority": None,
        }
    )

    assert task.type == TaskType.REMINDER
    assert task.status == TaskStatus.PENDING
    assert task.priority == Priority.NORMAL
    assert task.interval_value == 1
    assert task.next_run == datetime(2023, 12, 31, 22, 0, tzinfo=UTC)
    assert not task.rearms


@pytest.mark.parametrize(
    "payload",
    [
        "not a dict",
        {"description": "no id", "createdAt": "2024-01-01T00:00:00Z", "nextRun": "2024-01-01T00:00:00Z"},
        {"id": "a", "createdAt": "2024-01-01T00:00:00Z"},
        {"id": "a", "createdAt": "2024-01-01T00:00:00Z", "nextRun": "tomorrow"},
    ],
)
def test_from_dict_rejects_broken_entries(payload) -> None:
    with pytest.raises(ValueError):
        Task.from_dict(payload)


def test_is_due_only_for_pending() -> None:
    now = datetime(2024, 1, 1, 12, tzinfo=UTC)
    task = Task(
        id="a",
        description="d",
        type=TaskType.REMINDER,
        status=TaskStatus.PENDING,
        created_at=now,
        next_run=now,
    )
    assert task.is_due(now)

    task.status = TaskStatus.CANCELLED
    assert not task.is_due(now)


def test_firing_record_render() -> None:
    rec = FiringRecord(
        task_id="a",
        description="Stand up",
        result_text="Reminder: Stand up",
        fired_at=datetime(2024, 1, 1, tzinfo=UTC),
        persistent=False,
        rearmed=True,
    )
    assert rec.render() == "**[Automatic Execution]** Stand up\n\nReminder: Stand up"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(10**12, MAX_INTERVAL_VALUE), (0, 1), ("7", 7), (float("inf"), 1), (None, 1)],
)
def test_coerce_interval_bounds(raw, expected) -> None:
    assert coerce_interval(raw) == expected


def test_from_dict_clamps_huge_interval() -> None:
    task = Task.from_dict(
        {
            "id": "big",
            "createdAt": "2024-01-01T00:00:00Z",
            "nextRun": "2024-01-01T00:00:00Z",
            "isRecurring": True,
            "recurrencePattern": "SECOND",
            "intervalValue": 10**12,
        }
    )
    assert task.interval_value == MAX_INTERVAL_VALUE
