# src/pulse_scheduler/tasks/recurrence.py

from __future__ import annotations

"""
Recurrence arithmetic.

advance() performs one step of a pattern; compute_next_run() keeps stepping
until the result lies strictly after "now", so a task that missed several
occurrences (process asleep, machine suspended) fires once and re-arms in the
future instead of replaying every missed slot.

Month rollover: the day is clamped to the last day of the target month
(Jan 31 -> Feb 29 in 2024, Mar 31 -> Apr 30). The clamp is not remembered:
the following step starts from the clamped day.
"""

import calendar
from datetime import datetime, timedelta

from .task_models import RecurrencePattern, as_utc, coerce_interval, utc_now

_FIXED_UNITS: dict[RecurrencePattern, str] = {
    RecurrencePattern.SECOND: "seconds",
    RecurrencePattern.MINUTE: "minutes",
    RecurrencePattern.HOUR: "hours",
}


def _fixed_step(pattern: RecurrencePattern, interval: int) -> timedelta | None:
    unit = _FIXED_UNITS.get(pattern)
    if unit is not None:
        return timedelta(**{unit: interval})
    if pattern == RecurrencePattern.DAILY:
        return timedelta(days=1)
    if pattern == RecurrencePattern.WEEKLY:
        return timedelta(days=7)
    return None


def add_month(ts: datetime) -> datetime:
    year = ts.year + (1 if ts.month == 12 else 0)
    month = 1 if ts.month == 12 else ts.month + 1
    last_day = calendar.monthrange(year, month)[1]
    return ts.replace(year=year, month=month, day=min(ts.day, last_day))


def next_workday(ts: datetime) -> datetime:
    nxt = ts + timedelta(days=1)
    while nxt.weekday() >= 5:  # Sat/Sun
        nxt += timedelta(days=1)
    return nxt


def advance(from_ts: datetime, pattern: RecurrencePattern | str, interval: int = 1) -> datetime:
    """Single recurrence step. `interval` applies to SECOND/MINUTE/HOUR only."""
    pattern = RecurrencePattern(pattern)
    ts = as_utc(from_ts)

    if pattern == RecurrencePattern.NONE:
        raise ValueError("Recurrence pattern NONE has no next occurrence")

    step = _fixed_step(pattern, coerce_interval(interval))
    if step is not None:
        return ts + step
    if pattern == RecurrencePattern.MONTHLY:
        return add_month(ts)
    if pattern == RecurrencePattern.WORKDAYS:
        return next_workday(ts)

    raise ValueError(f"Unsupported recurrence pattern: {pattern}")


def compute_next_run(
    base: datetime,
    pattern: RecurrencePattern | str,
    interval: int = 1,
    *,
    now: datetime | None = None,
) -> datetime:
    """
    Advance `base` until the result is strictly after `now`.

    Fixed-width patterns jump over whole missed periods at once; the result is
    the same as stepping one at a time.
    """
    pattern = RecurrencePattern(pattern)
    now = as_utc(now) if now is not None else utc_now()
    interval = coerce_interval(interval)

    nxt = advance(base, pattern, interval)
    if nxt > now:
        return nxt

    step = _fixed_step(pattern, interval)
    if step is not None:
        missed = (now - nxt) // step
        return nxt + step * (missed + 1)

    while nxt <= now:
        nxt = advance(nxt, pattern, interval)
    return nxt
