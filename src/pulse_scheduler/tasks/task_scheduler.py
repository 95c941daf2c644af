# src/pulse_scheduler/tasks/task_scheduler.py

from __future__ import annotations

"""
Task scheduler.

A small ticking loop that, every tick:
- scans the store for due tasks (PENDING, next_run <= now),
- claims each one (PENDING -> COMPLETED) before running anything,
- runs the action executor for every claimed task concurrently,
- settles the task: recurring ones are re-armed from their previous next_run,
  one-shot ones stay COMPLETED,
- hands a FiringRecord to the sink.

Ticks are started on their own timer and are not awaited by the ticker, so a
slow tick may overlap the next one; the claim is what keeps a task from firing
twice.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from ..core.ports import ActionExecutor, FiringSink
from .recurrence import compute_next_run
from .task_models import FiringRecord, Task, TaskStatus, as_utc, utc_now
from .task_store import TaskStore

logger = logging.getLogger(__name__)

EXECUTION_ERROR_TEXT = "Error during background task execution."


class TaskScheduler:
    def __init__(
        self,
        store: TaskStore,
        executor: ActionExecutor,
        *,
        sink: FiringSink | None = None,
        clock: Callable[[], datetime] = utc_now,
        tick_seconds: float = 1.0,
        action_timeout_seconds: float | None = None,
    ) -> None:
        self.store = store
        self.executor = executor
        self.sink = sink
        self._clock = clock
        self.tick_seconds = max(0.01, float(tick_seconds))
        self.action_timeout_s = (
            float(action_timeout_seconds) if action_timeout_seconds and action_timeout_seconds > 0 else None
        )

    async def tick(self, now: datetime | None = None) -> list[FiringRecord]:
        """
        One scan-and-fire pass. Returns the records emitted by this tick.

        Only a failure of the scan itself (store failure) aborts the tick; it is
        logged and the next tick retries. A failed claim skips that one task.

        Claims are transient: a firing that does not reach settle() (tick
        cancelled on shutdown, firing crashed) has its claim released, so the
        task stays due instead of being stuck COMPLETED.
        """
        now = as_utc(now) if now is not None else self._clock()

        try:
            due = self.store.list_due(now)
        except Exception:
            logger.exception("Scheduler tick failed while scanning the task store")
            return []

        claimed: list[tuple[Task, datetime]] = []
        for task in due:
            try:
                task_claimed = self.store.try_claim(task.id)
            except Exception:
                logger.exception("Claiming task %s failed; skipping it this tick", task.id)
                continue
            if task_claimed is not None:
                claimed.append((task_claimed, self._clock()))

        if not claimed:
            return []

        unsettled = {task.id for task, _ in claimed}
        logger.debug("Tick %s: firing %d task(s)", now.isoformat(), len(claimed))
        try:
            results = await asyncio.gather(
                *(self._fire(task, fired_at, unsettled) for task, fired_at in claimed),
                return_exceptions=True,
            )
        finally:
            # Runs on cancellation too; settled firings are no longer listed.
            self._release_claims(unsettled)

        records: list[FiringRecord] = []
        for (task, _), res in zip(claimed, results):
            if isinstance(res, FiringRecord):
                records.append(res)
            elif isinstance(res, BaseException):
                logger.error("Firing task %s crashed", task.id, exc_info=res)
        return records

    def _release_claims(self, task_ids: set[str]) -> None:
        for task_id in list(task_ids):
            try:
                self.store.release(task_id)
            except Exception:
                logger.exception("Releasing claim of task %s failed", task_id)
        task_ids.clear()

    async def _execute(self, task: Task) -> str:
        try:
            coro = self.executor.execute(task)
            if self.action_timeout_s is None:
                result = await coro
            else:
                result = await asyncio.wait_for(coro, timeout=self.action_timeout_s)
        except TimeoutError:
            logger.warning("Task %s action timed out after %.1fs", task.id, self.action_timeout_s)
            return f"Task execution timed out after {self.action_timeout_s:g}s."
        except Exception:
            logger.exception("Action executor raised for task %s", task.id)
            return EXECUTION_ERROR_TEXT

        return str(result) if result is not None else ""

    async def _fire(self, task: Task, fired_at: datetime, unsettled: set[str]) -> FiringRecord:
        result_text = await self._execute(task)

        next_run: datetime | None = None
        if task.rearms:
            try:
                next_run = compute_next_run(
                    task.next_run,
                    task.recurrence_pattern,
                    task.interval_value,
                    now=self._clock(),
                )
            except (ValueError, OverflowError):
                logger.exception("Cannot compute next run for task %s; completing it", task.id)

        settled = self.store.settle(task.id, fired_at=fired_at, next_run=next_run)
        unsettled.discard(task.id)
        rearmed = settled is not None and next_run is not None and settled.status == TaskStatus.PENDING

        if rearmed:
            logger.info("Task %s fired -> re-armed for %s", task.id, next_run.isoformat())
        else:
            logger.info("Task %s fired -> completed", task.id)

        record = FiringRecord(
            task_id=task.id,
            description=task.description,
            result_text=result_text,
            fired_at=fired_at,
            persistent=task.persistent,
            rearmed=rearmed,
            next_run=next_run if rearmed else None,
        )
        self._emit(record)
        return record

    def _emit(self, record: FiringRecord) -> None:
        if self.sink is None:
            return
        try:
            self.sink(record)
        except Exception:
            logger.exception("Firing sink failed for task %s", record.task_id)

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """
        Ticker. Starts a tick every tick_seconds without waiting for the previous one.

        Stops when stop_event is set or the coroutine is cancelled. Ticks still in
        flight are cancelled and the claims of their unfinished firings released.
        """
        in_flight: set[asyncio.Task[list[FiringRecord]]] = set()
        logger.info("Scheduler started (tick=%.2fs, action_timeout=%s)", self.tick_seconds, self.action_timeout_s)

        try:
            while stop_event is None or not stop_event.is_set():
                t = asyncio.create_task(self.tick())
                in_flight.add(t)
                t.add_done_callback(in_flight.discard)

                if stop_event is None:
                    await asyncio.sleep(self.tick_seconds)
                else:
                    with contextlib.suppress(TimeoutError):
                        await asyncio.wait_for(stop_event.wait(), timeout=self.tick_seconds)
        finally:
            for t in list(in_flight):
                t.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)
            logger.info("Scheduler stopped.")


@dataclass
class SchedulerBackgroundRunner:
    """Owned handle for a scheduler running on its own event loop thread."""

    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal scheduler stop (loop closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_scheduler_in_background(scheduler: TaskScheduler) -> SchedulerBackgroundRunner | None:
    """
    Run the scheduler in a background thread with its own event loop.

    The console REPL blocks the main thread on input(), so the ticker needs a loop
    of its own.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(scheduler.run(stop_event))
        except Exception:
            logger.exception("Scheduler loop crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    t = threading.Thread(target=runner, name="pulse-scheduler", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Scheduler thread did not initialize properly.")
        return None

    logger.info("Scheduler background thread started.")
    return SchedulerBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
