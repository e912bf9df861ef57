"""
Background worker that drains the audit event queue into the store in batches.

A single asyncio task accumulates events and writes them with one batch insert
per flush. A flush happens when either trigger fires first:

- size: the held batch reaches ``batch_size`` events
- interval: ``flush_interval`` seconds elapse and the held batch is non-empty

Delivery is at-most-once. If the store rejects a batch, the whole batch is
logged and discarded; nothing is retried.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import structlog

from audit_service.ingestion.event_queue import AuditEventQueue
from audit_service.models.audit_log import AuditLogCreate
from audit_service.observability.metrics import (
    audit_events_flushed_total,
    audit_events_lost_total,
    audit_flush_batch_size,
    audit_flush_duration_seconds,
    audit_flushes_total,
)

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_FLUSH_INTERVAL_SECONDS = 30.0


class AuditBatchStore(Protocol):
    """Persistence dependency of the worker."""

    async def insert_batch(self, events: list[AuditLogCreate]) -> None: ...


class WorkerState(Enum):
    """Batching worker lifecycle states."""

    IDLE = "idle"  # No event received yet, or stopped
    ACCUMULATING = "accumulating"  # Waiting for events or the next tick
    FLUSHING = "flushing"  # Batch insert in progress


@dataclass
class WorkerHealth:
    """Snapshot of the batching worker."""

    state: str
    is_running: bool
    queue_depth: int
    batch_held: int
    events_flushed: int
    events_lost: int
    flushes: int
    failed_flushes: int


class BatchingWorker:
    """
    Single consumer of the AuditEventQueue.

    Example:
        >>> worker = BatchingWorker(queue, repository, batch_size=100, flush_interval=30.0)
        >>> await worker.start()
        >>> ...
        >>> await worker.stop()
    """

    def __init__(
        self,
        queue: AuditEventQueue,
        store: AuditBatchStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL_SECONDS,
    ):
        """
        Initialize the worker.

        Args:
            queue: Event queue to drain
            store: Store receiving batch inserts
            batch_size: Events per size-triggered flush (default 100)
            flush_interval: Seconds between interval flushes (default 30)
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if flush_interval <= 0:
            raise ValueError("flush_interval must be positive")

        self._queue = queue
        self._store = store
        self._batch_size = batch_size
        self._flush_interval = flush_interval

        self._batch: list[AuditLogCreate] = []
        self._state = WorkerState.IDLE
        self._task: asyncio.Task | None = None
        self._write_task: asyncio.Task | None = None

        self._events_flushed = 0
        self._events_lost = 0
        self._flushes = 0
        self._failed_flushes = 0

    @property
    def state(self) -> WorkerState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the consumer task is active."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the consumer task."""
        if self.is_running:
            logger.warning("audit_worker_already_running")
            return

        self._task = asyncio.create_task(self._run())

        logger.info(
            "audit_worker_started",
            batch_size=self._batch_size,
            flush_interval=self._flush_interval,
            queue_max_size=self._queue.max_size,
        )

    async def stop(self) -> None:
        """
        Stop the consumer task.

        A batch write already in progress is allowed to finish. Events already
        drained from the queue, and any still waiting in it, are written in a
        final flush before returning.
        """
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        # A write interrupted by cancelling the loop keeps running; let it land
        if self._write_task is not None:
            await self._write_task
            self._write_task = None

        while True:
            try:
                self._batch.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break

        while self._batch:
            pending = self._batch[: self._batch_size]
            self._batch = self._batch[self._batch_size :]
            await self._write(pending, trigger="shutdown")

        self._state = WorkerState.IDLE
        logger.info(
            "audit_worker_stopped",
            events_flushed=self._events_flushed,
            events_lost=self._events_lost,
        )

    async def _run(self) -> None:
        """Accumulate events and flush on size or interval."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._flush_interval

        while True:
            try:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    if self._batch:
                        await self._flush(trigger="interval")
                    deadline = loop.time() + self._flush_interval
                    continue

                try:
                    event = await asyncio.wait_for(self._queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    continue

                self._batch.append(event)
                if self._state is WorkerState.IDLE:
                    self._state = WorkerState.ACCUMULATING
                if len(self._batch) >= self._batch_size:
                    await self._flush(trigger="size")

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "audit_worker_error",
                    error=str(e),
                    error_type=type(e).__name__,
                )

    async def _flush(self, trigger: str) -> None:
        """Write the held batch and clear it regardless of outcome."""
        pending = self._batch
        self._batch = []
        self._write_task = asyncio.create_task(self._write(pending, trigger=trigger))
        await asyncio.shield(self._write_task)
        self._write_task = None

    async def _write(self, events: list[AuditLogCreate], trigger: str) -> None:
        previous_state = self._state
        self._state = WorkerState.FLUSHING
        self._flushes += 1
        start = time.perf_counter()

        try:
            await self._store.insert_batch(events)
        except Exception as e:
            self._record_failure(events, trigger, e)
        else:
            duration = time.perf_counter() - start
            self._events_flushed += len(events)
            audit_events_flushed_total.inc(len(events))
            audit_flushes_total.labels(outcome="success", trigger=trigger).inc()
            audit_flush_batch_size.observe(len(events))
            audit_flush_duration_seconds.observe(duration)
            logger.info(
                "audit_batch_flushed",
                batch_size=len(events),
                trigger=trigger,
                duration_ms=round(duration * 1000, 2),
            )
        finally:
            self._state = previous_state

    def _record_failure(self, events: list[AuditLogCreate], trigger: str, error: Exception) -> None:
        self._failed_flushes += 1
        self._events_lost += len(events)
        audit_events_lost_total.inc(len(events))
        audit_flushes_total.labels(outcome="failure", trigger=trigger).inc()
        logger.error(
            "audit_flush_failed",
            batch_size=len(events),
            trigger=trigger,
            error=str(error),
            error_type=type(error).__name__,
        )

    def get_health(self) -> WorkerHealth:
        """
        Get health snapshot of the worker.

        Returns:
            WorkerHealth with current counters
        """
        return WorkerHealth(
            state=self._state.value,
            is_running=self.is_running,
            queue_depth=self._queue.depth,
            batch_held=len(self._batch),
            events_flushed=self._events_flushed,
            events_lost=self._events_lost,
            flushes=self._flushes,
            failed_flushes=self._failed_flushes,
        )
