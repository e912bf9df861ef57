"""
Unit tests for BatchingWorker.

Tests cover:
- Size-triggered and interval-triggered flushes
- Discarding a batch when the store fails, and continuing afterwards
- Final flush on stop
- Lifecycle state and health snapshot
"""

import asyncio
from collections.abc import Callable

import pytest

from audit_service.exceptions import StorageError
from audit_service.ingestion.batching_worker import BatchingWorker, WorkerState
from audit_service.ingestion.event_queue import AuditEventQueue
from audit_service.models.audit_log import AuditLogCreate


class RecordingStore:
    """In-memory stand-in for the audit store."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.batches: list[list[AuditLogCreate]] = []
        self.attempts = 0

    async def insert_batch(self, events: list[AuditLogCreate]) -> None:
        self.attempts += 1
        if self.fail:
            raise StorageError("database unavailable")
        self.batches.append(list(events))


class SlowStore(RecordingStore):
    """Store whose batch insert takes a while to complete."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    async def insert_batch(self, events: list[AuditLogCreate]) -> None:
        await asyncio.sleep(self.delay)
        await super().insert_batch(events)


async def _wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until condition holds or timeout elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


class TestBatchingWorkerConfig:
    """Constructor validation."""

    def test_rejects_zero_batch_size(self) -> None:
        with pytest.raises(ValueError):
            BatchingWorker(AuditEventQueue(), RecordingStore(), batch_size=0)

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            BatchingWorker(AuditEventQueue(), RecordingStore(), flush_interval=0)


class TestBatchingWorkerFlush:
    """Flush triggers and failure handling."""

    @pytest.mark.asyncio
    async def test_flushes_when_batch_size_reached(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        store = RecordingStore()
        worker = BatchingWorker(queue, store, batch_size=2, flush_interval=60)
        await worker.start()

        try:
            queue.submit([make_event(action="a"), make_event(action="b")])
            await _wait_until(lambda: len(store.batches) == 1)
        finally:
            await worker.stop()

        assert [event.action for event in store.batches[0]] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_batch_size_one_flushes_each_event(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        store = RecordingStore()
        worker = BatchingWorker(queue, store, batch_size=1, flush_interval=60)
        await worker.start()

        try:
            queue.submit([make_event(), make_event(), make_event()])
            await _wait_until(lambda: len(store.batches) == 3)
        finally:
            await worker.stop()

        assert all(len(batch) == 1 for batch in store.batches)

    @pytest.mark.asyncio
    async def test_flushes_partial_batch_when_interval_elapses(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        store = RecordingStore()
        worker = BatchingWorker(queue, store, batch_size=100, flush_interval=0.1)
        await worker.start()

        try:
            queue.submit([make_event(action="lonely")])
            await _wait_until(lambda: len(store.batches) == 1)
        finally:
            await worker.stop()

        assert len(store.batches[0]) == 1
        assert store.batches[0][0].action == "lonely"

    @pytest.mark.asyncio
    async def test_empty_interval_does_not_flush(self) -> None:
        queue = AuditEventQueue(max_size=10)
        store = RecordingStore()
        worker = BatchingWorker(queue, store, batch_size=100, flush_interval=0.05)
        await worker.start()

        await asyncio.sleep(0.2)
        await worker.stop()

        assert store.attempts == 0

    @pytest.mark.asyncio
    async def test_failed_batch_is_discarded_and_worker_continues(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        store = RecordingStore(fail=True)
        worker = BatchingWorker(queue, store, batch_size=2, flush_interval=60)
        await worker.start()

        try:
            queue.submit([make_event(action="lost-1"), make_event(action="lost-2")])
            await _wait_until(lambda: store.attempts == 1)

            store.fail = False
            queue.submit([make_event(action="kept-1"), make_event(action="kept-2")])
            await _wait_until(lambda: len(store.batches) == 1)
        finally:
            await worker.stop()

        assert [event.action for event in store.batches[0]] == ["kept-1", "kept-2"]
        health = worker.get_health()
        assert health.events_lost == 2
        assert health.failed_flushes == 1
        assert health.events_flushed == 2

    @pytest.mark.asyncio
    async def test_stop_flushes_held_partial_batch(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        store = RecordingStore()
        worker = BatchingWorker(queue, store, batch_size=100, flush_interval=60)
        await worker.start()

        queue.submit([make_event(), make_event(), make_event()])
        await _wait_until(lambda: worker.get_health().batch_held == 3)
        await worker.stop()

        assert len(store.batches) == 1
        assert len(store.batches[0]) == 3

    @pytest.mark.asyncio
    async def test_stop_drains_events_still_queued(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        store = RecordingStore()
        worker = BatchingWorker(queue, store, batch_size=2, flush_interval=60)

        queue.submit([make_event() for _ in range(5)])
        await worker.stop()

        assert [len(batch) for batch in store.batches] == [2, 2, 1]
        assert queue.depth == 0

    @pytest.mark.asyncio
    async def test_stop_during_flush_completes_in_flight_batch(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        store = SlowStore(delay=0.3)
        worker = BatchingWorker(queue, store, batch_size=2, flush_interval=60)
        await worker.start()

        queue.submit([make_event(action="a"), make_event(action="b")])
        await _wait_until(lambda: worker.state == WorkerState.FLUSHING)
        await worker.stop()

        assert [[event.action for event in batch] for batch in store.batches] == [["a", "b"]]
        health = worker.get_health()
        assert health.events_flushed == 2
        assert health.events_lost == 0
        assert health.flushes == 1
        assert worker.state == WorkerState.IDLE


class TestBatchingWorkerLifecycle:
    """State transitions and health."""

    @pytest.mark.asyncio
    async def test_state_transitions(self) -> None:
        worker = BatchingWorker(AuditEventQueue(), RecordingStore(), flush_interval=60)
        assert worker.state == WorkerState.IDLE
        assert worker.is_running is False

        await worker.start()
        assert worker.state == WorkerState.IDLE
        assert worker.is_running is True

        await worker.stop()
        assert worker.state == WorkerState.IDLE
        assert worker.is_running is False

    @pytest.mark.asyncio
    async def test_accumulating_after_first_event(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        worker = BatchingWorker(queue, RecordingStore(), batch_size=100, flush_interval=60)
        await worker.start()

        try:
            queue.submit([make_event()])
            await _wait_until(lambda: worker.get_health().batch_held == 1)
            assert worker.state == WorkerState.ACCUMULATING
        finally:
            await worker.stop()

    @pytest.mark.asyncio
    async def test_start_twice_keeps_single_task(self) -> None:
        worker = BatchingWorker(AuditEventQueue(), RecordingStore(), flush_interval=60)
        await worker.start()
        task = worker._task

        await worker.start()

        assert worker._task is task
        await worker.stop()

    @pytest.mark.asyncio
    async def test_health_snapshot(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        worker = BatchingWorker(queue, RecordingStore(), flush_interval=60)
        queue.submit([make_event(), make_event()])

        health = worker.get_health()

        assert health.state == "idle"
        assert health.queue_depth == 2
        assert health.events_flushed == 0
        assert health.flushes == 0
