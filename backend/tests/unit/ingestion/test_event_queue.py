"""
Unit tests for AuditEventQueue.

Tests cover:
- Non-blocking submission with accepted counts
- Drop-on-full behavior and drop metrics
- FIFO retrieval
"""

import asyncio

import pytest

from audit_service.ingestion.event_queue import AuditEventQueue


class TestAuditEventQueue:
    """Test suite for the bounded event queue."""

    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError):
            AuditEventQueue(max_size=0)

    def test_default_capacity(self) -> None:
        assert AuditEventQueue().max_size == 100

    @pytest.mark.asyncio
    async def test_submit_accepts_within_capacity(self, make_event) -> None:
        queue = AuditEventQueue(max_size=5)

        accepted = queue.submit([make_event(), make_event(), make_event()])

        assert accepted == 3
        assert queue.depth == 3

    @pytest.mark.asyncio
    async def test_submit_drops_when_full(self, make_event) -> None:
        queue = AuditEventQueue(max_size=2)

        accepted = queue.submit([make_event(action=str(i)) for i in range(5)])

        assert accepted == 2
        assert queue.depth == 2
        metrics = queue.get_metrics()
        assert metrics["events_accepted"] == 2
        assert metrics["events_dropped"] == 3

    @pytest.mark.asyncio
    async def test_full_queue_accepts_nothing(self, make_event) -> None:
        queue = AuditEventQueue(max_size=1)
        queue.submit([make_event()])

        assert queue.submit([make_event(), make_event()]) == 0
        assert queue.depth == 1

    @pytest.mark.asyncio
    async def test_submit_empty_list(self) -> None:
        queue = AuditEventQueue(max_size=1)

        assert queue.submit([]) == 0
        assert queue.get_metrics()["events_dropped"] == 0

    @pytest.mark.asyncio
    async def test_get_returns_events_in_submission_order(self, make_event) -> None:
        queue = AuditEventQueue(max_size=10)
        queue.submit([make_event(action="first"), make_event(action="second")])

        first = await queue.get()
        second = await queue.get()

        assert (first.action, second.action) == ("first", "second")
        assert queue.depth == 0

    @pytest.mark.asyncio
    async def test_get_nowait_on_empty_queue_raises(self) -> None:
        queue = AuditEventQueue(max_size=1)

        with pytest.raises(asyncio.QueueEmpty):
            queue.get_nowait()

    @pytest.mark.asyncio
    async def test_space_freed_by_consumer_is_reusable(self, make_event) -> None:
        queue = AuditEventQueue(max_size=1)
        queue.submit([make_event(action="a")])
        await queue.get()

        assert queue.submit([make_event(action="b")]) == 1
