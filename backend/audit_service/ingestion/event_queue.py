"""
Bounded, non-blocking mailbox for inbound audit events.

Request handlers call ``submit`` which never waits: each event is either
accepted immediately or dropped because the queue is full. The caller learns
how many events were accepted, not which were dropped. Overload therefore sheds
load instead of blocking the request path it is observing.

The queue is drained by a single BatchingWorker running on the same event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import structlog

from audit_service.models.audit_log import AuditLogCreate
from audit_service.observability.metrics import (
    audit_events_accepted_total,
    audit_events_dropped_total,
    audit_queue_depth,
)

logger = structlog.get_logger(__name__)

DEFAULT_QUEUE_MAX_SIZE = 100


class AuditEventQueue:
    """
    Fixed-capacity FIFO of audit events awaiting persistence.

    Args:
        max_size: Maximum events held before new submissions are dropped (default 100)

    Example:
        >>> queue = AuditEventQueue(max_size=2)
        >>> queue.submit([event_a, event_b, event_c])
        2
    """

    def __init__(self, max_size: int = DEFAULT_QUEUE_MAX_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self._max_size = max_size
        self._queue: asyncio.Queue[AuditLogCreate] = asyncio.Queue(maxsize=max_size)

        self._events_accepted = 0
        self._events_dropped = 0

    @property
    def max_size(self) -> int:
        """Queue capacity."""
        return self._max_size

    @property
    def depth(self) -> int:
        """Number of events currently waiting."""
        return self._queue.qsize()

    def submit(self, events: Sequence[AuditLogCreate]) -> int:
        """
        Offer events to the queue without blocking.

        Args:
            events: Validated, normalized events in submission order

        Returns:
            Number of events accepted
        """
        accepted = 0
        dropped = 0
        for event in events:
            try:
                self._queue.put_nowait(event)
                accepted += 1
            except asyncio.QueueFull:
                dropped += 1

        self._events_accepted += accepted
        self._events_dropped += dropped
        audit_events_accepted_total.inc(accepted)
        audit_queue_depth.set(self._queue.qsize())

        if dropped:
            audit_events_dropped_total.inc(dropped)
            logger.warning(
                "audit_event_dropped_queue_full",
                dropped_count=dropped,
                accepted_count=accepted,
                queue_max_size=self._max_size,
            )

        return accepted

    async def get(self) -> AuditLogCreate:
        """Wait for and remove the next event."""
        event = await self._queue.get()
        audit_queue_depth.set(self._queue.qsize())
        return event

    def get_nowait(self) -> AuditLogCreate:
        """
        Remove the next event if one is waiting.

        Raises:
            asyncio.QueueEmpty: If the queue is empty
        """
        event = self._queue.get_nowait()
        audit_queue_depth.set(self._queue.qsize())
        return event

    def get_metrics(self) -> dict[str, Any]:
        """
        Get queue metrics.

        Returns:
            Dictionary with events_accepted, events_dropped, queue_size, max_size
        """
        return {
            "events_accepted": self._events_accepted,
            "events_dropped": self._events_dropped,
            "queue_size": self._queue.qsize(),
            "max_size": self._max_size,
        }
