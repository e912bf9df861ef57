"""Ingestion pipeline: normalization, bounded queue and batching worker."""

from audit_service.ingestion.batching_worker import BatchingWorker, WorkerState
from audit_service.ingestion.event_queue import AuditEventQueue
from audit_service.ingestion.service import IngestionService

__all__ = ["AuditEventQueue", "BatchingWorker", "IngestionService", "WorkerState"]
