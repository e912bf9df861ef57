"""
Ingestion entry point: validate a submission, normalize it and queue it.

Validation is all-or-nothing: the first invalid entry rejects the whole
submission and nothing is queued.
"""

import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from audit_service.exceptions import ValidationError
from audit_service.ingestion.event_queue import AuditEventQueue
from audit_service.ingestion.normalizer import normalize_event
from audit_service.models.audit_log import AuditLogCreate, CreateAuditLogsRequest

logger = structlog.get_logger(__name__)

INVALID_BODY_MESSAGE = "Invalid request body"
EMPTY_LOGS_MESSAGE = "Logs array cannot be empty"


def _require(entry: AuditLogCreate, index: int) -> None:
    """Check the required fields of one entry, in a fixed order."""
    missing: str | None = None
    if not entry.endpoint_path:
        missing = "endpoint_path"
    elif not entry.http_method:
        missing = "http_method"
    elif entry.status_code == 0:
        missing = "status_code"
    elif entry.response_time_seconds is None:
        missing = "response_time_seconds"

    if missing:
        raise ValidationError(
            f"{missing} is required for log entry {index}",
            index=index,
            field=missing,
        )


def parse_submission(body: bytes | str) -> list[AuditLogCreate]:
    """
    Decode and validate a POST /api/audit-logs body.

    Args:
        body: Raw request body

    Returns:
        Validated entries in submission order

    Raises:
        ValidationError: Body is not a valid submission
    """
    try:
        payload: Any = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValidationError(INVALID_BODY_MESSAGE) from e

    if payload is None:
        payload = {}

    try:
        request = CreateAuditLogsRequest.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(INVALID_BODY_MESSAGE) from e

    if not request.logs:
        raise ValidationError(EMPTY_LOGS_MESSAGE)

    for index, entry in enumerate(request.logs):
        _require(entry, index)

    return request.logs


class IngestionService:
    """Accepts audit submissions on behalf of the HTTP layer."""

    def __init__(self, queue: AuditEventQueue):
        self._queue = queue

    def ingest(self, body: bytes | str) -> int:
        """
        Validate, normalize and queue a submission without blocking.

        Returns:
            Number of entries accepted into the queue

        Raises:
            ValidationError: Submission rejected, nothing queued
        """
        entries = parse_submission(body)
        queued = self._queue.submit([normalize_event(entry) for entry in entries])

        logger.debug(
            "audit_logs_submitted",
            submitted_count=len(entries),
            queued_count=queued,
        )
        return queued
