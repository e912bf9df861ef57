"""
Audit Log API Routes

Purpose:
--------
Ingestion and listing endpoints for API audit events.

Endpoints:
----------
POST /api/audit-logs - Queue a batch of audit events (202, non-blocking)
GET /api/audit-logs - Newest audit events, optionally filtered by user/action
GET /api/audit-logs/actions - Distinct action names
GET /api/audit-logs/filter-values - Distinct values for report filter dropdowns

Submissions are validated synchronously; persistence happens later in the
batching worker, so a 202 means "queued", not "stored".
"""

from typing import Optional

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi import status as http_status

from audit_service.exceptions import StorageError, ValidationError
from audit_service.ingestion.service import IngestionService
from audit_service.models.audit_log import AuditLogEntry, AuditLogsQueuedResponse, FilterValues
from audit_service.repositories.audit_log_repository import AuditLogRepository

logger = structlog.get_logger()

router = APIRouter(prefix="/api/audit-logs", tags=["audit-logs"])


def _get_ingestion_service(request: Request) -> IngestionService:
    """Get IngestionService from app state."""
    service = getattr(request.app.state, "ingestion_service", None)
    if service is None:
        raise HTTPException(
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ingestion pipeline not initialized",
        )
    return service


def _get_audit_log_repository(request: Request) -> AuditLogRepository:
    """Get AuditLogRepository from app state."""
    repository = getattr(request.app.state, "audit_log_repository", None)
    if repository is None:
        raise HTTPException(
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Audit store not initialized",
        )
    return repository


@router.post(
    "",
    response_model=AuditLogsQueuedResponse,
    status_code=http_status.HTTP_202_ACCEPTED,
    summary="Queue audit logs",
    description=(
        "Validate and normalize a batch of audit events and queue them for "
        "batched persistence. Returns immediately. Events that do not fit in "
        "the queue are dropped; queued_count reports how many were accepted."
    ),
)
async def create_audit_logs(request: Request) -> AuditLogsQueuedResponse:
    """
    Queue audit events for persistence.

    Returns:
        AuditLogsQueuedResponse with the number of accepted events

    Raises:
        HTTPException 400: Malformed body, empty logs array or missing required field
        HTTPException 500: Unexpected failure
    """
    service = _get_ingestion_service(request)
    body = await request.body()

    try:
        queued_count = service.ingest(body)
    except ValidationError as e:
        logger.info("audit_logs_rejected", reason=str(e), index=e.index, field=e.field)
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except Exception as e:
        logger.error("audit_logs_ingest_error", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from e

    return AuditLogsQueuedResponse(queued_count=queued_count)


@router.get(
    "",
    response_model=list[AuditLogEntry],
    summary="List audit logs",
    description="Newest audit events first. limit defaults to 500 and is capped at 500.",
)
async def get_audit_logs(
    request: Request,
    user_id: Optional[str] = Query(None, description="Filter by user id"),
    action: Optional[str] = Query(None, description="Filter by action"),
    limit: Optional[str] = Query(None, description="Maximum rows (default 500, max 500)"),
) -> list[AuditLogEntry]:
    """
    Query stored audit events.

    Raises:
        HTTPException 400: limit is not an integer
        HTTPException 500: Store failure
    """
    repository = _get_audit_log_repository(request)

    parsed_limit: Optional[int] = None
    if limit:
        try:
            parsed_limit = int(limit)
        except ValueError as e:
            raise HTTPException(
                status_code=http_status.HTTP_400_BAD_REQUEST,
                detail="Invalid limit parameter",
            ) from e

    try:
        return await repository.query(user_id=user_id, action=action, limit=parsed_limit)
    except StorageError as e:
        logger.error("audit_logs_query_error", error=str(e))
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from e


@router.get(
    "/actions",
    response_model=list[str],
    summary="List distinct actions",
)
async def get_actions(request: Request) -> list[str]:
    """Distinct non-null action names, sorted ascending."""
    repository = _get_audit_log_repository(request)
    try:
        return await repository.list_distinct_actions()
    except StorageError as e:
        logger.error("audit_actions_query_error", error=str(e))
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from e


@router.get(
    "/filter-values",
    response_model=FilterValues,
    summary="List filter dropdown values",
)
async def get_filter_values(request: Request) -> FilterValues:
    """Distinct http methods, status codes, severities, user ids and actions."""
    repository = _get_audit_log_repository(request)
    try:
        return await repository.get_filter_values()
    except StorageError as e:
        logger.error("audit_filter_values_query_error", error=str(e))
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from e
