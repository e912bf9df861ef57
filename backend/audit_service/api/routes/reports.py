"""
Report API Routes

GET /api/v1/audit-service/reports/{report_id} - Run an aggregate report

Filters are read from the query string (months, month, user_id, http_method,
action, min_tokens, min_response_time, status_code, status_code_min,
status_code_max, search_query, severity, date_from, limit). Each report
honors only the filters relevant to it.
"""

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi import status as http_status

from audit_service.exceptions import ReportNotFoundError, StorageError
from audit_service.models.reports import ReportFilters
from audit_service.repositories.report_repository import ReportRepository

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/audit-service", tags=["reports"])


def _get_report_repository(request: Request) -> ReportRepository:
    """Get ReportRepository from app state."""
    repository = getattr(request.app.state, "report_repository", None)
    if repository is None:
        raise HTTPException(
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Report engine not initialized",
        )
    return repository


@router.get(
    "/reports/{report_id}",
    response_model=None,
    summary="Run audit report",
    description="Returns the report rows only; unknown report ids return 404.",
)
async def get_report(report_id: str, request: Request) -> list[Any]:
    """
    Run a report with filters taken from the query string.

    Raises:
        HTTPException 404: Unknown report id
        HTTPException 500: Store failure
    """
    repository = _get_report_repository(request)
    filters = ReportFilters.from_query_params(request.query_params)

    try:
        return await repository.run_report(report_id, filters)
    except ReportNotFoundError as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail="Report not found",
        ) from e
    except StorageError as e:
        logger.error("report_request_failed", report_id=report_id, error=str(e))
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get report data",
        ) from e
