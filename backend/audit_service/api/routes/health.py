"""
Health and metrics endpoints.

GET /health - Static service identity
GET /health/live - Liveness probe (process is up)
GET /health/ready - Readiness probe (database reachable)
GET /api/v1/audit-service/health - Detailed status of the database and batching worker
GET /metrics - Prometheus exposition
"""

from dataclasses import asdict
from typing import Any

import structlog
from fastapi import APIRouter, Request, Response
from fastapi import status as http_status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from audit_service.exceptions import StorageError

logger = structlog.get_logger()

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """Basic health check endpoint for load balancers and monitoring."""
    settings = getattr(request.app.state, "settings", None)
    service_name = settings.service_name if settings is not None else "audit-service"
    return {"status": "healthy", "service": service_name}


@router.get("/health/live")
async def liveness() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}


@router.get("/health/ready", response_model=None)
async def readiness(request: Request) -> dict[str, str] | JSONResponse:
    """
    Readiness probe.

    Returns 503 when the store is not initialized or the database ping fails.
    """
    repository = getattr(request.app.state, "audit_log_repository", None)
    if repository is None:
        return JSONResponse(
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database connection unavailable"},
        )

    try:
        await repository.ping()
    except StorageError as e:
        logger.warning("readiness_check_failed", error=str(e))
        return JSONResponse(
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database ping failed"},
        )

    return {"status": "ready"}


@router.get("/api/v1/audit-service/health")
async def detailed_health_check(request: Request) -> dict[str, Any]:
    """
    Detailed health check endpoint.

    Returns:
        Dictionary with health information:
        - status: "healthy" or "degraded"
        - database: "connected", "unavailable" or the ping error
        - batching_worker: worker health snapshot, or None when not initialized
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "database": "unavailable",
        "batching_worker": None,
    }

    repository = getattr(request.app.state, "audit_log_repository", None)
    if repository is not None:
        try:
            await repository.ping()
            health_status["database"] = "connected"
        except StorageError as e:
            health_status["database"] = f"error: {e}"

    worker = getattr(request.app.state, "batching_worker", None)
    if worker is not None:
        health_status["batching_worker"] = asdict(worker.get_health())

    if health_status["database"] != "connected" or worker is None or not worker.is_running:
        health_status["status"] = "degraded"

    return health_status


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
