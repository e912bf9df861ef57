"""FastAPI application entry point for the audit service."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from audit_service import __version__
from audit_service.api.routes import audit_logs, health, reports
from audit_service.config import Settings
from audit_service.config import settings as default_settings
from audit_service.database import create_engine, create_session_maker, init_db
from audit_service.ingestion.batching_worker import BatchingWorker
from audit_service.ingestion.event_queue import AuditEventQueue
from audit_service.ingestion.service import IngestionService
from audit_service.observability.logging import configure_logging
from audit_service.repositories.audit_log_repository import AuditLogRepository
from audit_service.repositories.report_repository import ReportRepository

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Wire storage and the ingestion pipeline for the lifetime of the app.

    Startup: create the engine (and schema if enabled), the repositories, the
    event queue and the batching worker, and expose them on ``app.state``.
    Shutdown: stop the worker, flushing what it holds, then dispose the engine.
    """
    settings: Settings = app.state.settings
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    logger.info(
        "audit_service_starting",
        environment=settings.environment,
        port=settings.server_port,
    )

    engine = create_engine(settings)
    if settings.db_create_schema:
        await init_db(engine)
    session_maker = create_session_maker(engine)

    audit_log_repository = AuditLogRepository(session_maker)
    queue = AuditEventQueue(max_size=settings.audit_buffer_max_size)
    worker = BatchingWorker(
        queue,
        audit_log_repository,
        batch_size=settings.audit_buffer_batch_size,
        flush_interval=settings.audit_buffer_flush_interval,
    )

    app.state.audit_log_repository = audit_log_repository
    app.state.report_repository = ReportRepository(session_maker)
    app.state.ingestion_service = IngestionService(queue)
    app.state.batching_worker = worker

    await worker.start()
    logger.info("audit_service_started")

    try:
        yield
    finally:
        logger.info("audit_service_stopping")
        await worker.stop()
        await engine.dispose()
        logger.info("audit_service_stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to the environment-loaded settings)

    Returns:
        Configured FastAPI app; components are attached by the lifespan
    """
    settings = settings or default_settings

    app = FastAPI(
        title="Audit Service API",
        description="Buffered ingestion of API audit events and aggregate audit reports",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials="*" not in settings.cors_allowed_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(audit_logs.router)
    app.include_router(reports.router)

    return app


app = create_app()
