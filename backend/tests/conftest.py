"""
Pytest configuration and fixtures for audit service tests.

Provides shared fixtures for the test database, repositories, the ingestion
queue and an HTTP client bound to an app whose components are injected
directly on ``app.state`` (the lifespan is not run under ASGITransport).
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import audit_service.orm.audit_log  # noqa: F401
from audit_service.api.main import create_app
from audit_service.config import Settings
from audit_service.database import Base, create_session_maker
from audit_service.ingestion.event_queue import AuditEventQueue
from audit_service.ingestion.service import IngestionService
from audit_service.models.audit_log import AuditLogCreate
from audit_service.orm.audit_log import AuditLogORM
from audit_service.repositories.audit_log_repository import AuditLogRepository
from audit_service.repositories.report_repository import ReportRepository

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================
# Database Fixtures
# =============================


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create test database engine.

    Uses a file-backed SQLite database with NullPool so concurrent sessions
    (e.g. the batching worker and a reader) get independent connections.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'audit_test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_maker(db_engine)


@pytest.fixture
def audit_log_repository(session_maker: async_sessionmaker[AsyncSession]) -> AuditLogRepository:
    return AuditLogRepository(session_maker)


@pytest.fixture
def report_repository(session_maker: async_sessionmaker[AsyncSession]) -> ReportRepository:
    return ReportRepository(session_maker)


@pytest.fixture
def insert_rows(
    session_maker: async_sessionmaker[AsyncSession],
) -> Callable[[list[dict[str, Any]]], Awaitable[None]]:
    """
    Insert audit_logs rows directly, bypassing ingestion.

    Lets tests control created_at and payload columns. Missing required
    columns get neutral defaults.
    """

    async def _insert(rows: list[dict[str, Any]]) -> None:
        async with session_maker() as session:
            async with session.begin():
                for row in rows:
                    values = {
                        "endpoint_path": "/api/v1/goals",
                        "http_method": "GET",
                        "status_code": 200,
                        "response_time_seconds": 0.1,
                        "severity": "NONE",
                        "created_at": datetime.now(UTC),
                        **row,
                    }
                    session.add(AuditLogORM(**values))

    return _insert


# =============================
# Ingestion Fixtures
# =============================


@pytest.fixture
def make_event() -> Callable[..., AuditLogCreate]:
    """Factory for valid inbound audit events."""

    def _make(**overrides: Any) -> AuditLogCreate:
        fields: dict[str, Any] = {
            "endpoint_path": "/api/v1/goals",
            "http_method": "GET",
            "status_code": 200,
            "response_time_seconds": 0.25,
        }
        fields.update(overrides)
        return AuditLogCreate(**fields)

    return _make


@pytest.fixture
def event_queue() -> AuditEventQueue:
    return AuditEventQueue(max_size=100)


# =============================
# API Fixtures
# =============================


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        database_url=TEST_DATABASE_URL,
        db_create_schema=False,
        log_json=False,
    )


@pytest.fixture
def test_app(
    test_settings: Settings,
    audit_log_repository: AuditLogRepository,
    report_repository: ReportRepository,
    event_queue: AuditEventQueue,
) -> FastAPI:
    """App with components wired to the test database."""
    app = create_app(test_settings)
    app.state.audit_log_repository = audit_log_repository
    app.state.report_repository = report_repository
    app.state.ingestion_service = IngestionService(event_queue)
    return app


@pytest_asyncio.fixture(scope="function")
async def async_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
