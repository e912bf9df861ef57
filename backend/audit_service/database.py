"""
Database connection and session management.

This module provides SQLAlchemy async engine configuration, connection pooling,
and session factory for the audit service.

The engine is created explicitly by the application lifespan (or by tests) and
passed to the components that need it; nothing here is created at import time.
"""

import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from audit_service.config import Settings

logger = logging.getLogger(__name__)

# SQLAlchemy declarative base for ORM models
Base = declarative_base()


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create and configure async SQLAlchemy engine with connection pooling.

    Args:
        settings: Application settings

    Returns:
        AsyncEngine: Configured async database engine

    SQLite (used by tests) does not accept queue pool sizing arguments, so they
    are only passed for server databases.
    """
    url = str(settings.database_url)
    engine_kwargs: dict[str, Any] = {"echo": settings.db_echo}
    if not url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=settings.db_pool_recycle,
            connect_args={"server_settings": {"application_name": settings.service_name}}
            if "+asyncpg://" in url
            else {},
        )

    engine = create_async_engine(url, **engine_kwargs)

    @event.listens_for(engine.sync_engine, "connect")
    def receive_connect(dbapi_conn: Any, connection_record: Any) -> None:
        """Log successful database connections."""
        logger.debug("Database connection established")

    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create the async session factory bound to an engine.

    Args:
        engine: Async database engine

    Returns:
        Session factory producing independent AsyncSession instances
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy-loading issues after commit
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Initialize database schema.

    Creates the audit_logs table and its indexes if they do not exist.
    Dialect-specific indexes (GIN on body_raw) are only emitted on PostgreSQL.
    """
    # Import models so they register with Base
    from audit_service.orm import audit_log  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialized")

