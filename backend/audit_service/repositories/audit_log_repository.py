"""
Audit Log Repository.

Provides async database operations for the audit_logs table:
- insert_batch: Persist a batch of events in one transaction
- query: Retrieve the newest entries with optional user/action filters
- list_distinct_actions / get_filter_values: Distinct values for dropdowns
- ping: Connectivity check for readiness probes

Every call opens its own session from the shared session factory, so the
repository is safe to share between the batching worker and request handlers.
"""

from collections.abc import Sequence
from typing import Any, Optional

import structlog
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from audit_service.exceptions import StorageError
from audit_service.models.audit_log import AuditLogCreate, AuditLogEntry, FilterValues
from audit_service.orm.audit_log import DEFAULT_SEVERITY, AuditLogORM
from audit_service.repositories.payloads import prepare_body_payload, prepare_query_payload

logger = structlog.get_logger(__name__)

DEFAULT_QUERY_LIMIT = 500
MAX_QUERY_LIMIT = 500


def clamp_limit(limit: Optional[int]) -> int:
    """Normalize a requested row limit: unset or non-positive -> 500, capped at 500."""
    if limit is None or limit <= 0:
        return DEFAULT_QUERY_LIMIT
    return min(limit, MAX_QUERY_LIMIT)


def _to_orm(event: AuditLogCreate) -> AuditLogORM:
    return AuditLogORM(
        user_id=event.user_id,
        severity=event.severity or DEFAULT_SEVERITY,
        endpoint_path=event.endpoint_path,
        session_id=event.session_id,
        action=event.action,
        action_date=event.action_date,
        count=event.count,
        http_method=event.http_method,
        status_code=event.status_code,
        response_time_seconds=event.response_time_seconds,
        ip_address=event.ip_address,
        user_agent=event.user_agent,
        chat_history_id=event.chat_history_id,
        insights_id=event.insights_id,
        tokens_used=event.tokens_used,
        query_raw=prepare_query_payload(event.query_raw),
        body_raw=prepare_body_payload(event.body_raw),
        response_body=prepare_body_payload(event.response_body),
    )


class AuditLogRepository:
    """Repository for audit log database operations."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def insert_batch(self, events: Sequence[AuditLogCreate]) -> None:
        """
        Insert a batch of audit events atomically.

        Args:
            events: Normalized events; an empty batch is a no-op

        Raises:
            StorageError: The transaction failed; no event of the batch is stored
        """
        if not events:
            return

        try:
            async with self._session_maker() as session:
                async with session.begin():
                    session.add_all([_to_orm(event) for event in events])
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Failed to insert audit log batch: {e}") from e

        logger.debug("audit_logs_inserted", count=len(events))

    async def query(
        self,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[AuditLogEntry]:
        """
        Retrieve audit logs, newest first.

        Args:
            user_id: Exact user filter (blank means no filter)
            action: Exact action filter (blank means no filter)
            limit: Row limit, normalized by clamp_limit

        Returns:
            Entries ordered by created_at descending, ties by id descending

        Raises:
            StorageError: Query failed
        """
        stmt = select(AuditLogORM)

        if user_id:
            stmt = stmt.where(AuditLogORM.user_id == user_id)

        if action:
            stmt = stmt.where(AuditLogORM.action == action)

        stmt = stmt.order_by(AuditLogORM.created_at.desc(), AuditLogORM.id.desc()).limit(
            clamp_limit(limit)
        )

        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Failed to query audit logs: {e}") from e

        return [AuditLogEntry.model_validate(row) for row in rows]

    async def list_distinct_actions(self) -> list[str]:
        """
        Get all distinct non-null actions, sorted ascending.

        Raises:
            StorageError: Query failed
        """
        return await self._distinct(AuditLogORM.action)

    async def get_filter_values(self) -> FilterValues:
        """
        Get distinct values of every dropdown-filterable column.

        Raises:
            StorageError: Query failed
        """
        return FilterValues(
            http_methods=await self._distinct(AuditLogORM.http_method),
            status_codes=await self._distinct(AuditLogORM.status_code),
            severities=await self._distinct(AuditLogORM.severity),
            user_ids=await self._distinct(AuditLogORM.user_id),
            actions=await self._distinct(AuditLogORM.action),
        )

    async def ping(self) -> None:
        """
        Verify database connectivity.

        Raises:
            StorageError: Database unreachable
        """
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Database ping failed: {e}") from e

    async def _distinct(self, column: Any) -> list[Any]:
        stmt = select(column).distinct().where(column.isnot(None)).order_by(column)
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Failed to query distinct {column.key}: {e}") from e
