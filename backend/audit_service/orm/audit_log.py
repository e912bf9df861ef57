"""
SQLAlchemy ORM Model for the audit log table.

Append-only log of observed API calls. Rows are written in batches by the
ingestion worker and are never updated or deleted by this service.

Table: audit_logs
Primary Key: id (INTEGER, server-assigned)
Indexes: created_at, user_id, action, severity, GIN(body_raw) on PostgreSQL
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import INET, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from audit_service.database import Base

# JSONB in production, JSON for SQLite test compatibility.
# None is stored as SQL NULL so that IS NULL / IS NOT NULL filters behave.
PayloadType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")

IPAddressType = String(45).with_variant(INET(), "postgresql")

DEFAULT_SEVERITY = "NONE"


class AuditLogORM(Base):
    """
    One observed API call with its outcome metadata.

    Table: audit_logs
    Primary Key: id (INTEGER)
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_logs_created_at", "created_at"),
        Index("idx_audit_logs_user_id", "user_id"),
        Index("idx_audit_logs_action", "action"),
        Index("idx_audit_logs_severity", "severity"),
        Index("idx_audit_logs_body_raw", "body_raw", postgresql_using="gin").ddl_if(
            dialect="postgresql"
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    # Caller identity
    user_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    severity: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DEFAULT_SEVERITY,
        server_default=DEFAULT_SEVERITY,
    )

    # Request shape (normalized at ingestion)
    endpoint_path: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    session_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    action: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    action_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Generic counter (e.g. issues synced by the call)
    count: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    http_method: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    status_code: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    response_time_seconds: Mapped[float] = mapped_column(
        Numeric(10, 3, asdecimal=False),
        nullable=False,
    )

    # Assigned by the database at insert time
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.current_timestamp(),
    )

    ip_address: Mapped[str | None] = mapped_column(
        IPAddressType,
        nullable=True,
    )

    user_agent: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Foreign references into the calling application
    chat_history_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    insights_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    tokens_used: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    # Semi-structured payloads, stored parsed
    query_raw: Mapped[Any | None] = mapped_column(
        PayloadType,
        nullable=True,
    )

    body_raw: Mapped[Any | None] = mapped_column(
        PayloadType,
        nullable=True,
    )

    response_body: Mapped[Any | None] = mapped_column(
        PayloadType,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AuditLogORM {self.http_method} {self.endpoint_path} at {self.created_at}>"
