"""
Audit Log Pydantic Models.

Pydantic models for audit log ingestion and API responses.

Data Models:
------------
- AuditLogCreate: One inbound audit event as submitted by a calling service
- CreateAuditLogsRequest: POST /api/audit-logs request body
- AuditLogsQueuedResponse: 202 response for accepted submissions
- AuditLogEntry: Persisted audit event returned from the store
- FilterValues: Distinct values for filter dropdowns

Payload fields (query_raw, body_raw, response_body) arrive as raw strings and
are returned as the parsed structure the store persisted (object, list or the
original string when the payload was not structured).
"""

from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from audit_service.orm.audit_log import DEFAULT_SEVERITY


def to_utc(v: datetime | str) -> datetime:
    if isinstance(v, str):
        parsed = datetime.fromisoformat(v.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    if v.tzinfo is None:
        return v.replace(tzinfo=UTC)
    return v.astimezone(UTC)


class AuditLogCreate(BaseModel):
    """
    Input schema for one audit event.

    Required fields default to their zero values so that absence is reported by
    the ingestion validator with the offending entry index, rather than as a
    generic schema error. Any id or created_at sent by the caller is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    user_id: Optional[str] = Field(None, max_length=255, description="Calling user identifier")
    severity: str = Field(default="", max_length=20, description="Severity label (open set)")
    endpoint_path: str = Field(default="", max_length=500, description="Requested endpoint path")
    session_id: Optional[str] = Field(None, max_length=255, description="Client session id")
    action: Optional[str] = Field(None, max_length=255, description="Logical action name")
    action_date: Optional[datetime] = Field(None, description="When the action happened")
    count: Optional[int] = Field(None, description="Generic counter (e.g. issues synced)")
    http_method: str = Field(default="", max_length=10, description="HTTP method")
    status_code: int = Field(default=0, description="HTTP status code")
    response_time_seconds: Optional[float] = Field(None, ge=0, description="Response latency")
    ip_address: Optional[str] = Field(None, max_length=45, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")
    chat_history_id: Optional[int] = Field(None, description="Chat history reference")
    insights_id: Optional[int] = Field(None, description="Insights reference")
    tokens_used: Optional[int] = Field(None, description="LLM tokens consumed by the call")
    query_raw: Optional[str] = Field(None, description="Raw query string")
    body_raw: Optional[str] = Field(None, description="Raw request body")
    response_body: Optional[str] = Field(None, description="Raw response body")


class CreateAuditLogsRequest(BaseModel):
    """Request body for POST /api/audit-logs."""

    logs: Optional[list[AuditLogCreate]] = Field(None, description="Audit events to queue")


class AuditLogsQueuedResponse(BaseModel):
    """Response returned once a submission has been queued."""

    status: str = Field(default="accepted")
    message: str = Field(default="Audit logs queued for processing")
    queued_count: int = Field(ge=0, description="Number of events accepted into the queue")


class AuditLogEntry(BaseModel):
    """Audit log entry returned from the database."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Server-assigned identifier")
    user_id: Optional[str] = None
    severity: str = Field(default=DEFAULT_SEVERITY)
    endpoint_path: str
    session_id: Optional[str] = None
    action: Optional[str] = None
    action_date: Optional[datetime] = None
    count: Optional[int] = None
    http_method: str
    status_code: int
    response_time_seconds: float
    created_at: datetime = Field(description="When the entry was persisted")
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    chat_history_id: Optional[int] = None
    insights_id: Optional[int] = None
    tokens_used: Optional[int] = None
    query_raw: Any = None
    body_raw: Any = None
    response_body: Any = None

    @field_validator("ip_address", mode="before")
    @classmethod
    def stringify_ip(cls, v: Any) -> Optional[str]:
        """INET columns may come back as ipaddress objects."""
        return None if v is None else str(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_utc(cls, v: datetime | str) -> datetime:
        """Enforce UTC timezone."""
        return to_utc(v)

    @field_validator("action_date", mode="before")
    @classmethod
    def ensure_action_date_utc(cls, v: datetime | str | None) -> Optional[datetime]:
        """Enforce UTC timezone when present."""
        return None if v is None else to_utc(v)


class FilterValues(BaseModel):
    """Distinct values available for report filter dropdowns."""

    http_methods: list[str] = Field(default_factory=list)
    status_codes: list[int] = Field(default_factory=list)
    severities: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)
