"""Models package."""

from audit_service.models.audit_log import (
    AuditLogCreate,
    AuditLogEntry,
    AuditLogsQueuedResponse,
    CreateAuditLogsRequest,
    FilterValues,
)
from audit_service.models.reports import ReportFilters, ReportKind

__all__ = [
    "AuditLogCreate",
    "AuditLogEntry",
    "AuditLogsQueuedResponse",
    "CreateAuditLogsRequest",
    "FilterValues",
    "ReportFilters",
    "ReportKind",
]
