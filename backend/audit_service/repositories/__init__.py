"""Repositories package."""

from audit_service.repositories.audit_log_repository import AuditLogRepository
from audit_service.repositories.report_repository import ReportRepository

__all__ = ["AuditLogRepository", "ReportRepository"]
