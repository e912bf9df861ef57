"""
ORM Models for the audit service.
"""

from audit_service.orm.audit_log import AuditLogORM

__all__ = ["AuditLogORM"]
