"""Custom exceptions for the audit service.

Validation failures are reported synchronously to the ingesting caller.
Everything past the event queue is best-effort: storage failures on the
flush path are logged and the in-flight batch is discarded.
"""


class AuditServiceError(Exception):
    """Base exception for audit service errors."""

    pass


class ValidationError(AuditServiceError):
    """Raised when an inbound audit log request is malformed or incomplete (400).

    Attributes:
        index: Position of the offending entry in the submitted array, if any
        field: Name of the missing or invalid field, if any
    """

    def __init__(self, message: str, index: int | None = None, field: str | None = None):
        """Initialize ValidationError.

        Args:
            message: Human-readable description returned to the caller
            index: Offending log entry index
            field: Offending field name
        """
        self.index = index
        self.field = field
        super().__init__(message)


class ReportNotFoundError(AuditServiceError):
    """Raised when a report id does not name a known report (404).

    Attributes:
        report_id: The unknown report identifier
    """

    def __init__(self, report_id: str):
        """Initialize ReportNotFoundError.

        Args:
            report_id: The requested report identifier
        """
        self.report_id = report_id
        super().__init__(f"Report not found: {report_id}")


class StorageError(AuditServiceError):
    """Raised for any persistence-layer failure (connectivity, constraints, ...).

    The original driver exception is chained as ``__cause__``.
    """

    pass
