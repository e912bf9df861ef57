"""
Endpoint and action normalization.

Collapses per-resource identifiers so that aggregate reports group calls by
logical route:

    normalize_endpoint("/api/v1/goals/135")           -> "/api/v1/goals/*"
    normalize_action("135", "/api/v1/goals/135")      -> "goal-by-id"

Action normalization assumes paths shaped like ``/api/v{n}/<resource>/...``;
other shapes are left unchanged.
"""

import re
from typing import Optional

from audit_service.models.audit_log import AuditLogCreate
from audit_service.orm.audit_log import DEFAULT_SEVERITY

_NUMERIC_ENDING = re.compile(r"/[0-9]+\Z")
_PURELY_NUMERIC = re.compile(r"[0-9]+")

WILDCARD_SEGMENT = "/*"


def normalize_endpoint(path: str) -> str:
    """Replace a trailing numeric path segment with ``/*``."""
    return _NUMERIC_ENDING.sub(WILDCARD_SEGMENT, path)


def normalize_action(action: Optional[str], endpoint_path: str) -> Optional[str]:
    """
    Replace a purely numeric action with ``<resource>-by-id``.

    The resource is the third segment of the (un-normalized) endpoint path with
    one trailing "s" removed. Paths with fewer than three segments keep the
    numeric action.

    Args:
        action: Submitted action name
        endpoint_path: Submitted endpoint path, before endpoint normalization

    Returns:
        Normalized action name
    """
    if not action or not _PURELY_NUMERIC.fullmatch(action):
        return action

    parts = endpoint_path.strip("/").split("/")
    if len(parts) < 3:
        return action

    resource = parts[2]
    if resource.endswith("s"):
        resource = resource[:-1]
    return f"{resource}-by-id"


def normalize_event(event: AuditLogCreate) -> AuditLogCreate:
    """
    Return a copy of an inbound event ready for queuing.

    Action is normalized against the raw path before the path itself is
    normalized. An empty severity becomes "NONE".
    """
    return event.model_copy(
        update={
            "action": normalize_action(event.action, event.endpoint_path),
            "endpoint_path": normalize_endpoint(event.endpoint_path),
            "severity": event.severity or DEFAULT_SEVERITY,
        }
    )
