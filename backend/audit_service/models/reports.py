"""
Report Data Models for the audit report engine.

Purpose:
--------
Typed filter set and result records for the parameterized aggregate reports
served at GET /api/v1/audit-service/reports/{report_id}.

Data Models:
------------
- ReportKind: Enumerated report identifiers
- ReportFilters: Canonical filter set; each report honors a subset of it
- FrequentlyUsedAction, IssuesSyncedTrendPoint, TokenUsage, SlowAction,
  FailedEndpoint, UserQuestion, MostActiveUser, DailyActiveUsers: result rows

Filter parsing is lenient: blank values are unset, and numeric or date values
that do not parse are treated as unset. An unset filter imposes no predicate.

Percentages are computed over the rows actually returned (at most 400 groups),
not over the full underlying population.
"""

from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from audit_service.models.audit_log import to_utc


class ReportKind(str, Enum):
    """Known report identifiers."""

    FREQUENTLY_USED_ACTIONS = "audit-frequently-used-actions"
    ISSUES_SYNCED_TREND = "audit-issues-synced-trend"
    TOKEN_USAGE = "audit-token-usage"
    SLOW_ACTIONS = "audit-slow-actions"
    FAILED_ENDPOINTS = "audit-failed-endpoints"
    USER_QUESTIONS = "audit-user-questions"
    MOST_ACTIVE_USERS = "audit-most-active-users"
    DAILY_ACTIVE_USERS = "audit-daily-active-users"
    AUDIT_LOGS = "audit-logs"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    return value


def _parse_int(value: Optional[str]) -> Optional[int]:
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_float(value: Optional[str]) -> Optional[float]:
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_date(value: Optional[str]) -> Optional[date]:
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


class ReportFilters(BaseModel):
    """
    Canonical report filter set.

    Fields:
    -------
    - months: Look-back window in months (reports default to 1 when unset or <= 0)
    - month: Calendar month "YYYY-MM" (daily active users only)
    - user_id, http_method, action, severity: Exact-match filters
    - min_tokens: Minimum tokens_used
    - min_response_time: Minimum response_time_seconds
    - status_code: Exact status code
    - status_code_min / status_code_max: Inclusive status code range
    - search_query: Case-insensitive substring of the submitted question
    - date_from: Lower bound day for the audit-logs listing (default today, UTC)
    - limit: Row limit for the audit-logs listing (default 100, max 500)
    """

    months: Optional[int] = None
    month: Optional[str] = None
    user_id: Optional[str] = None
    http_method: Optional[str] = None
    action: Optional[str] = None
    min_tokens: Optional[int] = None
    min_response_time: Optional[float] = None
    status_code: Optional[int] = None
    status_code_min: Optional[int] = None
    status_code_max: Optional[int] = None
    search_query: Optional[str] = None
    severity: Optional[str] = None
    date_from: Optional[date] = None
    limit: Optional[int] = None

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> "ReportFilters":
        """
        Build a filter set from raw query parameters.

        Args:
            params: Query string mapping (unknown keys are ignored)

        Returns:
            ReportFilters with unparsable values left unset
        """
        return cls(
            months=_parse_int(params.get("months")),
            month=_blank_to_none(params.get("month")),
            user_id=_blank_to_none(params.get("user_id")),
            http_method=_blank_to_none(params.get("http_method")),
            action=_blank_to_none(params.get("action")),
            min_tokens=_parse_int(params.get("min_tokens")),
            min_response_time=_parse_float(params.get("min_response_time")),
            status_code=_parse_int(params.get("status_code")),
            status_code_min=_parse_int(params.get("status_code_min")),
            status_code_max=_parse_int(params.get("status_code_max")),
            search_query=_blank_to_none(params.get("search_query")),
            severity=_blank_to_none(params.get("severity")),
            date_from=_parse_date(params.get("date_from")),
            limit=_parse_int(params.get("limit")),
        )


class FrequentlyUsedAction(BaseModel):
    """Request volume per action/endpoint."""

    action: str
    endpoint_path: str
    count: int = Field(ge=0)
    percentage: float = Field(default=0.0, ge=0)
    avg_response_time: float = Field(default=0.0)


class IssuesSyncedTrendPoint(BaseModel):
    """Daily average of the generic count field."""

    date: str = Field(description="Calendar day, YYYY-MM-DD")
    avg_issues_synced: float = Field(default=0.0)
    total_requests: int = Field(ge=0)


class TokenUsage(BaseModel):
    """Token consumption per action."""

    action: str
    total_tokens: int = 0
    avg_tokens: float = 0.0
    request_count: int = Field(ge=0)


class SlowAction(BaseModel):
    """Latency statistics per endpoint/action."""

    endpoint_path: str
    action: str
    avg_response_time: float = 0.0
    max_response_time: float = 0.0
    request_count: int = Field(ge=0)


class FailedEndpoint(BaseModel):
    """Failure counts per action/endpoint/status/severity."""

    action: str
    endpoint_path: str
    status_code: int
    severity: str
    count: int = Field(ge=0)
    percentage: float = Field(default=0.0, ge=0)


class UserQuestion(BaseModel):
    """One question submitted to the assistant, with its answer."""

    created_at: datetime
    user_id: str = ""
    question: str = ""
    answer: str = ""
    tokens_used: int = 0
    response_time_seconds: float = 0.0
    status_code: int
    insights_id: Optional[int] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_utc(cls, v: datetime | str) -> datetime:
        """Enforce UTC timezone."""
        return to_utc(v)


class MostActiveUser(BaseModel):
    """Request volume per user."""

    user_id: str
    request_count: int = Field(ge=0)
    percentage: float = Field(default=0.0, ge=0)


class DailyActiveUsers(BaseModel):
    """Distinct users per calendar day."""

    date: str = Field(description="Calendar day, YYYY-MM-DD")
    day: int = Field(ge=1, le=31)
    unique_users: int = Field(ge=0)
