"""
Report Repository for the audit report engine.

Purpose:
--------
Runs the parameterized aggregate reports served at
GET /api/v1/audit-service/reports/{report_id} over the audit_logs table.

Query Strategy:
---------------
Each report starts from a fixed time-window predicate and appends one
predicate per filter it honors, in a fixed order. Filters a report does not
honor are ignored; unset filters impose nothing. All values are bound
parameters.

- Look-back window: created_at >= now (UTC) - `months` calendar months
  (default 1 when unset or <= 0)
- Daily active users: [first day of `month`, first day of next month)
- Group-level reports are capped at 400 rows; percentages are computed over
  the returned rows

Reports:
--------
- audit-frequently-used-actions: volume per action/endpoint
- audit-issues-synced-trend: daily average of the count field
- audit-token-usage: token consumption per action
- audit-slow-actions: latency per endpoint/action
- audit-failed-endpoints: failures (status >= 400) per action/endpoint/status/severity
- audit-user-questions: questions asked and their answers
- audit-most-active-users: volume per user
- audit-daily-active-users: distinct users per day of a month
- audit-logs: filtered row listing
"""

from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, date, datetime, time
from typing import Any, Optional

import structlog
from dateutil.relativedelta import relativedelta
from sqlalchemy import Select, distinct, func, literal_column, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from audit_service.exceptions import ReportNotFoundError, StorageError
from audit_service.models.audit_log import AuditLogEntry
from audit_service.models.reports import (
    DailyActiveUsers,
    FailedEndpoint,
    FrequentlyUsedAction,
    IssuesSyncedTrendPoint,
    MostActiveUser,
    ReportFilters,
    ReportKind,
    SlowAction,
    TokenUsage,
    UserQuestion,
)
from audit_service.observability.metrics import report_query_duration_seconds
from audit_service.orm.audit_log import AuditLogORM

logger = structlog.get_logger(__name__)

GROUP_ROW_CAP = 400
FAILURE_STATUS_THRESHOLD = 400
AUDIT_LOGS_DEFAULT_LIMIT = 100
AUDIT_LOGS_MAX_LIMIT = 500

# Inlined so grouped COALESCE expressions match the selected ones
_EMPTY = literal_column("''")


def window_start(months: Optional[int], now: Optional[datetime] = None) -> datetime:
    """Start of the look-back window for `months` (default 1 when unset or <= 0)."""
    if months is None or months <= 0:
        months = 1
    return (now or datetime.now(UTC)) - relativedelta(months=months)


def month_bounds(month: Optional[str], now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    Half-open UTC range covering a calendar month.

    Args:
        month: "YYYY-MM"; unset or unparsable falls back to the current UTC month
        now: Reference time (defaults to current UTC time)

    Returns:
        (first instant of the month, first instant of the next month)
    """
    try:
        start = datetime.strptime(month or "", "%Y-%m").replace(tzinfo=UTC)
    except ValueError:
        reference = now or datetime.now(UTC)
        start = datetime(reference.year, reference.month, 1, tzinfo=UTC)
    return start, start + relativedelta(months=1)


def clamp_report_limit(limit: Optional[int]) -> int:
    """Row limit for the audit-logs listing: default 100, capped at 500."""
    if limit is None or limit <= 0:
        return AUDIT_LOGS_DEFAULT_LIMIT
    return min(limit, AUDIT_LOGS_MAX_LIMIT)


def _as_float(value: Any) -> float:
    # AVG over NUMERIC comes back as Decimal on PostgreSQL
    return 0.0 if value is None else float(value)


def _as_day(value: Any) -> date:
    # DATE() yields a date on PostgreSQL and an ISO string on SQLite
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _percentages(counts: Sequence[int]) -> list[float]:
    total = sum(counts)
    if total == 0:
        return [0.0 for _ in counts]
    return [count / total * 100 for count in counts]


class ReportRepository:
    """
    Repository for aggregate report queries on the audit_logs table.

    Methods:
    --------
    - run_report: Dispatch a report id to its query
    - one method per report kind
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker
        self._reports: dict[ReportKind, Callable[[ReportFilters], Awaitable[list[Any]]]] = {
            ReportKind.FREQUENTLY_USED_ACTIONS: self.get_frequently_used_actions,
            ReportKind.ISSUES_SYNCED_TREND: self.get_issues_synced_trend,
            ReportKind.TOKEN_USAGE: self.get_token_usage,
            ReportKind.SLOW_ACTIONS: self.get_slow_actions,
            ReportKind.FAILED_ENDPOINTS: self.get_failed_endpoints,
            ReportKind.USER_QUESTIONS: self.get_user_questions,
            ReportKind.MOST_ACTIVE_USERS: self.get_most_active_users,
            ReportKind.DAILY_ACTIVE_USERS: self.get_daily_active_users,
            ReportKind.AUDIT_LOGS: self.get_audit_logs,
        }

    async def run_report(self, report_id: str, filters: ReportFilters) -> list[Any]:
        """
        Run a report by id.

        Args:
            report_id: One of the ReportKind values
            filters: Filter set; each report honors its own subset

        Returns:
            Typed result rows (possibly empty)

        Raises:
            ReportNotFoundError: Unknown report id
            StorageError: Query failed
        """
        try:
            kind = ReportKind(report_id)
        except ValueError as e:
            raise ReportNotFoundError(report_id) from e

        with report_query_duration_seconds.labels(report_id=kind.value).time():
            try:
                return await self._reports[kind](filters)
            except StorageError as e:
                logger.error("report_query_error", report_id=kind.value, error=str(e))
                raise

    async def _fetch(self, stmt: Select) -> Sequence[Any]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return result.all()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Report query failed: {e}") from e

    async def get_frequently_used_actions(self, filters: ReportFilters) -> list[FrequentlyUsedAction]:
        """Request volume per action/endpoint, most used first."""
        action = func.coalesce(AuditLogORM.action, AuditLogORM.endpoint_path, _EMPTY)
        endpoint = func.coalesce(AuditLogORM.endpoint_path, _EMPTY)
        count = func.count().label("group_count")

        stmt = select(
            action.label("action"),
            endpoint.label("endpoint_path"),
            count,
            func.avg(AuditLogORM.response_time_seconds).label("avg_response_time"),
        ).where(AuditLogORM.created_at >= window_start(filters.months))

        if filters.user_id:
            stmt = stmt.where(AuditLogORM.user_id == filters.user_id)

        if filters.http_method:
            stmt = stmt.where(AuditLogORM.http_method == filters.http_method)

        stmt = stmt.group_by(action, endpoint).order_by(count.desc()).limit(GROUP_ROW_CAP)

        rows = await self._fetch(stmt)
        shares = _percentages([row.group_count for row in rows])
        return [
            FrequentlyUsedAction(
                action=row.action,
                endpoint_path=row.endpoint_path,
                count=row.group_count,
                percentage=share,
                avg_response_time=_as_float(row.avg_response_time),
            )
            for row, share in zip(rows, shares)
        ]

    async def get_issues_synced_trend(self, filters: ReportFilters) -> list[IssuesSyncedTrendPoint]:
        """Daily average of the count field, oldest day first."""
        day = func.date(AuditLogORM.created_at)

        stmt = select(
            day.label("day"),
            func.avg(AuditLogORM.count).label("avg_issues_synced"),
            func.count().label("total_requests"),
        ).where(
            AuditLogORM.created_at >= window_start(filters.months),
            AuditLogORM.count.isnot(None),
        )

        if filters.action:
            stmt = stmt.where(AuditLogORM.action == filters.action)

        stmt = stmt.group_by(day).order_by(day.asc())

        rows = await self._fetch(stmt)
        return [
            IssuesSyncedTrendPoint(
                date=_as_day(row.day).isoformat(),
                avg_issues_synced=_as_float(row.avg_issues_synced),
                total_requests=row.total_requests,
            )
            for row in rows
        ]

    async def get_token_usage(self, filters: ReportFilters) -> list[TokenUsage]:
        """Token consumption per action, heaviest first."""
        action = func.coalesce(AuditLogORM.action, AuditLogORM.endpoint_path)
        total = func.sum(AuditLogORM.tokens_used).label("total_tokens")

        stmt = select(
            action.label("action"),
            total,
            func.avg(AuditLogORM.tokens_used).label("avg_tokens"),
            func.count().label("request_count"),
        ).where(
            AuditLogORM.created_at >= window_start(filters.months),
            AuditLogORM.tokens_used.isnot(None),
        )

        if filters.action:
            stmt = stmt.where(AuditLogORM.action == filters.action)

        if filters.min_tokens is not None:
            stmt = stmt.where(AuditLogORM.tokens_used >= filters.min_tokens)

        stmt = stmt.group_by(action).order_by(total.desc())

        rows = await self._fetch(stmt)
        return [
            TokenUsage(
                action=row.action,
                total_tokens=int(row.total_tokens or 0),
                avg_tokens=_as_float(row.avg_tokens),
                request_count=row.request_count,
            )
            for row in rows
        ]

    async def get_slow_actions(self, filters: ReportFilters) -> list[SlowAction]:
        """Latency per endpoint/action, slowest average first."""
        endpoint = func.coalesce(AuditLogORM.endpoint_path, _EMPTY)
        action = func.coalesce(AuditLogORM.action, _EMPTY)
        avg_time = func.avg(AuditLogORM.response_time_seconds).label("avg_response_time")

        stmt = select(
            endpoint.label("endpoint_path"),
            action.label("action"),
            avg_time,
            func.max(AuditLogORM.response_time_seconds).label("max_response_time"),
            func.count().label("request_count"),
        ).where(AuditLogORM.created_at >= window_start(filters.months))

        if filters.min_response_time is not None:
            stmt = stmt.where(AuditLogORM.response_time_seconds >= filters.min_response_time)

        if filters.status_code is not None:
            stmt = stmt.where(AuditLogORM.status_code == filters.status_code)

        stmt = stmt.group_by(endpoint, action).order_by(avg_time.desc()).limit(GROUP_ROW_CAP)

        rows = await self._fetch(stmt)
        return [
            SlowAction(
                endpoint_path=row.endpoint_path,
                action=row.action,
                avg_response_time=_as_float(row.avg_response_time),
                max_response_time=_as_float(row.max_response_time),
                request_count=row.request_count,
            )
            for row in rows
        ]

    async def get_failed_endpoints(self, filters: ReportFilters) -> list[FailedEndpoint]:
        """Failure counts per action/endpoint/status/severity, most frequent first."""
        action = func.coalesce(AuditLogORM.action, AuditLogORM.endpoint_path, _EMPTY)
        endpoint = func.coalesce(AuditLogORM.endpoint_path, _EMPTY)
        count = func.count().label("group_count")

        stmt = select(
            action.label("action"),
            endpoint.label("endpoint_path"),
            AuditLogORM.status_code,
            AuditLogORM.severity,
            count,
        ).where(
            AuditLogORM.created_at >= window_start(filters.months),
            AuditLogORM.status_code >= FAILURE_STATUS_THRESHOLD,
        )

        if filters.http_method:
            stmt = stmt.where(AuditLogORM.http_method == filters.http_method)

        if filters.severity:
            stmt = stmt.where(AuditLogORM.severity == filters.severity)

        if filters.status_code_min is not None:
            stmt = stmt.where(AuditLogORM.status_code >= filters.status_code_min)

        if filters.status_code_max is not None:
            stmt = stmt.where(AuditLogORM.status_code <= filters.status_code_max)

        stmt = (
            stmt.group_by(action, endpoint, AuditLogORM.status_code, AuditLogORM.severity)
            .order_by(count.desc())
            .limit(GROUP_ROW_CAP)
        )

        rows = await self._fetch(stmt)
        shares = _percentages([row.group_count for row in rows])
        return [
            FailedEndpoint(
                action=row.action,
                endpoint_path=row.endpoint_path,
                status_code=row.status_code,
                severity=row.severity,
                count=row.group_count,
                percentage=share,
            )
            for row, share in zip(rows, shares)
        ]

    async def get_user_questions(self, filters: ReportFilters) -> list[UserQuestion]:
        """Questions found in request bodies with their answers, newest first."""
        question = AuditLogORM.body_raw["question"].as_string()
        answer = AuditLogORM.response_body[("data", "response")].as_string()

        stmt = select(
            AuditLogORM.created_at,
            func.coalesce(AuditLogORM.user_id, _EMPTY).label("user_id"),
            question.label("question"),
            answer.label("answer"),
            func.coalesce(AuditLogORM.tokens_used, 0).label("tokens_used"),
            AuditLogORM.response_time_seconds,
            AuditLogORM.status_code,
            AuditLogORM.insights_id,
        ).where(
            AuditLogORM.created_at >= window_start(filters.months),
            question.isnot(None),
            question != "",
        )

        if filters.user_id:
            stmt = stmt.where(AuditLogORM.user_id == filters.user_id)

        if filters.search_query:
            stmt = stmt.where(question.ilike(f"%{filters.search_query}%"))

        stmt = stmt.order_by(AuditLogORM.created_at.desc()).limit(GROUP_ROW_CAP)

        rows = await self._fetch(stmt)
        return [
            UserQuestion(
                created_at=row.created_at,
                user_id=row.user_id,
                question=row.question or "",
                answer=row.answer or "",
                tokens_used=row.tokens_used,
                response_time_seconds=_as_float(row.response_time_seconds),
                status_code=row.status_code,
                insights_id=row.insights_id,
            )
            for row in rows
        ]

    async def get_most_active_users(self, filters: ReportFilters) -> list[MostActiveUser]:
        """Request volume per identified user, busiest first."""
        count = func.count().label("request_count")

        stmt = (
            select(AuditLogORM.user_id, count)
            .where(
                AuditLogORM.created_at >= window_start(filters.months),
                AuditLogORM.user_id.isnot(None),
            )
            .group_by(AuditLogORM.user_id)
            .order_by(count.desc())
            .limit(GROUP_ROW_CAP)
        )

        rows = await self._fetch(stmt)
        shares = _percentages([row.request_count for row in rows])
        return [
            MostActiveUser(
                user_id=row.user_id,
                request_count=row.request_count,
                percentage=share,
            )
            for row, share in zip(rows, shares)
        ]

    async def get_daily_active_users(self, filters: ReportFilters) -> list[DailyActiveUsers]:
        """Distinct identified users per day of one calendar month."""
        start, end = month_bounds(filters.month)
        day = func.date(AuditLogORM.created_at)

        stmt = (
            select(
                day.label("day"),
                func.count(distinct(AuditLogORM.user_id)).label("unique_users"),
            )
            .where(
                AuditLogORM.created_at >= start,
                AuditLogORM.created_at < end,
                AuditLogORM.user_id.isnot(None),
            )
            .group_by(day)
            .order_by(day.asc())
        )

        rows = await self._fetch(stmt)
        results = []
        for row in rows:
            calendar_day = _as_day(row.day)
            results.append(
                DailyActiveUsers(
                    date=calendar_day.isoformat(),
                    day=calendar_day.day,
                    unique_users=row.unique_users,
                )
            )
        return results

    async def get_audit_logs(self, filters: ReportFilters) -> list[AuditLogEntry]:
        """Filtered row listing, newest first, from `date_from` (default today UTC)."""
        day_from = filters.date_from or datetime.now(UTC).date()

        stmt = select(AuditLogORM).where(
            AuditLogORM.created_at >= datetime.combine(day_from, time.min, tzinfo=UTC)
        )

        if filters.user_id:
            stmt = stmt.where(AuditLogORM.user_id == filters.user_id)

        if filters.severity:
            stmt = stmt.where(AuditLogORM.severity == filters.severity)

        if filters.action:
            stmt = stmt.where(AuditLogORM.action == filters.action)

        if filters.http_method:
            stmt = stmt.where(AuditLogORM.http_method == filters.http_method)

        if filters.status_code is not None:
            stmt = stmt.where(AuditLogORM.status_code == filters.status_code)

        if filters.min_tokens is not None:
            stmt = stmt.where(AuditLogORM.tokens_used >= filters.min_tokens)

        stmt = stmt.order_by(AuditLogORM.created_at.desc(), AuditLogORM.id.desc()).limit(
            clamp_report_limit(filters.limit)
        )

        rows = await self._fetch(stmt)
        return [AuditLogEntry.model_validate(row.AuditLogORM) for row in rows]
