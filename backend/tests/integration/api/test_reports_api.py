"""
Integration tests for GET /api/v1/audit-service/reports/{report_id}.
"""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from audit_service.exceptions import StorageError
from audit_service.models.reports import ReportFilters
from audit_service.repositories.report_repository import ReportRepository

REPORTS_URL = "/api/v1/audit-service/reports"


class TestGetReport:
    """Test suite for the report endpoint."""

    @pytest.mark.asyncio
    async def test_returns_rows_only(self, async_client: AsyncClient, insert_rows) -> None:
        await insert_rows(
            [{"user_id": "u-1"}, {"user_id": "u-1"}, {"user_id": "u-1"}, {"user_id": "u-2"}]
        )

        response = await async_client.get(f"{REPORTS_URL}/audit-most-active-users")

        assert response.status_code == 200
        assert response.json() == [
            {"user_id": "u-1", "request_count": 3, "percentage": 75.0},
            {"user_id": "u-2", "request_count": 1, "percentage": 25.0},
        ]

    @pytest.mark.asyncio
    async def test_empty_result_is_empty_list(self, async_client: AsyncClient) -> None:
        response = await async_client.get(f"{REPORTS_URL}/audit-token-usage")

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_unknown_report(self, async_client: AsyncClient) -> None:
        response = await async_client.get(f"{REPORTS_URL}/audit-nonexistent")

        assert response.status_code == 404
        assert response.json()["detail"] == "Report not found"

    @pytest.mark.asyncio
    async def test_query_params_become_filters(self, test_app, async_client: AsyncClient) -> None:
        repository = AsyncMock(spec=ReportRepository)
        repository.run_report.return_value = []
        test_app.state.report_repository = repository

        response = await async_client.get(
            f"{REPORTS_URL}/audit-failed-endpoints",
            params={"months": "3", "severity": "HIGH", "status_code_min": "500", "limit": "abc"},
        )

        assert response.status_code == 200
        report_id, filters = repository.run_report.call_args.args
        assert report_id == "audit-failed-endpoints"
        assert filters == ReportFilters(months=3, severity="HIGH", status_code_min=500)

    @pytest.mark.asyncio
    async def test_store_failure(self, test_app, async_client: AsyncClient) -> None:
        repository = AsyncMock(spec=ReportRepository)
        repository.run_report.side_effect = StorageError("down")
        test_app.state.report_repository = repository

        response = await async_client.get(f"{REPORTS_URL}/audit-slow-actions")

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to get report data"

    @pytest.mark.asyncio
    async def test_audit_logs_report_filters(self, async_client: AsyncClient, insert_rows) -> None:
        await insert_rows(
            [
                {"user_id": "u-1", "severity": "HIGH", "tokens_used": 500},
                {"user_id": "u-1", "severity": "NONE", "tokens_used": 500},
                {"user_id": "u-2", "severity": "HIGH", "tokens_used": 10},
            ]
        )

        response = await async_client.get(
            f"{REPORTS_URL}/audit-logs", params={"severity": "HIGH", "min_tokens": "100"}
        )

        assert response.status_code == 200
        [entry] = response.json()
        assert entry["user_id"] == "u-1"
        assert entry["severity"] == "HIGH"
