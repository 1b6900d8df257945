# ledger/tests/unit/test_service_business_insights.py
from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from ledger.exceptions import InvalidInput, OwnershipViolation
from ledger.services.business_insights_service import BusinessInsightsService
from ledger.services.catalog_service import CatalogService
from ledger.services.invoice_payment_service import InvoicePaymentService
from ledger.services.invoice_service import InvoiceService
from ledger.services.project_service import ProjectService
from ledger.tests.factories import ProjectFactory

WINDOW = {"date_from": date(2024, 3, 15), "date_to": date(2025, 3, 15)}


def _noon(day):
    return datetime(day.year, day.month, day.day, 12, 0, tzinfo=dt_timezone.utc)


def _invoice(user, business, client, issue_date, quantity="10", status="issued", project_id=None):
    return InvoiceService.create_invoice(
        user,
        business.id,
        [{"description": "Consulting", "quantity": quantity, "unit_price": "100", "vat_rate": "20"}],
        client_id=client.id,
        project_id=project_id,
        issue_date=issue_date,
        status=status,
    )


class TestProjectsPerformance:
    @pytest.fixture
    def delivered(self, test_user, business):
        ProjectFactory(
            user=test_user,
            business=business,
            status="completed",
            start_date=date(2025, 1, 1),
            due_date=date(2025, 1, 31),
            completed_at=_noon(date(2025, 1, 21)),
        )
        ProjectFactory(
            user=test_user,
            business=business,
            status="completed",
            start_date=date(2025, 2, 1),
            due_date=date(2025, 2, 10),
            completed_at=_noon(date(2025, 2, 20)),
        )
        ProjectFactory(
            user=test_user,
            business=business,
            status="completed",
            start_date=date(2025, 3, 1),
            completed_at=_noon(date(2025, 3, 4)),
        )
        ProjectFactory(user=test_user, business=business, status="in_progress")
        # personal projects stay out of the business figures
        ProjectFactory(user=test_user, status="completed", completed_at=_noon(date(2025, 1, 5)))

    def test_rates_and_averages(self, test_user, business, delivered):
        result = BusinessInsightsService.get_projects_performance(test_user, business.id)

        assert result["total_projects"] == 4
        assert result["completed_projects"] == 3
        assert result["on_time_projects"] == 1
        assert result["on_time_rate_pct"] == Decimal("33.33")
        assert result["average_duration_days"] == Decimal("14.00")
        assert result["average_delay_days"] == Decimal("10.00")
        assert result["status_distribution"] == [
            {"status": "completed", "count": 3},
            {"status": "in_progress", "count": 1},
        ]

    def test_business_without_projects(self, test_user, business):
        result = BusinessInsightsService.get_projects_performance(test_user, business.id)

        assert result["total_projects"] == 0
        assert result["on_time_rate_pct"] == Decimal("0")
        assert result["average_duration_days"] == Decimal("0")
        assert result["status_distribution"] == []

    def test_other_user_rejected(self, other_user, business):
        with pytest.raises(OwnershipViolation):
            BusinessInsightsService.get_projects_performance(other_user, business.id)


class TestTopClients:
    @pytest.fixture
    def billed(self, test_user, business, business_account, client_record):
        globex = CatalogService.create_client(test_user, business.id, "Globex")
        project = ProjectService.create_project(test_user, "Brand refresh", business_id=business.id)

        first = _invoice(test_user, business, client_record, date(2025, 1, 10), project_id=project.id)
        InvoicePaymentService.register_payment(
            test_user, first.id, business_account.id, "1200", date(2025, 1, 20)
        )
        _invoice(test_user, business, client_record, date(2025, 2, 1), quantity="5")

        retainer = _invoice(test_user, business, globex, date(2025, 2, 15))
        InvoicePaymentService.register_payment(
            test_user, retainer.id, business_account.id, "600", date(2025, 3, 1)
        )

        _invoice(test_user, business, globex, date(2025, 2, 20), status="draft")
        _invoice(test_user, business, client_record, date(2023, 6, 1))
        return globex

    def test_ranked_by_amount_paid(self, test_user, business, client_record, billed):
        result = BusinessInsightsService.get_top_clients(test_user, business.id, **WINDOW)

        assert result["currency"] == "EUR"
        assert [row["name"] for row in result["top_clients"]] == ["Acme Corp", "Globex"]

        acme, globex = result["top_clients"]
        assert acme["client_id"] == client_record.id
        assert acme["total_invoiced"] == Decimal("1800.00")
        assert acme["total_paid"] == Decimal("1200.00")
        assert acme["average_invoice"] == Decimal("900.00")
        assert acme["project_count"] == 1
        assert acme["last_activity"] == date(2025, 2, 1)

        assert globex["total_invoiced"] == Decimal("1200.00")
        assert globex["total_paid"] == Decimal("600.00")
        assert globex["last_activity"] == date(2025, 3, 1)

    def test_limit(self, test_user, business, billed):
        result = BusinessInsightsService.get_top_clients(test_user, business.id, limit=1, **WINDOW)
        assert [row["name"] for row in result["top_clients"]] == ["Acme Corp"]

    def test_inverted_window_rejected(self, test_user, business):
        with pytest.raises(InvalidInput) as exc_info:
            BusinessInsightsService.get_top_clients(
                test_user, business.id, date_from=date(2025, 3, 1), date_to=date(2025, 1, 1)
            )
        assert exc_info.value.code == "invalid_period"

    def test_other_user_rejected(self, other_user, business):
        with pytest.raises(OwnershipViolation):
            BusinessInsightsService.get_top_clients(other_user, business.id, **WINDOW)


class TestOverview:
    def test_inline_matches_individual_reads(self, test_user, business, client_record):
        _invoice(test_user, business, client_record, date(2025, 1, 10))
        ProjectFactory(user=test_user, business=business, status="planned")

        overview = BusinessInsightsService.get_overview(test_user, business.id, max_workers=1, **WINDOW)

        assert overview["projects_performance"] == BusinessInsightsService.get_projects_performance(
            test_user, business.id
        )
        assert overview["top_clients"] == BusinessInsightsService.get_top_clients(
            test_user, business.id, **WINDOW
        )

    def test_thread_pool_path(self, test_user, business):
        with patch.object(
            BusinessInsightsService, "projects_performance_for", return_value={"total_projects": 2}
        ), patch.object(BusinessInsightsService, "top_clients_for", return_value={"top_clients": []}):
            overview = BusinessInsightsService.get_overview(
                test_user, business.id, max_workers=2, **WINDOW
            )

        assert overview == {
            "projects_performance": {"total_projects": 2},
            "top_clients": {"top_clients": []},
        }

    def test_other_user_rejected(self, other_user, business):
        with pytest.raises(OwnershipViolation):
            BusinessInsightsService.get_overview(other_user, business.id)
