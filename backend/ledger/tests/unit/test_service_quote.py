# ledger/tests/unit/test_service_quote.py
from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger.exceptions import (
    InvalidInput,
    NothingToInvoice,
    OwnershipViolation,
    ScopeCoherenceViolation,
    StateConflict,
)
from ledger.models import Client, Quote
from ledger.services.business_service import BusinessService
from ledger.services.catalog_service import CatalogService
from ledger.services.invoice_payment_service import InvoicePaymentService
from ledger.services.invoice_service import InvoiceService
from ledger.services.project_service import ProjectService
from ledger.services.quote_service import QuoteService

ISSUE_DATE = date(2025, 3, 1)


@pytest.fixture
def items(catalog_service):
    return [
        {
            "description": "Workshop days",
            "quantity": "2",
            "unit_price": "500",
            "vat_rate": "20",
            "discount_pct": "10",
        },
        {"service_id": catalog_service.id, "quantity": "1"},
    ]


@pytest.fixture
def quote(test_user, business, client_record, items):
    return QuoteService.create_quote(
        test_user, business.id, items, client_id=client_record.id, issue_date=ISSUE_DATE
    )


@pytest.fixture
def accepted_quote(test_user, quote):
    QuoteService.transition_status(test_user, quote.id, "sent")
    return QuoteService.transition_status(test_user, quote.id, "accepted")


class TestCreateQuote:
    def test_totals_and_lines(self, quote, catalog_service):
        assert quote.number == "Q-1"
        assert quote.status == "draft"
        assert quote.total_ht == Decimal("1900.00")
        assert quote.total_vat == Decimal("380.00")
        assert quote.discount == Decimal("0")
        assert quote.total_ttc == Decimal("2280.00")

        first, second = quote.lines.all()
        assert first.total_ht == Decimal("900.00")
        assert first.total_ttc == Decimal("1080.00")
        assert second.description == catalog_service.name
        assert second.unit_price == Decimal("1000.00")
        assert second.vat_rate == Decimal("20.00")

    def test_numbers_increase(self, test_user, business, client_record, items, quote):
        second = QuoteService.create_quote(test_user, business.id, items, client_id=client_record.id)
        assert second.number == "Q-2"

    def test_items_required(self, test_user, business, client_record):
        with pytest.raises(InvalidInput) as exc_info:
            QuoteService.create_quote(test_user, business.id, [], client_id=client_record.id)
        assert exc_info.value.code == "items_required"

    @pytest.mark.parametrize(
        "item, code",
        [
            ({"quantity": "1", "unit_price": "10"}, "item_description_required"),
            ({"description": "X", "quantity": "0", "unit_price": "10"}, "invalid_quantity"),
            ({"description": "X", "quantity": "1", "unit_price": "-1"}, "invalid_unit_price"),
        ],
    )
    def test_invalid_items(self, test_user, business, client_record, item, code):
        with pytest.raises(InvalidInput) as exc_info:
            QuoteService.create_quote(test_user, business.id, [item], client_id=client_record.id)
        assert exc_info.value.code == code

    def test_unknown_item_fields(self, test_user, business, client_record):
        with pytest.raises(InvalidInput):
            QuoteService.create_quote(
                test_user,
                business.id,
                [{"description": "X", "quantity": "1", "unit_price": "1", "colour": "red"}],
                client_id=client_record.id,
            )

    def test_client_required(self, test_user, business, items):
        with pytest.raises(InvalidInput) as exc_info:
            QuoteService.create_quote(test_user, business.id, items)
        assert exc_info.value.code == "client_required"

    def test_client_of_other_business_rejected(self, test_user, business, items):
        other_business = BusinessService.create_business(test_user, "Second shop")
        foreign_client = CatalogService.create_client(test_user, other_business.id, "Elsewhere")

        with pytest.raises(ScopeCoherenceViolation):
            QuoteService.create_quote(
                test_user,
                business.id,
                [{"description": "X", "quantity": "1", "unit_price": "1"}],
                client_id=foreign_client.id,
            )

    def test_expiry_before_issue_rejected(self, test_user, business, client_record, items):
        with pytest.raises(InvalidInput):
            QuoteService.create_quote(
                test_user,
                business.id,
                items,
                client_id=client_record.id,
                issue_date=ISSUE_DATE,
                expiry_date=ISSUE_DATE - timedelta(days=1),
            )

    def test_other_user_cannot_quote_for_business(self, other_user, business, items):
        with pytest.raises(OwnershipViolation):
            QuoteService.create_quote(other_user, business.id, items)


class TestProjectClientResolution:
    def test_project_client_becomes_catalog_client(self, test_user, business):
        project_client = CatalogService.create_project_client(
            test_user, "Jane Doe", email="jane@example.com"
        )
        quote = QuoteService.create_quote(
            test_user,
            business.id,
            [{"description": "Audit", "quantity": "1", "unit_price": "300"}],
            project_client_id=project_client.id,
        )

        project_client.refresh_from_db()
        assert quote.client.name == "Jane Doe"
        assert quote.client.business == business
        assert project_client.catalog_client == quote.client

    def test_existing_client_matched_by_name(self, test_user, business, client_record):
        project_client = CatalogService.create_project_client(test_user, "ACME CORP")
        quote = QuoteService.create_quote(
            test_user,
            business.id,
            [{"description": "Audit", "quantity": "1", "unit_price": "300"}],
            project_client_id=project_client.id,
        )

        assert quote.client == client_record
        assert Client.objects.filter(business=business).count() == 1

    def test_falls_back_to_project_client(self, test_user, business):
        project_client = CatalogService.create_project_client(
            test_user, "Project owner", business_id=business.id
        )
        project = ProjectService.create_project(
            test_user, "Website", business_id=business.id, client_id=project_client.id
        )
        quote = QuoteService.create_quote(
            test_user,
            business.id,
            [{"description": "Build", "quantity": "1", "unit_price": "100"}],
            project_id=project.id,
        )
        assert quote.client.name == "Project owner"
        assert quote.project == project

    def test_personal_project_rejected(self, test_user, business, client_record):
        project = ProjectService.create_project(test_user, "Personal thing")
        with pytest.raises(ScopeCoherenceViolation):
            QuoteService.create_quote(
                test_user,
                business.id,
                [{"description": "Build", "quantity": "1", "unit_price": "100"}],
                client_id=client_record.id,
                project_id=project.id,
            )


class TestEditAndTransitions:
    def test_update_replaces_lines(self, test_user, quote):
        updated = QuoteService.update_quote(
            test_user,
            quote.id,
            items=[{"description": "Single line", "quantity": "1", "unit_price": "100"}],
            notes="Revised",
        )
        assert updated.lines.count() == 1
        assert updated.total_ttc == Decimal("100.00")
        assert updated.notes == "Revised"

    def test_update_rejects_unknown_fields(self, test_user, quote):
        with pytest.raises(InvalidInput):
            QuoteService.update_quote(test_user, quote.id, colour="blue")

    def test_only_draft_editable(self, test_user, quote):
        QuoteService.transition_status(test_user, quote.id, "sent")
        with pytest.raises(StateConflict) as exc_info:
            QuoteService.update_quote(test_user, quote.id, notes="Too late")
        assert exc_info.value.code == "quote_not_draft"

    def test_happy_path(self, accepted_quote):
        assert accepted_quote.status == "accepted"

    @pytest.mark.parametrize("target", ["accepted", "rejected", "expired", "draft"])
    def test_draft_cannot_skip_sending(self, test_user, quote, target):
        with pytest.raises(StateConflict) as exc_info:
            QuoteService.transition_status(test_user, quote.id, target)
        assert exc_info.value.code == "invalid_quote_transition"

    def test_terminal_states_are_final(self, test_user, accepted_quote):
        with pytest.raises(StateConflict):
            QuoteService.transition_status(test_user, accepted_quote.id, "cancelled")

    def test_unknown_status(self, test_user, quote):
        with pytest.raises(InvalidInput):
            QuoteService.transition_status(test_user, quote.id, "lost")

    def test_duplicate_creates_new_draft(self, test_user, accepted_quote):
        copy = QuoteService.duplicate_quote(test_user, accepted_quote.id, issue_date=date(2025, 4, 1))

        assert copy.status == "draft"
        assert copy.number == "Q-2"
        assert copy.total_ttc == accepted_quote.total_ttc
        assert copy.lines.count() == accepted_quote.lines.count()

    def test_delete_draft(self, test_user, quote):
        QuoteService.delete_quote(test_user, quote.id)
        assert not Quote.objects.filter(pk=quote.pk).exists()

    def test_cannot_delete_sent_quote(self, test_user, quote):
        QuoteService.transition_status(test_user, quote.id, "sent")
        with pytest.raises(StateConflict):
            QuoteService.delete_quote(test_user, quote.id)


class TestConversion:
    def test_must_be_accepted(self, test_user, quote):
        with pytest.raises(StateConflict) as exc_info:
            QuoteService.convert_to_invoice(test_user, quote.id, "full")
        assert exc_info.value.code == "quote_not_accepted"

    def test_unknown_kind(self, test_user, accepted_quote):
        with pytest.raises(InvalidInput):
            QuoteService.convert_to_invoice(test_user, accepted_quote.id, "partial")

    def test_full_conversion(self, test_user, accepted_quote):
        invoice = QuoteService.convert_to_invoice(
            test_user, accepted_quote.id, "full", issue_date=date(2025, 3, 10)
        )

        assert invoice.number == "INV-1"
        assert invoice.status == "issued"
        assert invoice.kind == "full"
        assert invoice.quote == accepted_quote
        assert invoice.client == accepted_quote.client
        assert invoice.total_ttc == Decimal("2280.00")
        assert invoice.total_vat == Decimal("0")
        assert invoice.due_date == date(2025, 4, 9)
        assert invoice.lines.count() == 1

    def test_deposit_then_final(self, test_user, accepted_quote):
        deposit = QuoteService.convert_to_invoice(test_user, accepted_quote.id, "deposit")
        final = QuoteService.convert_to_invoice(test_user, accepted_quote.id, "final")

        assert deposit.total_ttc == Decimal("684.00")
        assert final.total_ttc == Decimal("1596.00")
        assert deposit.total_ttc + final.total_ttc == accepted_quote.total_ttc

    def test_custom_deposit_pct(self, test_user, accepted_quote):
        deposit = QuoteService.convert_to_invoice(
            test_user, accepted_quote.id, "deposit", deposit_pct="50"
        )
        assert deposit.total_ttc == Decimal("1140.00")

    @pytest.mark.parametrize("pct", ["0", "-5", "101"])
    def test_invalid_deposit_pct(self, test_user, accepted_quote, pct):
        with pytest.raises(InvalidInput) as exc_info:
            QuoteService.convert_to_invoice(test_user, accepted_quote.id, "deposit", deposit_pct=pct)
        assert exc_info.value.code == "invalid_deposit_pct"

    def test_final_with_nothing_left(self, test_user, accepted_quote):
        QuoteService.convert_to_invoice(test_user, accepted_quote.id, "full")

        with pytest.raises(NothingToInvoice):
            QuoteService.convert_to_invoice(test_user, accepted_quote.id, "final")

    def test_cancelled_invoices_do_not_count(self, test_user, accepted_quote):
        full = QuoteService.convert_to_invoice(test_user, accepted_quote.id, "full")
        InvoiceService.update_invoice(test_user, full.id, status="cancelled")

        final = QuoteService.convert_to_invoice(test_user, accepted_quote.id, "final")
        assert final.total_ttc == accepted_quote.total_ttc

    def test_quote_with_invoices_cannot_be_deleted(self, test_user, accepted_quote):
        QuoteService.convert_to_invoice(test_user, accepted_quote.id, "deposit")
        with pytest.raises(StateConflict):
            QuoteService.delete_quote(test_user, accepted_quote.id)


class TestQuoteToCashScenario:
    """Two-line quote billed as a half deposit plus the balance, then paid."""

    def test_deposit_final_and_payments(self, test_user, business, client_record, business_account):
        quote = QuoteService.create_quote(
            test_user,
            business.id,
            [
                {"description": "Design", "quantity": "2", "unit_price": "500", "vat_rate": "20"},
                {"description": "Hosting", "quantity": "1", "unit_price": "800", "vat_rate": "20"},
            ],
            client_id=client_record.id,
            issue_date=ISSUE_DATE,
        )
        assert (quote.total_ht, quote.total_vat, quote.total_ttc) == (
            Decimal("1800.00"),
            Decimal("360.00"),
            Decimal("2160.00"),
        )

        QuoteService.transition_status(test_user, quote.id, "sent")
        QuoteService.transition_status(test_user, quote.id, "accepted")
        deposit = QuoteService.convert_to_invoice(test_user, quote.id, "deposit", deposit_pct="50")
        final = QuoteService.convert_to_invoice(test_user, quote.id, "final")

        assert deposit.total_ttc == Decimal("1080.00")
        assert final.total_ttc == Decimal("1080.00")
        with pytest.raises(NothingToInvoice):
            QuoteService.convert_to_invoice(test_user, quote.id, "final")

        first = InvoicePaymentService.register_payment(
            test_user, deposit.id, business_account.id, "540", ISSUE_DATE
        )
        assert first["invoice"].status == "partially_paid"
        assert first["invoice"].amount_paid_cached == Decimal("540.00")

        second = InvoicePaymentService.register_payment(
            test_user, deposit.id, business_account.id, "540", ISSUE_DATE
        )
        assert second["invoice"].status == "paid"
