"""
Quote workflow: creation, draft edits, the status state machine, and
conversion of accepted quotes into deposit, final or full invoices.

Quote and invoice numbers are drawn from separate per-business counters
through ``BusinessService.allocate_number`` in the same database
transaction that inserts the document.
"""

import logging
from decimal import Decimal

from django.db import transaction as db_transaction
from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..exceptions import InvalidInput, NothingToInvoice, ScopeCoherenceViolation, StateConflict
from ..models import Invoice, InvoiceLine, Quote, QuoteLine
from ..utils.money_utils import HUNDRED, ZERO, quantize, to_decimal
from ..utils.period_utils import add_days
from . import ownership
from .business_service import BusinessService
from .catalog_service import CatalogService
from .document_lines import compute_totals, prepare_items, write_lines

logger = logging.getLogger(__name__)

# current status -> statuses it may move to
QUOTE_TRANSITIONS = {
    "draft": {"sent", "cancelled"},
    "sent": {"accepted", "rejected", "expired", "cancelled"},
    "accepted": set(),
    "rejected": set(),
    "expired": set(),
    "cancelled": set(),
}

CONVERSION_KINDS = ("deposit", "final", "full")
DEFAULT_DEPOSIT_PCT = Decimal("30")


def _check_dates(issue_date, expiry_date):
    if expiry_date and expiry_date < issue_date:
        raise InvalidInput("Expiry date cannot precede issue date", code="invalid_expiry_date")


def resolve_document_project(user, project_id, business):
    if project_id is None:
        return None
    project = ownership.assert_project_owned_by_user(project_id, user)
    if project.business_id != business.id:
        raise ScopeCoherenceViolation(
            "Project not found for this business",
            code="project_scope_mismatch",
            project_id=project.id,
        )
    return project


def resolve_document_client(user, business, client_id, project_client_id, project):
    """
    Catalog client of a quote or invoice; falls back to the project's
    client when the caller names none.
    """
    if client_id is None and project_client_id is None and project is not None:
        project_client_id = project.client_id
    return CatalogService.resolve_billing_client(
        user, business, client_id=client_id, project_client_id=project_client_id
    )


def _already_invoiced(quote):
    return quote.invoices.exclude(status="cancelled").aggregate(
        total=Coalesce(
            Sum("total_ttc"), Value(ZERO), output_field=DecimalField(max_digits=20, decimal_places=2)
        )
    )["total"]


class QuoteService:
    @staticmethod
    @db_transaction.atomic
    def create_quote(
        user,
        business_id,
        items,
        client_id=None,
        project_client_id=None,
        project_id=None,
        issue_date=None,
        expiry_date=None,
        notes=None,
    ):
        """
        Create a draft quote with its lines and the next quote number.

        Items are dicts with ``description``, ``quantity``, ``unit_price``,
        ``vat_rate``, ``discount_pct`` and an optional ``service_id`` whose
        catalog defaults fill the missing price, VAT rate and description.
        """
        business = ownership.assert_business_owned_by_user(business_id, user)
        issue_date = issue_date or timezone.localdate()
        _check_dates(issue_date, expiry_date)

        prepared = prepare_items(business, items)
        project = resolve_document_project(user, project_id, business)
        client = resolve_document_client(user, business, client_id, project_client_id, project)

        number, _ = BusinessService.allocate_number(business, "quote")
        quote = Quote.objects.create(
            business=business,
            user=user,
            client=client,
            project=project,
            number=number,
            status="draft",
            issue_date=issue_date,
            expiry_date=expiry_date,
            currency=business.currency,
            notes=notes,
            **compute_totals(prepared),
        )
        write_lines(QuoteLine, "quote", quote, prepared)

        logger.info(
            "Quote created",
            extra={
                "user_id": user.id,
                "business_id": business.id,
                "quote_id": quote.id,
                "number": number,
                "action": "quote_created",
                "component": "QuoteService",
            },
        )
        return quote

    @staticmethod
    @db_transaction.atomic
    def update_quote(user, quote_id, **changes):
        """Edit a draft quote; ``items`` replaces every line and recomputes totals."""
        quote = ownership.assert_quote_owned_by_user(quote_id, user)
        if quote.status != "draft":
            raise StateConflict("Only draft quotes can be edited", code="quote_not_draft")

        if "project_id" in changes:
            quote.project = resolve_document_project(user, changes.pop("project_id"), quote.business)
        if "client_id" in changes or "project_client_id" in changes:
            quote.client = CatalogService.resolve_billing_client(
                user,
                quote.business,
                client_id=changes.pop("client_id", None),
                project_client_id=changes.pop("project_client_id", None),
            )
        for field in ("issue_date", "expiry_date", "notes"):
            if field in changes:
                setattr(quote, field, changes.pop(field))
        _check_dates(quote.issue_date, quote.expiry_date)

        items = changes.pop("items", None)
        if changes:
            raise InvalidInput(f"Unknown quote fields: {sorted(changes)}")
        if items is not None:
            prepared = prepare_items(quote.business, items)
            quote.lines.all().delete()
            write_lines(QuoteLine, "quote", quote, prepared)
            for field, value in compute_totals(prepared).items():
                setattr(quote, field, value)

        quote.save()
        return quote

    @staticmethod
    @db_transaction.atomic
    def transition_status(user, quote_id, new_status):
        quote = ownership.assert_quote_owned_by_user(quote_id, user)
        if new_status not in QUOTE_TRANSITIONS:
            raise InvalidInput(f"Invalid quote status: {new_status}", code="invalid_status")
        if new_status not in QUOTE_TRANSITIONS[quote.status]:
            raise StateConflict(
                f"Cannot move quote from {quote.status} to {new_status}",
                code="invalid_quote_transition",
                quote_id=quote.id,
                current=quote.status,
                requested=new_status,
            )
        previous = quote.status
        quote.status = new_status
        quote.save(update_fields=["status", "updated_at"])

        logger.info(
            "Quote status changed",
            extra={
                "user_id": user.id,
                "quote_id": quote.id,
                "from_status": previous,
                "to_status": new_status,
                "action": "quote_status_changed",
                "component": "QuoteService",
            },
        )
        return quote

    @staticmethod
    @db_transaction.atomic
    def duplicate_quote(user, quote_id, issue_date=None, expiry_date=None):
        """Copy a quote's lines into a new draft with a fresh number."""
        source = ownership.assert_quote_owned_by_user(quote_id, user)
        items = [
            {
                "service_id": line.service_id,
                "description": line.description,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "vat_rate": line.vat_rate,
                "discount_pct": line.discount_pct,
            }
            for line in source.lines.all()
        ]
        return QuoteService.create_quote(
            user,
            source.business_id,
            items,
            client_id=source.client_id,
            project_id=source.project_id,
            issue_date=issue_date,
            expiry_date=expiry_date,
            notes=source.notes,
        )

    @staticmethod
    @db_transaction.atomic
    def delete_quote(user, quote_id):
        quote = ownership.assert_quote_owned_by_user(quote_id, user)
        if quote.status != "draft":
            raise StateConflict("Only draft quotes can be deleted", code="quote_not_draft")
        if quote.invoices.exists():
            raise StateConflict(
                "Cannot delete a quote linked to invoices", code="quote_has_invoices"
            )
        quote.delete()
        logger.info(
            "Quote deleted",
            extra={
                "user_id": user.id,
                "quote_id": quote_id,
                "action": "quote_deleted",
                "component": "QuoteService",
            },
        )

    @staticmethod
    @db_transaction.atomic
    def convert_to_invoice(user, quote_id, kind, deposit_pct=None, issue_date=None):
        """
        Issue an invoice for part or all of an accepted quote.

        ``deposit`` bills ``deposit_pct`` percent of the quote total (30 by
        default), ``final`` bills what earlier invoices of the quote left
        over, ``full`` bills the whole total.

        Raises:
            StateConflict: quote not accepted
            NothingToInvoice: the computed amount is zero or negative
        """
        quote = ownership.assert_quote_owned_by_user(quote_id, user)
        if kind not in CONVERSION_KINDS:
            raise InvalidInput(f"Invalid conversion kind: {kind}", code="invalid_conversion_kind")
        if quote.status != "accepted":
            raise StateConflict(
                "Quote must be accepted before conversion", code="quote_not_accepted"
            )

        # Serialize conversions of the same quote.
        Quote.objects.select_for_update().filter(pk=quote.pk).first()

        total = quote.total_ttc
        if kind == "deposit":
            pct = DEFAULT_DEPOSIT_PCT if deposit_pct is None else to_decimal(deposit_pct, "deposit_pct")
            if pct <= ZERO or pct > HUNDRED:
                raise InvalidInput(
                    "deposit_pct must be greater than 0 and at most 100", code="invalid_deposit_pct"
                )
            amount = quantize(total * pct / HUNDRED)
            description = f"Deposit {pct.normalize():f}% on quote {quote.number}"
        elif kind == "final":
            amount = quantize(total - _already_invoiced(quote))
            description = f"Balance on quote {quote.number}"
        else:
            amount = total
            description = f"Quote {quote.number}"

        if amount <= ZERO:
            raise NothingToInvoice(quote_id=quote.id, kind=kind)

        business = quote.business
        issue_date = issue_date or timezone.localdate()
        number, settings_row = BusinessService.allocate_number(business, "invoice")
        invoice = Invoice.objects.create(
            business=business,
            user=user,
            client_id=quote.client_id,
            project_id=quote.project_id,
            quote=quote,
            number=number,
            status="issued",
            kind=kind,
            issue_date=issue_date,
            due_date=add_days(issue_date, settings_row.default_payment_terms_days),
            currency=quote.currency,
            total_ht=amount,
            total_vat=ZERO,
            total_ttc=amount,
        )
        InvoiceLine.objects.create(
            invoice=invoice,
            description=description,
            quantity=Decimal("1"),
            unit_price=amount,
            total_ht=amount,
            total_ttc=amount,
        )

        logger.info(
            "Quote converted to invoice",
            extra={
                "user_id": user.id,
                "quote_id": quote.id,
                "invoice_id": invoice.id,
                "kind": kind,
                "amount": str(amount),
                "action": "quote_converted",
                "component": "QuoteService",
            },
        )
        return invoice

    @staticmethod
    def get_quote(user, quote_id):
        return ownership.assert_quote_owned_by_user(quote_id, user)

    @staticmethod
    def list_quotes(user, business_id, status=None):
        business = ownership.assert_business_owned_by_user(business_id, user)
        queryset = Quote.objects.filter(business=business).select_related("client")
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset.order_by("-created_at", "-id"))
