"""
Invoices: creation from line items, limited edits, deletion and the
overdue sweep. Payment-driven status changes live in
``invoice_payment_service``; both use ``derive_payment_status``.
"""

import logging

from django.conf import settings
from django.db import transaction as db_transaction
from django.utils import timezone

from ..exceptions import InvalidInput, StateConflict
from ..models import Invoice, InvoiceLine
from ..utils.money_utils import ZERO
from ..utils.period_utils import add_days
from . import ownership
from .business_service import BusinessService
from .document_lines import compute_totals, prepare_items, write_lines
from .quote_service import resolve_document_project, resolve_document_client

logger = logging.getLogger(__name__)

CREATE_STATUSES = ("draft", "issued")
# paid / partially_paid only ever come from payments
MANUAL_STATUSES = ("draft", "issued", "overdue", "cancelled")
OVERDUE_CANDIDATES = ("issued", "partially_paid")


def overdue_mode():
    return getattr(settings, "LEDGER_INVOICE_OVERDUE_MODE", "derived")


def derive_payment_status(invoice, reference_date):
    """
    Status implied by ``amount_paid_cached``.

    Fully paid is always ``paid``. In derived overdue mode an invoice that
    is still past due stays ``overdue`` after a partial payment, and falls
    back to ``overdue`` when its payments are removed.
    """
    paid = invoice.amount_paid_cached
    past_due = (
        overdue_mode() == "derived"
        and invoice.due_date is not None
        and invoice.due_date < reference_date
    )
    if paid >= invoice.total_ttc:
        return "paid"
    if paid > ZERO:
        if invoice.status == "overdue" and past_due:
            return "overdue"
        return "partially_paid"
    if invoice.status in ("partially_paid", "paid"):
        return "overdue" if past_due else "issued"
    return invoice.status


class InvoiceService:
    @staticmethod
    @db_transaction.atomic
    def create_invoice(
        user,
        business_id,
        items,
        client_id=None,
        project_client_id=None,
        project_id=None,
        issue_date=None,
        due_date=None,
        notes=None,
        status="draft",
    ):
        """Create a standard invoice; ``due_date`` defaults to issue date + payment terms."""
        business = ownership.assert_business_owned_by_user(business_id, user)
        if status not in CREATE_STATUSES:
            raise InvalidInput(
                "New invoices must be draft or issued", code="invalid_status", status=status
            )
        issue_date = issue_date or timezone.localdate()
        if due_date and due_date < issue_date:
            raise InvalidInput("Due date cannot precede issue date", code="invalid_due_date")

        prepared = prepare_items(business, items)
        project = resolve_document_project(user, project_id, business)
        client = resolve_document_client(user, business, client_id, project_client_id, project)

        totals = compute_totals(prepared)
        totals.pop("discount")

        number, settings_row = BusinessService.allocate_number(business, "invoice")
        invoice = Invoice.objects.create(
            business=business,
            user=user,
            client=client,
            project=project,
            number=number,
            status=status,
            kind="standard",
            issue_date=issue_date,
            due_date=due_date or add_days(issue_date, settings_row.default_payment_terms_days),
            currency=business.currency,
            notes=notes,
            **totals,
        )
        write_lines(InvoiceLine, "invoice", invoice, prepared)

        logger.info(
            "Invoice created",
            extra={
                "user_id": user.id,
                "business_id": business.id,
                "invoice_id": invoice.id,
                "number": number,
                "action": "invoice_created",
                "component": "InvoiceService",
            },
        )
        return invoice

    @staticmethod
    @db_transaction.atomic
    def update_invoice(user, invoice_id, **changes):
        """Update ``status``, ``due_date`` and ``notes``; lines are fixed once created."""
        invoice = ownership.assert_invoice_owned_by_user(invoice_id, user)
        unknown = set(changes) - {"status", "due_date", "notes"}
        if unknown:
            raise InvalidInput(f"Unknown invoice fields: {sorted(unknown)}")

        if "status" in changes:
            status = changes["status"]
            if status not in MANUAL_STATUSES:
                raise InvalidInput(
                    f"Status {status} cannot be set manually", code="invalid_status"
                )
            if status in ("draft", "cancelled") and invoice.payments.exists():
                raise StateConflict(
                    "Invoice has payments", code="invoice_has_payments", status=status
                )
            invoice.status = status
        if "due_date" in changes:
            due_date = changes["due_date"]
            if due_date and due_date < invoice.issue_date:
                raise InvalidInput("Due date cannot precede issue date", code="invalid_due_date")
            invoice.due_date = due_date
        if "notes" in changes:
            invoice.notes = changes["notes"]

        invoice.save()
        return invoice

    @staticmethod
    @db_transaction.atomic
    def delete_invoice(user, invoice_id):
        invoice = ownership.assert_invoice_owned_by_user(invoice_id, user)
        if invoice.payments.exists():
            raise StateConflict(
                "Cannot delete an invoice with payments", code="invoice_has_payments"
            )
        invoice.delete()
        logger.info(
            "Invoice deleted",
            extra={
                "user_id": user.id,
                "invoice_id": invoice_id,
                "action": "invoice_deleted",
                "component": "InvoiceService",
            },
        )

    @staticmethod
    def get_invoice(user, invoice_id):
        return ownership.assert_invoice_owned_by_user(invoice_id, user)

    @staticmethod
    def list_invoices(user, business_id, status=None):
        business = ownership.assert_business_owned_by_user(business_id, user)
        queryset = Invoice.objects.filter(business=business).select_related("client")
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset.order_by("-created_at", "-id"))

    @staticmethod
    def mark_overdue_invoices(user, business_id, reference_date):
        """
        Flip open invoices past their due date to ``overdue``.

        Returns the number of invoices changed; always 0 in manual mode.
        """
        business = ownership.assert_business_owned_by_user(business_id, user)
        if overdue_mode() != "derived":
            return 0
        count = Invoice.objects.filter(
            business=business,
            status__in=OVERDUE_CANDIDATES,
            due_date__lt=reference_date,
        ).update(status="overdue", updated_at=timezone.now())
        if count:
            logger.info(
                "Invoices marked overdue",
                extra={
                    "user_id": user.id,
                    "business_id": business.id,
                    "count": count,
                    "reference_date": reference_date.isoformat(),
                    "action": "invoices_marked_overdue",
                    "component": "InvoiceService",
                },
            )
        return count
