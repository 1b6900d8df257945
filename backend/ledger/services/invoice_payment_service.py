"""
Invoice payments.

Registering a payment writes three rows in one database transaction: the
``in`` ledger entry on the receiving account, the ``InvoicePayment`` and
the invoice's updated paid amount and status. The invoice row is locked
first so concurrent payments on the same invoice apply one after another.
"""

import logging

from django.db import transaction as db_transaction
from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..exceptions import InvalidInput, NotFound, ScopeCoherenceViolation, StateConflict
from ..models import Invoice, InvoicePayment
from ..utils.money_utils import ZERO, parse_positive_amount
from . import ownership
from .invoice_service import derive_payment_status
from .transaction_service import TransactionService

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = ("issued", "partially_paid", "overdue")


def _lock_invoice(invoice_id):
    return Invoice.objects.select_for_update().get(pk=invoice_id)


class InvoicePaymentService:
    @staticmethod
    @db_transaction.atomic
    def register_payment(user, invoice_id, account_id, amount, date, method=None, notes=None):
        """
        Record a payment received for an invoice.

        Returns:
            dict: ``{"payment", "transaction", "invoice"}``

        Raises:
            StateConflict: invoice is draft, cancelled or already paid
            InvalidInput: amount invalid or larger than the remaining balance
            ScopeCoherenceViolation: account outside the invoice's business
        """
        ownership.assert_invoice_owned_by_user(invoice_id, user)
        invoice = _lock_invoice(invoice_id)
        amount = parse_positive_amount(amount)

        if invoice.status not in PAYABLE_STATUSES:
            raise StateConflict(
                f"Cannot register a payment on a {invoice.status} invoice",
                code="invoice_not_payable",
                invoice_id=invoice.id,
            )
        if invoice.amount_paid_cached + amount > invoice.total_ttc:
            raise InvalidInput(
                "Payment exceeds the amount remaining on the invoice",
                code="overpayment",
                remaining=str(invoice.amount_remaining),
            )

        account = ownership.assert_account_owned_by_user(account_id, user)
        if account.business_id != invoice.business_id:
            raise ScopeCoherenceViolation(
                "Account does not belong to the invoice's business",
                code="account_scope_mismatch",
                account_id=account.id,
                invoice_id=invoice.id,
            )

        transaction = TransactionService.record_transaction(
            user,
            account.id,
            "in",
            amount,
            date,
            f"Payment invoice {invoice.number}",
            business_id=invoice.business_id,
            type="income",
            project_id=invoice.project_id,
            invoice_id=invoice.id,
        )
        payment = InvoicePayment.objects.create(
            invoice=invoice,
            transaction=transaction,
            amount=amount,
            date=date,
            method=method,
            notes=notes,
        )

        invoice.amount_paid_cached += amount
        invoice.status = derive_payment_status(invoice, date)
        invoice.save(update_fields=["amount_paid_cached", "status", "updated_at"])

        logger.info(
            "Invoice payment registered",
            extra={
                "user_id": user.id,
                "invoice_id": invoice.id,
                "payment_id": payment.id,
                "transaction_id": transaction.id,
                "amount": str(amount),
                "status": invoice.status,
                "action": "invoice_payment_registered",
                "component": "InvoicePaymentService",
            },
        )
        return {"payment": payment, "transaction": transaction, "invoice": invoice}

    @staticmethod
    @db_transaction.atomic
    def delete_payment(user, payment_id, reference_date=None):
        """Remove a payment and its ledger entry, then recompute the invoice."""
        try:
            payment = InvoicePayment.objects.select_related("invoice__business").get(pk=payment_id)
        except InvoicePayment.DoesNotExist:
            raise NotFound(
                "InvoicePayment not found", code="invoicepayment_not_found", entity_id=payment_id
            )
        ownership.assert_invoice_owned_by_user(payment.invoice_id, user)
        invoice = _lock_invoice(payment.invoice_id)

        transaction = payment.transaction
        payment.delete()
        if transaction is not None:
            transaction.delete()

        invoice.amount_paid_cached = invoice.payments.aggregate(
            total=Coalesce(
                Sum("amount"), Value(ZERO), output_field=DecimalField(max_digits=20, decimal_places=2)
            )
        )["total"]
        invoice.status = derive_payment_status(invoice, reference_date or timezone.localdate())
        invoice.save(update_fields=["amount_paid_cached", "status", "updated_at"])

        logger.info(
            "Invoice payment deleted",
            extra={
                "user_id": user.id,
                "invoice_id": invoice.id,
                "payment_id": payment_id,
                "status": invoice.status,
                "action": "invoice_payment_deleted",
                "component": "InvoicePaymentService",
            },
        )
        return invoice

    @staticmethod
    def list_payments(user, invoice_id):
        invoice = ownership.assert_invoice_owned_by_user(invoice_id, user)
        return list(invoice.payments.select_related("transaction").order_by("date", "id"))
