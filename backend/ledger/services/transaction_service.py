"""
Ledger core: recording, transferring, updating and listing transactions.

Every write re-validates account ownership, the personal/business scope
coherence between the transaction and its account, and the ownership of
each optional link. Amounts are stored positive; direction carries the sign.
"""

import logging

from django.conf import settings
from django.db import transaction as db_transaction

from ..exceptions import InvalidInput, ScopeCoherenceViolation, StateConflict
from ..managers import UNSET
from ..models import InvoicePayment, Transaction
from ..utils.money_utils import normalize_label, parse_positive_amount, to_decimal
from . import ownership

# Get structured logger for this module
logger = logging.getLogger(__name__)

DIRECTIONS = ("in", "out")
TRANSFER_DEFAULT_LABEL = "Internal transfer"

# fields an invoice payment owns on its ledger row
PAYMENT_LOCKED_FIELDS = ("amount", "direction", "date", "account_id", "business_id", "invoice_id")

# link field -> ownership assertion
LINK_ASSERTIONS = {
    "category": ownership.assert_category_owned_by_user,
    "contact": ownership.assert_contact_owned_by_user,
    "income_source": ownership.assert_income_source_owned_by_user,
    "invoice": ownership.assert_invoice_owned_by_user,
    "supplier": ownership.assert_supplier_owned_by_user,
    "recurring_series": ownership.assert_recurring_series_owned_by_user,
}


def _assert_not_payment_entry(transaction, action):
    if InvoicePayment.objects.filter(transaction=transaction).exists():
        raise StateConflict(
            f"Cannot {action} a transaction recorded by an invoice payment; "
            "delete the payment instead",
            code="transaction_linked_to_payment",
            transaction_id=transaction.id,
        )


def _validate_direction(direction):
    if direction not in DIRECTIONS:
        raise InvalidInput(
            "direction must be 'in' or 'out'", code="invalid_direction", value=direction
        )
    return direction


def _validate_type(value):
    value = (value or "").strip()
    if not 1 <= len(value) <= 30:
        raise InvalidInput("type must be 1 to 30 characters", code="invalid_type")
    return value


def _validate_label(label):
    label = normalize_label(label)
    if not label:
        raise InvalidInput("label is required", code="invalid_label")
    return label


def _assert_account_scope(account, business):
    """A transaction's business must be exactly its account's business."""
    business_id = business.id if business is not None else None
    if account.business_id != business_id:
        raise ScopeCoherenceViolation(
            "Account scope does not match the transaction scope",
            code="account_scope_mismatch",
            account_id=account.id,
            account_business_id=account.business_id,
            business_id=business_id,
        )


def _resolve_project(user, project_id, business):
    """Projects may be personal, or belong to the transaction's business."""
    if project_id is None:
        return None
    project = ownership.assert_project_owned_by_user(project_id, user)
    business_id = business.id if business is not None else None
    if business_id is None:
        compatible = project.business_id is None
    else:
        compatible = project.business_id in (None, business_id)
    if not compatible:
        raise ScopeCoherenceViolation(
            "Project scope is not compatible with the transaction scope",
            code="project_scope_mismatch",
            project_id=project.id,
            project_business_id=project.business_id,
            business_id=business_id,
        )
    return project


class TransactionService:
    """
    Ledger write/read surface.

    All methods take the acting user first and return model instances;
    failures surface as ``ledger.exceptions`` errors.
    """

    @staticmethod
    def _resolve_links(user, links):
        resolved = {}
        for field, assertion in LINK_ASSERTIONS.items():
            key = f"{field}_id"
            if key not in links:
                continue
            value = links[key]
            resolved[field] = assertion(value, user) if value is not None else None
        return resolved

    @staticmethod
    @db_transaction.atomic
    def record_transaction(
        user,
        account_id,
        direction,
        amount,
        date,
        label,
        business_id=None,
        type="other",
        notes=None,
        project_id=None,
        **links,
    ):
        """
        Record one ledger entry.

        Args:
            user: Acting user, owner of every referenced row
            account_id: Account receiving the entry
            direction: ``"in"`` or ``"out"``
            amount: Positive amount (Decimal, str or int)
            date: Calendar date of the movement
            label: Free text, normalised and cut to 255 characters
            business_id: ``None`` for a personal entry, else the business id
            project_id: Optional project, scope-compatible with ``business_id``
            **links: ``category_id``, ``contact_id``, ``income_source_id``,
                ``invoice_id``, ``supplier_id``, ``recurring_series_id``

        Raises:
            InvalidInput, NotFound, OwnershipViolation, ScopeCoherenceViolation
        """
        unknown = set(links) - {f"{field}_id" for field in LINK_ASSERTIONS}
        if unknown:
            raise InvalidInput(f"Unknown transaction links: {sorted(unknown)}")

        amount = parse_positive_amount(amount)
        direction = _validate_direction(direction)
        tx_type = _validate_type(type)
        label = _validate_label(label)

        account = ownership.assert_account_owned_by_user(account_id, user)
        business = ownership.resolve_scope(user, business_id)
        _assert_account_scope(account, business)
        project = _resolve_project(user, project_id, business)
        resolved_links = TransactionService._resolve_links(user, links)

        transaction = Transaction.objects.create(
            user=user,
            account=account,
            business=business,
            amount=amount,
            direction=direction,
            date=date,
            label=label,
            type=tx_type,
            notes=notes,
            project=project,
            **resolved_links,
        )

        logger.info(
            "Transaction recorded",
            extra={
                "user_id": user.id,
                "transaction_id": transaction.id,
                "account_id": account.id,
                "business_id": business_id,
                "direction": direction,
                "action": "transaction_recorded",
                "component": "TransactionService",
            },
        )
        return transaction

    @staticmethod
    @db_transaction.atomic
    def record_transfer(user, from_account_id, to_account_id, amount, date, label=None):
        """
        Move money between two owned accounts as a paired out/in entry.

        Each leg carries its own account's business, so a transfer may
        cross scopes (personal to business and back). Both legs are
        written in the same database transaction.
        """
        if from_account_id == to_account_id:
            raise InvalidInput(
                "Source and destination accounts must differ", code="same_account_transfer"
            )
        amount = parse_positive_amount(amount)
        label = normalize_label(label) or TRANSFER_DEFAULT_LABEL

        source = ownership.assert_account_owned_by_user(from_account_id, user)
        destination = ownership.assert_account_owned_by_user(to_account_id, user)

        outgoing = Transaction.objects.create(
            user=user,
            account=source,
            business_id=source.business_id,
            amount=amount,
            direction="out",
            date=date,
            label=label,
            type="transfer",
        )
        incoming = Transaction.objects.create(
            user=user,
            account=destination,
            business_id=destination.business_id,
            amount=amount,
            direction="in",
            date=date,
            label=label,
            type="transfer",
        )

        logger.info(
            "Transfer recorded",
            extra={
                "user_id": user.id,
                "from_account_id": source.id,
                "to_account_id": destination.id,
                "out_transaction_id": outgoing.id,
                "in_transaction_id": incoming.id,
                "action": "transfer_recorded",
                "component": "TransactionService",
            },
        )
        return {"out": outgoing, "in": incoming}

    @staticmethod
    @db_transaction.atomic
    def update_transaction(user, transaction_id, **changes):
        """
        Apply a partial update; only the supplied fields are validated.

        Changing ``account_id`` or ``business_id`` re-checks account scope
        coherence, and the project link is always re-checked against the
        resulting business scope.
        """
        transaction = ownership.assert_transaction_owned_by_user(transaction_id, user)
        if any(field in changes for field in PAYMENT_LOCKED_FIELDS):
            _assert_not_payment_entry(transaction, "change")

        if "amount" in changes:
            transaction.amount = parse_positive_amount(changes.pop("amount"))
        if "direction" in changes:
            transaction.direction = _validate_direction(changes.pop("direction"))
        if "type" in changes:
            transaction.type = _validate_type(changes.pop("type"))
        if "label" in changes:
            transaction.label = _validate_label(changes.pop("label"))
        if "date" in changes:
            transaction.date = changes.pop("date")
        if "notes" in changes:
            transaction.notes = changes.pop("notes")

        scope_changed = "account_id" in changes or "business_id" in changes
        if "account_id" in changes:
            transaction.account = ownership.assert_account_owned_by_user(
                changes.pop("account_id"), user
            )
        if "business_id" in changes:
            transaction.business = ownership.resolve_scope(user, changes.pop("business_id"))
        if scope_changed:
            _assert_account_scope(transaction.account, transaction.business)

        project_id = changes.pop("project_id", transaction.project_id)
        transaction.project = _resolve_project(user, project_id, transaction.business)

        unknown = set(changes) - {f"{field}_id" for field in LINK_ASSERTIONS}
        if unknown:
            raise InvalidInput(f"Unknown transaction fields: {sorted(unknown)}")
        for field, value in TransactionService._resolve_links(user, changes).items():
            setattr(transaction, field, value)

        transaction.save()

        logger.info(
            "Transaction updated",
            extra={
                "user_id": user.id,
                "transaction_id": transaction.id,
                "scope_changed": scope_changed,
                "action": "transaction_updated",
                "component": "TransactionService",
            },
        )
        return transaction

    @staticmethod
    @db_transaction.atomic
    def delete_transaction(user, transaction_id):
        transaction = ownership.assert_transaction_owned_by_user(transaction_id, user)
        _assert_not_payment_entry(transaction, "delete")
        transaction.delete()
        logger.info(
            "Transaction deleted",
            extra={
                "user_id": user.id,
                "transaction_id": transaction_id,
                "action": "transaction_deleted",
                "component": "TransactionService",
            },
        )

    @staticmethod
    def get_transaction(user, transaction_id):
        return ownership.assert_transaction_owned_by_user(transaction_id, user)

    @staticmethod
    def list_transactions(user, filters=None):
        """
        List the user's transactions in ``(date, created_at)`` order.

        Supported filters: ``from_date``, ``to_date``, ``direction``,
        ``min_amount``, ``max_amount``, ``category_id``, ``project_id``,
        ``business_id`` (``None`` = personal only; absent = every scope),
        ``account_ids``, ``limit`` and ``offset``.
        """
        filters = dict(filters or {})
        business = ownership.resolve_scope_filter(user, filters.get("business_id", UNSET))

        queryset = Transaction.objects.for_user(user, business).select_related(
            "account", "category", "project"
        )

        if filters.get("from_date"):
            queryset = queryset.filter(date__gte=filters["from_date"])
        if filters.get("to_date"):
            queryset = queryset.filter(date__lte=filters["to_date"])
        if filters.get("direction"):
            queryset = queryset.filter(direction=_validate_direction(filters["direction"]))
        if filters.get("min_amount") is not None:
            queryset = queryset.filter(amount__gte=to_decimal(filters["min_amount"], "min_amount"))
        if filters.get("max_amount") is not None:
            queryset = queryset.filter(amount__lte=to_decimal(filters["max_amount"], "max_amount"))
        if filters.get("category_id") is not None:
            queryset = queryset.filter(category_id=filters["category_id"])
        if filters.get("project_id") is not None:
            queryset = queryset.filter(project_id=filters["project_id"])
        if filters.get("account_ids"):
            queryset = queryset.filter(account_id__in=filters["account_ids"])

        default_limit = getattr(settings, "LEDGER_TRANSACTION_LIST_DEFAULT_LIMIT", 100)
        max_limit = getattr(settings, "LEDGER_TRANSACTION_LIST_MAX_LIMIT", 1000)
        try:
            limit = int(filters.get("limit") or default_limit)
            offset = int(filters.get("offset") or 0)
        except (TypeError, ValueError):
            raise InvalidInput("limit and offset must be integers", code="invalid_pagination")
        limit = max(1, min(limit, max_limit))
        offset = max(0, offset)

        return list(queryset.order_by("date", "created_at", "id")[offset : offset + limit])
