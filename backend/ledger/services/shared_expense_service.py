"""
Shared expenses: an amount fronted by one participant and split between
named participants, with settlements recording who paid whom back.

Balances are derived on read. Per expense the owner is credited the total,
every participant (owner included) is debited their share, and each
settlement credits ``from_name`` and debits ``to_name``. A positive balance
is money owed to that person, a negative one money they still owe.
"""

import logging

from django.conf import settings
from django.db import transaction as db_transaction

from ..exceptions import InvalidInput
from ..models import SharedExpense, SharedExpenseParticipant, SharedExpenseSettlement, UserSettings
from ..utils.money_utils import ZERO, normalize_label, parse_positive_amount, quantize, to_decimal
from . import ownership

logger = logging.getLogger(__name__)

DEFAULT_OWNER_NAME = "Owner"


def _user_currency(user):
    user_settings = UserSettings.objects.filter(user=user).first()
    if user_settings is not None:
        return user_settings.main_currency
    return getattr(settings, "LEDGER_DEFAULT_CURRENCY", "EUR")


def _parse_participants(participants, total):
    if not participants:
        raise InvalidInput("At least one participant is required", code="participants_required")

    parsed = []
    seen = set()
    for raw in participants:
        name = normalize_label(raw.get("name"))
        if not name:
            raise InvalidInput("Participant name is required", code="invalid_participant")
        if name in seen:
            raise InvalidInput(
                f"Participant '{name}' is listed twice", code="duplicate_participant", name=name
            )
        seen.add(name)

        share = quantize(to_decimal(raw.get("share_amount"), "share_amount"))
        if share < ZERO:
            raise InvalidInput("Participant share must be >= 0", code="invalid_share", name=name)

        email = (raw.get("email") or "").strip() or None
        parsed.append(
            {"name": name, "email": email, "share_amount": share, "is_owner": bool(raw.get("is_owner"))}
        )

    if sum(1 for p in parsed if p["is_owner"]) > 1:
        raise InvalidInput("Only one participant can own the expense", code="multiple_owners")

    shares = sum((p["share_amount"] for p in parsed), ZERO)
    if shares != total:
        raise InvalidInput(
            "Participant shares must add up to the total amount",
            code="shares_total_mismatch",
            shares=str(shares),
            total=str(total),
        )
    return parsed


def balances_for(expense):
    """Per-participant balance of one expense, keyed by name."""
    participants = list(expense.participants.all())
    owner = next((p for p in participants if p.is_owner), participants[0] if participants else None)
    owner_name = owner.name if owner is not None else DEFAULT_OWNER_NAME

    balances = {owner_name: quantize(expense.total_amount)}
    for participant in participants:
        balances[participant.name] = balances.get(participant.name, ZERO) - participant.share_amount

    for settlement in expense.settlements.all():
        balances[settlement.from_name] = balances.get(settlement.from_name, ZERO) + settlement.amount
        balances[settlement.to_name] = balances.get(settlement.to_name, ZERO) - settlement.amount
    return balances


class SharedExpenseService:
    @staticmethod
    @db_transaction.atomic
    def create_shared_expense(
        user, label, total_amount, date, participants, currency=None, notes=None
    ):
        label = normalize_label(label)
        if not label:
            raise InvalidInput("Shared expense label is required", code="invalid_label")
        total = parse_positive_amount(total_amount, "total_amount")
        parsed = _parse_participants(participants, total)

        expense = SharedExpense.objects.create(
            user=user,
            label=label,
            total_amount=total,
            currency=(currency or "").strip() or _user_currency(user),
            date=date,
            notes=notes,
        )
        SharedExpenseParticipant.objects.bulk_create(
            SharedExpenseParticipant(shared_expense=expense, **participant) for participant in parsed
        )

        logger.info(
            "Shared expense created",
            extra={
                "user_id": user.id,
                "shared_expense_id": expense.id,
                "participant_count": len(parsed),
                "action": "shared_expense_created",
                "component": "SharedExpenseService",
            },
        )
        return expense

    @staticmethod
    def list_with_balances(user):
        """
        Every shared expense of ``user`` (newest first) plus the balance of
        each participant name summed across all of them.
        """
        expenses = list(
            SharedExpense.objects.for_user(user)
            .prefetch_related("participants", "settlements")
            .order_by("-date", "-id")
        )

        totals = {}
        for expense in expenses:
            for name, balance in balances_for(expense).items():
                totals[name] = totals.get(name, ZERO) + balance

        balances = [
            {"name": name, "balance": quantize(balance)} for name, balance in sorted(totals.items())
        ]
        return {"expenses": expenses, "balances": balances}

    @staticmethod
    def get_shared_expense(user, expense_id):
        return ownership.assert_shared_expense_owned_by_user(expense_id, user)

    @staticmethod
    @db_transaction.atomic
    def settle_debt(user, expense_id, from_name, to_name, amount, date, notes=None):
        expense = ownership.assert_shared_expense_owned_by_user(expense_id, user)
        from_name = normalize_label(from_name)
        to_name = normalize_label(to_name)
        if from_name == to_name:
            raise InvalidInput("A participant cannot settle with themselves", code="same_participant")

        names = set(expense.participants.values_list("name", flat=True))
        unknown = [name for name in (from_name, to_name) if name not in names]
        if unknown:
            raise InvalidInput(
                f"Unknown participants: {unknown}", code="unknown_participant", names=unknown
            )

        settlement = SharedExpenseSettlement.objects.create(
            shared_expense=expense,
            from_name=from_name,
            to_name=to_name,
            amount=parse_positive_amount(amount),
            date=date,
            notes=notes,
        )

        logger.info(
            "Shared expense settlement recorded",
            extra={
                "user_id": user.id,
                "shared_expense_id": expense.id,
                "settlement_id": settlement.id,
                "action": "shared_expense_settled",
                "component": "SharedExpenseService",
            },
        )
        return settlement
