"""
Account management and derived balances.

Balances are computed on every read as Σ(in) − Σ(out) over the account's
transactions; nothing here caches a balance.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction as db_transaction
from django.db.models import DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce

from ..exceptions import InvalidInput
from ..managers import UNSET
from ..models import Account, Transaction, UserSettings
from ..utils.money_utils import ZERO, normalize_label
from . import ownership

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = {choice for choice, _ in Account.ACCOUNT_TYPES}
CONNECTION_TYPES = {choice for choice, _ in Account.CONNECTION_TYPES}

_MONEY_OUTPUT = DecimalField(max_digits=20, decimal_places=2)


def _sum_direction(direction, prefix=""):
    return Coalesce(
        Sum(f"{prefix}amount", filter=Q(**{f"{prefix}direction": direction})),
        Value(ZERO),
        output_field=_MONEY_OUTPUT,
    )


def _validate_currency(currency):
    currency = (currency or "").strip().upper()
    if not 1 <= len(currency) <= 10:
        raise InvalidInput("currency must be 1 to 10 characters", code="invalid_currency")
    return currency


def _default_currency(user, business):
    if business is not None:
        return business.currency
    user_settings = UserSettings.objects.filter(user=user).first()
    if user_settings is not None:
        return user_settings.main_currency
    return getattr(settings, "LEDGER_DEFAULT_CURRENCY", "EUR")


class AccountService:
    """Account CRUD plus on-demand balance computation."""

    @staticmethod
    @db_transaction.atomic
    def create_account(
        user,
        name,
        type="current",
        currency=None,
        business_id=None,
        connection_type="manual",
        include_in_budget=True,
        include_in_net_worth=True,
    ):
        name = normalize_label(name)
        if not name:
            raise InvalidInput("Account name is required", code="invalid_name")
        if type not in ACCOUNT_TYPES:
            raise InvalidInput(f"Invalid account type: {type}", code="invalid_account_type")
        if connection_type not in CONNECTION_TYPES:
            raise InvalidInput(
                f"Invalid connection type: {connection_type}", code="invalid_connection_type"
            )

        business = ownership.resolve_scope(user, business_id)
        currency = _validate_currency(currency or _default_currency(user, business))

        account = Account.objects.create(
            user=user,
            business=business,
            name=name,
            type=type,
            currency=currency,
            connection_type=connection_type,
            include_in_budget=include_in_budget,
            include_in_net_worth=include_in_net_worth,
        )
        logger.info(
            "Account created",
            extra={
                "user_id": user.id,
                "account_id": account.id,
                "business_id": business_id,
                "action": "account_created",
                "component": "AccountService",
            },
        )
        return account

    @staticmethod
    @db_transaction.atomic
    def update_account(user, account_id, **changes):
        """
        Update descriptive fields. The business scope of an account is fixed
        once created since existing transactions depend on it.
        """
        account = ownership.assert_account_owned_by_user(account_id, user)

        if "business_id" in changes and changes["business_id"] != account.business_id:
            if account.transactions.exists():
                raise InvalidInput(
                    "Cannot move an account with transactions to another scope",
                    code="account_scope_locked",
                )
            account.business = ownership.resolve_scope(user, changes["business_id"])
        if "name" in changes:
            name = normalize_label(changes["name"])
            if not name:
                raise InvalidInput("Account name is required", code="invalid_name")
            account.name = name
        if "type" in changes:
            if changes["type"] not in ACCOUNT_TYPES:
                raise InvalidInput("Invalid account type", code="invalid_account_type")
            account.type = changes["type"]
        if "connection_type" in changes:
            if changes["connection_type"] not in CONNECTION_TYPES:
                raise InvalidInput("Invalid connection type", code="invalid_connection_type")
            account.connection_type = changes["connection_type"]
        if "currency" in changes:
            account.currency = _validate_currency(changes["currency"])

        account.save()
        return account

    @staticmethod
    def archive_account(user, account_id):
        account = ownership.assert_account_owned_by_user(account_id, user)
        account.is_active = False
        account.save(update_fields=["is_active", "updated_at"])
        logger.info(
            "Account archived",
            extra={
                "user_id": user.id,
                "account_id": account.id,
                "action": "account_archived",
                "component": "AccountService",
            },
        )
        return account

    @staticmethod
    def reactivate_account(user, account_id):
        account = ownership.assert_account_owned_by_user(account_id, user)
        account.is_active = True
        account.save(update_fields=["is_active", "updated_at"])
        return account

    @staticmethod
    def set_inclusion_flags(user, account_id, include_in_budget=None, include_in_net_worth=None):
        account = ownership.assert_account_owned_by_user(account_id, user)
        if include_in_budget is not None:
            account.include_in_budget = bool(include_in_budget)
        if include_in_net_worth is not None:
            account.include_in_net_worth = bool(include_in_net_worth)
        account.save(update_fields=["include_in_budget", "include_in_net_worth", "updated_at"])
        return account

    @staticmethod
    def compute_account_balance(account) -> Decimal:
        """Σ(in) − Σ(out) over every transaction of ``account``."""
        totals = Transaction.objects.filter(account=account).aggregate(
            total_in=_sum_direction("in"), total_out=_sum_direction("out")
        )
        return totals["total_in"] - totals["total_out"]

    @staticmethod
    def get_account_with_balance(user, account_id):
        account = ownership.assert_account_owned_by_user(account_id, user)
        return {"account": account, "balance": AccountService.compute_account_balance(account)}

    @staticmethod
    def list_accounts_with_balance(
        user,
        business_id=UNSET,
        include_inactive=False,
        only_in_budget=False,
        only_in_net_worth=False,
    ):
        """
        Accounts of the user with their balance, computed in one query.

        ``business_id=None`` lists personal accounts only; leaving it unset
        lists every scope.
        """
        business = ownership.resolve_scope_filter(user, business_id)

        queryset = Account.objects.for_user(user, business)
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        if only_in_budget:
            queryset = queryset.filter(include_in_budget=True)
        if only_in_net_worth:
            queryset = queryset.filter(include_in_net_worth=True)

        queryset = queryset.annotate(
            total_in=_sum_direction("in", prefix="transactions__"),
            total_out=_sum_direction("out", prefix="transactions__"),
        )
        return [
            {"account": account, "balance": account.total_in - account.total_out}
            for account in queryset
        ]

    @staticmethod
    def compute_net_worth(user) -> Decimal:
        rows = AccountService.list_accounts_with_balance(user, only_in_net_worth=True)
        return sum((row["balance"] for row in rows), ZERO)
