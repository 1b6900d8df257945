"""
Cashflow projection from recent history.

Daily average inflow and outflow over the last 90 days are extrapolated
over the requested horizon, starting from the current balance of the
scope's accounts. Only active accounts included in the budget count.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.db.models import DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce

from ..exceptions import InvalidInput
from ..models import Transaction, UserSettings
from ..utils.money_utils import ZERO, quantize
from . import ownership

logger = logging.getLogger(__name__)

HISTORY_DAYS = 90
DEFAULT_HORIZON_DAYS = 90
MIN_HORIZON_DAYS = 30
MAX_HORIZON_DAYS = 365

_TOTAL = DecimalField(max_digits=20, decimal_places=2)


def _sum(direction):
    return Coalesce(Sum("amount", filter=Q(direction=direction)), Value(ZERO), output_field=_TOTAL)


class CashflowService:
    @staticmethod
    def _scope_transactions(user, business, start_date):
        business_id = business.id if business is not None else None
        return Transaction.objects.filter(
            user=user,
            business_id=business_id,
            date__lte=start_date,
            account__business_id=business_id,
            account__is_active=True,
            account__include_in_budget=True,
        )

    @staticmethod
    def project_cashflow(user, start_date, business_id=None, horizon_days=DEFAULT_HORIZON_DAYS):
        """
        Project the scope's balance ``horizon_days`` days after ``start_date``.

        Returns:
            dict: ``{"opening_balance", "points": [{"date", "balance",
            "inflow", "outflow", "net"}], "horizon_days", "currency"}``
        """
        try:
            horizon = int(horizon_days)
        except (TypeError, ValueError):
            raise InvalidInput("horizon_days must be an integer", code="invalid_horizon")
        if not MIN_HORIZON_DAYS <= horizon <= MAX_HORIZON_DAYS:
            raise InvalidInput(
                f"horizon_days must be between {MIN_HORIZON_DAYS} and {MAX_HORIZON_DAYS}",
                code="invalid_horizon",
            )

        business = ownership.resolve_scope(user, business_id)
        if business is not None:
            currency = business.currency
        else:
            user_settings = UserSettings.objects.filter(user=user).first()
            currency = user_settings.main_currency if user_settings else "EUR"

        transactions = CashflowService._scope_transactions(user, business, start_date)
        since = start_date - timedelta(days=HISTORY_DAYS)
        balance = transactions.aggregate(total_in=_sum("in"), total_out=_sum("out"))
        recent = transactions.filter(date__gte=since).aggregate(
            total_in=_sum("in"), total_out=_sum("out")
        )
        days = Decimal(HISTORY_DAYS)
        inflow = recent["total_in"] / days
        outflow = recent["total_out"] / days
        net = inflow - outflow

        opening = balance["total_in"] - balance["total_out"]
        points = []
        running = opening
        for offset in range(1, horizon + 1):
            running += net
            points.append(
                {
                    "date": start_date + timedelta(days=offset),
                    "balance": quantize(running),
                    "inflow": quantize(inflow),
                    "outflow": quantize(outflow),
                    "net": quantize(net),
                }
            )

        logger.debug(
            "Cashflow projected",
            extra={
                "user_id": user.id,
                "business_id": business_id,
                "horizon_days": horizon,
                "action": "cashflow_projected",
                "component": "CashflowService",
            },
        )
        return {
            "opening_balance": opening,
            "points": points,
            "horizon_days": horizon,
            "currency": currency,
        }
