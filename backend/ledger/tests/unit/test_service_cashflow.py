# ledger/tests/unit/test_service_cashflow.py
from datetime import date
from decimal import Decimal

import pytest

from ledger.exceptions import InvalidInput, OwnershipViolation
from ledger.services.account_service import AccountService
from ledger.services.cashflow_service import CashflowService
from ledger.services.transaction_service import TransactionService

START = date(2025, 3, 31)


def _record(user, account, direction, amount, when, business_id=None):
    return TransactionService.record_transaction(
        user, account.id, direction, amount, when, "Entry", business_id=business_id
    )


@pytest.fixture
def history(test_user, personal_account):
    # Outside the 90 day window: counts for the opening balance only.
    _record(test_user, personal_account, "in", "1000", date(2024, 6, 1))
    _record(test_user, personal_account, "out", "900", date(2025, 3, 1))
    return personal_account


class TestProjectCashflow:
    def test_linear_projection(self, test_user, history):
        result = CashflowService.project_cashflow(test_user, START, horizon_days=30)

        assert result["opening_balance"] == Decimal("100.00")
        assert result["horizon_days"] == 30
        assert result["currency"] == "EUR"
        assert len(result["points"]) == 30

        first, last = result["points"][0], result["points"][-1]
        assert first["date"] == date(2025, 4, 1)
        assert first["outflow"] == Decimal("10.00")
        assert first["inflow"] == Decimal("0.00")
        assert first["net"] == Decimal("-10.00")
        assert first["balance"] == Decimal("90.00")
        assert last["date"] == date(2025, 4, 30)
        assert last["balance"] == Decimal("-200.00")

    def test_future_transactions_ignored(self, test_user, history):
        _record(test_user, history, "in", "5000", date(2025, 4, 2))
        result = CashflowService.project_cashflow(test_user, START, horizon_days=30)
        assert result["opening_balance"] == Decimal("100.00")

    def test_accounts_outside_budget_ignored(self, test_user, history, savings_account):
        _record(test_user, savings_account, "in", "4500", date(2025, 3, 10))
        AccountService.set_inclusion_flags(test_user, savings_account.id, include_in_budget=False)

        result = CashflowService.project_cashflow(test_user, START, horizon_days=30)
        assert result["opening_balance"] == Decimal("100.00")

    def test_archived_accounts_ignored(self, test_user, history, savings_account):
        _record(test_user, savings_account, "in", "4500", date(2025, 3, 10))
        AccountService.archive_account(test_user, savings_account.id)

        result = CashflowService.project_cashflow(test_user, START, horizon_days=30)
        assert result["opening_balance"] == Decimal("100.00")

    def test_business_scope_is_separate(self, test_user, business, business_account, history):
        _record(test_user, business_account, "in", "2700", date(2025, 3, 15), business_id=business.id)

        result = CashflowService.project_cashflow(
            test_user, START, business_id=business.id, horizon_days=60
        )

        assert result["opening_balance"] == Decimal("2700.00")
        assert result["points"][0]["inflow"] == Decimal("30.00")
        assert result["points"][-1]["balance"] == Decimal("4500.00")

    def test_empty_history_is_flat(self, test_user):
        result = CashflowService.project_cashflow(test_user, START)
        assert len(result["points"]) == 90
        assert {point["balance"] for point in result["points"]} == {Decimal("0.00")}

    @pytest.mark.parametrize("horizon", [29, 366, "soon"])
    def test_invalid_horizon(self, test_user, horizon):
        with pytest.raises(InvalidInput) as exc_info:
            CashflowService.project_cashflow(test_user, START, horizon_days=horizon)
        assert exc_info.value.code == "invalid_horizon"

    def test_foreign_business(self, other_user, business):
        with pytest.raises(OwnershipViolation):
            CashflowService.project_cashflow(other_user, START, business_id=business.id)
