# ledger/tests/unit/test_service_account.py
from datetime import date
from decimal import Decimal

import pytest

from ledger.exceptions import InvalidInput, OwnershipViolation
from ledger.services.account_service import AccountService
from ledger.services.transaction_service import TransactionService


def _record(user, account, direction, amount, business_id=None):
    return TransactionService.record_transaction(
        user, account.id, direction, amount, date(2025, 2, 1), "Entry", business_id=business_id
    )


class TestCreateAccount:
    def test_defaults(self, test_user, personal_account):
        assert personal_account.business is None
        assert personal_account.is_active
        assert personal_account.include_in_budget
        assert personal_account.include_in_net_worth
        assert personal_account.connection_type == "manual"
        assert personal_account.currency == "EUR"

    def test_business_account_uses_business_currency(self, test_user, business):
        business.currency = "CHF"
        business.save()
        account = AccountService.create_account(test_user, "Swiss", business_id=business.id)
        assert account.currency == "CHF"

    @pytest.mark.parametrize(
        "kwargs",
        [{"type": "crypto"}, {"connection_type": "carrier_pigeon"}, {"name": " "}],
    )
    def test_invalid_values(self, test_user, kwargs):
        params = {"name": "Wallet", **kwargs}
        with pytest.raises(InvalidInput):
            AccountService.create_account(test_user, **params)

    def test_foreign_business_rejected(self, other_user, business):
        with pytest.raises(OwnershipViolation):
            AccountService.create_account(other_user, "Sneaky", business_id=business.id)


class TestUpdateAccount:
    def test_scope_locked_once_used(self, test_user, business, personal_account):
        _record(test_user, personal_account, "in", "10")

        with pytest.raises(InvalidInput) as exc_info:
            AccountService.update_account(test_user, personal_account.id, business_id=business.id)
        assert exc_info.value.code == "account_scope_locked"

    def test_scope_change_allowed_while_empty(self, test_user, business, personal_account):
        updated = AccountService.update_account(
            test_user, personal_account.id, business_id=business.id
        )
        assert updated.business == business

    def test_archive_and_reactivate(self, test_user, personal_account):
        assert not AccountService.archive_account(test_user, personal_account.id).is_active
        assert AccountService.reactivate_account(test_user, personal_account.id).is_active

    def test_inclusion_flags(self, test_user, personal_account):
        account = AccountService.set_inclusion_flags(
            test_user, personal_account.id, include_in_net_worth=False
        )
        assert account.include_in_budget
        assert not account.include_in_net_worth


class TestBalances:
    def test_balance_is_in_minus_out(self, test_user, personal_account):
        _record(test_user, personal_account, "in", "1000")
        _record(test_user, personal_account, "out", "250.50")
        _record(test_user, personal_account, "out", "49.50")

        result = AccountService.get_account_with_balance(test_user, personal_account.id)
        assert result["balance"] == Decimal("700.00")

    def test_empty_account_balance_is_zero(self, personal_account):
        assert AccountService.compute_account_balance(personal_account) == Decimal("0")

    def test_list_with_balance_by_scope(
        self, test_user, business, personal_account, savings_account, business_account
    ):
        _record(test_user, personal_account, "in", "100")
        _record(test_user, business_account, "in", "900", business_id=business.id)

        personal = AccountService.list_accounts_with_balance(test_user, business_id=None)
        business_rows = AccountService.list_accounts_with_balance(test_user, business_id=business.id)
        everything = AccountService.list_accounts_with_balance(test_user)

        balances = {row["account"].id: row["balance"] for row in personal}
        assert balances == {personal_account.id: Decimal("100.00"), savings_account.id: Decimal("0")}
        assert [row["balance"] for row in business_rows] == [Decimal("900.00")]
        assert len(everything) == 3

    def test_archived_accounts_hidden_unless_requested(self, test_user, personal_account, savings_account):
        AccountService.archive_account(test_user, savings_account.id)

        active = AccountService.list_accounts_with_balance(test_user)
        all_rows = AccountService.list_accounts_with_balance(test_user, include_inactive=True)
        assert [row["account"] for row in active] == [personal_account]
        assert len(all_rows) == 2

    def test_net_worth_respects_flag(self, test_user, personal_account, savings_account):
        _record(test_user, personal_account, "in", "300")
        _record(test_user, savings_account, "in", "700")
        AccountService.set_inclusion_flags(test_user, savings_account.id, include_in_net_worth=False)

        assert AccountService.compute_net_worth(test_user) == Decimal("300.00")
