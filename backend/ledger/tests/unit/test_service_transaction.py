# ledger/tests/unit/test_service_transaction.py
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import IntegrityError

from ledger.exceptions import (
    InvalidInput,
    NotFound,
    OwnershipViolation,
    ScopeCoherenceViolation,
)
from ledger.models import Transaction
from ledger.services.account_service import AccountService
from ledger.services.project_service import ProjectService
from ledger.services.transaction_service import TransactionService


class TestRecordTransaction:
    """Recording single ledger entries."""

    def test_record_personal_expense(self, test_user, personal_account, expense_category):
        tx = TransactionService.record_transaction(
            test_user,
            personal_account.id,
            "out",
            "42.50",
            date(2025, 3, 3),
            "  Weekly   groceries ",
            category_id=expense_category.id,
        )

        assert tx.amount == Decimal("42.50")
        assert tx.direction == "out"
        assert tx.business is None
        assert tx.category == expense_category
        assert tx.type == "other"
        assert tx.label == "Weekly groceries"

    def test_record_business_income(self, test_user, business, business_account):
        tx = TransactionService.record_transaction(
            test_user,
            business_account.id,
            "in",
            Decimal("1200"),
            date(2025, 3, 5),
            "Consulting",
            business_id=business.id,
            type="income",
        )

        assert tx.business == business
        assert tx.type == "income"

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", None, "1000000000000", "0.001", "0.004"])
    def test_rejects_invalid_amount(self, test_user, personal_account, amount):
        with pytest.raises(InvalidInput):
            TransactionService.record_transaction(
                test_user, personal_account.id, "out", amount, date(2025, 3, 3), "Bad"
            )

    def test_rejects_invalid_direction(self, test_user, personal_account):
        with pytest.raises(InvalidInput) as exc_info:
            TransactionService.record_transaction(
                test_user, personal_account.id, "sideways", "10", date(2025, 3, 3), "Bad"
            )
        assert exc_info.value.code == "invalid_direction"

    def test_rejects_empty_label(self, test_user, personal_account):
        with pytest.raises(InvalidInput):
            TransactionService.record_transaction(
                test_user, personal_account.id, "out", "10", date(2025, 3, 3), "   "
            )

    def test_rejects_unknown_links(self, test_user, personal_account):
        with pytest.raises(InvalidInput):
            TransactionService.record_transaction(
                test_user,
                personal_account.id,
                "out",
                "10",
                date(2025, 3, 3),
                "Lunch",
                colour_id=3,
            )

    def test_business_account_in_personal_scope_rejected(self, test_user, business_account):
        with pytest.raises(ScopeCoherenceViolation) as exc_info:
            TransactionService.record_transaction(
                test_user, business_account.id, "out", "10", date(2025, 3, 3), "Lunch"
            )
        assert exc_info.value.code == "account_scope_mismatch"

    def test_personal_account_in_business_scope_rejected(self, test_user, business, personal_account):
        with pytest.raises(ScopeCoherenceViolation):
            TransactionService.record_transaction(
                test_user,
                personal_account.id,
                "out",
                "10",
                date(2025, 3, 3),
                "Hosting",
                business_id=business.id,
            )

    def test_project_scope_must_match(self, test_user, business, personal_account):
        project = ProjectService.create_project(test_user, "Client site", business_id=business.id)

        with pytest.raises(ScopeCoherenceViolation) as exc_info:
            TransactionService.record_transaction(
                test_user,
                personal_account.id,
                "out",
                "10",
                date(2025, 3, 3),
                "Fonts",
                project_id=project.id,
            )
        assert exc_info.value.code == "project_scope_mismatch"

    def test_foreign_account_is_ownership_violation(self, other_user, personal_account):
        with pytest.raises(OwnershipViolation):
            TransactionService.record_transaction(
                other_user, personal_account.id, "out", "10", date(2025, 3, 3), "Theft"
            )

    def test_missing_account_is_not_found(self, test_user):
        with pytest.raises(NotFound) as exc_info:
            TransactionService.record_transaction(
                test_user, 999999, "out", "10", date(2025, 3, 3), "Ghost"
            )
        assert exc_info.value.code == "account_not_found"

    def test_failed_validation_writes_nothing(self, test_user, business_account):
        with pytest.raises(ScopeCoherenceViolation):
            TransactionService.record_transaction(
                test_user, business_account.id, "out", "10", date(2025, 3, 3), "Lunch"
            )
        assert Transaction.objects.count() == 0


class TestRecordTransfer:
    """Internal transfers as paired out/in entries."""

    def test_transfer_creates_two_legs(self, test_user, personal_account, savings_account):
        result = TransactionService.record_transfer(
            test_user, personal_account.id, savings_account.id, "250", date(2025, 3, 1)
        )

        assert result["out"].account == personal_account
        assert result["out"].direction == "out"
        assert result["in"].account == savings_account
        assert result["in"].direction == "in"
        assert result["out"].type == result["in"].type == "transfer"
        assert result["out"].label == "Internal transfer"
        assert AccountService.compute_account_balance(personal_account) == Decimal("-250")
        assert AccountService.compute_account_balance(savings_account) == Decimal("250")

    def test_transfer_legs_follow_account_scope(self, test_user, personal_account, business_account):
        result = TransactionService.record_transfer(
            test_user, business_account.id, personal_account.id, "800", date(2025, 3, 1), "Salary"
        )

        assert result["out"].business_id == business_account.business_id
        assert result["in"].business_id is None
        assert result["in"].label == "Salary"

    def test_same_account_rejected(self, test_user, personal_account):
        with pytest.raises(InvalidInput) as exc_info:
            TransactionService.record_transfer(
                test_user, personal_account.id, personal_account.id, "10", date(2025, 3, 1)
            )
        assert exc_info.value.code == "same_account_transfer"

    def test_foreign_destination_rejected(self, test_user, other_user, personal_account):
        foreign = AccountService.create_account(other_user, "Not mine")

        with pytest.raises(OwnershipViolation):
            TransactionService.record_transfer(
                test_user, personal_account.id, foreign.id, "10", date(2025, 3, 1)
            )
        assert Transaction.objects.count() == 0

    def test_failed_second_leg_rolls_back_first(self, test_user, personal_account, savings_account):
        real_create = Transaction.objects.create
        written = []

        def create_then_fail(**fields):
            if written:
                raise IntegrityError("incoming leg rejected")
            written.append(real_create(**fields))
            return written[-1]

        with patch.object(Transaction.objects, "create", side_effect=create_then_fail):
            with pytest.raises(IntegrityError):
                TransactionService.record_transfer(
                    test_user, personal_account.id, savings_account.id, "250", date(2025, 3, 1)
                )

        assert len(written) == 1
        assert Transaction.objects.count() == 0
        assert AccountService.compute_account_balance(personal_account) == Decimal("0")


class TestUpdateAndDelete:
    @pytest.fixture
    def expense(self, test_user, personal_account):
        return TransactionService.record_transaction(
            test_user, personal_account.id, "out", "30", date(2025, 3, 3), "Cinema"
        )

    def test_partial_update_touches_only_given_fields(self, test_user, expense):
        updated = TransactionService.update_transaction(test_user, expense.id, amount="45.00")

        assert updated.amount == Decimal("45.00")
        assert updated.label == "Cinema"
        assert updated.direction == "out"

    def test_moving_to_business_scope_rechecks_account(self, test_user, business, expense):
        with pytest.raises(ScopeCoherenceViolation):
            TransactionService.update_transaction(test_user, expense.id, business_id=business.id)

    def test_moving_to_business_account_and_scope(self, test_user, business, business_account, expense):
        updated = TransactionService.update_transaction(
            test_user, expense.id, account_id=business_account.id, business_id=business.id
        )
        assert updated.business == business
        assert updated.account == business_account

    def test_unknown_fields_rejected(self, test_user, expense):
        with pytest.raises(InvalidInput):
            TransactionService.update_transaction(test_user, expense.id, mood="happy")

    def test_delete(self, test_user, expense):
        TransactionService.delete_transaction(test_user, expense.id)
        assert not Transaction.objects.filter(pk=expense.pk).exists()

    def test_other_user_cannot_delete(self, other_user, expense):
        with pytest.raises(OwnershipViolation):
            TransactionService.delete_transaction(other_user, expense.id)


class TestListTransactions:
    @pytest.fixture
    def ledger_rows(self, test_user, personal_account, business, business_account, expense_category):
        rows = [
            (personal_account, None, "out", "12.00", date(2025, 1, 10), expense_category.id),
            (personal_account, None, "in", "2000.00", date(2025, 1, 31), None),
            (personal_account, None, "out", "80.00", date(2025, 2, 14), expense_category.id),
            (business_account, business.id, "in", "3000.00", date(2025, 2, 20), None),
        ]
        return [
            TransactionService.record_transaction(
                test_user,
                account.id,
                direction,
                amount,
                when,
                f"Row {index}",
                business_id=business_id,
                category_id=category_id,
            )
            for index, (account, business_id, direction, amount, when, category_id) in enumerate(rows)
        ]

    def test_ordered_by_date(self, test_user, ledger_rows):
        result = TransactionService.list_transactions(test_user)
        assert [tx.date for tx in result] == sorted(tx.date for tx in ledger_rows)

    def test_personal_only(self, test_user, ledger_rows):
        result = TransactionService.list_transactions(test_user, {"business_id": None})
        assert len(result) == 3
        assert all(tx.business_id is None for tx in result)

    def test_business_only(self, test_user, business, ledger_rows):
        result = TransactionService.list_transactions(test_user, {"business_id": business.id})
        assert [tx.amount for tx in result] == [Decimal("3000.00")]

    def test_date_range_and_direction(self, test_user, ledger_rows):
        result = TransactionService.list_transactions(
            test_user,
            {"from_date": date(2025, 1, 15), "to_date": date(2025, 2, 28), "direction": "out"},
        )
        assert [tx.amount for tx in result] == [Decimal("80.00")]

    def test_amount_bounds_and_category(self, test_user, expense_category, ledger_rows):
        result = TransactionService.list_transactions(
            test_user, {"min_amount": "50", "category_id": expense_category.id}
        )
        assert [tx.amount for tx in result] == [Decimal("80.00")]

    def test_limit_and_offset(self, test_user, ledger_rows):
        result = TransactionService.list_transactions(test_user, {"limit": 2, "offset": 1})
        assert [tx.date for tx in result] == [date(2025, 1, 31), date(2025, 2, 14)]

    def test_other_user_sees_nothing(self, other_user, ledger_rows):
        assert TransactionService.list_transactions(other_user) == []

    def test_foreign_business_filter_rejected(self, other_user, business, ledger_rows):
        with pytest.raises(OwnershipViolation):
            TransactionService.list_transactions(other_user, {"business_id": business.id})
