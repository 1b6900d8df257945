# ledger/tests/unit/test_service_budget.py
from datetime import date
from decimal import Decimal

import pytest

from ledger.exceptions import InvalidInput, OwnershipViolation, StateConflict
from ledger.services.budget_service import BudgetService
from ledger.services.catalog_service import CatalogService
from ledger.services.transaction_service import TransactionService


@pytest.fixture
def march_budget(test_user):
    return BudgetService.create_budget(test_user, "March", {"monthly": (2025, 3)})


def _spend(user, account, category, amount, when, direction="out", business_id=None):
    return TransactionService.record_transaction(
        user,
        account.id,
        direction,
        amount,
        when,
        "Spending",
        business_id=business_id,
        category_id=category.id,
    )


class TestCreateBudget:
    def test_monthly_period(self, march_budget):
        assert march_budget.period_type == "monthly"
        assert (march_budget.year, march_budget.month) == (2025, 3)
        assert march_budget.start_date is None
        assert march_budget.status == "active"
        assert BudgetService.period_bounds(march_budget) == (date(2025, 3, 1), date(2025, 3, 31))

    def test_custom_period(self, test_user):
        budget = BudgetService.create_budget(
            test_user, "Summer", {"custom": (date(2025, 6, 15), date(2025, 9, 15))}
        )
        assert budget.period_type == "custom"
        assert budget.year is None
        assert BudgetService.period_bounds(budget) == (date(2025, 6, 15), date(2025, 9, 15))

    @pytest.mark.parametrize(
        "period",
        [
            {"monthly": (2025, 13)},
            {"custom": (date(2025, 9, 1), date(2025, 1, 1))},
            {"custom": (None, date(2025, 1, 1))},
            {"weekly": (2025, 1)},
            {"monthly": (2025, 1), "custom": (date(2025, 1, 1), date(2025, 1, 2))},
            "2025-03",
        ],
    )
    def test_invalid_period(self, test_user, period):
        with pytest.raises(InvalidInput) as exc_info:
            BudgetService.create_budget(test_user, "Bad", period)
        assert exc_info.value.code == "invalid_period"

    def test_negative_limit_rejected(self, test_user):
        with pytest.raises(InvalidInput):
            BudgetService.create_budget(test_user, "Bad", {"monthly": (2025, 1)}, spending_limit="-1")

    def test_version_must_be_positive(self, test_user):
        with pytest.raises(InvalidInput):
            BudgetService.create_budget(test_user, "Bad", {"monthly": (2025, 1)}, version_no=0)


class TestBudgetLines:
    def test_add_line(self, test_user, march_budget, expense_category):
        line = BudgetService.add_budget_line(
            test_user, march_budget.id, expense_category.id, spending_limit="400", priority="essential"
        )
        assert line.spending_limit == Decimal("400.00")
        assert line.priority == "essential"

    def test_duplicate_category_conflicts(self, test_user, march_budget, expense_category):
        BudgetService.add_budget_line(test_user, march_budget.id, expense_category.id, "400")

        with pytest.raises(StateConflict) as exc_info:
            BudgetService.add_budget_line(test_user, march_budget.id, expense_category.id, "100")
        assert exc_info.value.code == "duplicate_budget_line"

    def test_invalid_priority(self, test_user, march_budget, expense_category):
        with pytest.raises(InvalidInput):
            BudgetService.add_budget_line(
                test_user, march_budget.id, expense_category.id, "100", priority="urgent"
            )

    def test_foreign_category_rejected(self, test_user, other_user, march_budget):
        foreign = CatalogService.create_category(other_user, "Theirs")
        with pytest.raises(OwnershipViolation):
            BudgetService.add_budget_line(test_user, march_budget.id, foreign.id, "100")

    def test_other_user_cannot_edit_line(self, test_user, other_user, march_budget, expense_category):
        line = BudgetService.add_budget_line(test_user, march_budget.id, expense_category.id, "100")
        with pytest.raises(OwnershipViolation):
            BudgetService.update_budget_line(other_user, line.id, spending_limit="1")


class TestExecution:
    def test_actual_is_signed_sum_in_period(
        self, test_user, personal_account, march_budget, expense_category, leisure_category
    ):
        BudgetService.add_budget_line(test_user, march_budget.id, expense_category.id, "400")
        BudgetService.add_budget_line(test_user, march_budget.id, leisure_category.id, "100")
        _spend(test_user, personal_account, expense_category, "150", date(2025, 3, 2))
        _spend(test_user, personal_account, expense_category, "100", date(2025, 3, 31))
        _spend(test_user, personal_account, expense_category, "20", date(2025, 3, 20), direction="in")
        # outside the period
        _spend(test_user, personal_account, expense_category, "999", date(2025, 4, 1))

        result = BudgetService.compute_execution(test_user, march_budget.id)
        rows = {row["line"].category_id: row for row in result["lines"]}

        groceries = rows[expense_category.id]
        assert groceries["planned"] == Decimal("400.00")
        assert groceries["actual"] == Decimal("-230.00")
        assert groceries["variance"] == Decimal("-630.00")
        assert rows[leisure_category.id]["actual"] == Decimal("0")
        assert result["total_planned"] == Decimal("500.00")
        assert result["period_start"] == date(2025, 3, 1)
        assert result["period_end"] == date(2025, 3, 31)

    def test_business_transactions_not_counted_in_personal_budget(
        self, test_user, business, business_account, march_budget
    ):
        category = CatalogService.create_category(test_user, "Software")
        BudgetService.add_budget_line(test_user, march_budget.id, category.id, "50")
        _spend(test_user, business_account, category, "80", date(2025, 3, 5), business_id=business.id)

        result = BudgetService.compute_execution(test_user, march_budget.id)
        assert result["lines"][0]["actual"] == Decimal("0")

    def test_execution_is_repeatable(self, test_user, personal_account, march_budget, expense_category):
        BudgetService.add_budget_line(test_user, march_budget.id, expense_category.id, "400")
        _spend(test_user, personal_account, expense_category, "150", date(2025, 3, 2))

        first = BudgetService.compute_execution(test_user, march_budget.id)
        second = BudgetService.compute_execution(test_user, march_budget.id)
        assert first["total_actual"] == second["total_actual"] == Decimal("-150.00")

    def test_other_user_cannot_compute(self, other_user, march_budget):
        with pytest.raises(OwnershipViolation):
            BudgetService.compute_execution(other_user, march_budget.id)


class TestCurrentOverview:
    def test_none_without_budget(self, test_user):
        assert BudgetService.get_current_personal_overview(test_user, date(2025, 3, 15)) is None

    def test_draft_budget_ignored(self, test_user):
        BudgetService.create_budget(test_user, "Draft", {"monthly": (2025, 3)}, status="draft")
        assert BudgetService.get_current_personal_overview(test_user, date(2025, 3, 15)) is None

    def test_counts_outflows_only(self, test_user, personal_account, march_budget, expense_category):
        BudgetService.add_budget_line(test_user, march_budget.id, expense_category.id, "400")
        _spend(test_user, personal_account, expense_category, "150", date(2025, 3, 2))
        _spend(test_user, personal_account, expense_category, "40", date(2025, 3, 4), direction="in")

        overview = BudgetService.get_current_personal_overview(test_user, date(2025, 3, 15))

        assert overview["budget"] == march_budget
        line = overview["lines"][0]
        assert line["category_name"] == expense_category.name
        assert line["actual"] == Decimal("150.00")
        assert line["variance"] == Decimal("-250.00")
        assert overview["total_variance"] == Decimal("-250.00")

    def test_latest_version_wins(self, test_user, march_budget):
        newer = BudgetService.create_budget(test_user, "March v2", {"monthly": (2025, 3)}, version_no=2)
        overview = BudgetService.get_current_personal_overview(test_user, date(2025, 3, 1))
        assert overview["budget"] == newer
