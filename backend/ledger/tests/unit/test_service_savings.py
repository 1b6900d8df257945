# ledger/tests/unit/test_service_savings.py
from datetime import date
from decimal import Decimal

import pytest

from ledger.exceptions import InvalidInput, OwnershipViolation, ScopeCoherenceViolation
from ledger.services.savings_service import SavingsService


@pytest.fixture
def emergency_fund(test_user, savings_account):
    return SavingsService.create_goal(
        test_user,
        "Emergency fund",
        "3000",
        target_date=date(2025, 12, 31),
        current_amount="750",
        account_id=savings_account.id,
    )


class TestCreateGoal:
    def test_create(self, emergency_fund, savings_account):
        assert emergency_fund.target_amount == Decimal("3000.00")
        assert emergency_fund.current_amount == Decimal("750.00")
        assert emergency_fund.account == savings_account
        assert emergency_fund.status == "active"
        assert emergency_fund.business is None

    def test_current_cannot_exceed_target(self, test_user):
        with pytest.raises(InvalidInput) as exc_info:
            SavingsService.create_goal(test_user, "Bike", "500", current_amount="600")
        assert exc_info.value.code == "invalid_current_amount"

    def test_target_must_be_positive(self, test_user):
        with pytest.raises(InvalidInput):
            SavingsService.create_goal(test_user, "Nothing", "0")

    def test_personal_goal_needs_personal_account(self, test_user, business_account):
        with pytest.raises(ScopeCoherenceViolation) as exc_info:
            SavingsService.create_goal(test_user, "Mixed", "100", account_id=business_account.id)
        assert exc_info.value.code == "savings_account_scope_mismatch"

    def test_business_goal_needs_business_account(self, test_user, business, personal_account):
        with pytest.raises(ScopeCoherenceViolation):
            SavingsService.create_goal(
                test_user, "Tax reserve", "5000", business_id=business.id, account_id=personal_account.id
            )

    def test_business_goal(self, test_user, business, business_account):
        goal = SavingsService.create_goal(
            test_user, "Tax reserve", "5000", business_id=business.id, account_id=business_account.id
        )
        assert goal.business == business


class TestLifecycle:
    def test_status_transitions(self, test_user, emergency_fund):
        assert SavingsService.pause_goal(test_user, emergency_fund.id).status == "paused"
        assert SavingsService.reactivate_goal(test_user, emergency_fund.id).status == "active"
        assert SavingsService.complete_goal(test_user, emergency_fund.id).status == "completed"
        assert SavingsService.archive_goal(test_user, emergency_fund.id).status == "cancelled"

    def test_list_hides_finished_goals(self, test_user, emergency_fund):
        other = SavingsService.create_goal(test_user, "Holiday", "800")
        SavingsService.complete_goal(test_user, other.id)

        assert SavingsService.list_goals(test_user) == [emergency_fund]
        assert len(SavingsService.list_goals(test_user, include_inactive=True)) == 2

    def test_lowering_target_below_current_rejected(self, test_user, emergency_fund):
        with pytest.raises(InvalidInput):
            SavingsService.update_goal(test_user, emergency_fund.id, target_amount="500")

    def test_other_user_cannot_touch_goal(self, other_user, emergency_fund):
        with pytest.raises(OwnershipViolation):
            SavingsService.pause_goal(other_user, emergency_fund.id)


class TestOverview:
    def test_progress(self, emergency_fund):
        overview = SavingsService.goal_overview(emergency_fund)
        assert overview["progress_pct"] == Decimal("25.00")
        assert overview["remaining"] == Decimal("2250.00")
        assert overview["is_completed"] is False

    def test_reached_target_is_completed(self, test_user, emergency_fund):
        goal = SavingsService.update_goal(test_user, emergency_fund.id, current_amount="3000")
        overview = SavingsService.goal_overview(goal)
        assert overview["progress_pct"] == Decimal("100.00")
        assert overview["remaining"] == Decimal("0")
        assert overview["is_completed"] is True

    def test_list_overview_includes_inactive(self, test_user, emergency_fund):
        SavingsService.archive_goal(test_user, emergency_fund.id)
        assert [row["goal"].id for row in SavingsService.list_overview(test_user)] == [emergency_fund.id]
