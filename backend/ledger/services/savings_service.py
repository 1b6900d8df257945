"""
Savings goals: targets, optional funding account and status lifecycle
(``active`` -> ``paused`` | ``completed`` | ``cancelled``).
"""

import logging

from django.db import transaction as db_transaction

from ..exceptions import InvalidInput, ScopeCoherenceViolation
from ..managers import UNSET
from ..models import SavingsGoal
from ..utils.money_utils import HUNDRED, ZERO, normalize_label, parse_positive_amount, quantize, to_decimal
from . import ownership

logger = logging.getLogger(__name__)

PRIORITIES = {choice for choice, _ in SavingsGoal.PRIORITY_CHOICES}


def _parse_current(value, target):
    current = quantize(to_decimal(value if value is not None else ZERO, "current_amount"))
    if current < ZERO:
        raise InvalidInput("Current amount must be >= 0", code="invalid_current_amount")
    if current > target:
        raise InvalidInput(
            "Current amount cannot exceed target amount", code="invalid_current_amount"
        )
    return current


def _resolve_account(user, account_id, business):
    """Personal goals need a personal account, business goals an account of that business."""
    if account_id is None:
        return None
    account = ownership.assert_account_owned_by_user(account_id, user)
    expected = business.id if business is not None else None
    if account.business_id != expected:
        raise ScopeCoherenceViolation(
            "Linked account must be personal"
            if expected is None
            else "Linked account must belong to the provided business",
            code="savings_account_scope_mismatch",
            account_id=account.id,
        )
    return account


class SavingsService:
    @staticmethod
    @db_transaction.atomic
    def create_goal(
        user,
        name,
        target_amount,
        target_date=None,
        current_amount=None,
        account_id=None,
        business_id=None,
        priority="normal",
    ):
        name = normalize_label(name)
        if not name:
            raise InvalidInput("Savings goal name is required", code="invalid_name")
        if priority not in PRIORITIES:
            raise InvalidInput("Invalid savings goal priority", code="invalid_priority")
        target = parse_positive_amount(target_amount, "target_amount")
        current = _parse_current(current_amount, target)

        business = ownership.resolve_scope(user, business_id)
        account = _resolve_account(user, account_id, business)

        goal = SavingsGoal.objects.create(
            user=user,
            business=business,
            account=account,
            name=name,
            target_amount=target,
            current_amount=current,
            target_date=target_date,
            priority=priority,
        )
        logger.info(
            "Savings goal created",
            extra={
                "user_id": user.id,
                "goal_id": goal.id,
                "business_id": business_id,
                "action": "savings_goal_created",
                "component": "SavingsService",
            },
        )
        return goal

    @staticmethod
    @db_transaction.atomic
    def update_goal(user, goal_id, **changes):
        goal = ownership.assert_savings_goal_owned_by_user(goal_id, user)

        if "name" in changes:
            name = normalize_label(changes["name"])
            if not name:
                raise InvalidInput("Savings goal name is required", code="invalid_name")
            goal.name = name
        if "priority" in changes:
            if changes["priority"] not in PRIORITIES:
                raise InvalidInput("Invalid savings goal priority", code="invalid_priority")
            goal.priority = changes["priority"]
        if "target_amount" in changes:
            goal.target_amount = parse_positive_amount(changes["target_amount"], "target_amount")
        if "current_amount" in changes or "target_amount" in changes:
            goal.current_amount = _parse_current(
                changes.get("current_amount", goal.current_amount), goal.target_amount
            )
        if "target_date" in changes:
            goal.target_date = changes["target_date"]
        if "account_id" in changes:
            goal.account = _resolve_account(user, changes["account_id"], goal.business)
        if "status" in changes:
            if changes["status"] not in {choice for choice, _ in SavingsGoal.STATUS_CHOICES}:
                raise InvalidInput("Invalid savings goal status", code="invalid_status")
            goal.status = changes["status"]

        goal.save()
        return goal

    @staticmethod
    def pause_goal(user, goal_id):
        return SavingsService.update_goal(user, goal_id, status="paused")

    @staticmethod
    def complete_goal(user, goal_id):
        return SavingsService.update_goal(user, goal_id, status="completed")

    @staticmethod
    def archive_goal(user, goal_id):
        return SavingsService.update_goal(user, goal_id, status="cancelled")

    @staticmethod
    def reactivate_goal(user, goal_id):
        return SavingsService.update_goal(user, goal_id, status="active")

    @staticmethod
    def delete_goal(user, goal_id):
        ownership.assert_savings_goal_owned_by_user(goal_id, user).delete()

    @staticmethod
    def get_goal(user, goal_id):
        return ownership.assert_savings_goal_owned_by_user(goal_id, user)

    @staticmethod
    def list_goals(user, business_id=UNSET, include_inactive=False):
        business = ownership.resolve_scope_filter(user, business_id)
        queryset = SavingsGoal.objects.for_user(user, business).select_related("account")
        if not include_inactive:
            queryset = queryset.filter(status__in=("active", "paused"))
        return list(queryset)

    @staticmethod
    def goal_overview(goal):
        target = goal.target_amount
        current = goal.current_amount
        progress_pct = quantize(current * HUNDRED / target) if target > ZERO else ZERO
        return {
            "goal": goal,
            "progress_pct": progress_pct,
            "remaining": max(target - current, ZERO),
            "is_completed": goal.status == "completed" or current >= target,
        }

    @staticmethod
    def list_overview(user, business_id=UNSET):
        return [
            SavingsService.goal_overview(goal)
            for goal in SavingsService.list_goals(user, business_id, include_inactive=True)
        ]
