"""
Budget engine: period-scoped spending limits and their execution.

Execution is never stored. ``compute_execution`` replays the ledger over
the budget's period each time it is called, so two calls without an
intervening write return identical results.
"""

import logging
from collections import defaultdict

from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.db.models import Sum

from ..exceptions import InvalidInput, NotFound, OwnershipViolation, StateConflict
from ..managers import UNSET
from ..models import Budget, BudgetLine, Transaction
from ..utils.money_utils import ZERO, normalize_label, parse_percentage, quantize, to_decimal
from ..utils.period_utils import month_bounds
from . import ownership

logger = logging.getLogger(__name__)

SCENARIOS = {choice for choice, _ in Budget.SCENARIOS}
STATUSES = {choice for choice, _ in Budget.STATUS_CHOICES}
PRIORITIES = {choice for choice, _ in BudgetLine.PRIORITY_CHOICES}


def _parse_limit(value, field="spending_limit"):
    if value is None:
        return None
    limit = to_decimal(value, field)
    if limit < ZERO:
        raise InvalidInput(f"{field} must be >= 0", code="invalid_spending_limit")
    return quantize(limit)


def _parse_period(period):
    """
    ``{"monthly": (year, month)}`` or ``{"custom": (start, end)}`` to model
    fields.
    """
    if not isinstance(period, dict) or len(period) != 1:
        raise InvalidInput("period must be either monthly or custom", code="invalid_period")
    if "monthly" in period:
        year, month = period["monthly"]
        try:
            year, month = int(year), int(month)
        except (TypeError, ValueError):
            raise InvalidInput("year and month must be integers", code="invalid_period")
        if not 1 <= month <= 12:
            raise InvalidInput("Month must be between 1 and 12", code="invalid_period")
        return {
            "period_type": "monthly",
            "year": year,
            "month": month,
            "start_date": None,
            "end_date": None,
        }
    if "custom" in period:
        start, end = period["custom"]
        if start is None or end is None:
            raise InvalidInput("Custom budgets require start and end dates", code="invalid_period")
        if start > end:
            raise InvalidInput("start date must be before or equal to end date", code="invalid_period")
        return {
            "period_type": "custom",
            "year": None,
            "month": None,
            "start_date": start,
            "end_date": end,
        }
    raise InvalidInput("period must be either monthly or custom", code="invalid_period")


class BudgetService:
    """Budgets, budget lines and execution against the ledger."""

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    @staticmethod
    @db_transaction.atomic
    def create_budget(
        user,
        name,
        period,
        business_id=None,
        spending_limit=None,
        scenario="base",
        status="active",
        version_no=1,
    ):
        name = normalize_label(name)
        if not name:
            raise InvalidInput("Budget name is required", code="invalid_name")
        if scenario not in SCENARIOS:
            raise InvalidInput(f"Invalid scenario: {scenario}", code="invalid_scenario")
        if status not in STATUSES:
            raise InvalidInput(f"Invalid status: {status}", code="invalid_status")
        if int(version_no) < 1:
            raise InvalidInput("version_no must be >= 1", code="invalid_version")

        business = ownership.resolve_scope(user, business_id)
        budget = Budget.objects.create(
            user=user,
            business=business,
            name=name,
            scenario=scenario,
            status=status,
            version_no=int(version_no),
            spending_limit=_parse_limit(spending_limit),
            **_parse_period(period),
        )
        logger.info(
            "Budget created",
            extra={
                "user_id": user.id,
                "budget_id": budget.id,
                "business_id": business_id,
                "period_type": budget.period_type,
                "action": "budget_created",
                "component": "BudgetService",
            },
        )
        return budget

    @staticmethod
    def update_budget(user, budget_id, **changes):
        budget = ownership.assert_budget_owned_by_user(budget_id, user)
        if "name" in changes:
            name = normalize_label(changes["name"])
            if not name:
                raise InvalidInput("Budget name is required", code="invalid_name")
            budget.name = name
        if "period" in changes:
            for field, value in _parse_period(changes["period"]).items():
                setattr(budget, field, value)
        if "spending_limit" in changes:
            budget.spending_limit = _parse_limit(changes["spending_limit"])
        if "scenario" in changes:
            if changes["scenario"] not in SCENARIOS:
                raise InvalidInput("Invalid scenario", code="invalid_scenario")
            budget.scenario = changes["scenario"]
        if "status" in changes:
            if changes["status"] not in STATUSES:
                raise InvalidInput("Invalid status", code="invalid_status")
            budget.status = changes["status"]
        if "version_no" in changes:
            if int(changes["version_no"]) < 1:
                raise InvalidInput("version_no must be >= 1", code="invalid_version")
            budget.version_no = int(changes["version_no"])
        budget.save()
        return budget

    @staticmethod
    def archive_budget(user, budget_id):
        return BudgetService.update_budget(user, budget_id, status="archived")

    @staticmethod
    def reactivate_budget(user, budget_id):
        return BudgetService.update_budget(user, budget_id, status="active")

    @staticmethod
    def delete_budget(user, budget_id):
        budget = ownership.assert_budget_owned_by_user(budget_id, user)
        budget.delete()
        logger.info(
            "Budget deleted",
            extra={
                "user_id": user.id,
                "budget_id": budget_id,
                "action": "budget_deleted",
                "component": "BudgetService",
            },
        )

    @staticmethod
    def get_budget(user, budget_id):
        return ownership.assert_budget_owned_by_user(budget_id, user)

    @staticmethod
    def list_budgets(user, business_id=UNSET, status=None, year=None):
        business = ownership.resolve_scope_filter(user, business_id)
        queryset = Budget.objects.for_user(user, business).prefetch_related("lines")
        if status:
            queryset = queryset.filter(status=status)
        if year:
            queryset = queryset.filter(year=year)
        return list(queryset)

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    @staticmethod
    def _assert_line_owned(user, line_id):
        try:
            line = BudgetLine.objects.select_related("budget", "category").get(pk=line_id)
        except (BudgetLine.DoesNotExist, ValueError, TypeError):
            raise NotFound("Budget line not found", code="budget_line_not_found")
        if line.budget.user_id != user.id:
            raise OwnershipViolation(
                "Budget line does not belong to the current user",
                code="budget_line_ownership_violation",
            )
        return line

    @staticmethod
    def add_budget_line(
        user,
        budget_id,
        category_id,
        spending_limit=None,
        priority="comfort",
        alert_threshold_pct=None,
    ):
        budget = ownership.assert_budget_owned_by_user(budget_id, user)
        category = ownership.assert_category_owned_by_user(category_id, user)
        if priority not in PRIORITIES:
            raise InvalidInput(f"Invalid budget line priority: {priority}", code="invalid_priority")
        limit = _parse_limit(spending_limit)
        threshold = parse_percentage(alert_threshold_pct, "alert_threshold_pct")

        if BudgetLine.objects.filter(budget=budget, category=category).exists():
            raise StateConflict(
                "This budget already has a line for the category",
                code="duplicate_budget_line",
                budget_id=budget.id,
                category_id=category.id,
            )
        try:
            with db_transaction.atomic():
                line = BudgetLine.objects.create(
                    budget=budget,
                    category=category,
                    spending_limit=limit,
                    priority=priority,
                    alert_threshold_pct=threshold,
                )
        except IntegrityError:
            # concurrent insert of the same (budget, category)
            raise StateConflict(
                "This budget already has a line for the category", code="duplicate_budget_line"
            )

        logger.info(
            "Budget line added",
            extra={
                "user_id": user.id,
                "budget_id": budget.id,
                "budget_line_id": line.id,
                "category_id": category.id,
                "action": "budget_line_added",
                "component": "BudgetService",
            },
        )
        return line

    @staticmethod
    def update_budget_line(user, line_id, **changes):
        line = BudgetService._assert_line_owned(user, line_id)
        if "spending_limit" in changes:
            line.spending_limit = _parse_limit(changes["spending_limit"])
        if "priority" in changes:
            if changes["priority"] not in PRIORITIES:
                raise InvalidInput("Invalid budget line priority", code="invalid_priority")
            line.priority = changes["priority"]
        if "alert_threshold_pct" in changes:
            line.alert_threshold_pct = parse_percentage(
                changes["alert_threshold_pct"], "alert_threshold_pct"
            )
        line.save()
        return line

    @staticmethod
    def delete_budget_line(user, line_id):
        line = BudgetService._assert_line_owned(user, line_id)
        line.delete()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @staticmethod
    def period_bounds(budget):
        if budget.period_type == "monthly":
            return month_bounds(budget.year, budget.month)
        return budget.start_date, budget.end_date

    @staticmethod
    def _category_totals(user, business_id, start, end, category_ids):
        """``{category_id: {"in": Decimal, "out": Decimal}}`` for the range."""
        rows = (
            Transaction.objects.filter(
                user=user,
                business_id=business_id,
                date__gte=start,
                date__lte=end,
                category_id__in=category_ids,
            )
            .values("category_id", "direction")
            .annotate(total=Sum("amount"))
            .order_by()
        )
        totals = defaultdict(lambda: {"in": ZERO, "out": ZERO})
        for row in rows:
            totals[row["category_id"]][row["direction"]] += row["total"] or ZERO
        return totals

    @staticmethod
    def compute_execution(user, budget_id):
        """
        Planned versus actual per line.

        ``actual`` is the signed sum (in positive, out negative) of the
        budget-scope transactions in the period for the line's category;
        ``variance = actual - planned``.
        """
        budget = ownership.assert_budget_owned_by_user(budget_id, user)
        lines = list(budget.lines.select_related("category"))
        start, end = BudgetService.period_bounds(budget)
        totals = BudgetService._category_totals(
            user, budget.business_id, start, end, [line.category_id for line in lines]
        )

        execution = []
        for line in lines:
            planned = line.spending_limit if line.spending_limit is not None else ZERO
            bucket = totals.get(line.category_id, {"in": ZERO, "out": ZERO})
            actual = bucket["in"] - bucket["out"]
            execution.append(
                {
                    "line": line,
                    "planned": planned,
                    "actual": actual,
                    "variance": actual - planned,
                }
            )

        total_planned = sum((row["planned"] for row in execution), ZERO)
        total_actual = sum((row["actual"] for row in execution), ZERO)
        return {
            "budget": budget,
            "period_start": start,
            "period_end": end,
            "lines": execution,
            "total_planned": total_planned,
            "total_actual": total_actual,
            "total_variance": total_actual - total_planned,
        }

    @staticmethod
    def resolve_current_personal_budget(user, reference_date):
        """
        Active monthly personal budget covering ``reference_date``'s month,
        or ``None`` when the user has not configured one.
        """
        return (
            Budget.objects.filter(
                user=user,
                business__isnull=True,
                period_type="monthly",
                year=reference_date.year,
                month=reference_date.month,
                status="active",
            )
            .order_by("-version_no", "-id")
            .first()
        )

    @staticmethod
    def get_current_personal_overview(user, reference_date):
        """
        Spending view of the current personal budget: only ``out`` amounts
        count as actual. Returns ``None`` when there is no such budget.
        """
        budget = BudgetService.resolve_current_personal_budget(user, reference_date)
        if budget is None:
            return None

        lines = list(budget.lines.select_related("category"))
        start, end = BudgetService.period_bounds(budget)
        totals = BudgetService._category_totals(
            user, None, start, end, [line.category_id for line in lines]
        )

        by_category = []
        for line in lines:
            planned = line.spending_limit if line.spending_limit is not None else ZERO
            actual = totals.get(line.category_id, {"out": ZERO})["out"]
            by_category.append(
                {
                    "category_id": line.category_id,
                    "category_name": line.category.name,
                    "planned": planned,
                    "actual": actual,
                    "variance": actual - planned,
                }
            )

        total_planned = sum((row["planned"] for row in by_category), ZERO)
        total_actual = sum((row["actual"] for row in by_category), ZERO)
        return {
            "budget": budget,
            "lines": by_category,
            "total_planned": total_planned,
            "total_actual": total_actual,
            "total_variance": total_actual - total_planned,
        }
