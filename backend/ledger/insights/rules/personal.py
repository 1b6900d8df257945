"""Rules evaluated on the personal scope (savings and cashflow also run per business)."""

from collections import defaultdict
from decimal import Decimal

from django.db.models import Q, Sum

from ...models import Category, Transaction
from ...services.budget_service import BudgetService
from ...services.cashflow_service import CashflowService
from ...services.savings_service import SavingsService
from ...utils.money_utils import HUNDRED, ZERO, quantize
from ...utils.period_utils import add_days, month_bounds, shift_month
from ..base import Insight, InsightRule

LIFESTYLE_KEYWORDS = ("loisir", "resto", "restaurant", "sortie")


class BudgetOverrunRule(InsightRule):
    id = "budget_overrun_current_month"
    scopes = ("personal",)

    WARNING_RATIO = Decimal("1.10")
    CRITICAL_RATIO = Decimal("1.25")

    def evaluate(self, context):
        overview = BudgetService.get_current_personal_overview(context.user, context.reference_date)
        if overview is None:
            return None
        planned = overview["total_planned"]
        actual = overview["total_actual"]
        if planned <= ZERO or actual <= planned * self.WARNING_RATIO:
            return None

        severity = "critical" if actual > planned * self.CRITICAL_RATIO else "warning"
        return Insight(
            id=self.id,
            category="budget",
            severity=severity,
            title="Budget overrun",
            message="Actual spending exceeded the planned budget for the current month.",
            data={
                "budget_id": overview["budget"].id,
                "total_planned": planned,
                "total_actual": actual,
                "variance": overview["total_variance"],
            },
        )


class SavingsScheduleRule(InsightRule):
    """
    Four independent checks per active goal:

    - target within 30 days and progress below 10%
    - target within 60 days and progress below 50%
    - progress trailing linear progress since creation by over 20 points
    - target reached but goal not marked completed
    """

    id = "savings_schedule"
    scopes = ("personal", "business")

    def evaluate(self, context):
        today = context.reference_date
        soon = add_days(today, 30)
        near = add_days(today, 60)
        insights = []

        for goal in SavingsService.list_goals(context.user, context.business_id):
            target = goal.target_amount
            progress = goal.current_amount / target if target > ZERO else ZERO
            base = {"goal_id": goal.id, "progress": quantize(progress * HUNDRED)}

            if goal.target_date and goal.target_date <= soon and progress < Decimal("0.1"):
                insights.append(
                    Insight(
                        id="savings-behind-schedule",
                        category="savings",
                        severity="warning",
                        title="Savings goal at risk",
                        message=f'Goal "{goal.name}" is far behind schedule.',
                        data={**base, "target_date": goal.target_date},
                    )
                )

            if goal.target_date and goal.target_date <= near and progress < Decimal("0.5"):
                insights.append(
                    Insight(
                        id="savings-behind-schedule-near",
                        category="savings",
                        severity="warning",
                        title="Savings goal behind schedule",
                        message=f'Goal "{goal.name}" is behind the expected pace.',
                        data={**base, "target_date": goal.target_date},
                    )
                )

            expected = self._expected_progress(goal, today)
            if expected > ZERO and progress + Decimal("0.2") < expected:
                insights.append(
                    Insight(
                        id="savings-progress-lagging",
                        category="savings",
                        severity="warning",
                        title="Savings progress is lagging",
                        message=f'Goal "{goal.name}" is behind its theoretical progress.',
                        data={**base, "expected_progress": quantize(expected * HUNDRED)},
                    )
                )

            if progress >= 1 and goal.status != "completed":
                insights.append(
                    Insight(
                        id="savings-complete-pending",
                        category="savings",
                        severity="info",
                        title="Savings goal reached",
                        message=f'Goal "{goal.name}" appears completed. Consider marking it as completed.',
                        data=base,
                    )
                )
        return insights

    @staticmethod
    def _expected_progress(goal, today):
        if not goal.target_date or not goal.created_at:
            return ZERO
        start = goal.created_at.date()
        total = max(1, (goal.target_date - start).days)
        elapsed = (today - start).days
        if elapsed <= 0:
            return ZERO
        return min(Decimal(1), Decimal(elapsed) / Decimal(total))


class LifestyleSpendIncreaseRule(InsightRule):
    """This month's leisure and restaurant spend against the previous three months."""

    id = "personal-lifestyle-spend-increase"
    scopes = ("personal",)

    def evaluate(self, context):
        keyword_filter = Q()
        for keyword in LIFESTYLE_KEYWORDS:
            keyword_filter |= Q(name__icontains=keyword)
        categories = list(
            Category.objects.filter(user=context.user, kind="expense").filter(keyword_filter)
        )
        if not categories:
            return None

        year, month = context.reference_date.year, context.reference_date.month
        month_start, month_end = month_bounds(year, month)
        history_start = month_bounds(*shift_month(year, month, -3))[0]
        history_end = add_days(month_start, -1)

        spend = Transaction.objects.filter(
            user=context.user,
            business__isnull=True,
            direction="out",
            category__in=categories,
        )
        current = spend.filter(date__gte=month_start, date__lte=month_end).aggregate(
            total=Sum("amount")
        )["total"] or ZERO

        buckets = defaultdict(lambda: ZERO)
        for day, amount in spend.filter(date__gte=history_start, date__lte=history_end).values_list(
            "date", "amount"
        ):
            buckets[(day.year, day.month)] += amount
        if len(buckets) < 2:
            return None

        average = sum(buckets.values(), ZERO) / len(buckets)
        if average == ZERO:
            return None
        increase_pct = (current - average) / average * HUNDRED
        if increase_pct <= 20:
            return None

        return Insight(
            id=self.id,
            category="spending",
            severity="critical" if increase_pct > 50 else "warning",
            title="Leisure and restaurant spending increase",
            message="Leisure and restaurant spending rose sharply this month.",
            data={
                "year": year,
                "month": month,
                "categories": [category.name for category in categories],
                "current_amount": current,
                "previous_average": quantize(average),
                "increase_pct": quantize(increase_pct),
            },
        )


class SubscriptionReviewRule(InsightRule):
    """Small expenses repeating under the same label over the last four months."""

    id = "personal-subscription-review"
    scopes = ("personal",)

    LABEL_PREFIX = 40
    MIN_OCCURRENCES = 3
    MIN_AVERAGE = Decimal("1")
    MAX_AVERAGE = Decimal("50")

    def evaluate(self, context):
        today = context.reference_date
        cutoff_year, cutoff_month = shift_month(today.year, today.month, -4)
        cutoff_day = min(today.day, month_bounds(cutoff_year, cutoff_month)[1].day)
        cutoff = today.replace(year=cutoff_year, month=cutoff_month, day=cutoff_day)

        grouped = defaultdict(list)
        rows = Transaction.objects.filter(
            user=context.user,
            business__isnull=True,
            direction="out",
            date__gte=cutoff,
            date__lte=today,
        ).values_list("label", "amount")
        for label, amount in rows:
            grouped[label.casefold()[: self.LABEL_PREFIX]].append(amount)

        candidates = []
        for label, amounts in sorted(grouped.items()):
            average = sum(amounts, ZERO) / len(amounts)
            if len(amounts) >= self.MIN_OCCURRENCES and self.MIN_AVERAGE < average < self.MAX_AVERAGE:
                candidates.append(
                    {"label": label, "average_amount": quantize(average), "count": len(amounts)}
                )
        if not candidates:
            return None

        return Insight(
            id=self.id,
            category="spending",
            severity="info",
            title="Subscriptions worth reviewing",
            message="Some recurring subscriptions may deserve a review.",
            data={"subscriptions": candidates},
        )


class CashflowRiskRule(InsightRule):
    id = "cashflow_negative_projection"
    scopes = ("personal", "business")

    HORIZON_DAYS = 60

    def evaluate(self, context):
        projection = CashflowService.project_cashflow(
            context.user,
            context.reference_date,
            business_id=context.business_id,
            horizon_days=self.HORIZON_DAYS,
        )
        first_negative = next((p for p in projection["points"] if p["balance"] < ZERO), None)
        if first_negative is None:
            return None
        return Insight(
            id=self.id,
            category="cashflow",
            severity="critical",
            title="Cashflow risk detected",
            message="Projected cashflow turns negative in the coming weeks.",
            data={
                "horizon_days": projection["horizon_days"],
                "first_negative_date": first_negative["date"],
                "projected_balance": first_negative["balance"],
            },
        )
