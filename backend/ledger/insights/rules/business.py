"""Rules evaluated for one business."""

from decimal import Decimal

from django.db.models import Sum

from ...models import BusinessSettings, Invoice, Project, Transaction
from ...services.project_service import ProjectService
from ...utils.money_utils import HUNDRED, ZERO, quantize
from ...utils.period_utils import month_bounds
from ..base import Insight, InsightRule


class LateInvoicesRule(InsightRule):
    """Open invoices past their due date; critical above 3 invoices or 2000 outstanding."""

    id = "business-late-invoices"
    scopes = ("business",)

    CRITICAL_COUNT = 3
    CRITICAL_AMOUNT = Decimal("2000")

    def evaluate(self, context):
        late = list(
            Invoice.objects.filter(
                business=context.business,
                status__in=Invoice.OPEN_STATUSES,
                due_date__lt=context.reference_date,
            ).only("id", "number", "total_ttc", "amount_paid_cached")
        )
        if not late:
            return None

        outstanding = sum((invoice.amount_remaining for invoice in late), ZERO)
        critical = len(late) > self.CRITICAL_COUNT or outstanding > self.CRITICAL_AMOUNT
        return Insight(
            id=self.id,
            category="cashflow",
            severity="critical" if critical else "warning",
            title="Late invoices",
            message="Some invoices are past their due date.",
            data={
                "business_id": context.business_id,
                "count": len(late),
                "total_late_amount": outstanding,
                "invoice_ids": [invoice.id for invoice in late],
            },
        )


class LowMarginProjectsRule(InsightRule):
    id = "business-low-margin-project"
    scopes = ("business",)

    MIN_MARGIN_PCT = Decimal("20")

    def evaluate(self, context):
        low_margin = []
        for project in Project.objects.filter(business=context.business).order_by("id"):
            financials = ProjectService.financials_for(project)
            if financials["revenue"] <= ZERO:
                continue
            if financials["margin_pct"] < self.MIN_MARGIN_PCT:
                low_margin.append(
                    {
                        "project_id": project.id,
                        "name": project.name,
                        "margin_pct": financials["margin_pct"],
                    }
                )
        if not low_margin:
            return None
        return Insight(
            id=self.id,
            category="cashflow",
            severity="warning",
            title="Low margin projects",
            message="Some projects have a low margin.",
            data={"business_id": context.business_id, "projects": low_margin},
        )


class UnderTargetRevenueRule(InsightRule):
    """Money in this month against ``monthly_revenue_goal``; warning past a 20% shortfall."""

    id = "business-under-target-revenue"
    scopes = ("business",)

    WARNING_GAP_PCT = Decimal("20")

    def evaluate(self, context):
        settings_row = BusinessSettings.objects.filter(business=context.business).first()
        goal = settings_row.monthly_revenue_goal if settings_row else None
        if not goal or goal <= ZERO:
            return None

        year, month = context.reference_date.year, context.reference_date.month
        start, end = month_bounds(year, month)
        actual = Transaction.objects.filter(
            user=context.user,
            business=context.business,
            direction="in",
            date__gte=start,
            date__lte=end,
        ).aggregate(total=Sum("amount"))["total"] or ZERO
        if actual >= goal:
            return None

        gap = goal - actual
        gap_pct = gap / goal * HUNDRED
        return Insight(
            id=self.id,
            category="cashflow",
            severity="warning" if gap_pct > self.WARNING_GAP_PCT else "info",
            title="Revenue below target",
            message="Revenue for this month is below the monthly goal.",
            data={
                "business_id": context.business_id,
                "year": year,
                "month": month,
                "goal": goal,
                "actual": actual,
                "gap": gap,
                "gap_pct": quantize(gap_pct),
            },
        )
