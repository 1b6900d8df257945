"""
Insight engine: runs every rule of a scope and merges their findings.

Rules run concurrently on a thread pool sized by
``LEDGER_INSIGHTS_MAX_WORKERS``; with a single worker they run inline in
the calling thread. A rule that raises is logged and contributes nothing,
the other rules still report.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings
from django.db import connection

from ..services import ownership
from .base import SEVERITY_ORDER, Insight, InsightContext
from .rules import DEFAULT_RULES

logger = logging.getLogger(__name__)


class InsightEngine:
    def __init__(self, rules=None, max_workers=None):
        self.rules = tuple(DEFAULT_RULES if rules is None else rules)
        self.max_workers = max_workers

    def rules_for(self, scope):
        return [rule for rule in self.rules if scope in rule.scopes]

    def evaluate_personal(self, user, reference_date):
        context = InsightContext(user=user, reference_date=reference_date)
        return self.evaluate(context, self.rules_for("personal"))

    def evaluate_business(self, user, business_id, reference_date):
        business = ownership.assert_business_owned_by_user(business_id, user)
        context = InsightContext(user=user, reference_date=reference_date, business=business)
        return self.evaluate(context, self.rules_for("business"))

    def evaluate(self, context, rules):
        """Run ``rules`` against ``context``; results sorted critical first."""
        workers = self.max_workers or getattr(settings, "LEDGER_INSIGHTS_MAX_WORKERS", 4)
        if workers <= 1 or len(rules) <= 1:
            results = [self._run_rule(rule, context) for rule in rules]
        else:
            with ThreadPoolExecutor(
                max_workers=min(workers, len(rules)), thread_name_prefix="insights"
            ) as executor:
                results = list(executor.map(lambda rule: self._run_in_worker(rule, context), rules))

        insights = []
        for result in results:
            if result is None:
                continue
            if isinstance(result, Insight):
                insights.append(result)
            else:
                insights.extend(item for item in result if item is not None)

        insights.sort(key=lambda insight: SEVERITY_ORDER.get(insight.severity, len(SEVERITY_ORDER)))

        logger.info(
            "Insights evaluated",
            extra={
                "user_id": context.user.id,
                "business_id": context.business_id,
                "rule_count": len(rules),
                "insight_count": len(insights),
                "action": "insights_evaluated",
                "component": "InsightEngine",
            },
        )
        return insights

    def _run_in_worker(self, rule, context):
        try:
            return self._run_rule(rule, context)
        finally:
            # Worker threads open their own database connection.
            connection.close()

    @staticmethod
    def _run_rule(rule, context):
        try:
            return rule.evaluate(context)
        except Exception as exc:
            logger.error(
                "Insight rule failed",
                extra={
                    "user_id": context.user.id,
                    "business_id": context.business_id,
                    "rule_id": rule.id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "action": "insight_rule_failed",
                    "component": "InsightEngine",
                    "severity": "medium",
                },
                exc_info=True,
            )
            return None
