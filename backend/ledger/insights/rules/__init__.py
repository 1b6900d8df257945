from .business import LateInvoicesRule, LowMarginProjectsRule, UnderTargetRevenueRule
from .personal import (
    BudgetOverrunRule,
    CashflowRiskRule,
    LifestyleSpendIncreaseRule,
    SavingsScheduleRule,
    SubscriptionReviewRule,
)

DEFAULT_RULES = (
    BudgetOverrunRule(),
    SavingsScheduleRule(),
    LifestyleSpendIncreaseRule(),
    SubscriptionReviewRule(),
    CashflowRiskRule(),
    LateInvoicesRule(),
    LowMarginProjectsRule(),
    UnderTargetRevenueRule(),
)

__all__ = [
    "DEFAULT_RULES",
    "BudgetOverrunRule",
    "CashflowRiskRule",
    "LateInvoicesRule",
    "LifestyleSpendIncreaseRule",
    "LowMarginProjectsRule",
    "SavingsScheduleRule",
    "SubscriptionReviewRule",
    "UnderTargetRevenueRule",
]
