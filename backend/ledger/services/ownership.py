"""
Ownership guard for every entity the ledger services touch.

Each ``assert_*_owned_by_user`` helper fetches one row and checks that it
belongs to ``user``. A missing row raises ``NotFound``; a row owned by
someone else raises ``OwnershipViolation``. The helpers only read.
"""

import logging

from ..exceptions import NotFound, OwnershipViolation
from ..managers import UNSET
from ..models import (
    Account,
    Budget,
    Business,
    Category,
    Client,
    Contact,
    IncomeSource,
    Invoice,
    Project,
    ProjectClient,
    Quote,
    RecurringSeries,
    SavingsGoal,
    Service,
    SharedExpense,
    Supplier,
    Transaction,
)

logger = logging.getLogger(__name__)


def _owner_id(instance, owner_path):
    target = instance
    for attr in owner_path.split("."):
        target = getattr(target, attr)
    return target


def _assert_owned(model, entity_id, user, owner_path="user_id", select_related=()):
    queryset = model.objects.all()
    if select_related:
        queryset = queryset.select_related(*select_related)
    try:
        instance = queryset.get(pk=entity_id)
    except (model.DoesNotExist, ValueError, TypeError):
        raise NotFound(
            f"{model.__name__} not found",
            code=f"{model._meta.model_name}_not_found",
            entity_id=entity_id,
        )

    if _owner_id(instance, owner_path) != user.id:
        logger.warning(
            "Ownership check failed",
            extra={
                "user_id": user.id,
                "entity": model.__name__,
                "entity_id": entity_id,
                "action": "ownership_violation",
                "component": "OwnershipGuard",
                "severity": "high",
            },
        )
        raise OwnershipViolation(
            f"{model.__name__} does not belong to the current user",
            code=f"{model._meta.model_name}_ownership_violation",
            entity_id=entity_id,
        )
    return instance


def assert_business_owned_by_user(business_id, user) -> Business:
    return _assert_owned(Business, business_id, user, select_related=("settings",))


def assert_account_owned_by_user(account_id, user) -> Account:
    return _assert_owned(Account, account_id, user)


def assert_category_owned_by_user(category_id, user) -> Category:
    return _assert_owned(Category, category_id, user)


def assert_contact_owned_by_user(contact_id, user) -> Contact:
    return _assert_owned(Contact, contact_id, user)


def assert_income_source_owned_by_user(income_source_id, user) -> IncomeSource:
    return _assert_owned(IncomeSource, income_source_id, user)


def assert_recurring_series_owned_by_user(series_id, user) -> RecurringSeries:
    return _assert_owned(RecurringSeries, series_id, user)


def assert_supplier_owned_by_user(supplier_id, user) -> Supplier:
    return _assert_owned(
        Supplier, supplier_id, user, owner_path="business.user_id", select_related=("business",)
    )


def assert_project_owned_by_user(project_id, user) -> Project:
    return _assert_owned(Project, project_id, user)


def assert_project_client_owned_by_user(project_client_id, user) -> ProjectClient:
    return _assert_owned(ProjectClient, project_client_id, user)


def assert_client_owned_by_user(client_id, user) -> Client:
    return _assert_owned(
        Client, client_id, user, owner_path="business.user_id", select_related=("business",)
    )


def assert_service_owned_by_user(service_id, user) -> Service:
    return _assert_owned(
        Service, service_id, user, owner_path="business.user_id", select_related=("business",)
    )


def assert_transaction_owned_by_user(transaction_id, user) -> Transaction:
    return _assert_owned(Transaction, transaction_id, user, select_related=("account",))


def assert_budget_owned_by_user(budget_id, user) -> Budget:
    return _assert_owned(Budget, budget_id, user)


def assert_invoice_owned_by_user(invoice_id, user) -> Invoice:
    return _assert_owned(
        Invoice,
        invoice_id,
        user,
        owner_path="business.user_id",
        select_related=("business", "business__settings"),
    )


def assert_savings_goal_owned_by_user(goal_id, user) -> SavingsGoal:
    return _assert_owned(SavingsGoal, goal_id, user)


def assert_shared_expense_owned_by_user(expense_id, user) -> SharedExpense:
    return _assert_owned(SharedExpense, expense_id, user)


def resolve_scope(user, business_id):
    """Return ``None`` for the personal scope, else the owned business."""
    if business_id is None:
        return None
    return assert_business_owned_by_user(business_id, user)


def assert_quote_owned_by_user(quote_id, user) -> Quote:
    return _assert_owned(
        Quote,
        quote_id,
        user,
        owner_path="business.user_id",
        select_related=("business", "business__settings"),
    )


def resolve_scope_filter(user, business_id):
    """
    Like ``resolve_scope`` for listing filters, where ``UNSET`` means every
    scope of the user.
    """
    if business_id is UNSET:
        return UNSET
    return resolve_scope(user, business_id)
