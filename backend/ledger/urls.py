"""
URL configuration for the ledger API.

Every resource is a router-registered ViewSet; the insight endpoints are
``@action`` routes on InsightViewSet (``insights/personal/``,
``insights/business/<id>/`` and the business analytics under
``insights/business/<id>/{projects-performance,top-clients,overview}/``).
"""

import logging

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

logger = logging.getLogger(__name__)

router = DefaultRouter()

# Businesses, their settings and overdue marking
router.register(
    r'businesses',
    views.BusinessViewSet,
    basename='business'
)

# Catalog: categories, billing clients, project clients, services
router.register(
    r'categories',
    views.CategoryViewSet,
    basename='category'
)
router.register(
    r'clients',
    views.ClientViewSet,
    basename='client'
)
router.register(
    r'project-clients',
    views.ProjectClientViewSet,
    basename='project-client'
)
router.register(
    r'services',
    views.ServiceCatalogViewSet,
    basename='service'
)

# Accounts and the transaction ledger
router.register(
    r'accounts',
    views.AccountViewSet,
    basename='account'
)
router.register(
    r'transactions',
    views.TransactionViewSet,
    basename='transaction'
)

# Budgets and their lines
router.register(
    r'budgets',
    views.BudgetViewSet,
    basename='budget'
)
router.register(
    r'budget-lines',
    views.BudgetLineViewSet,
    basename='budget-line'
)

# Projects, milestones and tasks
router.register(
    r'projects',
    views.ProjectViewSet,
    basename='project'
)
router.register(
    r'project-milestones',
    views.ProjectMilestoneViewSet,
    basename='project-milestone'
)
router.register(
    r'project-tasks',
    views.ProjectTaskViewSet,
    basename='project-task'
)

# Savings goals
router.register(
    r'savings-goals',
    views.SavingsGoalViewSet,
    basename='savings-goal'
)

# Shared expenses and their settlements
router.register(
    r'shared-expenses',
    views.SharedExpenseViewSet,
    basename='shared-expense'
)

# Quotes, invoices and payments
router.register(
    r'quotes',
    views.QuoteViewSet,
    basename='quote'
)
router.register(
    r'invoices',
    views.InvoiceViewSet,
    basename='invoice'
)
router.register(
    r'invoice-payments',
    views.InvoicePaymentViewSet,
    basename='invoice-payment'
)

# Analytics
router.register(
    r'cashflow',
    views.CashflowViewSet,
    basename='cashflow'
)
router.register(
    r'insights',
    views.InsightViewSet,
    basename='insight'
)

urlpatterns = [
    path('', include(router.urls)),
]

logger.info(
    "Ledger API URLs configured successfully",
    extra={
        "total_routes": len(router.urls),
        "viewset_endpoints": len(router.registry),
        "action": "url_configuration_loaded",
        "component": "urls",
    },
)

logger.debug(
    "Detailed route configuration",
    extra={
        "registered_viewsets": [
            {
                "prefix": route[0],
                "viewset": route[1].__name__,
                "basename": route[2]
            }
            for route in router.registry
        ],
        "action": "route_detailed_log",
        "component": "urls",
    },
)
