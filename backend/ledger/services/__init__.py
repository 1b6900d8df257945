# ledger/services/__init__.py
from .account_service import AccountService
from .budget_service import BudgetService
from .business_insights_service import BusinessInsightsService
from .business_service import BusinessService
from .cashflow_service import CashflowService
from .catalog_service import CatalogService
from .invoice_payment_service import InvoicePaymentService
from .invoice_service import InvoiceService
from .project_service import ProjectService
from .project_work_service import ProjectMilestoneService, ProjectTaskService
from .quote_service import QuoteService
from .savings_service import SavingsService
from .shared_expense_service import SharedExpenseService
from .transaction_service import TransactionService

__all__ = [
    "AccountService",
    "BudgetService",
    "BusinessInsightsService",
    "BusinessService",
    "CashflowService",
    "CatalogService",
    "InvoicePaymentService",
    "InvoiceService",
    "ProjectMilestoneService",
    "ProjectService",
    "ProjectTaskService",
    "QuoteService",
    "SavingsService",
    "SharedExpenseService",
    "TransactionService",
]
