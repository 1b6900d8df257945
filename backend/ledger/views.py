"""
API views for the ledger.

Every view is THIN: it validates the payload shape with an input
serializer, delegates to the service layer through
``ServiceExceptionHandlerMixin.handle_service_call`` (which turns domain
errors into HTTP errors) and renders the result with an output serializer.
The authenticated user is always passed to the service, which enforces
ownership and scope rules.
"""

import logging

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .insights import InsightEngine
from .managers import UNSET
from .mixins.service_exception_handler import ServiceExceptionHandlerMixin
from .serializers import (
    AccountBalanceSerializer,
    AccountInputSerializer,
    BudgetExecutionSerializer,
    BudgetInputSerializer,
    BudgetLineInputSerializer,
    BudgetLineSerializer,
    BudgetOverviewSerializer,
    BudgetSerializer,
    BusinessOverviewSerializer,
    BusinessInputSerializer,
    BusinessSerializer,
    BusinessSettingsInputSerializer,
    BusinessSettingsSerializer,
    CashflowProjectionSerializer,
    CashflowQuerySerializer,
    CategoryInputSerializer,
    CategorySerializer,
    ClientInputSerializer,
    ClientSerializer,
    ClientWindowSerializer,
    InsightSerializer,
    InvoiceInputSerializer,
    InvoicePaymentSerializer,
    InvoiceSerializer,
    InvoiceUpdateSerializer,
    PaymentInputSerializer,
    ProjectClientInputSerializer,
    ProjectClientSerializer,
    ProjectFinancialsSerializer,
    ProjectInputSerializer,
    ProjectMilestoneInputSerializer,
    ProjectMilestoneSerializer,
    ProjectProgressSerializer,
    ProjectSerializer,
    ProjectTaskInputSerializer,
    ProjectTaskSerializer,
    ProjectsPerformanceSerializer,
    QuoteConvertSerializer,
    QuoteDuplicateSerializer,
    QuoteInputSerializer,
    QuoteSerializer,
    QuoteStatusSerializer,
    ReferenceDateSerializer,
    SavingsGoalInputSerializer,
    SavingsGoalOverviewSerializer,
    SavingsGoalSerializer,
    ServiceInputSerializer,
    ServiceSerializer,
    SettlementInputSerializer,
    SharedExpenseInputSerializer,
    SharedExpenseListSerializer,
    SharedExpenseSerializer,
    SharedExpenseSettlementSerializer,
    TopClientsSerializer,
    TransactionFilterSerializer,
    TransactionInputSerializer,
    TransactionSerializer,
    TransferInputSerializer,
)
from .services import (
    AccountService,
    BudgetService,
    BusinessInsightsService,
    BusinessService,
    CashflowService,
    CatalogService,
    InvoicePaymentService,
    InvoiceService,
    ProjectMilestoneService,
    ProjectService,
    ProjectTaskService,
    QuoteService,
    SavingsService,
    SharedExpenseService,
    TransactionService,
    ownership,
)

logger = logging.getLogger(__name__)

insight_engine = InsightEngine()


class LedgerViewSet(ServiceExceptionHandlerMixin, viewsets.ViewSet):
    """
    Base ViewSet for the ledger API.

    Provides payload validation helpers and the ``business_id`` query
    parameter convention: absent means every scope, ``personal`` means the
    personal scope only, a number selects that business.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def validated(self, serializer_class, data=None, partial=False):
        serializer = serializer_class(
            data=self.request.data if data is None else data, partial=partial
        )
        serializer.is_valid(raise_exception=True)
        return serializer

    def scope_param(self, required=False):
        raw = self.request.query_params.get("business_id")
        if raw is None or raw == "":
            if required:
                raise ValidationError({"business_id": "This query parameter is required."})
            return UNSET
        if raw == "personal":
            return None
        try:
            return int(raw)
        except ValueError:
            raise ValidationError({"business_id": "Must be an integer or 'personal'."})

    def reference_date(self):
        serializer = ReferenceDateSerializer(data=self.request.query_params)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data.get("reference_date") or timezone.localdate()


# -------------------------------------------------------------------
# BUSINESSES
# -------------------------------------------------------------------


class BusinessViewSet(LedgerViewSet):
    def list(self, request):
        include_inactive = request.query_params.get("include_inactive") == "true"
        businesses = self.handle_service_call(
            BusinessService.list_businesses, request.user, include_inactive=include_inactive
        )
        return Response(BusinessSerializer(businesses, many=True).data)

    def create(self, request):
        payload = dict(self.validated(BusinessInputSerializer).validated_data)
        payload.pop("is_active", None)
        business = self.handle_service_call(BusinessService.create_business, request.user, **payload)
        return Response(BusinessSerializer(business).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        business = self.handle_service_call(ownership.assert_business_owned_by_user, pk, request.user)
        return Response(BusinessSerializer(business).data)

    def partial_update(self, request, pk=None):
        changes = self.validated(BusinessInputSerializer, partial=True).changes()
        business = self.handle_service_call(
            BusinessService.update_business, request.user, pk, **changes
        )
        return Response(BusinessSerializer(business).data)

    @action(detail=True, methods=["get", "patch"], url_path="settings", url_name="settings")
    def business_settings(self, request, pk=None):
        """Numbering counters, default VAT, payment terms and revenue goal."""
        if request.method == "GET":
            settings_row = self.handle_service_call(BusinessService.get_settings, request.user, pk)
        else:
            changes = self.validated(BusinessSettingsInputSerializer, partial=True).changes()
            settings_row = self.handle_service_call(
                BusinessService.update_settings, request.user, pk, **changes
            )
        return Response(BusinessSettingsSerializer(settings_row).data)

    @action(detail=True, methods=["post"], url_path="mark-overdue")
    def mark_overdue(self, request, pk=None):
        updated = self.handle_service_call(
            InvoiceService.mark_overdue_invoices, request.user, pk, self.reference_date()
        )
        return Response({"updated": updated})


# -------------------------------------------------------------------
# CATALOG
# -------------------------------------------------------------------


class CategoryViewSet(LedgerViewSet):
    def list(self, request):
        categories = self.handle_service_call(
            CatalogService.list_categories,
            request.user,
            business_id=self.scope_param(),
            kind=request.query_params.get("kind"),
        )
        return Response(CategorySerializer(categories, many=True).data)

    def create(self, request):
        payload = self.validated(CategoryInputSerializer).validated_data
        category = self.handle_service_call(CatalogService.create_category, request.user, **payload)
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)


class ClientViewSet(LedgerViewSet):
    """Billing clients of a business."""

    def list(self, request):
        clients = self.handle_service_call(
            CatalogService.list_clients,
            request.user,
            self.scope_param(required=True),
            status=request.query_params.get("status"),
        )
        return Response(ClientSerializer(clients, many=True).data)

    def create(self, request):
        payload = dict(self.validated(ClientInputSerializer).validated_data)
        if "business_id" not in payload:
            raise ValidationError({"business_id": "This field is required."})
        client = self.handle_service_call(CatalogService.create_client, request.user, **payload)
        return Response(ClientSerializer(client).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        changes = self.validated(ClientInputSerializer, partial=True).changes()
        changes.pop("business_id", None)
        client = self.handle_service_call(CatalogService.update_client, request.user, pk, **changes)
        return Response(ClientSerializer(client).data)


class ProjectClientViewSet(LedgerViewSet):
    """Lightweight project-side clients, materialised into billing clients on demand."""

    def list(self, request):
        clients = self.handle_service_call(
            CatalogService.list_project_clients, request.user, business_id=self.scope_param()
        )
        return Response(ProjectClientSerializer(clients, many=True).data)

    def create(self, request):
        payload = self.validated(ProjectClientInputSerializer).validated_data
        client = self.handle_service_call(CatalogService.create_project_client, request.user, **payload)
        return Response(ProjectClientSerializer(client).data, status=status.HTTP_201_CREATED)


class ServiceCatalogViewSet(LedgerViewSet):
    def list(self, request):
        services = self.handle_service_call(
            CatalogService.list_services,
            request.user,
            self.scope_param(required=True),
            include_inactive=request.query_params.get("include_inactive") == "true",
        )
        return Response(ServiceSerializer(services, many=True).data)

    def create(self, request):
        payload = dict(self.validated(ServiceInputSerializer).validated_data)
        if "business_id" not in payload:
            raise ValidationError({"business_id": "This field is required."})
        service = self.handle_service_call(CatalogService.create_service, request.user, **payload)
        return Response(ServiceSerializer(service).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        changes = self.validated(ServiceInputSerializer, partial=True).changes()
        changes.pop("business_id", None)
        service = self.handle_service_call(CatalogService.update_service, request.user, pk, **changes)
        return Response(ServiceSerializer(service).data)

    @action(detail=True, methods=["post"])
    def archive(self, request, pk=None):
        service = self.handle_service_call(CatalogService.archive_service, request.user, pk)
        return Response(ServiceSerializer(service).data)


# -------------------------------------------------------------------
# ACCOUNTS AND TRANSACTIONS
# -------------------------------------------------------------------


class AccountViewSet(LedgerViewSet):
    """Accounts are always rendered with their computed balance."""

    def list(self, request):
        rows = self.handle_service_call(
            AccountService.list_accounts_with_balance,
            request.user,
            business_id=self.scope_param(),
            include_inactive=request.query_params.get("include_inactive") == "true",
        )
        return Response(AccountBalanceSerializer(rows, many=True).data)

    def create(self, request):
        payload = self.validated(AccountInputSerializer).validated_data
        account = self.handle_service_call(AccountService.create_account, request.user, **payload)
        row = self.handle_service_call(AccountService.get_account_with_balance, request.user, account.id)
        return Response(AccountBalanceSerializer(row).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        row = self.handle_service_call(AccountService.get_account_with_balance, request.user, pk)
        return Response(AccountBalanceSerializer(row).data)

    def partial_update(self, request, pk=None):
        changes = self.validated(AccountInputSerializer, partial=True).changes()
        flags = {
            field: changes.pop(field)
            for field in ("include_in_budget", "include_in_net_worth")
            if field in changes
        }
        if changes:
            self.handle_service_call(AccountService.update_account, request.user, pk, **changes)
        if flags:
            self.handle_service_call(AccountService.set_inclusion_flags, request.user, pk, **flags)
        row = self.handle_service_call(AccountService.get_account_with_balance, request.user, pk)
        return Response(AccountBalanceSerializer(row).data)

    @action(detail=True, methods=["get"])
    def balance(self, request, pk=None):
        row = self.handle_service_call(AccountService.get_account_with_balance, request.user, pk)
        return Response({"account_id": row["account"].id, "balance": AccountBalanceSerializer(row).data["balance"]})

    @action(detail=True, methods=["post"])
    def archive(self, request, pk=None):
        self.handle_service_call(AccountService.archive_account, request.user, pk)
        return self.retrieve(request, pk)

    @action(detail=True, methods=["post"])
    def reactivate(self, request, pk=None):
        self.handle_service_call(AccountService.reactivate_account, request.user, pk)
        return self.retrieve(request, pk)

    @action(detail=False, methods=["get"], url_path="net-worth")
    def net_worth(self, request):
        total = self.handle_service_call(AccountService.compute_net_worth, request.user)
        return Response({"net_worth": AccountBalanceSerializer().fields["balance"].to_representation(total)})


class TransactionViewSet(LedgerViewSet):
    def list(self, request):
        filter_serializer = self.validated(TransactionFilterSerializer, data=request.query_params)
        filters = filter_serializer.to_filters()
        account_ids = request.query_params.getlist("account_id")
        if account_ids:
            try:
                filters["account_ids"] = [int(value) for value in account_ids]
            except ValueError:
                raise ValidationError({"account_id": "Must be integers."})
        transactions = self.handle_service_call(
            TransactionService.list_transactions, request.user, filters
        )
        return Response(TransactionSerializer(transactions, many=True).data)

    def create(self, request):
        payload = self.validated(TransactionInputSerializer).validated_data
        transaction = self.handle_service_call(
            TransactionService.record_transaction, request.user, **payload
        )
        logger.info(
            "Transaction created via API",
            extra={
                "user_id": request.user.id,
                "transaction_id": transaction.id,
                "action": "transaction_create_api",
                "component": "TransactionViewSet",
            },
        )
        return Response(TransactionSerializer(transaction).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        transaction = self.handle_service_call(TransactionService.get_transaction, request.user, pk)
        return Response(TransactionSerializer(transaction).data)

    def partial_update(self, request, pk=None):
        changes = self.validated(TransactionInputSerializer, partial=True).changes()
        transaction = self.handle_service_call(
            TransactionService.update_transaction, request.user, pk, **changes
        )
        return Response(TransactionSerializer(transaction).data)

    def destroy(self, request, pk=None):
        self.handle_service_call(TransactionService.delete_transaction, request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["post"])
    def transfer(self, request):
        """Move money between two accounts as a linked out/in pair."""
        payload = self.validated(TransferInputSerializer).validated_data
        pair = self.handle_service_call(TransactionService.record_transfer, request.user, **payload)
        return Response(
            {
                "out": TransactionSerializer(pair["out"]).data,
                "in": TransactionSerializer(pair["in"]).data,
            },
            status=status.HTTP_201_CREATED,
        )


# -------------------------------------------------------------------
# BUDGETS
# -------------------------------------------------------------------


class BudgetViewSet(LedgerViewSet):
    def list(self, request):
        budgets = self.handle_service_call(
            BudgetService.list_budgets,
            request.user,
            business_id=self.scope_param(),
            status=request.query_params.get("status"),
            year=request.query_params.get("year"),
        )
        return Response(BudgetSerializer(budgets, many=True).data)

    def create(self, request):
        payload = self.validated(BudgetInputSerializer).validated_data
        budget = self.handle_service_call(BudgetService.create_budget, request.user, **payload)
        return Response(BudgetSerializer(budget).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        budget = self.handle_service_call(BudgetService.get_budget, request.user, pk)
        return Response(BudgetSerializer(budget).data)

    def partial_update(self, request, pk=None):
        changes = self.validated(BudgetInputSerializer, partial=True).changes()
        budget = self.handle_service_call(BudgetService.update_budget, request.user, pk, **changes)
        return Response(BudgetSerializer(budget).data)

    def destroy(self, request, pk=None):
        self.handle_service_call(BudgetService.delete_budget, request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def lines(self, request, pk=None):
        payload = self.validated(BudgetLineInputSerializer).validated_data
        line = self.handle_service_call(BudgetService.add_budget_line, request.user, pk, **payload)
        return Response(BudgetLineSerializer(line).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"])
    def execution(self, request, pk=None):
        """Planned vs actual per line over the budget period."""
        execution = self.handle_service_call(BudgetService.compute_execution, request.user, pk)
        return Response(BudgetExecutionSerializer(execution).data)

    @action(detail=False, methods=["get"])
    def current(self, request):
        """Overview of the active personal monthly budget for the reference month."""
        overview = self.handle_service_call(
            BudgetService.get_current_personal_overview, request.user, self.reference_date()
        )
        if overview is None:
            return Response({"budget": None})
        return Response(BudgetOverviewSerializer(overview).data)


class BudgetLineViewSet(LedgerViewSet):
    def partial_update(self, request, pk=None):
        changes = self.validated(BudgetLineInputSerializer, partial=True).changes()
        changes.pop("category_id", None)
        line = self.handle_service_call(BudgetService.update_budget_line, request.user, pk, **changes)
        return Response(BudgetLineSerializer(line).data)

    def destroy(self, request, pk=None):
        self.handle_service_call(BudgetService.delete_budget_line, request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


# -------------------------------------------------------------------
# PROJECTS
# -------------------------------------------------------------------


class ProjectViewSet(LedgerViewSet):
    def list(self, request):
        projects = self.handle_service_call(
            ProjectService.list_projects,
            request.user,
            business_id=self.scope_param(),
            status=request.query_params.get("status"),
        )
        return Response(ProjectSerializer(projects, many=True).data)

    def create(self, request):
        payload = self.validated(ProjectInputSerializer).validated_data
        project = self.handle_service_call(ProjectService.create_project, request.user, **payload)
        return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        project = self.handle_service_call(ProjectService.get_project, request.user, pk)
        return Response(ProjectSerializer(project).data)

    def partial_update(self, request, pk=None):
        changes = self.validated(ProjectInputSerializer, partial=True).changes()
        project = self.handle_service_call(ProjectService.update_project, request.user, pk, **changes)
        return Response(ProjectSerializer(project).data)

    def destroy(self, request, pk=None):
        self.handle_service_call(ProjectService.delete_project, request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"])
    def financials(self, request, pk=None):
        financials = self.handle_service_call(ProjectService.compute_financials, request.user, pk)
        return Response(ProjectFinancialsSerializer(financials).data)

    @action(detail=True, methods=["get"])
    def progress(self, request, pk=None):
        progress = self.handle_service_call(ProjectService.compute_progress, request.user, pk)
        return Response(ProjectProgressSerializer(progress).data)

    @action(detail=True, methods=["get", "post"])
    def milestones(self, request, pk=None):
        if request.method == "GET":
            milestones = self.handle_service_call(ProjectMilestoneService.list_milestones, request.user, pk)
            return Response(ProjectMilestoneSerializer(milestones, many=True).data)
        payload = self.validated(ProjectMilestoneInputSerializer).validated_data
        milestone = self.handle_service_call(
            ProjectMilestoneService.add_milestone, request.user, pk, **payload
        )
        return Response(ProjectMilestoneSerializer(milestone).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get", "post"])
    def tasks(self, request, pk=None):
        if request.method == "GET":
            tasks = self.handle_service_call(
                ProjectTaskService.list_tasks,
                request.user,
                pk,
                status=request.query_params.get("status"),
            )
            return Response(ProjectTaskSerializer(tasks, many=True).data)
        payload = self.validated(ProjectTaskInputSerializer).validated_data
        task = self.handle_service_call(ProjectTaskService.add_task, request.user, pk, **payload)
        return Response(ProjectTaskSerializer(task).data, status=status.HTTP_201_CREATED)


class ProjectMilestoneViewSet(LedgerViewSet):
    def partial_update(self, request, pk=None):
        changes = self.validated(ProjectMilestoneInputSerializer, partial=True).changes()
        milestone = self.handle_service_call(
            ProjectMilestoneService.update_milestone, request.user, pk, **changes
        )
        return Response(ProjectMilestoneSerializer(milestone).data)

    def destroy(self, request, pk=None):
        self.handle_service_call(ProjectMilestoneService.delete_milestone, request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ProjectTaskViewSet(LedgerViewSet):
    def partial_update(self, request, pk=None):
        changes = self.validated(ProjectTaskInputSerializer, partial=True).changes()
        task = self.handle_service_call(ProjectTaskService.update_task, request.user, pk, **changes)
        return Response(ProjectTaskSerializer(task).data)

    def destroy(self, request, pk=None):
        self.handle_service_call(ProjectTaskService.delete_task, request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


# -------------------------------------------------------------------
# SAVINGS GOALS
# -------------------------------------------------------------------


class SavingsGoalViewSet(LedgerViewSet):
    def list(self, request):
        overview = self.handle_service_call(
            SavingsService.list_overview, request.user, business_id=self.scope_param()
        )
        return Response(SavingsGoalOverviewSerializer(overview, many=True).data)

    def create(self, request):
        payload = dict(self.validated(SavingsGoalInputSerializer).validated_data)
        payload.pop("status", None)
        goal = self.handle_service_call(SavingsService.create_goal, request.user, **payload)
        return Response(SavingsGoalSerializer(goal).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        goal = self.handle_service_call(SavingsService.get_goal, request.user, pk)
        return Response(SavingsGoalOverviewSerializer(SavingsService.goal_overview(goal)).data)

    def partial_update(self, request, pk=None):
        changes = self.validated(SavingsGoalInputSerializer, partial=True).changes()
        changes.pop("business_id", None)
        goal = self.handle_service_call(SavingsService.update_goal, request.user, pk, **changes)
        return Response(SavingsGoalSerializer(goal).data)

    def destroy(self, request, pk=None):
        self.handle_service_call(SavingsService.delete_goal, request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _change_status(self, service_call, pk):
        goal = self.handle_service_call(service_call, self.request.user, pk)
        return Response(SavingsGoalSerializer(goal).data)

    @action(detail=True, methods=["post"])
    def pause(self, request, pk=None):
        return self._change_status(SavingsService.pause_goal, pk)

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        return self._change_status(SavingsService.complete_goal, pk)

    @action(detail=True, methods=["post"])
    def archive(self, request, pk=None):
        return self._change_status(SavingsService.archive_goal, pk)

    @action(detail=True, methods=["post"])
    def reactivate(self, request, pk=None):
        return self._change_status(SavingsService.reactivate_goal, pk)


# -------------------------------------------------------------------
# QUOTES AND INVOICES
# -------------------------------------------------------------------


class QuoteViewSet(LedgerViewSet):
    def list(self, request):
        quotes = self.handle_service_call(
            QuoteService.list_quotes,
            request.user,
            self.scope_param(required=True),
            status=request.query_params.get("status"),
        )
        return Response(QuoteSerializer(quotes, many=True).data)

    def create(self, request):
        payload = self.validated(QuoteInputSerializer).validated_data
        quote = self.handle_service_call(QuoteService.create_quote, request.user, **payload)
        return Response(QuoteSerializer(quote).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        quote = self.handle_service_call(QuoteService.get_quote, request.user, pk)
        return Response(QuoteSerializer(quote).data)

    def partial_update(self, request, pk=None):
        changes = self.validated(QuoteInputSerializer, partial=True).changes()
        changes.pop("business_id", None)
        quote = self.handle_service_call(QuoteService.update_quote, request.user, pk, **changes)
        return Response(QuoteSerializer(quote).data)

    def destroy(self, request, pk=None):
        self.handle_service_call(QuoteService.delete_quote, request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request, pk=None):
        new_status = self.validated(QuoteStatusSerializer).validated_data["status"]
        quote = self.handle_service_call(QuoteService.transition_status, request.user, pk, new_status)
        return Response(QuoteSerializer(quote).data)

    @action(detail=True, methods=["post"])
    def duplicate(self, request, pk=None):
        payload = self.validated(QuoteDuplicateSerializer).validated_data
        quote = self.handle_service_call(QuoteService.duplicate_quote, request.user, pk, **payload)
        return Response(QuoteSerializer(quote).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def convert(self, request, pk=None):
        """Create a deposit, balance or final invoice from an accepted quote."""
        payload = self.validated(QuoteConvertSerializer).validated_data
        invoice = self.handle_service_call(QuoteService.convert_to_invoice, request.user, pk, **payload)
        logger.info(
            "Quote converted via API",
            extra={
                "user_id": request.user.id,
                "quote_id": pk,
                "invoice_id": invoice.id,
                "kind": payload["kind"],
                "action": "quote_convert_api",
                "component": "QuoteViewSet",
            },
        )
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


class InvoiceViewSet(LedgerViewSet):
    def list(self, request):
        invoices = self.handle_service_call(
            InvoiceService.list_invoices,
            request.user,
            self.scope_param(required=True),
            status=request.query_params.get("status"),
        )
        return Response(InvoiceSerializer(invoices, many=True).data)

    def create(self, request):
        payload = self.validated(InvoiceInputSerializer).validated_data
        invoice = self.handle_service_call(InvoiceService.create_invoice, request.user, **payload)
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        invoice = self.handle_service_call(InvoiceService.get_invoice, request.user, pk)
        return Response(InvoiceSerializer(invoice).data)

    def partial_update(self, request, pk=None):
        changes = self.validated(InvoiceUpdateSerializer, partial=True).changes()
        invoice = self.handle_service_call(InvoiceService.update_invoice, request.user, pk, **changes)
        return Response(InvoiceSerializer(invoice).data)

    def destroy(self, request, pk=None):
        self.handle_service_call(InvoiceService.delete_invoice, request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get", "post"])
    def payments(self, request, pk=None):
        if request.method == "GET":
            payments = self.handle_service_call(InvoicePaymentService.list_payments, request.user, pk)
            return Response(InvoicePaymentSerializer(payments, many=True).data)

        payload = self.validated(PaymentInputSerializer).validated_data
        result = self.handle_service_call(
            InvoicePaymentService.register_payment, request.user, pk, **payload
        )
        return Response(
            {
                "payment": InvoicePaymentSerializer(result["payment"]).data,
                "transaction": TransactionSerializer(result["transaction"]).data,
                "invoice": InvoiceSerializer(result["invoice"]).data,
            },
            status=status.HTTP_201_CREATED,
        )


class InvoicePaymentViewSet(LedgerViewSet):
    def destroy(self, request, pk=None):
        invoice = self.handle_service_call(InvoicePaymentService.delete_payment, request.user, pk)
        return Response(InvoiceSerializer(invoice).data)


# -------------------------------------------------------------------
# ANALYTICS
# -------------------------------------------------------------------


class CashflowViewSet(LedgerViewSet):
    def list(self, request):
        params = self.validated(CashflowQuerySerializer, data=request.query_params).validated_data
        business_id = self.scope_param()
        projection = self.handle_service_call(
            CashflowService.project_cashflow,
            request.user,
            params.get("reference_date") or timezone.localdate(),
            business_id=None if business_id is UNSET else business_id,
            horizon_days=params.get("horizon_days") or 90,
        )
        return Response(CashflowProjectionSerializer(projection).data)


class InsightViewSet(LedgerViewSet):
    """Rule-based insights, sorted critical first."""

    @action(detail=False, methods=["get"])
    def personal(self, request):
        insights = self.handle_service_call(
            insight_engine.evaluate_personal, request.user, self.reference_date()
        )
        return Response(InsightSerializer(insights, many=True).data)

    @action(detail=False, methods=["get"], url_path=r"business/(?P<business_id>\d+)")
    def business(self, request, business_id=None):
        insights = self.handle_service_call(
            insight_engine.evaluate_business, request.user, business_id, self.reference_date()
        )
        return Response(InsightSerializer(insights, many=True).data)

    def _client_window(self):
        return self.validated(ClientWindowSerializer, data=self.request.query_params).validated_data

    @action(
        detail=False,
        methods=["get"],
        url_path=r"business/(?P<business_id>\d+)/projects-performance",
    )
    def projects_performance(self, request, business_id=None):
        performance = self.handle_service_call(
            BusinessInsightsService.get_projects_performance, request.user, business_id
        )
        return Response(ProjectsPerformanceSerializer(performance).data)

    @action(detail=False, methods=["get"], url_path=r"business/(?P<business_id>\d+)/top-clients")
    def top_clients(self, request, business_id=None):
        window = self._client_window()
        clients = self.handle_service_call(
            BusinessInsightsService.get_top_clients, request.user, business_id, **window
        )
        return Response(TopClientsSerializer(clients).data)

    @action(
        detail=False,
        methods=["get"],
        url_path=r"business/(?P<business_id>\d+)/overview",
        url_name="business-overview",
    )
    def business_overview(self, request, business_id=None):
        window = self._client_window()
        window.pop("limit", None)
        overview = self.handle_service_call(
            BusinessInsightsService.get_overview, request.user, business_id, **window
        )
        return Response(BusinessOverviewSerializer(overview).data)


# -------------------------------------------------------------------
# SHARED EXPENSES
# -------------------------------------------------------------------


class SharedExpenseViewSet(LedgerViewSet):
    """Expenses split between participants, with balances across all of them."""

    def list(self, request):
        result = self.handle_service_call(SharedExpenseService.list_with_balances, request.user)
        return Response(SharedExpenseListSerializer(result).data)

    def create(self, request):
        payload = self.validated(SharedExpenseInputSerializer).validated_data
        expense = self.handle_service_call(
            SharedExpenseService.create_shared_expense, request.user, **payload
        )
        return Response(SharedExpenseSerializer(expense).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        expense = self.handle_service_call(SharedExpenseService.get_shared_expense, request.user, pk)
        return Response(SharedExpenseSerializer(expense).data)

    @action(detail=True, methods=["post"])
    def settle(self, request, pk=None):
        payload = self.validated(SettlementInputSerializer).validated_data
        settlement = self.handle_service_call(
            SharedExpenseService.settle_debt, request.user, pk, **payload
        )
        return Response(
            SharedExpenseSettlementSerializer(settlement).data, status=status.HTTP_201_CREATED
        )
