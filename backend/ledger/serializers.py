"""
Serializers for the ledger API.

Output serializers are ModelSerializers over the ledger models. Input
serializers only check shapes and types; every business rule (ownership,
scope coherence, status transitions, money validation) is enforced by the
service layer, which the views call through ServiceExceptionHandlerMixin.

Architecture Pattern:
Input Serializer (shape) → View → Service → Database
                                    ↓
             ServiceExceptionHandlerMixin (domain error → HTTP)
"""

import logging

from rest_framework import serializers

from .models import (
    Account,
    Budget,
    BudgetLine,
    Business,
    BusinessSettings,
    Category,
    Client,
    Invoice,
    InvoiceLine,
    InvoicePayment,
    Project,
    ProjectClient,
    ProjectMilestone,
    ProjectTask,
    Quote,
    QuoteLine,
    SavingsGoal,
    Service,
    SharedExpense,
    SharedExpenseParticipant,
    SharedExpenseSettlement,
    Transaction,
)

logger = logging.getLogger(__name__)

MONEY_FIELD = {"max_digits": 14, "decimal_places": 2}
RATE_FIELD = {"max_digits": 5, "decimal_places": 2}


class PartialInputMixin:
    """Helper for PATCH payloads: only the keys the client actually sent."""

    def changes(self):
        return {key: value for key, value in self.validated_data.items() if key in self.initial_data}


# -------------------------------------------------------------------
# BUSINESS SERIALIZERS
# -------------------------------------------------------------------


class BusinessSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = BusinessSettings
        fields = [
            "invoice_prefix",
            "invoice_next_number",
            "quote_prefix",
            "quote_next_number",
            "default_vat_rate",
            "default_payment_terms_days",
            "monthly_revenue_goal",
            "updated_at",
        ]
        read_only_fields = fields


class BusinessSerializer(serializers.ModelSerializer):
    class Meta:
        model = Business
        fields = [
            "id",
            "name",
            "legal_form",
            "registration_number",
            "tax_id",
            "currency",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BusinessInputSerializer(PartialInputMixin, serializers.Serializer):
    name = serializers.CharField(max_length=255)
    currency = serializers.CharField(max_length=10, required=False, allow_null=True)
    legal_form = serializers.CharField(max_length=50, required=False, allow_null=True)
    registration_number = serializers.CharField(max_length=100, required=False, allow_null=True)
    tax_id = serializers.CharField(max_length=100, required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False)


class BusinessSettingsInputSerializer(PartialInputMixin, serializers.Serializer):
    invoice_prefix = serializers.CharField(max_length=20, required=False)
    invoice_next_number = serializers.IntegerField(required=False)
    quote_prefix = serializers.CharField(max_length=20, required=False)
    quote_next_number = serializers.IntegerField(required=False)
    default_vat_rate = serializers.DecimalField(**RATE_FIELD, required=False, allow_null=True)
    default_payment_terms_days = serializers.IntegerField(required=False)
    monthly_revenue_goal = serializers.DecimalField(**MONEY_FIELD, required=False, allow_null=True)


# -------------------------------------------------------------------
# CATALOG SERIALIZERS
# -------------------------------------------------------------------


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "kind", "business", "parent", "created_at"]
        read_only_fields = fields


class CategoryInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    kind = serializers.CharField(max_length=10, required=False, default="expense")
    business_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    parent_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class ClientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = [
            "id",
            "business",
            "name",
            "contact_name",
            "email",
            "phone",
            "billing_address",
            "shipping_address",
            "vat_number",
            "status",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ClientInputSerializer(PartialInputMixin, serializers.Serializer):
    business_id = serializers.IntegerField(required=False)
    name = serializers.CharField(max_length=255)
    status = serializers.CharField(max_length=20, required=False)
    contact_name = serializers.CharField(max_length=255, required=False, allow_null=True)
    email = serializers.EmailField(required=False, allow_null=True)
    phone = serializers.CharField(max_length=50, required=False, allow_null=True)
    billing_address = serializers.CharField(required=False, allow_null=True)
    shipping_address = serializers.CharField(required=False, allow_null=True)
    vat_number = serializers.CharField(max_length=50, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class ProjectClientSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProjectClient
        fields = [
            "id",
            "business",
            "catalog_client",
            "name",
            "email",
            "phone",
            "vat_number",
            "address",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class ProjectClientInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    business_id = serializers.IntegerField(required=False, allow_null=True)
    email = serializers.EmailField(required=False, allow_null=True)
    phone = serializers.CharField(max_length=50, required=False, allow_null=True)
    vat_number = serializers.CharField(max_length=50, required=False, allow_null=True)
    address = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class ServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = [
            "id",
            "business",
            "name",
            "billing_mode",
            "description",
            "unit_label",
            "default_price",
            "default_vat_rate",
            "default_internal_cost",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ServiceInputSerializer(PartialInputMixin, serializers.Serializer):
    business_id = serializers.IntegerField(required=False)
    name = serializers.CharField(max_length=255)
    billing_mode = serializers.CharField(max_length=20, required=False)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    unit_label = serializers.CharField(max_length=30, required=False, allow_null=True)
    default_price = serializers.DecimalField(**MONEY_FIELD, required=False, allow_null=True)
    default_vat_rate = serializers.DecimalField(**RATE_FIELD, required=False, allow_null=True)
    default_internal_cost = serializers.DecimalField(**MONEY_FIELD, required=False, allow_null=True)


# -------------------------------------------------------------------
# ACCOUNT AND TRANSACTION SERIALIZERS
# -------------------------------------------------------------------


class AccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = Account
        fields = [
            "id",
            "business",
            "name",
            "type",
            "currency",
            "connection_type",
            "is_active",
            "include_in_budget",
            "include_in_net_worth",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AccountBalanceSerializer(serializers.Serializer):
    """Renders the ``{"account", "balance"}`` rows of AccountService."""

    account = AccountSerializer()
    balance = serializers.DecimalField(**MONEY_FIELD)

    def to_representation(self, instance):
        data = super().to_representation(instance)
        account = data.pop("account")
        account["balance"] = data["balance"]
        return account


class AccountInputSerializer(PartialInputMixin, serializers.Serializer):
    name = serializers.CharField(max_length=255)
    type = serializers.CharField(max_length=20, required=False)
    currency = serializers.CharField(max_length=10, required=False, allow_null=True)
    business_id = serializers.IntegerField(required=False, allow_null=True)
    connection_type = serializers.CharField(max_length=20, required=False)
    include_in_budget = serializers.BooleanField(required=False)
    include_in_net_worth = serializers.BooleanField(required=False)


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = [
            "id",
            "account",
            "business",
            "amount",
            "direction",
            "date",
            "label",
            "type",
            "notes",
            "category",
            "project",
            "contact",
            "income_source",
            "invoice",
            "supplier",
            "recurring_series",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TransactionInputSerializer(PartialInputMixin, serializers.Serializer):
    account_id = serializers.IntegerField()
    direction = serializers.CharField(max_length=3)
    amount = serializers.DecimalField(**MONEY_FIELD)
    date = serializers.DateField()
    label = serializers.CharField(max_length=255)
    business_id = serializers.IntegerField(required=False, allow_null=True)
    type = serializers.CharField(max_length=30, required=False)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    project_id = serializers.IntegerField(required=False, allow_null=True)
    category_id = serializers.IntegerField(required=False, allow_null=True)
    contact_id = serializers.IntegerField(required=False, allow_null=True)
    income_source_id = serializers.IntegerField(required=False, allow_null=True)
    supplier_id = serializers.IntegerField(required=False, allow_null=True)
    recurring_series_id = serializers.IntegerField(required=False, allow_null=True)


class TransactionFilterSerializer(serializers.Serializer):
    from_date = serializers.DateField(required=False)
    to_date = serializers.DateField(required=False)
    direction = serializers.CharField(required=False)
    min_amount = serializers.DecimalField(**MONEY_FIELD, required=False)
    max_amount = serializers.DecimalField(**MONEY_FIELD, required=False)
    category_id = serializers.IntegerField(required=False)
    project_id = serializers.IntegerField(required=False)
    business_id = serializers.IntegerField(required=False)
    personal_only = serializers.BooleanField(required=False, default=False)
    limit = serializers.IntegerField(required=False, min_value=1)
    offset = serializers.IntegerField(required=False, min_value=0)

    def to_filters(self):
        filters = dict(self.validated_data)
        if filters.pop("personal_only", False):
            filters["business_id"] = None
        return filters


class TransferInputSerializer(serializers.Serializer):
    from_account_id = serializers.IntegerField()
    to_account_id = serializers.IntegerField()
    amount = serializers.DecimalField(**MONEY_FIELD)
    date = serializers.DateField()
    label = serializers.CharField(max_length=255, required=False, allow_null=True)


# -------------------------------------------------------------------
# BUDGET SERIALIZERS
# -------------------------------------------------------------------


class BudgetLineSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True)

    class Meta:
        model = BudgetLine
        fields = [
            "id",
            "category",
            "category_name",
            "spending_limit",
            "priority",
            "alert_threshold_pct",
            "created_at",
        ]
        read_only_fields = fields


class BudgetSerializer(serializers.ModelSerializer):
    lines = BudgetLineSerializer(many=True, read_only=True)

    class Meta:
        model = Budget
        fields = [
            "id",
            "business",
            "name",
            "period_type",
            "year",
            "month",
            "start_date",
            "end_date",
            "scenario",
            "version_no",
            "status",
            "spending_limit",
            "lines",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BudgetInputSerializer(PartialInputMixin, serializers.Serializer):
    """
    A budget period is either monthly (``year`` + ``month``) or custom
    (``start_date`` + ``end_date``), never both.
    """

    name = serializers.CharField(max_length=255)
    year = serializers.IntegerField(required=False)
    month = serializers.IntegerField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    business_id = serializers.IntegerField(required=False, allow_null=True)
    spending_limit = serializers.DecimalField(**MONEY_FIELD, required=False, allow_null=True)
    scenario = serializers.CharField(max_length=20, required=False)
    status = serializers.CharField(max_length=10, required=False)
    version_no = serializers.IntegerField(required=False, min_value=1)

    def validate(self, attrs):
        monthly = "year" in attrs or "month" in attrs
        custom = "start_date" in attrs or "end_date" in attrs
        if monthly and custom:
            raise serializers.ValidationError("Provide either year/month or start_date/end_date")
        if monthly:
            if "year" not in attrs or "month" not in attrs:
                raise serializers.ValidationError("Monthly budgets require year and month")
            attrs["period"] = {"monthly": (attrs.pop("year"), attrs.pop("month"))}
        elif custom:
            attrs["period"] = {"custom": (attrs.pop("start_date", None), attrs.pop("end_date", None))}
        elif not self.partial:
            raise serializers.ValidationError("A budget period is required")
        return attrs

    def changes(self):
        changes = super().changes()
        if "period" in self.validated_data:
            changes["period"] = self.validated_data["period"]
        return changes


class BudgetLineInputSerializer(PartialInputMixin, serializers.Serializer):
    category_id = serializers.IntegerField()
    spending_limit = serializers.DecimalField(**MONEY_FIELD, required=False, allow_null=True)
    priority = serializers.CharField(max_length=15, required=False)
    alert_threshold_pct = serializers.DecimalField(**RATE_FIELD, required=False, allow_null=True)


class BudgetExecutionLineSerializer(serializers.Serializer):
    line = BudgetLineSerializer()
    planned = serializers.DecimalField(**MONEY_FIELD)
    actual = serializers.DecimalField(**MONEY_FIELD)
    variance = serializers.DecimalField(**MONEY_FIELD)


class BudgetExecutionSerializer(serializers.Serializer):
    budget = BudgetSerializer()
    period_start = serializers.DateField()
    period_end = serializers.DateField()
    lines = BudgetExecutionLineSerializer(many=True)
    total_planned = serializers.DecimalField(**MONEY_FIELD)
    total_actual = serializers.DecimalField(**MONEY_FIELD)
    total_variance = serializers.DecimalField(**MONEY_FIELD)


class BudgetOverviewLineSerializer(serializers.Serializer):
    category_id = serializers.IntegerField()
    category_name = serializers.CharField()
    planned = serializers.DecimalField(**MONEY_FIELD)
    actual = serializers.DecimalField(**MONEY_FIELD)
    variance = serializers.DecimalField(**MONEY_FIELD)


class BudgetOverviewSerializer(serializers.Serializer):
    budget = BudgetSerializer()
    lines = BudgetOverviewLineSerializer(many=True)
    total_planned = serializers.DecimalField(**MONEY_FIELD)
    total_actual = serializers.DecimalField(**MONEY_FIELD)
    total_variance = serializers.DecimalField(**MONEY_FIELD)


# -------------------------------------------------------------------
# PROJECT SERIALIZERS
# -------------------------------------------------------------------


class ProjectSerializer(serializers.ModelSerializer):
    class Meta:
        model = Project
        fields = [
            "id",
            "business",
            "client",
            "name",
            "description",
            "status",
            "priority",
            "currency",
            "budget_amount",
            "start_date",
            "due_date",
            "completed_at",
            "progress_mode",
            "progress_manual_pct",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ProjectServiceInputSerializer(serializers.Serializer):
    service_id = serializers.IntegerField()
    label = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    unit_price = serializers.DecimalField(**MONEY_FIELD, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class ProjectInputSerializer(PartialInputMixin, serializers.Serializer):
    name = serializers.CharField(max_length=255)
    business_id = serializers.IntegerField(required=False, allow_null=True)
    client_id = serializers.IntegerField(required=False, allow_null=True)
    services = ProjectServiceInputSerializer(many=True, required=False)
    budget_amount = serializers.DecimalField(**MONEY_FIELD, required=False, allow_null=True)
    currency = serializers.CharField(max_length=10, required=False, allow_null=True)
    status = serializers.CharField(max_length=20, required=False)
    priority = serializers.CharField(max_length=10, required=False)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    start_date = serializers.DateField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    progress_mode = serializers.CharField(max_length=20, required=False)
    progress_manual_pct = serializers.DecimalField(**RATE_FIELD, required=False, allow_null=True)


class ProjectFinancialsSerializer(serializers.Serializer):
    revenue = serializers.DecimalField(**MONEY_FIELD)
    costs = serializers.DecimalField(**MONEY_FIELD)
    margin = serializers.DecimalField(**MONEY_FIELD)
    margin_pct = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    revenue_count = serializers.IntegerField()
    costs_count = serializers.IntegerField()


class ProjectProgressSerializer(serializers.Serializer):
    mode = serializers.CharField()
    value = serializers.DecimalField(**RATE_FIELD)
    details = serializers.DictField()


class ProjectMilestoneSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProjectMilestone
        fields = ["id", "project", "name", "due_date", "status", "weight_pct", "order_index", "created_at"]
        read_only_fields = fields


class ProjectMilestoneInputSerializer(PartialInputMixin, serializers.Serializer):
    name = serializers.CharField(max_length=255)
    due_date = serializers.DateField(required=False, allow_null=True)
    status = serializers.CharField(max_length=20, required=False)
    weight_pct = serializers.DecimalField(**RATE_FIELD, required=False, allow_null=True)


class ProjectTaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProjectTask
        fields = ["id", "project", "title", "status", "priority", "due_date", "estimate_hours", "created_at"]
        read_only_fields = fields


class ProjectTaskInputSerializer(PartialInputMixin, serializers.Serializer):
    title = serializers.CharField(max_length=255)
    status = serializers.CharField(max_length=20, required=False)
    priority = serializers.CharField(max_length=10, required=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    estimate_hours = serializers.DecimalField(max_digits=8, decimal_places=2, required=False, allow_null=True)


# -------------------------------------------------------------------
# SAVINGS SERIALIZERS
# -------------------------------------------------------------------


class SavingsGoalSerializer(serializers.ModelSerializer):
    class Meta:
        model = SavingsGoal
        fields = [
            "id",
            "business",
            "account",
            "name",
            "target_amount",
            "current_amount",
            "target_date",
            "priority",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class SavingsGoalOverviewSerializer(serializers.Serializer):
    goal = SavingsGoalSerializer()
    progress_pct = serializers.DecimalField(max_digits=12, decimal_places=2)
    remaining = serializers.DecimalField(**MONEY_FIELD)
    is_completed = serializers.BooleanField()


class SavingsGoalInputSerializer(PartialInputMixin, serializers.Serializer):
    name = serializers.CharField(max_length=255)
    target_amount = serializers.DecimalField(**MONEY_FIELD)
    current_amount = serializers.DecimalField(**MONEY_FIELD, required=False, allow_null=True)
    target_date = serializers.DateField(required=False, allow_null=True)
    account_id = serializers.IntegerField(required=False, allow_null=True)
    business_id = serializers.IntegerField(required=False, allow_null=True)
    priority = serializers.CharField(max_length=10, required=False)
    status = serializers.CharField(max_length=10, required=False)


# -------------------------------------------------------------------
# SHARED EXPENSE SERIALIZERS
# -------------------------------------------------------------------


class SharedExpenseParticipantSerializer(serializers.ModelSerializer):
    class Meta:
        model = SharedExpenseParticipant
        fields = ["id", "name", "email", "share_amount", "is_owner"]
        read_only_fields = fields


class SharedExpenseSettlementSerializer(serializers.ModelSerializer):
    class Meta:
        model = SharedExpenseSettlement
        fields = ["id", "shared_expense", "from_name", "to_name", "amount", "date", "notes", "created_at"]
        read_only_fields = fields


class SharedExpenseSerializer(serializers.ModelSerializer):
    participants = SharedExpenseParticipantSerializer(many=True, read_only=True)
    settlements = SharedExpenseSettlementSerializer(many=True, read_only=True)

    class Meta:
        model = SharedExpense
        fields = [
            "id",
            "label",
            "total_amount",
            "currency",
            "date",
            "notes",
            "participants",
            "settlements",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ParticipantBalanceSerializer(serializers.Serializer):
    name = serializers.CharField()
    balance = serializers.DecimalField(**MONEY_FIELD)


class SharedExpenseListSerializer(serializers.Serializer):
    expenses = SharedExpenseSerializer(many=True)
    balances = ParticipantBalanceSerializer(many=True)


class ParticipantInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)
    share_amount = serializers.DecimalField(**MONEY_FIELD)
    is_owner = serializers.BooleanField(required=False, default=False)


class SharedExpenseInputSerializer(serializers.Serializer):
    label = serializers.CharField(max_length=255)
    total_amount = serializers.DecimalField(**MONEY_FIELD)
    currency = serializers.CharField(max_length=10, required=False, allow_null=True)
    date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    participants = ParticipantInputSerializer(many=True)


class SettlementInputSerializer(serializers.Serializer):
    from_name = serializers.CharField(max_length=255)
    to_name = serializers.CharField(max_length=255)
    amount = serializers.DecimalField(**MONEY_FIELD)
    date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


# -------------------------------------------------------------------
# QUOTE AND INVOICE SERIALIZERS
# -------------------------------------------------------------------


class DocumentItemSerializer(serializers.Serializer):
    """One quote/invoice line as submitted by the client."""

    service_id = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2)
    unit_price = serializers.DecimalField(**MONEY_FIELD, required=False, allow_null=True)
    vat_rate = serializers.DecimalField(**RATE_FIELD, required=False, allow_null=True)
    discount_pct = serializers.DecimalField(**RATE_FIELD, required=False, allow_null=True)


class QuoteLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuoteLine
        fields = [
            "id",
            "service",
            "description",
            "quantity",
            "unit_price",
            "vat_rate",
            "discount_pct",
            "total_ht",
            "total_vat",
            "total_ttc",
            "position",
        ]
        read_only_fields = fields


class QuoteSerializer(serializers.ModelSerializer):
    lines = QuoteLineSerializer(many=True, read_only=True)

    class Meta:
        model = Quote
        fields = [
            "id",
            "business",
            "client",
            "project",
            "number",
            "status",
            "issue_date",
            "expiry_date",
            "currency",
            "notes",
            "total_ht",
            "total_vat",
            "discount",
            "total_ttc",
            "lines",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class QuoteInputSerializer(PartialInputMixin, serializers.Serializer):
    business_id = serializers.IntegerField()
    items = DocumentItemSerializer(many=True)
    client_id = serializers.IntegerField(required=False, allow_null=True)
    project_client_id = serializers.IntegerField(required=False, allow_null=True)
    project_id = serializers.IntegerField(required=False, allow_null=True)
    issue_date = serializers.DateField(required=False, allow_null=True)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class QuoteStatusSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=20)


class QuoteDuplicateSerializer(serializers.Serializer):
    issue_date = serializers.DateField(required=False, allow_null=True, default=None)
    expiry_date = serializers.DateField(required=False, allow_null=True, default=None)


class QuoteConvertSerializer(serializers.Serializer):
    kind = serializers.CharField(max_length=10)
    deposit_pct = serializers.DecimalField(**RATE_FIELD, required=False, allow_null=True, default=None)
    issue_date = serializers.DateField(required=False, allow_null=True, default=None)


class InvoiceLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceLine
        fields = QuoteLineSerializer.Meta.fields
        read_only_fields = fields


class InvoicePaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoicePayment
        fields = ["id", "invoice", "transaction", "amount", "date", "method", "notes", "created_at"]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    lines = InvoiceLineSerializer(many=True, read_only=True)
    balance_due = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            "id",
            "business",
            "client",
            "project",
            "quote",
            "number",
            "status",
            "kind",
            "issue_date",
            "due_date",
            "currency",
            "notes",
            "total_ht",
            "total_vat",
            "total_ttc",
            "amount_paid_cached",
            "balance_due",
            "lines",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_balance_due(self, obj):
        return serializers.DecimalField(**MONEY_FIELD).to_representation(
            obj.total_ttc - obj.amount_paid_cached
        )


class InvoiceInputSerializer(serializers.Serializer):
    business_id = serializers.IntegerField()
    items = DocumentItemSerializer(many=True)
    client_id = serializers.IntegerField(required=False, allow_null=True)
    project_client_id = serializers.IntegerField(required=False, allow_null=True)
    project_id = serializers.IntegerField(required=False, allow_null=True)
    issue_date = serializers.DateField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    status = serializers.CharField(max_length=20, required=False)


class InvoiceUpdateSerializer(PartialInputMixin, serializers.Serializer):
    status = serializers.CharField(max_length=20, required=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class PaymentInputSerializer(serializers.Serializer):
    account_id = serializers.IntegerField()
    amount = serializers.DecimalField(**MONEY_FIELD)
    date = serializers.DateField()
    method = serializers.CharField(max_length=30, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


# -------------------------------------------------------------------
# ANALYTICS SERIALIZERS
# -------------------------------------------------------------------


class CashflowPointSerializer(serializers.Serializer):
    date = serializers.DateField()
    balance = serializers.DecimalField(**MONEY_FIELD)
    inflow = serializers.DecimalField(**MONEY_FIELD)
    outflow = serializers.DecimalField(**MONEY_FIELD)
    net = serializers.DecimalField(**MONEY_FIELD)


class CashflowProjectionSerializer(serializers.Serializer):
    opening_balance = serializers.DecimalField(**MONEY_FIELD)
    horizon_days = serializers.IntegerField()
    currency = serializers.CharField()
    points = CashflowPointSerializer(many=True)


class InsightSerializer(serializers.Serializer):
    id = serializers.CharField()
    category = serializers.CharField()
    severity = serializers.CharField()
    title = serializers.CharField()
    message = serializers.CharField()
    data = serializers.DictField()


class ReferenceDateSerializer(serializers.Serializer):
    reference_date = serializers.DateField(required=False)


class CashflowQuerySerializer(ReferenceDateSerializer):
    horizon_days = serializers.IntegerField(required=False)


class ClientWindowSerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=50)


class StatusCountSerializer(serializers.Serializer):
    status = serializers.CharField()
    count = serializers.IntegerField()


class ProjectsPerformanceSerializer(serializers.Serializer):
    business_id = serializers.IntegerField()
    total_projects = serializers.IntegerField()
    completed_projects = serializers.IntegerField()
    on_time_projects = serializers.IntegerField()
    on_time_rate_pct = serializers.DecimalField(max_digits=6, decimal_places=2)
    average_duration_days = serializers.DecimalField(max_digits=10, decimal_places=2)
    average_delay_days = serializers.DecimalField(max_digits=10, decimal_places=2)
    status_distribution = StatusCountSerializer(many=True)


class TopClientSerializer(serializers.Serializer):
    client_id = serializers.IntegerField()
    name = serializers.CharField()
    total_invoiced = serializers.DecimalField(**MONEY_FIELD)
    total_paid = serializers.DecimalField(**MONEY_FIELD)
    project_count = serializers.IntegerField()
    average_invoice = serializers.DecimalField(**MONEY_FIELD)
    last_activity = serializers.DateField(allow_null=True)


class TopClientsSerializer(serializers.Serializer):
    business_id = serializers.IntegerField()
    currency = serializers.CharField()
    date_from = serializers.DateField()
    date_to = serializers.DateField()
    top_clients = TopClientSerializer(many=True)


class BusinessOverviewSerializer(serializers.Serializer):
    projects_performance = ProjectsPerformanceSerializer()
    top_clients = TopClientsSerializer()
