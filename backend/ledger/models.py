"""
Database models for the ownership-scoped ledger.

This module defines every persisted entity of the ledger application:
businesses and their numbering settings, accounts, ledger transactions,
budgets, projects, savings goals, the commercial catalog, and the
quote/invoice workflow. Balances and aggregates are never stored here;
they are derived from ``Transaction`` rows by the service layer.
"""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from .managers import BusinessScopedManager, UserScopedManager

MONEY = {"max_digits": 14, "decimal_places": 2}
RATE = {"max_digits": 5, "decimal_places": 2}

PERCENT_VALIDATORS = [MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))]


# -------------------------------------------------------------------
# USER SETTINGS
# -------------------------------------------------------------------
# Per-user defaults used when an entity does not declare its own currency


class UserSettings(models.Model):
    """User-level defaults, created automatically for every new user."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="ledger_settings"
    )
    main_currency = models.CharField(max_length=10, default="EUR")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "User settings"

    def __str__(self):
        return f"Settings for user {self.user_id}"


# -------------------------------------------------------------------
# BUSINESSES
# -------------------------------------------------------------------
# A user may run several businesses; everything business-scoped hangs here


class Business(models.Model):
    """
    A business owned by a single user.

    Entities with ``business=None`` are personal; entities pointing at a
    business are scoped to it and must stay coherent with it.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="businesses"
    )
    name = models.CharField(max_length=255)
    legal_form = models.CharField(max_length=50, blank=True, null=True)
    registration_number = models.CharField(max_length=100, blank=True, null=True)
    tax_id = models.CharField(max_length=100, blank=True, null=True)
    currency = models.CharField(max_length=10, default="EUR")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserScopedManager()

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["user", "name"], name="uq_business_user_name"),
        ]
        indexes = [models.Index(fields=["user", "is_active"])]

    def __str__(self):
        return self.name


class BusinessSettings(models.Model):
    """
    Numbering counters and billing defaults of a business.

    The ``*_next_number`` counters are the only shared mutable state of the
    quote/invoice workflow; they are read and incremented under a row lock.
    """

    business = models.OneToOneField(
        Business, on_delete=models.CASCADE, related_name="settings"
    )
    invoice_prefix = models.CharField(max_length=20, default="INV-")
    invoice_next_number = models.PositiveIntegerField(
        default=1, validators=[MinValueValidator(1)]
    )
    quote_prefix = models.CharField(max_length=20, default="Q-")
    quote_next_number = models.PositiveIntegerField(
        default=1, validators=[MinValueValidator(1)]
    )
    default_vat_rate = models.DecimalField(
        **RATE, null=True, blank=True, validators=PERCENT_VALIDATORS
    )
    default_payment_terms_days = models.PositiveIntegerField(default=30)
    monthly_revenue_goal = models.DecimalField(
        **MONEY, null=True, blank=True, validators=[MinValueValidator(Decimal("0"))]
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Business settings"

    def __str__(self):
        return f"Settings for {self.business}"


# -------------------------------------------------------------------
# ACCOUNTS & REFERENCE DATA
# -------------------------------------------------------------------
# Accounts hold ledger rows; reference rows can be linked from transactions


class Account(models.Model):
    """
    A money container (bank account, cash, investment...).

    The balance is intentionally absent: it is always the signed sum of the
    account's transactions.
    """

    ACCOUNT_TYPES = [
        ("current", "Current"),
        ("savings", "Savings"),
        ("investment", "Investment"),
        ("cash", "Cash"),
        ("other", "Other"),
    ]
    CONNECTION_TYPES = [
        ("manual", "Manual"),
        ("aggregator", "Aggregator"),
        ("api", "API"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="accounts"
    )
    business = models.ForeignKey(
        Business, on_delete=models.CASCADE, null=True, blank=True, related_name="accounts"
    )
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=20, choices=ACCOUNT_TYPES, default="current")
    currency = models.CharField(max_length=10, default="EUR")
    connection_type = models.CharField(
        max_length=20, choices=CONNECTION_TYPES, default="manual"
    )
    is_active = models.BooleanField(default=True)
    include_in_budget = models.BooleanField(default=True)
    include_in_net_worth = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserScopedManager()

    class Meta:
        ordering = ["name", "id"]
        indexes = [
            models.Index(fields=["user", "business"]),
            models.Index(fields=["user", "is_active"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.currency})"

    def clean(self):
        super().clean()
        if not self.currency or not self.currency.strip() or len(self.currency) > 10:
            raise ValidationError({"currency": "Currency must be 1 to 10 characters."})


class Category(models.Model):
    """Income/expense classification, optionally nested and business-scoped."""

    KIND_CHOICES = [
        ("income", "Income"),
        ("expense", "Expense"),
        ("neutral", "Neutral"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="categories"
    )
    business = models.ForeignKey(
        Business, on_delete=models.CASCADE, null=True, blank=True, related_name="categories"
    )
    parent = models.ForeignKey(
        "self", on_delete=models.SET_NULL, null=True, blank=True, related_name="children"
    )
    name = models.CharField(max_length=255)
    kind = models.CharField(max_length=10, choices=KIND_CHOICES, default="expense")
    created_at = models.DateTimeField(auto_now_add=True)

    objects = UserScopedManager()

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Categories"
        indexes = [models.Index(fields=["user", "kind"])]

    def __str__(self):
        return self.name


class Contact(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="contacts"
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, null=True)

    objects = UserScopedManager()

    def __str__(self):
        return self.name


class IncomeSource(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="income_sources"
    )
    name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)

    objects = UserScopedManager()

    def __str__(self):
        return self.name


class Supplier(models.Model):
    """Business-owned supplier; ownership is resolved through the business."""

    business = models.ForeignKey(
        Business, on_delete=models.CASCADE, related_name="suppliers"
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, null=True)
    vat_number = models.CharField(max_length=50, blank=True, null=True)

    objects = BusinessScopedManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["business", "name"], name="uq_supplier_name"),
        ]

    def __str__(self):
        return self.name


class RecurringSeries(models.Model):
    CADENCE_CHOICES = [
        ("weekly", "Weekly"),
        ("monthly", "Monthly"),
        ("quarterly", "Quarterly"),
        ("yearly", "Yearly"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="recurring_series"
    )
    label = models.CharField(max_length=255)
    cadence = models.CharField(max_length=10, choices=CADENCE_CHOICES, default="monthly")

    objects = UserScopedManager()

    class Meta:
        verbose_name_plural = "Recurring series"

    def __str__(self):
        return self.label


# -------------------------------------------------------------------
# CATALOG
# -------------------------------------------------------------------
# Business clients and services referenced by projects, quotes and invoices


class Client(models.Model):
    """Billing client of a business (the catalog entry quotes/invoices use)."""

    STATUS_CHOICES = [
        ("active", "Active"),
        ("inactive", "Inactive"),
        ("prospect", "Prospect"),
    ]

    business = models.ForeignKey(
        Business, on_delete=models.CASCADE, related_name="clients"
    )
    name = models.CharField(max_length=255)
    contact_name = models.CharField(max_length=255, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=50, blank=True, null=True)
    billing_address = models.TextField(blank=True, null=True)
    shipping_address = models.TextField(blank=True, null=True)
    vat_number = models.CharField(max_length=50, blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active")
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BusinessScopedManager()

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["business", "name"], name="uq_client_name"),
        ]

    def __str__(self):
        return self.name


class ProjectClient(models.Model):
    """
    Lightweight client record attached to projects.

    It may exist without a business. When it is billed for the first time it
    is materialised into a catalog ``Client`` and linked through
    ``catalog_client``.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="project_clients"
    )
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="project_clients",
    )
    catalog_client = models.ForeignKey(
        Client,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="project_clients",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=50, blank=True, null=True)
    vat_number = models.CharField(max_length=50, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = UserScopedManager()

    def __str__(self):
        return self.name


class Service(models.Model):
    BILLING_MODES = [
        ("fixed", "Fixed"),
        ("hourly", "Hourly"),
        ("daily", "Daily"),
        ("recurring", "Recurring"),
        ("unit", "Unit"),
    ]

    business = models.ForeignKey(
        Business, on_delete=models.CASCADE, related_name="services"
    )
    name = models.CharField(max_length=255)
    billing_mode = models.CharField(max_length=20, choices=BILLING_MODES, default="fixed")
    description = models.TextField(blank=True, null=True)
    unit_label = models.CharField(max_length=30, blank=True, null=True)
    default_price = models.DecimalField(**MONEY, null=True, blank=True)
    default_vat_rate = models.DecimalField(
        **RATE, null=True, blank=True, validators=PERCENT_VALIDATORS
    )
    default_internal_cost = models.DecimalField(**MONEY, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BusinessScopedManager()

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["business", "name"], name="uq_service_name"),
        ]
        indexes = [models.Index(fields=["business", "is_active"])]

    def __str__(self):
        return self.name


# -------------------------------------------------------------------
# PROJECTS
# -------------------------------------------------------------------
# Projects, their rendered services, tasks and milestones


class Project(models.Model):
    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("planned", "Planned"),
        ("in_progress", "In progress"),
        ("on_hold", "On hold"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
    ]
    ACTIVE_STATUSES = ("planned", "in_progress", "on_hold")
    PRIORITY_CHOICES = [("low", "Low"), ("normal", "Normal"), ("high", "High")]
    PROGRESS_MODES = [
        ("manual", "Manual"),
        ("tasks", "Tasks"),
        ("milestones", "Milestones"),
        ("financial", "Financial"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="projects"
    )
    business = models.ForeignKey(
        Business, on_delete=models.CASCADE, null=True, blank=True, related_name="projects"
    )
    client = models.ForeignKey(
        ProjectClient,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="projects",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="planned")
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="normal")
    currency = models.CharField(max_length=10, default="EUR")
    budget_amount = models.DecimalField(**MONEY, null=True, blank=True)
    start_date = models.DateField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    progress_mode = models.CharField(max_length=20, choices=PROGRESS_MODES, default="manual")
    progress_manual_pct = models.DecimalField(**RATE, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserScopedManager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user", "business"]),
            models.Index(fields=["user", "status"]),
        ]

    def __str__(self):
        return self.name


class ProjectService(models.Model):
    """Snapshot of a catalog service sold within a project."""

    project = models.ForeignKey(
        Project, on_delete=models.CASCADE, related_name="project_services"
    )
    service = models.ForeignKey(
        Service, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    label = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("1"))
    unit_price = models.DecimalField(**MONEY, default=Decimal("0"))
    total = models.DecimalField(**MONEY, default=Decimal("0"))
    notes = models.TextField(blank=True, null=True)

    def __str__(self):
        return f"{self.label} x {self.quantity}"


class ProjectTask(models.Model):
    STATUS_CHOICES = [
        ("todo", "To do"),
        ("in_progress", "In progress"),
        ("blocked", "Blocked"),
        ("done", "Done"),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="tasks")
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="todo")
    priority = models.CharField(
        max_length=10, choices=Project.PRIORITY_CHOICES, default="normal"
    )
    due_date = models.DateField(null=True, blank=True)
    estimate_hours = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return self.title


class ProjectMilestone(models.Model):
    STATUS_CHOICES = [
        ("not_started", "Not started"),
        ("in_progress", "In progress"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
    ]

    project = models.ForeignKey(
        Project, on_delete=models.CASCADE, related_name="milestones"
    )
    name = models.CharField(max_length=255)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="not_started")
    weight_pct = models.DecimalField(
        **RATE, null=True, blank=True, validators=PERCENT_VALIDATORS
    )
    order_index = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order_index", "id"]

    def __str__(self):
        return self.name


# -------------------------------------------------------------------
# QUOTES & INVOICES
# -------------------------------------------------------------------
# Commercial documents numbered per business


class Quote(models.Model):
    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("sent", "Sent"),
        ("accepted", "Accepted"),
        ("rejected", "Rejected"),
        ("expired", "Expired"),
        ("cancelled", "Cancelled"),
    ]

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="quotes")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="quotes"
    )
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="quotes")
    project = models.ForeignKey(
        Project, on_delete=models.SET_NULL, null=True, blank=True, related_name="quotes"
    )
    number = models.CharField(max_length=50)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="draft")
    issue_date = models.DateField()
    expiry_date = models.DateField(null=True, blank=True)
    currency = models.CharField(max_length=10, default="EUR")
    notes = models.TextField(blank=True, null=True)
    total_ht = models.DecimalField(**MONEY, default=Decimal("0"))
    total_vat = models.DecimalField(**MONEY, default=Decimal("0"))
    discount = models.DecimalField(**MONEY, default=Decimal("0"))
    total_ttc = models.DecimalField(**MONEY, default=Decimal("0"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BusinessScopedManager()

    class Meta:
        ordering = ["-issue_date", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["business", "number"], name="uq_quote_number"),
        ]
        indexes = [models.Index(fields=["business", "status"])]

    def __str__(self):
        return self.number

    def clean(self):
        super().clean()
        if self.expiry_date and self.issue_date and self.expiry_date < self.issue_date:
            raise ValidationError({"expiry_date": "Expiry date cannot precede issue date."})


class QuoteLine(models.Model):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name="lines")
    service = models.ForeignKey(
        Service, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    description = models.TextField()
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    unit_price = models.DecimalField(**MONEY)
    vat_rate = models.DecimalField(**RATE, default=Decimal("0"))
    discount_pct = models.DecimalField(**RATE, default=Decimal("0"))
    total_ht = models.DecimalField(**MONEY, default=Decimal("0"))
    total_vat = models.DecimalField(**MONEY, default=Decimal("0"))
    total_ttc = models.DecimalField(**MONEY, default=Decimal("0"))
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]


class Invoice(models.Model):
    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("issued", "Issued"),
        ("partially_paid", "Partially paid"),
        ("paid", "Paid"),
        ("overdue", "Overdue"),
        ("cancelled", "Cancelled"),
    ]
    OPEN_STATUSES = ("issued", "partially_paid", "overdue")
    KIND_CHOICES = [
        ("standard", "Standard"),
        ("deposit", "Deposit"),
        ("final", "Final"),
        ("full", "Full"),
    ]

    business = models.ForeignKey(
        Business, on_delete=models.CASCADE, related_name="invoices"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="invoices"
    )
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="invoices")
    project = models.ForeignKey(
        Project, on_delete=models.SET_NULL, null=True, blank=True, related_name="invoices"
    )
    quote = models.ForeignKey(
        Quote, on_delete=models.SET_NULL, null=True, blank=True, related_name="invoices"
    )
    number = models.CharField(max_length=50)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="draft")
    kind = models.CharField(max_length=10, choices=KIND_CHOICES, default="standard")
    issue_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    currency = models.CharField(max_length=10, default="EUR")
    notes = models.TextField(blank=True, null=True)
    total_ht = models.DecimalField(**MONEY, default=Decimal("0"))
    total_vat = models.DecimalField(**MONEY, default=Decimal("0"))
    total_ttc = models.DecimalField(**MONEY, default=Decimal("0"))
    amount_paid_cached = models.DecimalField(**MONEY, default=Decimal("0"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BusinessScopedManager()

    class Meta:
        ordering = ["-issue_date", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["business", "number"], name="uq_invoice_number"),
            models.CheckConstraint(
                condition=models.Q(amount_paid_cached__lte=models.F("total_ttc")),
                name="ck_invoice_paid_le_total",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "status"]),
            models.Index(fields=["business", "due_date"]),
        ]

    def __str__(self):
        return self.number

    @property
    def amount_remaining(self):
        return self.total_ttc - self.amount_paid_cached


class InvoiceLine(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="lines")
    service = models.ForeignKey(
        Service, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    description = models.TextField()
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    unit_price = models.DecimalField(**MONEY)
    vat_rate = models.DecimalField(**RATE, default=Decimal("0"))
    discount_pct = models.DecimalField(**RATE, default=Decimal("0"))
    total_ht = models.DecimalField(**MONEY, default=Decimal("0"))
    total_vat = models.DecimalField(**MONEY, default=Decimal("0"))
    total_ttc = models.DecimalField(**MONEY, default=Decimal("0"))
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]


# -------------------------------------------------------------------
# TRANSACTIONS
# -------------------------------------------------------------------
# The ledger: single source of truth for every balance and aggregate


class Transaction(models.Model):
    """
    A single monetary movement on an account.

    ``amount`` is always positive; the sign comes from ``direction`` and is
    applied only when aggregating.
    """

    DIRECTION_CHOICES = [("in", "In"), ("out", "Out")]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="transactions"
    )
    account = models.ForeignKey(
        Account, on_delete=models.CASCADE, related_name="transactions"
    )
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="transactions",
    )
    amount = models.DecimalField(**MONEY)
    direction = models.CharField(max_length=3, choices=DIRECTION_CHOICES)
    date = models.DateField()
    label = models.CharField(max_length=255)
    type = models.CharField(max_length=30, default="other")
    notes = models.TextField(blank=True, null=True)
    category = models.ForeignKey(
        Category, on_delete=models.SET_NULL, null=True, blank=True, related_name="transactions"
    )
    project = models.ForeignKey(
        Project, on_delete=models.SET_NULL, null=True, blank=True, related_name="transactions"
    )
    contact = models.ForeignKey(
        Contact, on_delete=models.SET_NULL, null=True, blank=True, related_name="transactions"
    )
    income_source = models.ForeignKey(
        IncomeSource,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transactions",
    )
    invoice = models.ForeignKey(
        Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name="transactions"
    )
    supplier = models.ForeignKey(
        Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name="transactions"
    )
    recurring_series = models.ForeignKey(
        RecurringSeries,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transactions",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserScopedManager()

    class Meta:
        ordering = ["date", "created_at", "id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="ck_transaction_amount_positive"),
        ]
        indexes = [
            models.Index(fields=["user", "date"]),
            models.Index(fields=["account", "date"]),
            models.Index(fields=["user", "business", "date"]),
            models.Index(fields=["project", "direction"]),
        ]

    def __str__(self):
        return f"{self.date} {self.direction} {self.amount} {self.label}"

    @property
    def signed_amount(self):
        return self.amount if self.direction == "in" else -self.amount


class InvoicePayment(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="payments")
    transaction = models.OneToOneField(
        Transaction,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoice_payment",
    )
    amount = models.DecimalField(**MONEY)
    date = models.DateField()
    method = models.CharField(max_length=30, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["date", "id"]

    def __str__(self):
        return f"{self.amount} on {self.invoice}"


# -------------------------------------------------------------------
# BUDGETS
# -------------------------------------------------------------------
# Planned spending per period, compared against the ledger on read


class Budget(models.Model):
    PERIOD_TYPES = [("monthly", "Monthly"), ("custom", "Custom")]
    SCENARIOS = [
        ("base", "Base"),
        ("optimistic", "Optimistic"),
        ("conservative", "Conservative"),
        ("custom", "Custom"),
    ]
    STATUS_CHOICES = [("draft", "Draft"), ("active", "Active"), ("archived", "Archived")]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="budgets"
    )
    business = models.ForeignKey(
        Business, on_delete=models.CASCADE, null=True, blank=True, related_name="budgets"
    )
    name = models.CharField(max_length=255)
    period_type = models.CharField(max_length=10, choices=PERIOD_TYPES)
    year = models.PositiveIntegerField(null=True, blank=True)
    month = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(12)]
    )
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    scenario = models.CharField(max_length=20, choices=SCENARIOS, default="base")
    version_no = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="draft")
    spending_limit = models.DecimalField(
        **MONEY, null=True, blank=True, validators=[MinValueValidator(Decimal("0"))]
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserScopedManager()

    class Meta:
        ordering = ["-year", "-month", "-start_date", "-id"]
        indexes = [
            models.Index(fields=["user", "business", "status"]),
            models.Index(fields=["user", "year", "month"]),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if self.period_type == "monthly":
            if self.year is None or self.month is None:
                raise ValidationError("Monthly budgets require a year and a month.")
            if not 1 <= self.month <= 12:
                raise ValidationError({"month": "Month must be between 1 and 12."})
        elif self.period_type == "custom":
            if self.start_date is None or self.end_date is None:
                raise ValidationError("Custom budgets require a start and an end date.")
            if self.start_date > self.end_date:
                raise ValidationError({"end_date": "End date cannot precede start date."})


class BudgetLine(models.Model):
    PRIORITY_CHOICES = [
        ("essential", "Essential"),
        ("comfort", "Comfort"),
        ("nice_to_have", "Nice to have"),
    ]

    budget = models.ForeignKey(Budget, on_delete=models.CASCADE, related_name="lines")
    category = models.ForeignKey(Category, on_delete=models.CASCADE, related_name="budget_lines")
    spending_limit = models.DecimalField(
        **MONEY, null=True, blank=True, validators=[MinValueValidator(Decimal("0"))]
    )
    priority = models.CharField(max_length=15, choices=PRIORITY_CHOICES, default="comfort")
    alert_threshold_pct = models.DecimalField(
        **RATE, null=True, blank=True, validators=PERCENT_VALIDATORS
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["budget", "category"], name="uq_budget_line_category"),
        ]

    def __str__(self):
        return f"{self.budget} / {self.category}"


# -------------------------------------------------------------------
# SAVINGS
# -------------------------------------------------------------------
# Savings targets with an optional funding account


class SavingsGoal(models.Model):
    STATUS_CHOICES = [
        ("active", "Active"),
        ("paused", "Paused"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
    ]
    PRIORITY_CHOICES = Project.PRIORITY_CHOICES

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="savings_goals"
    )
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="savings_goals",
    )
    account = models.ForeignKey(
        Account, on_delete=models.SET_NULL, null=True, blank=True, related_name="savings_goals"
    )
    name = models.CharField(max_length=255)
    target_amount = models.DecimalField(**MONEY)
    current_amount = models.DecimalField(**MONEY, default=Decimal("0"))
    target_date = models.DateField(null=True, blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="normal")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="active")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserScopedManager()

    class Meta:
        ordering = ["target_date", "id"]
        indexes = [models.Index(fields=["user", "status"])]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if self.target_amount is not None and self.target_amount <= 0:
            raise ValidationError({"target_amount": "Target amount must be positive."})
        if self.current_amount is not None and self.current_amount < 0:
            raise ValidationError({"current_amount": "Current amount cannot be negative."})
        if (
            self.target_amount is not None
            and self.current_amount is not None
            and self.current_amount > self.target_amount
        ):
            raise ValidationError(
                {"current_amount": "Current amount cannot exceed the target amount."}
            )


# -------------------------------------------------------------------
# SHARED EXPENSES
# -------------------------------------------------------------------
# Expenses split between named participants; debts move through settlements


class SharedExpense(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="shared_expenses"
    )
    label = models.CharField(max_length=255)
    total_amount = models.DecimalField(**MONEY)
    currency = models.CharField(max_length=10, default="EUR")
    date = models.DateField()
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserScopedManager()

    class Meta:
        ordering = ["-date", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gt=0), name="ck_shared_expense_total_positive"
            ),
        ]

    def __str__(self):
        return self.label


class SharedExpenseParticipant(models.Model):
    shared_expense = models.ForeignKey(
        SharedExpense, on_delete=models.CASCADE, related_name="participants"
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, null=True)
    share_amount = models.DecimalField(**MONEY)
    is_owner = models.BooleanField(default=False)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["shared_expense", "name"], name="uq_shared_expense_participant_name"
            ),
        ]

    def __str__(self):
        return self.name


class SharedExpenseSettlement(models.Model):
    shared_expense = models.ForeignKey(
        SharedExpense, on_delete=models.CASCADE, related_name="settlements"
    )
    from_name = models.CharField(max_length=255)
    to_name = models.CharField(max_length=255)
    amount = models.DecimalField(**MONEY)
    date = models.DateField()
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["date", "id"]

    def __str__(self):
        return f"{self.from_name} -> {self.to_name}: {self.amount}"
