from django.contrib import admin

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
    Quote,
    QuoteLine,
    SavingsGoal,
    Service,
    SharedExpense,
    SharedExpenseParticipant,
    SharedExpenseSettlement,
    Transaction,
)


class BusinessSettingsInline(admin.StackedInline):
    model = BusinessSettings
    can_delete = False


@admin.register(Business)
class BusinessAdmin(admin.ModelAdmin):
    list_display = ("name", "user", "currency", "is_active", "created_at")
    list_filter = ("is_active", "currency")
    search_fields = ("name", "user__email")
    inlines = [BusinessSettingsInline]


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ("name", "user", "business", "type", "currency", "is_active")
    list_filter = ("type", "is_active", "include_in_budget")
    search_fields = ("name", "user__email")


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("date", "label", "direction", "amount", "account", "business")
    list_filter = ("direction", "type")
    search_fields = ("label",)
    date_hierarchy = "date"
    raw_id_fields = ("account", "category", "project", "invoice")


class QuoteLineInline(admin.TabularInline):
    model = QuoteLine
    extra = 0


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ("number", "business", "client", "status", "issue_date", "total_ttc")
    list_filter = ("status",)
    search_fields = ("number", "client__name")
    inlines = [QuoteLineInline]


class InvoiceLineInline(admin.TabularInline):
    model = InvoiceLine
    extra = 0


class InvoicePaymentInline(admin.TabularInline):
    model = InvoicePayment
    extra = 0
    readonly_fields = ("transaction",)


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = (
        "number",
        "business",
        "client",
        "kind",
        "status",
        "due_date",
        "total_ttc",
        "amount_paid_cached",
    )
    list_filter = ("status", "kind")
    search_fields = ("number", "client__name")
    inlines = [InvoiceLineInline, InvoicePaymentInline]


class BudgetLineInline(admin.TabularInline):
    model = BudgetLine
    extra = 0


@admin.register(Budget)
class BudgetAdmin(admin.ModelAdmin):
    list_display = ("name", "user", "business", "period_type", "year", "month", "status")
    list_filter = ("status", "period_type", "scenario")
    inlines = [BudgetLineInline]


class SharedExpenseParticipantInline(admin.TabularInline):
    model = SharedExpenseParticipant
    extra = 0


class SharedExpenseSettlementInline(admin.TabularInline):
    model = SharedExpenseSettlement
    extra = 0


@admin.register(SharedExpense)
class SharedExpenseAdmin(admin.ModelAdmin):
    list_display = ("label", "user", "total_amount", "currency", "date")
    search_fields = ("label",)
    inlines = [SharedExpenseParticipantInline, SharedExpenseSettlementInline]


admin.site.register(Category)
admin.site.register(Client)
admin.site.register(Service)
admin.site.register(Project)
admin.site.register(SavingsGoal)
