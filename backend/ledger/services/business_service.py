"""
Businesses, their billing settings and per-business document numbering.

Quote and invoice numbers come from counters on ``BusinessSettings``. The
counter row is locked with ``SELECT ... FOR UPDATE`` inside the caller's
transaction, so two concurrent allocations for the same business are
serialized and never hand out the same number.
"""

import logging

from django.db import IntegrityError
from django.db import transaction as db_transaction

from ..exceptions import InvalidInput, NotFound, StateConflict
from ..models import Business, BusinessSettings, UserSettings
from ..utils.money_utils import ZERO, normalize_label, parse_percentage, quantize, to_decimal
from . import ownership

logger = logging.getLogger(__name__)

NUMBER_SEQUENCES = {
    "quote": ("quote_prefix", "quote_next_number"),
    "invoice": ("invoice_prefix", "invoice_next_number"),
}


def _validate_settings(values):
    cleaned = {}
    for field in ("invoice_next_number", "quote_next_number"):
        if field in values:
            try:
                number = int(values[field])
            except (TypeError, ValueError):
                raise InvalidInput(f"{field} must be an integer >= 1", code="invalid_settings")
            if number < 1:
                raise InvalidInput(f"{field} must be an integer >= 1", code="invalid_settings")
            cleaned[field] = number
    if "default_vat_rate" in values:
        cleaned["default_vat_rate"] = parse_percentage(values["default_vat_rate"], "default_vat_rate")
    if "default_payment_terms_days" in values:
        try:
            days = int(values["default_payment_terms_days"])
        except (TypeError, ValueError):
            raise InvalidInput("default_payment_terms_days must be an integer >= 0", code="invalid_settings")
        if days < 0:
            raise InvalidInput("default_payment_terms_days must be an integer >= 0", code="invalid_settings")
        cleaned["default_payment_terms_days"] = days
    if "monthly_revenue_goal" in values:
        goal = values["monthly_revenue_goal"]
        if goal is not None:
            goal = to_decimal(goal, "monthly_revenue_goal")
            if goal < ZERO:
                raise InvalidInput("monthly_revenue_goal must be >= 0", code="invalid_settings")
            goal = quantize(goal)
        cleaned["monthly_revenue_goal"] = goal
    for field in ("invoice_prefix", "quote_prefix"):
        if field in values:
            prefix = (values[field] or "").strip()
            if not prefix or len(prefix) > 20:
                raise InvalidInput(f"{field} must be 1 to 20 characters", code="invalid_settings")
            cleaned[field] = prefix
    return cleaned


class BusinessService:
    """Business lifecycle plus the numbering primitive used by quotes and invoices."""

    @staticmethod
    @db_transaction.atomic
    def create_business(
        user,
        name,
        currency=None,
        legal_form=None,
        registration_number=None,
        tax_id=None,
        invoice_prefix="INV-",
        quote_prefix="Q-",
        default_vat_rate=None,
        default_payment_terms_days=30,
        monthly_revenue_goal=None,
    ):
        """Create a business together with its default settings row."""
        name = normalize_label(name)
        if not name:
            raise InvalidInput("Business name is required", code="invalid_name")
        settings_values = _validate_settings(
            {
                "invoice_prefix": invoice_prefix,
                "quote_prefix": quote_prefix,
                "default_vat_rate": default_vat_rate,
                "default_payment_terms_days": default_payment_terms_days,
                "monthly_revenue_goal": monthly_revenue_goal,
            }
        )
        if Business.objects.filter(user=user, name=name).exists():
            raise StateConflict(
                "Business name already exists for this user", code="business_name_exists"
            )
        if not currency:
            user_settings = UserSettings.objects.filter(user=user).first()
            currency = user_settings.main_currency if user_settings else "EUR"

        try:
            with db_transaction.atomic():
                business = Business.objects.create(
                    user=user,
                    name=name,
                    currency=currency.strip().upper(),
                    legal_form=legal_form,
                    registration_number=registration_number,
                    tax_id=tax_id,
                )
        except IntegrityError:
            raise StateConflict(
                "Business name already exists for this user", code="business_name_exists"
            )
        # The post_save signal may already have created the row.
        BusinessSettings.objects.update_or_create(business=business, defaults=settings_values)

        logger.info(
            "Business created with default settings",
            extra={
                "user_id": user.id,
                "business_id": business.id,
                "action": "business_created",
                "component": "BusinessService",
            },
        )
        return business

    @staticmethod
    def update_business(user, business_id, **changes):
        business = ownership.assert_business_owned_by_user(business_id, user)
        if "name" in changes:
            name = normalize_label(changes["name"])
            if not name:
                raise InvalidInput("Business name is required", code="invalid_name")
            if Business.objects.filter(user=user, name=name).exclude(pk=business.pk).exists():
                raise StateConflict(
                    "Business name already exists for this user", code="business_name_exists"
                )
            business.name = name
        for field in ("legal_form", "registration_number", "tax_id", "is_active"):
            if field in changes:
                setattr(business, field, changes[field])
        if "currency" in changes:
            currency = (changes["currency"] or "").strip().upper()
            if not 1 <= len(currency) <= 10:
                raise InvalidInput("currency must be 1 to 10 characters", code="invalid_currency")
            business.currency = currency
        business.save()
        return business

    @staticmethod
    def get_settings(user, business_id):
        business = ownership.assert_business_owned_by_user(business_id, user)
        settings_row, _ = BusinessSettings.objects.get_or_create(business=business)
        return settings_row

    @staticmethod
    @db_transaction.atomic
    def update_settings(user, business_id, **changes):
        settings_row = BusinessService.get_settings(user, business_id)
        for field, value in _validate_settings(changes).items():
            setattr(settings_row, field, value)
        settings_row.save()
        logger.info(
            "Business settings updated",
            extra={
                "user_id": user.id,
                "business_id": business_id,
                "fields": sorted(changes),
                "action": "business_settings_updated",
                "component": "BusinessService",
            },
        )
        return settings_row

    @staticmethod
    def list_businesses(user, include_inactive=False):
        queryset = Business.objects.for_user(user)
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        return list(queryset)

    @staticmethod
    def allocate_number(business, kind):
        """
        Return the next ``prefix + number`` for ``kind`` ("quote"/"invoice")
        and advance the counter.

        Must run inside ``transaction.atomic``: the settings row stays
        locked until the caller's transaction commits, which is also when
        the new document row becomes visible.
        """
        if not db_transaction.get_connection().in_atomic_block:
            raise RuntimeError("allocate_number must be called inside transaction.atomic")
        prefix_field, counter_field = NUMBER_SEQUENCES[kind]
        try:
            settings_row = BusinessSettings.objects.select_for_update().get(business=business)
        except BusinessSettings.DoesNotExist:
            raise NotFound("Business settings not found", code="business_settings_not_found")

        number = getattr(settings_row, counter_field)
        setattr(settings_row, counter_field, number + 1)
        settings_row.save(update_fields=[counter_field, "updated_at"])

        logger.debug(
            "Document number allocated",
            extra={
                "business_id": business.id,
                "kind": kind,
                "number": number,
                "action": "number_allocated",
                "component": "BusinessService",
            },
        )
        return f"{getattr(settings_row, prefix_field)}{number}", settings_row
