"""
Reference data: categories, catalog clients, project clients and services.

``resolve_billing_client`` is the bridge between the lightweight project
clients and the business catalog that quotes and invoices point at.
"""

import logging

from django.db import transaction as db_transaction
from django.db.models import Q

from ..exceptions import InvalidInput, ScopeCoherenceViolation, StateConflict
from ..managers import UNSET
from ..models import Category, Client, ProjectClient, Service
from ..utils.money_utils import ZERO, normalize_label, parse_percentage, quantize, to_decimal
from . import ownership

logger = logging.getLogger(__name__)

CATEGORY_KINDS = {choice for choice, _ in Category.KIND_CHOICES}
CLIENT_STATUSES = {choice for choice, _ in Client.STATUS_CHOICES}
BILLING_MODES = {choice for choice, _ in Service.BILLING_MODES}

CLIENT_FIELDS = (
    "contact_name",
    "email",
    "phone",
    "billing_address",
    "shipping_address",
    "vat_number",
    "notes",
)


def _required_name(name, what):
    name = normalize_label(name)
    if not name:
        raise InvalidInput(f"{what} name is required", code="invalid_name")
    return name


def _optional_money(value, field):
    if value is None:
        return None
    amount = to_decimal(value, field)
    if amount < ZERO:
        raise InvalidInput(f"{field} must be >= 0", code="invalid_amount")
    return quantize(amount)


class CatalogService:
    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    @staticmethod
    def create_category(user, name, kind="expense", business_id=None, parent_id=None):
        if kind not in CATEGORY_KINDS:
            raise InvalidInput(f"Invalid category kind: {kind}", code="invalid_category_kind")
        business = ownership.resolve_scope(user, business_id)
        parent = ownership.assert_category_owned_by_user(parent_id, user) if parent_id else None
        return Category.objects.create(
            user=user,
            business=business,
            parent=parent,
            name=_required_name(name, "Category"),
            kind=kind,
        )

    @staticmethod
    def list_categories(user, business_id=UNSET, kind=None):
        business = ownership.resolve_scope_filter(user, business_id)
        queryset = Category.objects.for_user(user, business)
        if kind:
            queryset = queryset.filter(kind=kind)
        return list(queryset)

    # ------------------------------------------------------------------
    # Catalog clients
    # ------------------------------------------------------------------

    @staticmethod
    def create_client(user, business_id, name, status="active", **fields):
        business = ownership.assert_business_owned_by_user(business_id, user)
        name = _required_name(name, "Client")
        if status not in CLIENT_STATUSES:
            raise InvalidInput(f"Invalid client status: {status}", code="invalid_client_status")
        if Client.objects.filter(business=business, name=name).exists():
            raise StateConflict("A client with this name already exists", code="client_name_exists")
        unknown = set(fields) - set(CLIENT_FIELDS)
        if unknown:
            raise InvalidInput(f"Unknown client fields: {sorted(unknown)}")
        return Client.objects.create(business=business, name=name, status=status, **fields)

    @staticmethod
    def update_client(user, client_id, **changes):
        client = ownership.assert_client_owned_by_user(client_id, user)
        if "name" in changes:
            name = _required_name(changes.pop("name"), "Client")
            if Client.objects.filter(business=client.business, name=name).exclude(pk=client.pk).exists():
                raise StateConflict("A client with this name already exists", code="client_name_exists")
            client.name = name
        if "status" in changes:
            status = changes.pop("status")
            if status not in CLIENT_STATUSES:
                raise InvalidInput("Invalid client status", code="invalid_client_status")
            client.status = status
        for field, value in changes.items():
            if field not in CLIENT_FIELDS:
                raise InvalidInput(f"Unknown client field: {field}")
            setattr(client, field, value)
        client.save()
        return client

    @staticmethod
    def list_clients(user, business_id, status=None):
        business = ownership.assert_business_owned_by_user(business_id, user)
        queryset = Client.objects.filter(business=business)
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset)

    # ------------------------------------------------------------------
    # Project clients
    # ------------------------------------------------------------------

    @staticmethod
    def create_project_client(user, name, business_id=None, **fields):
        business = ownership.resolve_scope(user, business_id)
        allowed = {"email", "phone", "vat_number", "address", "notes"}
        unknown = set(fields) - allowed
        if unknown:
            raise InvalidInput(f"Unknown project client fields: {sorted(unknown)}")
        return ProjectClient.objects.create(
            user=user, business=business, name=_required_name(name, "Client"), **fields
        )

    @staticmethod
    def list_project_clients(user, business_id=UNSET):
        business = ownership.resolve_scope_filter(user, business_id)
        return list(ProjectClient.objects.for_user(user, business).order_by("name"))

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    @staticmethod
    def create_service(
        user,
        business_id,
        name,
        billing_mode="fixed",
        default_price=None,
        default_vat_rate=None,
        default_internal_cost=None,
        description=None,
        unit_label=None,
    ):
        business = ownership.assert_business_owned_by_user(business_id, user)
        name = _required_name(name, "Service")
        if billing_mode not in BILLING_MODES:
            raise InvalidInput(f"Invalid billing mode: {billing_mode}", code="invalid_billing_mode")
        if Service.objects.filter(business=business, name=name).exists():
            raise StateConflict("A service with this name already exists", code="service_name_exists")
        return Service.objects.create(
            business=business,
            name=name,
            billing_mode=billing_mode,
            default_price=_optional_money(default_price, "default_price"),
            default_vat_rate=parse_percentage(default_vat_rate, "default_vat_rate"),
            default_internal_cost=_optional_money(default_internal_cost, "default_internal_cost"),
            description=description,
            unit_label=unit_label,
        )

    @staticmethod
    def update_service(user, service_id, **changes):
        service = ownership.assert_service_owned_by_user(service_id, user)
        if "name" in changes:
            service.name = _required_name(changes["name"], "Service")
        if "billing_mode" in changes:
            if changes["billing_mode"] not in BILLING_MODES:
                raise InvalidInput("Invalid billing mode", code="invalid_billing_mode")
            service.billing_mode = changes["billing_mode"]
        for field in ("default_price", "default_internal_cost"):
            if field in changes:
                setattr(service, field, _optional_money(changes[field], field))
        if "default_vat_rate" in changes:
            service.default_vat_rate = parse_percentage(changes["default_vat_rate"], "default_vat_rate")
        for field in ("description", "unit_label", "is_active"):
            if field in changes:
                setattr(service, field, changes[field])
        service.save()
        return service

    @staticmethod
    def archive_service(user, service_id):
        return CatalogService.update_service(user, service_id, is_active=False)

    @staticmethod
    def list_services(user, business_id, include_inactive=False):
        business = ownership.assert_business_owned_by_user(business_id, user)
        queryset = Service.objects.filter(business=business)
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        return list(queryset)

    # ------------------------------------------------------------------
    # Billing client resolution
    # ------------------------------------------------------------------

    @staticmethod
    @db_transaction.atomic
    def resolve_billing_client(user, business, client_id=None, project_client_id=None):
        """
        Return the catalog ``Client`` a quote or invoice of ``business`` bills.

        A catalog client is used as is when it belongs to the business. A
        project client is materialised: its linked catalog client is reused,
        else a catalog client matching by name (case-insensitive) or email
        is reused, else a new one is created from its details. The project
        client is then linked to the result.
        """
        if client_id is not None:
            client = ownership.assert_client_owned_by_user(client_id, user)
            if client.business_id != business.id:
                raise ScopeCoherenceViolation(
                    "Client does not belong to this business",
                    code="client_scope_mismatch",
                    client_id=client.id,
                )
            return client

        if project_client_id is None:
            raise InvalidInput("A client is required", code="client_required")

        project_client = ownership.assert_project_client_owned_by_user(project_client_id, user)
        if project_client.business_id not in (None, business.id):
            raise ScopeCoherenceViolation(
                "Client not found for this business",
                code="client_scope_mismatch",
                project_client_id=project_client.id,
            )

        linked = project_client.catalog_client
        if linked is not None and linked.business_id == business.id:
            return linked

        match = Q(name__iexact=project_client.name)
        if project_client.email:
            match |= Q(email__iexact=project_client.email)
        client = Client.objects.filter(business=business).filter(match).order_by("id").first()
        created = client is None
        if created:
            client = Client.objects.create(
                business=business,
                name=project_client.name,
                email=project_client.email,
                phone=project_client.phone,
                vat_number=project_client.vat_number,
                billing_address=project_client.address,
                notes=project_client.notes,
            )

        project_client.catalog_client = client
        project_client.save(update_fields=["catalog_client"])

        logger.info(
            "Project client resolved to catalog client",
            extra={
                "user_id": user.id,
                "business_id": business.id,
                "project_client_id": project_client.id,
                "client_id": client.id,
                "created": created,
                "action": "billing_client_resolved",
                "component": "CatalogService",
            },
        )
        return client
