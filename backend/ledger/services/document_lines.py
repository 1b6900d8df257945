"""
Line items shared by quotes and invoices.

``prepare_items`` validates raw item dicts and fills price, VAT rate and
description from the business's catalog services. ``compute_totals`` turns
prepared items into per-line and document totals:

    line base  = quantity × unit_price × (1 − discount_pct / 100)
    line vat   = line base × vat_rate / 100
    subtotal   = Σ line base
    total      = subtotal − discount + vat      (document discount is 0)
"""

from dataclasses import dataclass
from decimal import Decimal

from ..exceptions import InvalidInput, ScopeCoherenceViolation
from ..models import Service
from ..utils.money_utils import HUNDRED, ZERO, parse_percentage, quantize, to_decimal

ITEM_KEYS = {"service_id", "description", "quantity", "unit_price", "vat_rate", "discount_pct"}


@dataclass
class PreparedItem:
    service: Service
    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: Decimal
    discount_pct: Decimal

    @property
    def base(self) -> Decimal:
        gross = self.quantity * self.unit_price
        return gross * (HUNDRED - self.discount_pct) / HUNDRED

    @property
    def vat(self) -> Decimal:
        return self.base * self.vat_rate / HUNDRED

    def line_values(self, position):
        base = quantize(self.base)
        vat = quantize(self.vat)
        return {
            "service": self.service,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "vat_rate": self.vat_rate,
            "discount_pct": self.discount_pct,
            "total_ht": base,
            "total_vat": vat,
            "total_ttc": base + vat,
            "position": position,
        }


def prepare_items(business, items):
    """Validate ``items`` and resolve catalog defaults for ``business``."""
    if not items:
        raise InvalidInput("At least one item is required", code="items_required")

    service_ids = {item.get("service_id") for item in items if item.get("service_id")}
    services = {s.id: s for s in Service.objects.filter(pk__in=service_ids)}

    prepared = []
    for index, item in enumerate(items):
        unknown = set(item) - ITEM_KEYS
        if unknown:
            raise InvalidInput(f"Unknown item fields: {sorted(unknown)}", index=index)

        service = None
        if item.get("service_id"):
            service = services.get(item["service_id"])
            if service is None:
                raise InvalidInput("Service not found", code="service_not_found", index=index)
            if service.business_id != business.id:
                raise ScopeCoherenceViolation(
                    "Service not attached to this business",
                    code="service_scope_mismatch",
                    service_id=service.id,
                )

        description = (item.get("description") or "").strip()
        if not description:
            if service is None:
                raise InvalidInput(
                    "Item description is required when no service is provided",
                    code="item_description_required",
                    index=index,
                )
            description = service.name

        quantity = to_decimal(item.get("quantity"), "quantity")
        if quantity <= ZERO:
            raise InvalidInput("Item quantity must be greater than zero", code="invalid_quantity")

        unit_price = item.get("unit_price")
        if unit_price is None:
            unit_price = service.default_price if service and service.default_price is not None else ZERO
        unit_price = to_decimal(unit_price, "unit_price")
        if unit_price < ZERO:
            raise InvalidInput("Item unit price cannot be negative", code="invalid_unit_price")

        vat_rate = item.get("vat_rate")
        if vat_rate is None:
            vat_rate = service.default_vat_rate if service and service.default_vat_rate is not None else ZERO
        vat_rate = parse_percentage(vat_rate, "vat_rate", allow_none=False)

        discount_pct = parse_percentage(item.get("discount_pct") or ZERO, "discount_pct", allow_none=False)

        prepared.append(
            PreparedItem(
                service=service,
                description=description,
                quantity=quantity,
                unit_price=unit_price,
                vat_rate=vat_rate,
                discount_pct=discount_pct,
            )
        )
    return prepared


def compute_totals(prepared):
    subtotal = sum((item.base for item in prepared), ZERO)
    vat = sum((item.vat for item in prepared), ZERO)
    discount = ZERO
    return {
        "total_ht": quantize(subtotal - discount),
        "total_vat": quantize(vat),
        "discount": discount,
        "total_ttc": quantize(subtotal - discount + vat),
    }


def write_lines(line_model, parent_field, parent, prepared):
    line_model.objects.bulk_create(
        [
            line_model(**{parent_field: parent}, **item.line_values(position))
            for position, item in enumerate(prepared)
        ]
    )
