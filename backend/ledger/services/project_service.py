"""
Project financial and progress engine.

Financials are rollups of the ledger rows tagged with the project.
Progress is computed by one of four modes and clamped to [0, 150] so
callers can display over-delivery and over-budget states.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction as db_transaction
from django.db.models import Count, Sum
from django.utils import timezone

from ..exceptions import InvalidInput, ScopeCoherenceViolation
from ..managers import UNSET
from ..models import Project, ProjectService as ProjectServiceLine, Transaction, UserSettings
from ..utils.money_utils import HUNDRED, ZERO, normalize_label, quantize, to_decimal
from . import ownership

logger = logging.getLogger(__name__)

STATUSES = {choice for choice, _ in Project.STATUS_CHOICES}
PRIORITIES = {choice for choice, _ in Project.PRIORITY_CHOICES}
AUTO_MODES = ("tasks", "milestones", "financial")

PROGRESS_MIN = Decimal("0")
PROGRESS_MAX = Decimal("150")


def clamp_progress(value) -> Decimal:
    value = Decimal(value)
    if value.is_nan() or value < PROGRESS_MIN:
        return PROGRESS_MIN
    if value > PROGRESS_MAX:
        return PROGRESS_MAX
    return quantize(value)


def _ratio_pct(part, whole) -> Decimal:
    if not whole:
        return PROGRESS_MIN
    return clamp_progress(Decimal(part) * HUNDRED / Decimal(whole))


def _default_currency(user, business):
    if business is not None:
        return business.currency
    user_settings = UserSettings.objects.filter(user=user).first()
    if user_settings is not None:
        return user_settings.main_currency
    return getattr(settings, "LEDGER_DEFAULT_CURRENCY", "EUR")


class ProjectService:
    """Projects, their service snapshots, financial rollup and progress."""

    @staticmethod
    def _resolve_client(user, client_id, business):
        if client_id is None:
            return None
        client = ownership.assert_project_client_owned_by_user(client_id, user)
        if business is not None and client.business_id not in (None, business.id):
            raise ScopeCoherenceViolation(
                "Client does not belong to this business",
                code="client_scope_mismatch",
                client_id=client.id,
            )
        return client

    @staticmethod
    def _snapshot_services(user, business, services):
        snapshots = []
        for entry in services:
            service = ownership.assert_service_owned_by_user(entry["service_id"], user)
            if business is not None and service.business_id != business.id:
                raise ScopeCoherenceViolation(
                    "Service not attached to this business",
                    code="service_scope_mismatch",
                    service_id=service.id,
                )
            quantity = to_decimal(entry.get("quantity", 1), "quantity")
            if quantity <= ZERO:
                raise InvalidInput("quantity must be > 0", code="invalid_quantity")
            if entry.get("unit_price") is not None:
                unit_price = to_decimal(entry["unit_price"], "unit_price")
            else:
                unit_price = service.default_price or ZERO
            snapshots.append(
                ProjectServiceLine(
                    service=service,
                    label=normalize_label(entry.get("label")) or service.name,
                    quantity=quantity,
                    unit_price=quantize(unit_price),
                    total=quantize(unit_price * quantity),
                    notes=entry.get("notes"),
                )
            )
        return snapshots

    @staticmethod
    @db_transaction.atomic
    def create_project(
        user,
        name,
        business_id=None,
        client_id=None,
        services=None,
        budget_amount=None,
        currency=None,
        status="planned",
        priority="normal",
        description=None,
        start_date=None,
        due_date=None,
        progress_mode="manual",
        progress_manual_pct=None,
    ):
        """
        Create a project and snapshot the sold services into it.

        When ``budget_amount`` is omitted and services are given, the budget
        becomes the sum of the service totals.
        """
        name = normalize_label(name)
        if not name:
            raise InvalidInput("Project name is required", code="invalid_name")
        if status not in STATUSES:
            raise InvalidInput(f"Invalid project status: {status}", code="invalid_status")
        if priority not in PRIORITIES:
            raise InvalidInput(f"Invalid project priority: {priority}", code="invalid_priority")
        if progress_mode not in AUTO_MODES:
            progress_mode = "manual"

        business = ownership.resolve_scope(user, business_id)
        client = ProjectService._resolve_client(user, client_id, business)
        snapshots = ProjectService._snapshot_services(user, business, services or [])

        budget = quantize(to_decimal(budget_amount, "budget_amount")) if budget_amount else None
        if budget is None and snapshots:
            budget = sum((snap.total for snap in snapshots), ZERO)

        project = Project.objects.create(
            user=user,
            business=business,
            client=client,
            name=name,
            description=description,
            status=status,
            priority=priority,
            currency=(currency or "").strip() or _default_currency(user, business),
            budget_amount=budget,
            start_date=start_date,
            due_date=due_date,
            completed_at=timezone.now() if status == "completed" else None,
            progress_mode=progress_mode,
            progress_manual_pct=clamp_progress(to_decimal(progress_manual_pct, "progress_manual_pct"))
            if progress_manual_pct is not None
            else None,
        )
        for snapshot in snapshots:
            snapshot.project = project
        ProjectServiceLine.objects.bulk_create(snapshots)

        logger.info(
            "Project created",
            extra={
                "user_id": user.id,
                "project_id": project.id,
                "business_id": business_id,
                "service_count": len(snapshots),
                "action": "project_created",
                "component": "ProjectService",
            },
        )
        return project

    @staticmethod
    @db_transaction.atomic
    def update_project(user, project_id, **changes):
        project = ownership.assert_project_owned_by_user(project_id, user)

        if "name" in changes:
            name = normalize_label(changes["name"])
            if not name:
                raise InvalidInput("Project name is required", code="invalid_name")
            project.name = name
        if "status" in changes:
            status = changes["status"]
            if status not in STATUSES:
                raise InvalidInput(f"Invalid project status: {status}", code="invalid_status")
            if status == "completed" and project.status != "completed":
                project.completed_at = timezone.now()
            elif status != "completed":
                project.completed_at = None
            project.status = status
        if "priority" in changes:
            if changes["priority"] not in PRIORITIES:
                raise InvalidInput("Invalid project priority", code="invalid_priority")
            project.priority = changes["priority"]
        if "client_id" in changes:
            project.client = ProjectService._resolve_client(
                user, changes["client_id"], project.business
            )
        if "budget_amount" in changes:
            value = changes["budget_amount"]
            project.budget_amount = quantize(to_decimal(value, "budget_amount")) if value is not None else None
        if "progress_mode" in changes:
            mode = changes["progress_mode"]
            project.progress_mode = mode if mode in AUTO_MODES else "manual"
        if "progress_manual_pct" in changes:
            value = changes["progress_manual_pct"]
            project.progress_manual_pct = (
                clamp_progress(to_decimal(value, "progress_manual_pct")) if value is not None else None
            )
        for field in ("description", "start_date", "due_date", "currency"):
            if field in changes:
                setattr(project, field, changes[field])

        project.save()
        logger.info(
            "Project updated",
            extra={
                "user_id": user.id,
                "project_id": project.id,
                "fields": sorted(changes),
                "action": "project_updated",
                "component": "ProjectService",
            },
        )
        return project

    @staticmethod
    def delete_project(user, project_id):
        project = ownership.assert_project_owned_by_user(project_id, user)
        project.delete()

    @staticmethod
    def get_project(user, project_id):
        return ownership.assert_project_owned_by_user(project_id, user)

    @staticmethod
    def list_projects(user, business_id=UNSET, status=None):
        """``status="active"`` selects planned, in-progress and on-hold projects."""
        business = ownership.resolve_scope_filter(user, business_id)
        queryset = Project.objects.for_user(user, business).select_related("client")
        if status == "active":
            queryset = queryset.filter(status__in=Project.ACTIVE_STATUSES)
        elif status:
            queryset = queryset.filter(status=status)
        return list(queryset)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @staticmethod
    def financials_for(project):
        rows = (
            Transaction.objects.filter(project=project)
            .values("direction")
            .annotate(total=Sum("amount"), count=Count("id"))
            .order_by()
        )
        grouped = {row["direction"]: row for row in rows}
        revenue = (grouped.get("in") or {}).get("total") or ZERO
        costs = (grouped.get("out") or {}).get("total") or ZERO
        margin = revenue - costs
        return {
            "revenue": revenue,
            "costs": costs,
            "margin": margin,
            "margin_pct": quantize(margin * HUNDRED / revenue) if revenue > ZERO else None,
            "revenue_count": (grouped.get("in") or {}).get("count", 0),
            "costs_count": (grouped.get("out") or {}).get("count", 0),
        }

    @staticmethod
    def compute_financials(user, project_id):
        """Revenue (in), costs (out) and margin of the project's ledger rows."""
        project = ownership.assert_project_owned_by_user(project_id, user)
        return ProjectService.financials_for(project)

    @staticmethod
    def progress_for(project):
        if project.status == "completed":
            return {"mode": "manual", "value": Decimal("100"), "details": {"status": project.status}}

        mode = project.progress_mode if project.progress_mode in AUTO_MODES else "manual"

        if mode == "tasks":
            statuses = list(project.tasks.values_list("status", flat=True))
            total = len(statuses)
            done = sum(1 for status in statuses if status == "done")
            return {"mode": mode, "value": _ratio_pct(done, total), "details": {"total": total, "done": done}}

        if mode == "milestones":
            milestones = list(project.milestones.values_list("status", "weight_pct"))
            if not milestones:
                return {"mode": mode, "value": PROGRESS_MIN, "details": {"total": 0, "completed": 0}}
            if any(weight is not None for _, weight in milestones):
                weight_total = sum((weight or ZERO for _, weight in milestones), ZERO)
                completed_weight = sum(
                    (weight or ZERO for status, weight in milestones if status == "completed"), ZERO
                )
                return {
                    "mode": mode,
                    "value": _ratio_pct(completed_weight, weight_total),
                    "details": {"weight_total": weight_total, "completed_weight": completed_weight},
                }
            total = len(milestones)
            completed = sum(1 for status, _ in milestones if status == "completed")
            return {
                "mode": mode,
                "value": _ratio_pct(completed, total),
                "details": {"total": total, "completed": completed},
            }

        if mode == "financial":
            revenue = ProjectService.financials_for(project)["revenue"]
            budget = project.budget_amount or ZERO
            value = _ratio_pct(revenue, budget) if budget > ZERO else PROGRESS_MIN
            return {"mode": mode, "value": value, "details": {"budget": budget, "revenue": revenue}}

        manual = project.progress_manual_pct or ZERO
        return {"mode": "manual", "value": clamp_progress(manual), "details": {}}

    @staticmethod
    def compute_progress(user, project_id):
        project = ownership.assert_project_owned_by_user(project_id, user)
        return ProjectService.progress_for(project)
