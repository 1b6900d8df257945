"""
Business analytics read models: project delivery performance and the
clients bringing in the most money.

``get_overview`` computes both for the same business on a thread pool sized
by ``LEDGER_INSIGHTS_MAX_WORKERS``, like the insight engine.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import connection
from django.utils import timezone

from ..exceptions import InvalidInput
from ..models import Invoice, InvoicePayment, Project
from ..utils.money_utils import HUNDRED, ZERO, quantize
from . import ownership

logger = logging.getLogger(__name__)

TOP_CLIENTS_LIMIT = 5
DEFAULT_CLIENT_WINDOW_DAYS = 365
# drafts and cancelled invoices were never billed
BILLED_EXCLUDED_STATUSES = ("draft", "cancelled")


def _as_date(value):
    if value is None or not hasattr(value, "hour"):
        return value
    return timezone.localdate(value) if timezone.is_aware(value) else value.date()


def _average(total, count):
    return quantize(Decimal(total) / count) if count else ZERO


class BusinessInsightsService:
    @staticmethod
    def projects_performance_for(business):
        projects = Project.objects.filter(business=business).only(
            "status", "start_date", "due_date", "completed_at", "created_at"
        )

        status_counts = {}
        completed = on_time = 0
        duration_days = []
        delay_days = []
        for project in projects:
            status_counts[project.status] = status_counts.get(project.status, 0) + 1
            if project.completed_at is None:
                continue

            completed += 1
            finished = _as_date(project.completed_at)
            started = project.start_date or _as_date(project.created_at)
            duration_days.append((finished - started).days)
            if project.due_date is None:
                continue
            if finished <= project.due_date:
                on_time += 1
            else:
                delay_days.append((finished - project.due_date).days)

        return {
            "business_id": business.id,
            "total_projects": sum(status_counts.values()),
            "completed_projects": completed,
            "on_time_projects": on_time,
            "on_time_rate_pct": _average(on_time * HUNDRED, completed),
            "average_duration_days": _average(sum(duration_days), len(duration_days)),
            "average_delay_days": _average(sum(delay_days), len(delay_days)),
            "status_distribution": [
                {"status": status, "count": count} for status, count in sorted(status_counts.items())
            ],
        }

    @staticmethod
    def get_projects_performance(user, business_id):
        """Completion, on-time rate and average duration/delay of the business's projects."""
        business = ownership.assert_business_owned_by_user(business_id, user)
        return BusinessInsightsService.projects_performance_for(business)

    @staticmethod
    def top_clients_for(business, date_from, date_to, limit=TOP_CLIENTS_LIMIT):
        invoices = (
            Invoice.objects.filter(
                business=business, issue_date__gte=date_from, issue_date__lte=date_to
            )
            .exclude(status__in=BILLED_EXCLUDED_STATUSES)
            .select_related("client")
        )
        payments = InvoicePayment.objects.filter(
            invoice__in=invoices, date__gte=date_from, date__lte=date_to
        ).values_list("invoice__client_id", "amount", "date")

        buckets = {}
        for invoice in invoices:
            bucket = buckets.setdefault(
                invoice.client_id,
                {
                    "client_id": invoice.client_id,
                    "name": invoice.client.name,
                    "total_invoiced": ZERO,
                    "total_paid": ZERO,
                    "invoice_count": 0,
                    "project_ids": set(),
                    "last_activity": None,
                },
            )
            bucket["total_invoiced"] += invoice.total_ttc
            bucket["invoice_count"] += 1
            if invoice.project_id is not None:
                bucket["project_ids"].add(invoice.project_id)
            if bucket["last_activity"] is None or invoice.issue_date > bucket["last_activity"]:
                bucket["last_activity"] = invoice.issue_date

        for client_id, amount, paid_on in payments:
            bucket = buckets[client_id]
            bucket["total_paid"] += amount
            if paid_on > bucket["last_activity"]:
                bucket["last_activity"] = paid_on

        ranked = sorted(
            buckets.values(),
            key=lambda b: (-b["total_paid"], -b["total_invoiced"], b["name"]),
        )[:limit]
        top_clients = [
            {
                "client_id": bucket["client_id"],
                "name": bucket["name"],
                "total_invoiced": quantize(bucket["total_invoiced"]),
                "total_paid": quantize(bucket["total_paid"]),
                "project_count": len(bucket["project_ids"]),
                "average_invoice": _average(bucket["total_invoiced"], bucket["invoice_count"]),
                "last_activity": bucket["last_activity"],
            }
            for bucket in ranked
        ]
        return {
            "business_id": business.id,
            "currency": business.currency,
            "date_from": date_from,
            "date_to": date_to,
            "top_clients": top_clients,
        }

    @staticmethod
    def get_top_clients(user, business_id, date_from=None, date_to=None, limit=TOP_CLIENTS_LIMIT):
        """
        Clients ranked by amount paid, then amount invoiced, over a window.

        The window defaults to the year ending today. Only issued (not draft
        or cancelled) invoices dated in the window count, and only payments
        received in the window count as paid.
        """
        business = ownership.assert_business_owned_by_user(business_id, user)
        date_to = date_to or timezone.localdate()
        date_from = date_from or date_to - timedelta(days=DEFAULT_CLIENT_WINDOW_DAYS)
        if date_from > date_to:
            raise InvalidInput("date_from must not be after date_to", code="invalid_period")
        if limit < 1:
            raise InvalidInput("limit must be positive", code="invalid_limit")
        return BusinessInsightsService.top_clients_for(business, date_from, date_to, limit)

    @staticmethod
    def get_overview(user, business_id, date_from=None, date_to=None, max_workers=None):
        """Projects performance and top clients of one business, fetched side by side."""
        business = ownership.assert_business_owned_by_user(business_id, user)
        date_to = date_to or timezone.localdate()
        date_from = date_from or date_to - timedelta(days=DEFAULT_CLIENT_WINDOW_DAYS)
        if date_from > date_to:
            raise InvalidInput("date_from must not be after date_to", code="invalid_period")

        jobs = {
            "projects_performance": lambda: BusinessInsightsService.projects_performance_for(business),
            "top_clients": lambda: BusinessInsightsService.top_clients_for(business, date_from, date_to),
        }
        workers = max_workers or getattr(settings, "LEDGER_INSIGHTS_MAX_WORKERS", 4)
        if workers <= 1:
            overview = {name: job() for name, job in jobs.items()}
        else:
            with ThreadPoolExecutor(
                max_workers=min(workers, len(jobs)), thread_name_prefix="business-insights"
            ) as executor:
                futures = {name: executor.submit(_run_in_worker, job) for name, job in jobs.items()}
                overview = {name: future.result() for name, future in futures.items()}

        logger.info(
            "Business overview computed",
            extra={
                "user_id": user.id,
                "business_id": business.id,
                "workers": workers,
                "action": "business_overview_computed",
                "component": "BusinessInsightsService",
            },
        )
        return overview


def _run_in_worker(job):
    try:
        return job()
    finally:
        # Worker threads open their own database connection.
        connection.close()
