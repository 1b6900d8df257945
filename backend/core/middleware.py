import logging

from django.conf import settings
from django.db import connection

logger = logging.getLogger(__name__)

# query count -> severity, checked from the highest threshold down
QUERY_THRESHOLDS = (
    (50, "high"),
    (25, "medium"),
    (10, "low"),
)


class QueryCountMiddleware:
    """
    Logs the number of database queries per API request.

    Active only when ``DEBUG`` and ``QUERY_MONITORING_ENABLED`` are set,
    since ``connection.queries`` is only populated in debug mode.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not (settings.DEBUG and getattr(settings, "QUERY_MONITORING_ENABLED", False)):
            return self.get_response(request)

        initial_queries = len(connection.queries)
        response = self.get_response(request)
        executed = connection.queries[initial_queries:]

        self._log_query_metrics(request, response, executed)
        return response

    def _log_query_metrics(self, request, response, executed):
        query_count = len(executed)
        user = getattr(request, "user", None)
        extra_context = {
            "request_path": request.path,
            "request_method": request.method,
            "status_code": response.status_code,
            "user_id": user.id if user is not None and user.is_authenticated else None,
            "query_count": query_count,
            "total_query_time": round(sum(float(q.get("time", 0)) for q in executed), 3),
            "action": "query_count_monitoring",
            "component": "QueryCountMiddleware",
        }

        for threshold, severity in QUERY_THRESHOLDS:
            if query_count < threshold:
                continue
            if severity == "high":
                logger.warning(
                    "High query count detected",
                    extra={
                        **extra_context,
                        "severity": severity,
                        "threshold": threshold,
                        "recommendation": "Check for N+1 queries and missing select_related",
                    },
                )
            elif severity == "medium":
                logger.info(
                    "Medium query count",
                    extra={**extra_context, "severity": severity, "threshold": threshold},
                )
            else:
                logger.debug(
                    "Normal query count",
                    extra={**extra_context, "severity": severity, "threshold": threshold},
                )
            break

        slow_queries = [
            {"time": q["time"], "sql_preview": q["sql"][:100]}
            for q in executed
            if float(q.get("time", 0)) > 0.1
        ]
        if slow_queries:
            logger.debug(
                "Slow queries detected",
                extra={
                    "request_path": request.path,
                    "slow_queries_count": len(slow_queries),
                    "slow_queries": slow_queries[:3],
                    "action": "query_monitoring_details",
                    "component": "QueryCountMiddleware",
                },
            )
