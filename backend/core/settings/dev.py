# flake8: noqa
"""
Development settings: local PostgreSQL, permissive CORS for the Vite dev
server, DEBUG logging to a rotating file and per-request query counts.
"""

from .base import *
import logging
from .utils import load_environment_config

config = load_environment_config("development")

ENVIRONMENT = "development"

DEBUG = True
SECRET_KEY = config("SECRET_KEY", default="django-insecure-ledger-dev-key")
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "0.0.0.0"]

CORS_ALLOWED_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]
CORS_ALLOW_ALL_ORIGINS = True

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": config("POSTGRES_DB", default="ledger"),
        "USER": config("POSTGRES_USER", default="ledger"),
        "PASSWORD": config("POSTGRES_PASSWORD", default="ledger"),
        "HOST": config("DB_HOST", default="localhost"),
        "PORT": config("DB_PORT", default="5432"),
    }
}

# =============================================================================
# QUERY MONITORING
# =============================================================================

QUERY_MONITORING_ENABLED = True

# "DEBUG" echoes every SQL statement, "INFO" keeps only the per-request counts
DB_QUERY_LOGGING_LEVEL = config("DB_QUERY_LOGGING_LEVEL", default="INFO")

MIDDLEWARE.insert(
    MIDDLEWARE.index("django.middleware.security.SecurityMiddleware") + 1,
    "core.middleware.QueryCountMiddleware",
)

# =============================================================================
# LOGGING
# =============================================================================

(BASE_DIR / "logs").mkdir(exist_ok=True)

LOGGING["handlers"]["dev_file"] = {
    "level": "DEBUG",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": BASE_DIR / "logs" / "ledger_dev.log",
    "maxBytes": 10 * 1024 * 1024,
    "backupCount": 5,
    "formatter": "structured",
    "encoding": "utf-8",
}

for logger_name in ("django", "users", "ledger", "core"):
    LOGGING["loggers"][logger_name]["handlers"] = ["console", "dev_file"]
    LOGGING["loggers"][logger_name]["level"] = "DEBUG"

LOGGING["loggers"]["django.db.backends"]["level"] = DB_QUERY_LOGGING_LEVEL

logging.getLogger(__name__).info(
    "Development settings loaded",
    extra={
        "environment": ENVIRONMENT,
        "query_monitoring_enabled": QUERY_MONITORING_ENABLED,
        "db_query_logging_level": DB_QUERY_LOGGING_LEVEL,
        "insights_max_workers": LEDGER_INSIGHTS_MAX_WORKERS,
        "invoice_overdue_mode": LEDGER_INVOICE_OVERDUE_MODE,
        "action": "environment_startup",
        "component": "settings",
    },
)
