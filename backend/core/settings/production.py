# flake8: noqa
"""
Production settings: PostgreSQL with persistent connections, HTTPS-only
cookies, JSON log files and whitenoise for static assets.
"""

from .base import *
import logging
from .utils import load_environment_config

config = load_environment_config("production")


def _csv(value):
    return [item.strip() for item in value.split(",") if item.strip()]


ENVIRONMENT = "production"

DEBUG = False
SECRET_KEY = config("SECRET_KEY")
ALLOWED_HOSTS = config("ALLOWED_HOSTS", default="api.ledger.local", cast=_csv)

CORS_ALLOWED_ORIGINS = config("CORS_ALLOWED_ORIGINS", default="", cast=_csv)
CORS_ALLOW_ALL_ORIGINS = False

SECURE_SSL_REDIRECT = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": config("POSTGRES_DB"),
        "USER": config("POSTGRES_USER"),
        "PASSWORD": config("POSTGRES_PASSWORD"),
        "HOST": config("DB_HOST"),
        "PORT": config("DB_PORT", default="5432"),
        "CONN_MAX_AGE": config("DB_CONN_MAX_AGE", default=60, cast=int),
        "OPTIONS": {"connect_timeout": 5},
    }
}

# =============================================================================
# LOGGING: JSON files for the log shipper, console kept for the container
# =============================================================================

LOG_DIR = Path(config("LOG_DIR", default="/var/log/ledger"))
LOG_DIR.mkdir(parents=True, exist_ok=True)

for handler_name, level, filename, size_mb in (
    ("ledger_file", "INFO", "ledger.log", 100),
    ("ledger_errors", "ERROR", "ledger_errors.log", 50),
):
    LOGGING["handlers"][handler_name] = {
        "level": level,
        "class": "logging.handlers.RotatingFileHandler",
        "filename": LOG_DIR / filename,
        "maxBytes": size_mb * 1024 * 1024,
        "backupCount": 10,
        "formatter": "json",
        "encoding": "utf-8",
    }

for logger_name in ("django", "users", "ledger", "core"):
    LOGGING["loggers"][logger_name]["handlers"] = ["console", "ledger_file", "ledger_errors"]

LOGGING["loggers"]["django.db.backends"]["level"] = "ERROR"

MIDDLEWARE.insert(1, "whitenoise.middleware.WhiteNoiseMiddleware")
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

logging.getLogger(__name__).info(
    "Production settings loaded",
    extra={
        "environment": ENVIRONMENT,
        "allowed_hosts": ALLOWED_HOSTS,
        "insights_max_workers": LEDGER_INSIGHTS_MAX_WORKERS,
        "invoice_overdue_mode": LEDGER_INVOICE_OVERDUE_MODE,
        "action": "environment_startup",
        "component": "settings",
    },
)
