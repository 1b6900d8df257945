# flake8: noqa
"""
Test settings: in-memory SQLite, fast password hashing, quiet logging.
"""

from .base import *

ENVIRONMENT = "test"

DEBUG = False
SECRET_KEY = "django-insecure-test-key"
ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Worker threads would not see the data of the test transaction.
LEDGER_INSIGHTS_MAX_WORKERS = 1
LEDGER_INVOICE_OVERDUE_MODE = "derived"

LOGGING["handlers"]["console"]["level"] = "WARNING"
for logger_name in ["ledger", "users", "core"]:
    LOGGING["loggers"][logger_name]["level"] = "WARNING"
