"""
PATH: ledger_project/settings/base.py

BASE SETTINGS (shared by dev + prod + test)

- Environment from .env via python-dotenv
- Database from DB_* variables (SQLite by default, PostgreSQL in production)
- Celery broker / result backend for the posting pipeline
- Posting retry policy for transient failures
- Well-known account codes used when binding chart roles for an entity
"""

from __future__ import annotations

from pathlib import Path
import os

from dotenv import load_dotenv

# -----------------------------------------
# BASE DIRECTORY
# -----------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# -----------------------------------------
# LOAD .env (python-dotenv), real environment variables win
# -----------------------------------------
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")


def env_bool(name, default="False"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def env_list(name, default=""):
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# -----------------------------------------
# CORE SECURITY
# -----------------------------------------
SECRET_KEY = os.getenv("SECRET_KEY", "").strip() or "dev-insecure-change-me"
DEBUG = env_bool("DEBUG")
ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", "localhost,127.0.0.1")

# -----------------------------------------
# I18N / TZ
# -----------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC").strip()
USE_I18N = True
USE_TZ = True

# -----------------------------------------
# INSTALLED APPS
# -----------------------------------------
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "ledger_core.apps.LedgerCoreConfig",
]

MIDDLEWARE: list[str] = []

# -----------------------------------------
# DATABASE
# -----------------------------------------
# SQLite by default; set DB_ENGINE=django.db.backends.postgresql in production
DB_ENGINE = os.getenv("DB_ENGINE", "django.db.backends.sqlite3")
DATABASES = {
    "default": {
        "ENGINE": DB_ENGINE,
        "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.getenv("DB_USER", ""),
        "PASSWORD": os.getenv("DB_PASSWORD", ""),
        "HOST": os.getenv("DB_HOST", ""),
        "PORT": os.getenv("DB_PORT", ""),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------
# CELERY
# -----------------------------------------
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER")
CELERY_TASK_DEFAULT_QUEUE = os.getenv("CELERY_TASK_DEFAULT_QUEUE", "ledger")
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
# ack after the task body finishes, so a crashed worker gets the job redelivered
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_REJECT_ON_WORKER_LOST = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1

# -----------------------------------------
# POSTING ENGINE
# -----------------------------------------
# transient database failures only
LEDGER_POSTING_MAX_RETRIES = int(os.getenv("LEDGER_POSTING_MAX_RETRIES", "5"))
LEDGER_POSTING_RETRY_DELAY = int(os.getenv("LEDGER_POSTING_RETRY_DELAY", "30"))

# role -> account code, resolved once per entity by bind_default_roles()
LEDGER_WELL_KNOWN_CODES = {
    "accounts_receivable": "1120-01",
    "accounts_payable": "2110-01",
    "tax_payable": "2140-01",
    "product_revenue": "4110-01",
    "service_revenue": "4120-01",
    "cogs": "5110-01",
    "inventory": "1130-01",
}

# -----------------------------------------
# LOGGING
# -----------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "ledger_core": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "celery": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
