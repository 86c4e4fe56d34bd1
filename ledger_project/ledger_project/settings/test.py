# ledger_project/settings/test.py
"""
PATH: ledger_project/settings/test.py

TEST SETTINGS
- in-memory SQLite
- Celery runs tasks eagerly in-process (no broker needed)
"""

from __future__ import annotations

from .base import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

LEDGER_POSTING_RETRY_DELAY = 0
