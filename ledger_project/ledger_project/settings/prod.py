# ledger_project/settings/prod.py
"""
PATH: ledger_project/settings/prod.py

PRODUCTION SETTINGS
- DEBUG off, SECRET_KEY required
- PostgreSQL expected through DB_* variables (row locks + atomic increments)
"""

from __future__ import annotations

import os

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa: F401,F403
from .base import DATABASES, SECRET_KEY, env_list

DEBUG = False

if not SECRET_KEY or SECRET_KEY == "dev-insecure-change-me":
    raise ImproperlyConfigured("SECRET_KEY must be set in production")

ALLOWED_HOSTS = env_list("ALLOWED_HOSTS")

DATABASES["default"]["CONN_MAX_AGE"] = int(os.getenv("DB_CONN_MAX_AGE", "60"))
