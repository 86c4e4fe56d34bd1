# ledger_project/settings/dev.py
"""
PATH: ledger_project/settings/dev.py

LOCAL DEVELOPMENT SETTINGS
Safe + convenient defaults.
"""

from __future__ import annotations

from .base import *  # noqa: F401,F403
from .base import env_list

DEBUG = True

ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", "localhost,127.0.0.1")

LOGGING["loggers"]["ledger_core"]["level"] = "DEBUG"  # noqa: F405
