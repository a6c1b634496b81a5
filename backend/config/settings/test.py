"""
Test settings.

In-memory SQLite and local-memory cache so the suite runs without services.
"""

from .base import *  # noqa: F403

DEBUG = False
ALLOWED_HOSTS = ["*"]

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

PLATFORM_DOMAINS = ["processaudit.ai", "staging.processaudit.ai"]

STYTCH_PROJECT_ID = "project-test-00000000"
STYTCH_SECRET = "secret-test-00000000"
STYTCH_WEBHOOK_SECRET = "whsec_dGVzdC1zZWNyZXQtZm9yLXdlYmhvb2tz"
