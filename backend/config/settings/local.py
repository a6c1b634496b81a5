"""
Local development settings.

Extends base settings with development-friendly defaults.
"""

from apps.core.logging import configure_logging

from .base import *  # noqa: F403
from .base import settings

DEBUG = True
ALLOWED_HOSTS = [".localhost", "localhost", "127.0.0.1"]

# acme.localhost:8000 exercises the same subdomain path as production
PLATFORM_DOMAINS = [*settings.PLATFORM_DOMAINS, "localhost"]

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

configure_logging(json_format=False, log_level="DEBUG")
