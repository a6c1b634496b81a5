"""
Production settings.

Security-hardened settings for deployed environments.
All secrets are read from environment variables (injected via ECS Task Definition).
"""

from .base import *  # noqa: F403
from .base import settings

DEBUG = False

# Tenant subdomains of every platform domain, plus explicitly configured
# hosts. Custom domains must be listed in ALLOWED_HOSTS when verified.
ALLOWED_HOSTS = [
    *(h.strip() for h in settings.ALLOWED_HOSTS if h.strip()),
    *(f".{domain}" for domain in settings.PLATFORM_DOMAINS),
]

SECURE_SSL_REDIRECT = True
SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

# Health checks hit tasks by IP, so they must not be redirected to HTTPS
SECURE_REDIRECT_EXEMPT = [r"^api/v1/health$"]
