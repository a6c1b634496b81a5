"""
Input validation for organization fields.

Each validator returns the cleaned value or raises ApiError with the
matching INVALID_* code.
"""

import re

from django.conf import settings

from apps.core.errors import ApiError, ErrorCode
from apps.organizations.directory import normalize_domain
from apps.organizations.models import SLUG_PATTERN
from apps.organizations.plans import Plan

MIN_NAME_LENGTH = 2
MAX_DOMAIN_LENGTH = 253

_slug_re = re.compile(SLUG_PATTERN)
_domain_re = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


def clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        raise ApiError(
            ErrorCode.INVALID_NAME,
            f"Organization name must be at least {MIN_NAME_LENGTH} characters",
        )
    return name


def clean_slug(slug: str | None) -> str:
    slug = (slug or "").strip()
    if not _slug_re.match(slug) or len(slug) > 63:
        raise ApiError(
            ErrorCode.INVALID_SLUG,
            "Organization slug can only contain lowercase letters, numbers and hyphens",
        )
    if slug in settings.RESERVED_SLUGS:
        raise ApiError(ErrorCode.INVALID_SLUG, f"'{slug}' is reserved by the platform")
    return slug


def clean_plan(plan: str | None) -> Plan:
    try:
        return Plan(plan)
    except ValueError:
        raise ApiError(
            ErrorCode.INVALID_PLAN,
            "Invalid plan. Must be one of: " + ", ".join(Plan.values),
        ) from None


def clean_custom_domain(domain: str | None) -> str | None:
    """
    Normalize a custom domain; blank clears it.

    Platform domains and their subdomains belong to the platform and can
    never be claimed by a tenant.
    """
    domain = normalize_domain(domain)
    if not domain:
        return None
    if len(domain) > MAX_DOMAIN_LENGTH or not _domain_re.match(domain):
        raise ApiError(ErrorCode.INVALID_DOMAIN, "Invalid custom domain")
    for platform in [*settings.PLATFORM_DOMAINS, "localhost"]:
        platform = platform.lower().rstrip(".")
        if domain == platform or domain.endswith("." + platform):
            raise ApiError(
                ErrorCode.INVALID_DOMAIN, f"'{domain}' is reserved by the platform"
            )
    return domain
