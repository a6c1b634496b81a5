"""
Context resolver - which organization does a request address?

Pure and synchronous. The only external input is the custom-domain index,
a read-only callable injected by the caller (the routing middleware backs it
with OrganizationDirectory).
"""

import ipaddress
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache

from django.conf import settings

ORG_PATH_PATTERN = re.compile(r"^/org/([a-zA-Z0-9_-]+)")

_label_re = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


class IdentifierSource(StrEnum):
    SUBDOMAIN = "subdomain"
    CUSTOM_DOMAIN = "customDomain"
    PATH = "path"
    EXPLICIT = "explicit"
    NONE = "none"


@dataclass(frozen=True)
class ResolvedIdentifier:
    """Organization identifier implied by a request, and where it came from."""

    source: IdentifierSource
    identifier: str | None = None

    @property
    def is_host_based(self) -> bool:
        return self.source in (IdentifierSource.SUBDOMAIN, IdentifierSource.CUSTOM_DOMAIN)


NONE = ResolvedIdentifier(IdentifierSource.NONE)


def normalize_host(host: str | None) -> str:
    """Lower-case a Host header value and drop port and trailing dot."""
    host = (host or "").strip().lower()
    if host.startswith("["):
        # IPv6 literal, e.g. [::1]:8000
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    host = host.split(":", 1)[0]
    return host.rstrip(".")


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


@lru_cache(maxsize=32)
def _compile_patterns(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p) for p in patterns)


def _platform_domains() -> list[str]:
    # *.localhost behaves like a production subdomain in development
    domains = [d.lower().rstrip(".") for d in settings.PLATFORM_DOMAINS]
    return domains if "localhost" in domains else [*domains, "localhost"]


def _reserved_labels() -> set[str]:
    return {label.lower() for label in settings.RESERVED_SUBDOMAINS}


def is_excluded_host(host: str) -> bool:
    """
    True for hosts that never identify a tenant.

    Bare platform domains, reserved labels, IP literals, bare localhost and
    preview deployments. Path and explicit identifiers still apply on them.
    """
    if not host or host == "localhost" or _is_ip_literal(host):
        return True
    if host in _platform_domains():
        return True
    if host.split(".", 1)[0] in _reserved_labels() and _platform_suffix(host) is not None:
        return True
    return any(p.search(host) for p in _compile_patterns(tuple(settings.PREVIEW_HOST_PATTERNS)))


def _platform_suffix(host: str) -> str | None:
    """Longest platform domain the host is a strict subdomain of."""
    matches = [d for d in _platform_domains() if host.endswith("." + d)]
    return max(matches, key=len) if matches else None


def subdomain_of(host: str) -> str | None:
    """
    Leading label of a platform subdomain host, if it can name a tenant.

    ``acme.processaudit.ai`` -> ``acme``; ``a.b.processaudit.ai`` -> None
    (only single-label subdomains are tenants); ``www.processaudit.ai`` -> None.
    """
    suffix = _platform_suffix(host)
    if suffix is None:
        return None
    label = host[: -(len(suffix) + 1)]
    if "." in label or not _label_re.match(label) or label in _reserved_labels():
        return None
    return label


def org_from_path(path: str) -> str | None:
    match = ORG_PATH_PATTERN.match(path or "")
    return match.group(1) if match else None


def _explicit_identifier(query: Mapping[str, str]) -> str | None:
    for key in ("id", "slug", "domain"):
        value = (query.get(key) or "").strip()
        if value:
            return value
    return None


def resolve_context(
    host: str,
    path: str,
    query: Mapping[str, str] | None = None,
    custom_domain_index: Callable[[str], str | None] | None = None,
) -> ResolvedIdentifier:
    """
    Identify the organization a request addresses. First match wins:

    1. single-label subdomain of a platform domain
    2. custom domain present in the index
    3. ``/org/<identifier>`` path prefix
    4. explicit ``id`` / ``slug`` / ``domain`` query parameter
    5. none

    Steps 1 and 2 are skipped for excluded hosts (see is_excluded_host).
    """
    host = normalize_host(host)
    query = query or {}

    if not is_excluded_host(host):
        label = subdomain_of(host)
        if label is not None:
            return ResolvedIdentifier(IdentifierSource.SUBDOMAIN, label)

        if custom_domain_index is not None and _platform_suffix(host) is None:
            slug = custom_domain_index(host)
            if slug:
                return ResolvedIdentifier(IdentifierSource.CUSTOM_DOMAIN, slug)

    identifier = org_from_path(path)
    if identifier is not None:
        return ResolvedIdentifier(IdentifierSource.PATH, identifier)

    identifier = _explicit_identifier(query)
    if identifier is not None:
        return ResolvedIdentifier(IdentifierSource.EXPLICIT, identifier)

    return NONE
