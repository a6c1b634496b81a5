"""
Routing normalizer - turns a resolved identifier into a routing decision.

Given where the organization came from (host or path), decides whether the
request passes through, has a redundant ``/org/<id>`` prefix stripped,
is redirected to the organization's canonical host, or is sent to sign-in.
Also computes the X-Org-* context headers.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from django.conf import settings

from apps.organizations.plans import get_plan_limits
from apps.organizations.resolver import IdentifierSource, ResolvedIdentifier

if TYPE_CHECKING:
    from apps.organizations.models import Organization

HEADER_TYPE = "X-Org-Type"
HEADER_IDENTIFIER = "X-Org-Identifier"
HEADER_DOMAIN = "X-Org-Domain"
HEADER_SUBDOMAIN = "X-Org-Subdomain"
HEADER_CUSTOM_DOMAIN = "X-Org-Custom-Domain"
HEADER_ORIGINAL_PATH = "X-Org-Original-Path"
HEADER_MISMATCH = "X-Org-Mismatch"
HEADER_USER_ORG = "X-User-Org"


class RoutingAction(StrEnum):
    PASS = "pass"
    REWRITE = "rewrite"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class RoutingDecision:
    """
    Outcome of normalize().

    ``path`` is the path the request continues with (rewritten for REWRITE);
    ``location`` is only set for REDIRECT.
    """

    action: RoutingAction
    path: str
    location: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    mismatch: bool = False


@dataclass(frozen=True)
class CallerOrganization:
    """The caller's session organization, as far as routing cares."""

    slug: str
    canonical_host: str | None = None

    @classmethod
    def from_organization(cls, organization: "Organization") -> "CallerOrganization":
        return cls(slug=organization.slug, canonical_host=canonical_host_for(organization))


def canonical_host_for(organization: "Organization") -> str | None:
    """
    Host an organization is served on, if it has one of its own.

    A custom domain always wins. Otherwise ``<slug>.<primary platform
    domain>`` when the plan allows subdomain routing. None means the
    organization is only reachable through ``/org/<slug>`` paths.
    """
    if organization.custom_domain:
        return organization.custom_domain
    if get_plan_limits(organization.plan).subdomain_routing and settings.PLATFORM_DOMAINS:
        return f"{organization.slug}.{settings.PLATFORM_DOMAINS[0]}"
    return None


def strip_org_prefix(path: str, identifier: str) -> str | None:
    """
    Remove a leading ``/org/<identifier>`` segment.

    Returns None when the path does not start with that exact segment.
    """
    prefix = f"/org/{identifier}"
    if path.lower() == prefix.lower():
        return "/"
    if path.lower().startswith(prefix.lower() + "/"):
        return path[len(prefix) :]
    return None


def is_public_route(path: str) -> bool:
    """Routes that never require a session: marketing pages, auth, static and API."""
    if path.startswith(tuple(settings.AUTH_EXEMPT_PREFIXES)):
        return True
    normalized = path.rstrip("/") or "/"
    return normalized in settings.PUBLIC_PATHS


def _context_headers(resolved: ResolvedIdentifier, host: str, path: str) -> dict[str, str]:
    identifier = resolved.identifier or ""
    if resolved.source == IdentifierSource.SUBDOMAIN:
        return {
            HEADER_TYPE: "domain",
            HEADER_IDENTIFIER: identifier,
            HEADER_DOMAIN: host,
            HEADER_SUBDOMAIN: identifier,
        }
    if resolved.source == IdentifierSource.CUSTOM_DOMAIN:
        return {
            HEADER_TYPE: "domain",
            HEADER_IDENTIFIER: identifier,
            HEADER_DOMAIN: host,
            HEADER_CUSTOM_DOMAIN: host,
        }
    return {
        HEADER_TYPE: "path",
        HEADER_IDENTIFIER: identifier,
        HEADER_ORIGINAL_PATH: path,
    }


def sign_in_location(path: str, identifier: str) -> str:
    query = urlencode({"redirect_url": path, "org": identifier})
    return f"{settings.SIGN_IN_PATH}?{query}"


def normalize(
    resolved: ResolvedIdentifier,
    path: str,
    query: str = "",
    *,
    host: str = "",
    scheme: str = "https",
    is_authenticated: bool = False,
    caller_org: CallerOrganization | None = None,
) -> RoutingDecision:
    """
    Decide how a request continues once its organization is known.

    Args:
        resolved: Output of resolve_context().
        path: Request path as received.
        query: Raw query string, carried over on redirects.
        host: Normalized request host.
        scheme: Request scheme, used for canonical-host redirects.
        is_authenticated: Whether the caller has a valid session.
        caller_org: The caller's session organization, if any.
    """
    if resolved.source in (IdentifierSource.NONE, IdentifierSource.EXPLICIT):
        return RoutingDecision(RoutingAction.PASS, path)

    identifier = resolved.identifier or ""
    headers = _context_headers(resolved, host, path)
    same_org = caller_org is not None and caller_org.slug.lower() == identifier.lower()

    action = RoutingAction.PASS
    route_path = path

    if resolved.source == IdentifierSource.PATH:
        route_path = strip_org_prefix(path, identifier) or "/"
        if same_org and caller_org.canonical_host:
            location = f"{scheme}://{caller_org.canonical_host}{route_path}"
            if query:
                location = f"{location}?{query}"
            return RoutingDecision(RoutingAction.REDIRECT, path, location=location, headers=headers)
    else:
        stripped = strip_org_prefix(path, identifier)
        if stripped is not None:
            action = RoutingAction.REWRITE
            route_path = stripped
            headers[HEADER_ORIGINAL_PATH] = path

    # Path-based requests keep their prefix; org pages are mounted under /org/<id>
    continue_path = route_path if action == RoutingAction.REWRITE else path

    if not is_authenticated:
        if is_public_route(path) or is_public_route(route_path):
            return RoutingDecision(action, continue_path, headers=headers)
        return RoutingDecision(
            RoutingAction.REDIRECT,
            path,
            location=sign_in_location(path, identifier),
            headers=headers,
        )

    mismatch = caller_org is not None and not same_org
    if mismatch:
        headers[HEADER_MISMATCH] = "true"
        headers[HEADER_USER_ORG] = caller_org.slug
    return RoutingDecision(action, continue_path, headers=headers, mismatch=mismatch)
