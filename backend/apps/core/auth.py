"""
Request context for the request lifecycle.

A single typed container populated once at the edge: StytchAuthMiddleware
fills in the caller, OrganizationRoutingMiddleware fills in the resolved
tenant and routing decision. Views and services read only this object,
never raw headers or cookies.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from apps.core.errors import ApiError, ErrorCode

if TYPE_CHECKING:
    from apps.accounts.models import Member, User
    from apps.organizations.models import Organization
    from apps.organizations.resolver import ResolvedIdentifier
    from apps.organizations.routing import RoutingDecision


@dataclass
class RequestContext:
    """
    Request-scoped tenant and caller state. Never persisted.

    Attributes:
        host: Normalized host header (lower-case, no port)
        pathname: Path as received, before any routing rewrite
        resolved: Organization identifier implied by host/path/query
        routing: Decision taken by the routing normalizer
        user: The authenticated User, or None
        member: The caller's membership in their session organization, or None
        organization: The caller's session organization (may differ from resolved)
        failed: True if auth was attempted but failed (vs just not present)
    """

    host: str = ""
    pathname: str = "/"
    resolved: "ResolvedIdentifier | None" = None
    routing: "RoutingDecision | None" = None
    user: "User | None" = None
    member: "Member | None" = None
    organization: "Organization | None" = None
    failed: bool = False

    @property
    def is_authenticated(self) -> bool:
        """Check if the request carries a valid session."""
        return self.user is not None and self.member is not None and self.organization is not None

    @property
    def caller_org_slug(self) -> str | None:
        """Slug of the caller's session organization."""
        return self.organization.slug if self.organization is not None else None

    @property
    def is_mismatch(self) -> bool:
        """True when the caller's organization differs from the resolved one."""
        return bool(self.routing and self.routing.mismatch)

    def require_auth(self) -> tuple["User", "Member", "Organization"]:
        """
        Get authenticated context or raise UNAUTHORIZED.

        The middleware sets all three together, so if one exists, all do.
        """
        if self.user is None or self.member is None or self.organization is None:
            raise ApiError(ErrorCode.UNAUTHORIZED, "Authentication required")
        return self.user, self.member, self.organization


def get_request_context(request) -> RequestContext:
    """Return the context attached by middleware, or an empty one."""
    context = getattr(request, "context", None)
    if context is None:
        context = RequestContext(pathname=request.path)
        request.context = context
    return context
