"""
Core security - authentication classes for API.
"""

from django.http import HttpRequest
from ninja.security import HttpBearer

from apps.core.auth import RequestContext, get_request_context


class SessionBearerAuth(HttpBearer):
    """
    Bearer token authentication for API endpoints.

    JWT validation is performed once by StytchAuthMiddleware. This class
    requires the token in the Authorization header (cookies only drive page
    routing) and hands the populated RequestContext to the endpoint as
    ``request.auth``.
    """

    def authenticate(self, request: HttpRequest, token: str) -> RequestContext | None:
        """Return the authenticated context, or None (triggers UNAUTHORIZED)."""
        if not token:
            return None
        context = get_request_context(request)
        return context if context.is_authenticated else None
