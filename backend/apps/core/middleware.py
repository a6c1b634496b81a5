"""
Core middleware.
"""

from collections.abc import Callable
from uuid import uuid4

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from stytch.core.response_base import StytchError

from apps.accounts.models import Member
from apps.accounts.services import sync_session_to_local
from apps.accounts.stytch_client import get_stytch_client
from apps.core.auth import RequestContext
from apps.core.logging import bind_contextvars, clear_contextvars, get_logger
from apps.organizations.resolver import normalize_host

logger = get_logger(__name__)

# Paths that never carry a user session
SKIP_AUTH_PREFIXES = ("/webhooks/", "/api/v1/health", "/static/")


class StytchAuthMiddleware:
    """
    Authenticates the caller from a Stytch session JWT.

    The JWT is read from the Authorization header, falling back to the
    session cookie set by the Stytch frontend SDK. On success the caller's
    User, Member and session Organization are attached to ``request.context``.
    Members missing from the local replica are synced just-in-time.

    Never rejects a request: endpoints decide whether authentication is
    required, and the routing middleware decides about sign-in redirects.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        clear_contextvars()
        bind_contextvars(
            correlation_id=request.headers.get("X-Request-ID") or str(uuid4()),
            **{
                "http.method": request.method,
                "http.url_details.path": request.path,
            },
        )

        context = RequestContext(
            host=normalize_host(request.META.get("HTTP_HOST", "")),
            pathname=request.path,
        )
        request.context = context  # type: ignore[attr-defined]

        token = self._get_session_token(request)
        if token and not request.path.startswith(SKIP_AUTH_PREFIXES):
            self._authenticate(context, token)

        try:
            return self.get_response(request)
        finally:
            clear_contextvars()

    @staticmethod
    def _get_session_token(request: HttpRequest) -> str | None:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[len("Bearer ") :].strip() or None
        return request.COOKIES.get(settings.STYTCH_SESSION_COOKIE) or None

    def _authenticate(self, context: RequestContext, token: str) -> None:
        client = get_stytch_client()

        try:
            response = client.sessions.authenticate_jwt(session_jwt=token)
        except StytchError as e:
            logger.info("session_jwt_rejected", error_type=e.details.error_type)
            context.failed = True
            return

        member_id = response.member_session.member_id
        member = (
            Member.objects.select_related("user", "organization")
            .filter(stytch_member_id=member_id)
            .first()
        )

        if member is None:
            # First request after signup or after a missed webhook
            try:
                fetched = client.organizations.members.get(
                    organization_id=response.member_session.organization_id,
                    member_id=member_id,
                )
            except StytchError as e:
                logger.warning("session_member_sync_failed", error_type=e.details.error_type)
                context.failed = True
                return
            _, member, _ = sync_session_to_local(
                stytch_member=fetched.member,
                stytch_organization=fetched.organization,
            )

        context.user = member.user
        context.member = member
        context.organization = member.organization

        bind_contextvars(user_id=member.user.id)
