"""
Shared pytest fixtures for all tests.

Factories
---------
Import factories directly from their module:

    from tests.accounts.factories import UserFactory, OrganizationFactory, MemberFactory

Example usage:

    @pytest.mark.django_db
    def test_something():
        org = OrganizationFactory.create(plan="professional")
        member = MemberFactory.create(organization=org, role="admin")
"""

from collections.abc import Callable, Iterator
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from django.core.cache import cache
from django.test import Client, RequestFactory
from stytch.core.response_base import StytchError, StytchErrorDetails

from apps.core.auth import RequestContext

# Modules that import get_stytch_client at module level
STYTCH_CLIENT_IMPORTS = (
    "apps.core.middleware.get_stytch_client",
    "apps.organizations.directory.get_stytch_client",
    "apps.accounts.services.get_stytch_client",
    "apps.accounts.invitations.get_stytch_client",
)


def make_stytch_error(
    error_type: str = "internal_server_error",
    error_message: str = "Something went wrong",
    status_code: int = 500,
) -> StytchError:
    """Build a StytchError the way the SDK raises it."""
    return StytchError(
        StytchErrorDetails(
            status_code=status_code,
            request_id="request-id-test",
            error_type=error_type,
            error_message=error_message,
        )
    )


@pytest.fixture(autouse=True)
def clear_directory_cache() -> Iterator[None]:
    """Directory cache entries must not leak between tests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def stytch_client() -> Iterator[MagicMock]:
    """
    Patch every Stytch client import with one MagicMock.

    Example:
        def test_delete(stytch_client):
            stytch_client.organizations.delete.side_effect = make_stytch_error()
    """
    mock_client = MagicMock()
    patchers = [patch(target, return_value=mock_client) for target in STYTCH_CLIENT_IMPORTS]
    for patcher in patchers:
        patcher.start()
    yield mock_client
    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def login(stytch_client: MagicMock) -> Callable[..., dict[str, str]]:
    """
    Make Stytch accept a session JWT for `member` and return the auth header.

    Example:
        def test_me(api_client, login, admin_member):
            response = api_client.get("/api/v1/auth/me", **login(admin_member))
    """

    def _login(member: Any) -> dict[str, str]:
        stytch_client.sessions.authenticate_jwt.return_value = SimpleNamespace(
            member_session=SimpleNamespace(
                member_id=member.stytch_member_id,
                organization_id=member.organization.stytch_org_id,
            )
        )
        return {"HTTP_AUTHORIZATION": "Bearer session-jwt-test"}

    return _login


@pytest.fixture
def request_factory() -> RequestFactory:
    """Django request factory for calling endpoints directly."""
    return RequestFactory()


@pytest.fixture
def api_client() -> Client:
    """
    Django test client for full HTTP request/response cycle tests.

    Runs the middleware stack, so requests resolve an organization from the
    Host header.
    """
    return Client()


def make_context(member: Any = None, **kwargs: Any) -> RequestContext:
    """RequestContext for ``member``'s session (anonymous when member is None)."""
    if member is None:
        return RequestContext(**kwargs)
    return RequestContext(
        user=member.user,
        member=member,
        organization=member.organization,
        **kwargs,
    )


@pytest.fixture
def authenticated_request(request_factory: RequestFactory) -> Callable[..., Any]:
    """
    Factory fixture for requests carrying an authenticated RequestContext.

    Example:
        def test_endpoint(authenticated_request):
            member = MemberFactory.create(role="admin")
            request = authenticated_request(member, method="patch", path="/api/v1/...")
            result = update_organization(request, ...)
    """

    def _make_request(
        member: Any,
        method: str = "get",
        path: str = "/",
        data: dict | None = None,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if data is not None:
            kwargs["data"] = data
            kwargs["content_type"] = "application/json"
        request = getattr(request_factory, method.lower())(path, **kwargs)
        context = make_context(member, pathname=path)
        request.context = context
        request.auth = context
        return request

    return _make_request


@pytest.fixture
def admin_member(db):
    """An admin of a fresh organization."""
    from tests.accounts.factories import MemberFactory

    return MemberFactory.create(role="admin")


@pytest.fixture
def member(db):
    """A regular member of a fresh organization."""
    from tests.accounts.factories import MemberFactory

    return MemberFactory.create(role="member")
