"""
Tests for RequestContext and the bearer auth class.
"""

import pytest
from django.test import RequestFactory

from apps.core.auth import RequestContext, get_request_context
from apps.core.errors import ApiError, ErrorCode
from apps.core.security import SessionBearerAuth
from apps.organizations.routing import RoutingAction, RoutingDecision
from tests.accounts.factories import MemberFactory
from tests.conftest import make_context


class TestRequestContext:
    def test_anonymous(self) -> None:
        context = RequestContext()

        assert context.is_authenticated is False
        assert context.caller_org_slug is None
        assert context.is_mismatch is False

    def test_require_auth_raises_unauthorized(self) -> None:
        with pytest.raises(ApiError) as exc_info:
            RequestContext().require_auth()

        assert exc_info.value.code == ErrorCode.UNAUTHORIZED
        assert exc_info.value.status == 401

    @pytest.mark.django_db
    def test_require_auth_returns_caller(self) -> None:
        member = MemberFactory.create()
        context = make_context(member)

        assert context.require_auth() == (member.user, member, member.organization)
        assert context.caller_org_slug == member.organization.slug

    def test_mismatch_follows_routing_decision(self) -> None:
        context = RequestContext(
            routing=RoutingDecision(RoutingAction.PASS, "/", mismatch=True)
        )

        assert context.is_mismatch is True

    def test_get_request_context_creates_empty_context(self) -> None:
        request = RequestFactory().get("/pricing")

        context = get_request_context(request)

        assert context.pathname == "/pricing"
        assert get_request_context(request) is context


class TestSessionBearerAuth:
    def test_rejects_anonymous_context(self) -> None:
        request = RequestFactory().get("/")
        request.context = RequestContext()

        assert SessionBearerAuth().authenticate(request, "jwt") is None

    def test_rejects_empty_token(self) -> None:
        assert SessionBearerAuth().authenticate(RequestFactory().get("/"), "") is None

    @pytest.mark.django_db
    def test_returns_authenticated_context(self) -> None:
        request = RequestFactory().get("/")
        request.context = make_context(MemberFactory.create())

        assert SessionBearerAuth().authenticate(request, "jwt") is request.context


class TestApiError:
    def test_default_status(self) -> None:
        error = ApiError(ErrorCode.ORGANIZATION_EXISTS, "taken")

        assert error.status == 409
        assert error.to_response() == {"code": "ORGANIZATION_EXISTS", "detail": "taken"}

    def test_status_override_and_extra_fields(self) -> None:
        error = ApiError(ErrorCode.ORG_NOT_FOUND, "missing", status=410, identifier={"id": "x"})

        assert error.status == 410
        assert error.to_response()["identifier"] == {"id": "x"}
