"""
Tests for accounts API endpoints.

Requests go through the full middleware stack with a mocked Stytch client.
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from django.test import Client

from apps.accounts.models import Invitation, Member
from tests.accounts.factories import (
    InvitationFactory,
    MemberFactory,
    OrganizationFactory,
    UserFactory,
)
from tests.conftest import make_stytch_error


def invitations_url(member: Member) -> str:
    return f"/api/v1/organizations/{member.organization.stytch_org_id}/invitations"


def membership_url(member: Member, user_id: int) -> str:
    return f"/api/v1/organizations/{member.organization.stytch_org_id}/memberships/{user_id}"


@pytest.fixture
def org(db):
    return OrganizationFactory.create(slug="acme", plan="professional")


@pytest.fixture
def admin(org):
    return MemberFactory.create(organization=org, role="admin")


@pytest.fixture
def regular(org):
    return MemberFactory.create(organization=org, role="member")


@pytest.fixture
def invite_response(stytch_client: MagicMock) -> MagicMock:
    stytch_client.magic_links.email.invite.return_value = SimpleNamespace(
        member=SimpleNamespace(member_id="member-test-invited")
    )
    return stytch_client.magic_links.email.invite


@pytest.mark.django_db
class TestGetCurrentUser:
    def test_returns_session_context(self, api_client: Client, login, admin) -> None:
        response = api_client.get("/api/v1/auth/me", **login(admin))

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == admin.user.email
        assert data["member"]["role"] == "admin"
        assert data["member"]["is_admin"] is True
        assert data["organization"]["id"] == admin.organization.stytch_org_id
        assert data["organization"]["plan"] == "professional"
        assert data["resolved"]["mismatch"] is False

    def test_requires_session(self, api_client: Client) -> None:
        response = api_client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_rejected_session(self, api_client: Client, stytch_client: MagicMock) -> None:
        stytch_client.sessions.authenticate_jwt.side_effect = make_stytch_error(
            "session_not_found", "Session not found", 404
        )

        response = api_client.get(
            "/api/v1/auth/me", HTTP_AUTHORIZATION="Bearer session-jwt-expired"
        )

        assert response.status_code == 401


@pytest.mark.django_db
class TestInviteMember:
    def test_creates_pending_invitation(
        self, api_client: Client, login, admin, invite_response: MagicMock
    ) -> None:
        response = api_client.post(
            invitations_url(admin),
            data=json.dumps(
                {"email_address": "New.Hire@Acme.io", "role": "member", "message": "Welcome"}
            ),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["email_address"] == "new.hire@acme.io"
        assert data["status"] == "pending"
        assert data["created"] is True
        invitation = Invitation.objects.get(id=data["id"])
        assert invitation.stytch_member_id == "member-test-invited"
        assert invite_response.call_args.kwargs["untrusted_metadata"] == {
            "invitation_message": "Welcome"
        }

    def test_existing_member_is_a_noop(
        self, api_client: Client, login, admin, regular, invite_response: MagicMock
    ) -> None:
        response = api_client.post(
            invitations_url(admin),
            data=json.dumps({"email_address": regular.user.email.upper()}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "already_member"
        assert data["created"] is False
        invite_response.assert_not_called()

    def test_identical_pending_invitation_is_returned(
        self, api_client: Client, login, admin, invite_response: MagicMock
    ) -> None:
        existing = InvitationFactory.create(
            organization=admin.organization, email_address="repeat@acme.io", role="member"
        )

        response = api_client.post(
            invitations_url(admin),
            data=json.dumps({"email_address": "repeat@acme.io", "role": "member"}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 200
        assert response.json()["id"] == existing.id
        invite_response.assert_not_called()

    def test_pending_invitation_with_other_role_conflicts(
        self, api_client: Client, login, admin, invite_response: MagicMock
    ) -> None:
        InvitationFactory.create(
            organization=admin.organization, email_address="repeat@acme.io", role="guest"
        )

        response = api_client.post(
            invitations_url(admin),
            data=json.dumps({"email_address": "repeat@acme.io", "role": "admin"}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVITATION_EXISTS"

    @pytest.mark.parametrize(
        ("payload", "code"),
        [
            ({"email_address": "not-an-email"}, "INVALID_EMAIL_FORMAT"),
            ({"email_address": "valid@acme.io", "role": "owner"}, "INVALID_ROLE"),
        ],
    )
    def test_invalid_input(self, api_client: Client, login, admin, payload, code) -> None:
        response = api_client.post(
            invitations_url(admin),
            data=json.dumps(payload),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 400
        assert response.json()["code"] == code

    def test_member_cannot_invite_admin(
        self, api_client: Client, login, regular, invite_response: MagicMock
    ) -> None:
        response = api_client.post(
            invitations_url(regular),
            data=json.dumps({"email_address": "boss@acme.io", "role": "admin"}),
            content_type="application/json",
            **login(regular),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"

    def test_member_limit(self, api_client: Client, login, invite_response: MagicMock) -> None:
        small = OrganizationFactory.create(plan="free")
        admin = MemberFactory.create(organization=small, role="admin")
        MemberFactory.create_batch(4, organization=small)

        response = api_client.post(
            invitations_url(admin),
            data=json.dumps({"email_address": "sixth@acme.io"}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "MEMBER_LIMIT_REACHED"

    def test_delivery_failure_revokes(
        self, api_client: Client, login, admin, stytch_client: MagicMock
    ) -> None:
        stytch_client.magic_links.email.invite.side_effect = make_stytch_error()

        response = api_client.post(
            invitations_url(admin),
            data=json.dumps({"email_address": "bounce@acme.io"}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"
        assert Invitation.objects.get(email_address="bounce@acme.io").status == "revoked"


@pytest.mark.django_db
class TestChangeMembershipRole:
    def test_admin_promotes_member(
        self, api_client: Client, login, admin, regular, stytch_client: MagicMock
    ) -> None:
        response = api_client.patch(
            membership_url(admin, regular.user.id),
            data=json.dumps({"role": "admin"}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == regular.user.id
        assert data["role"] == "admin"
        stytch_client.organizations.members.update.assert_called_once()

    def test_cannot_change_own_role(self, api_client: Client, login, admin) -> None:
        MemberFactory.create(organization=admin.organization, role="admin")

        response = api_client.patch(
            membership_url(admin, admin.user.id),
            data=json.dumps({"role": "member"}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "CANNOT_CHANGE_OWN_ROLE"

    def test_last_admin_cannot_be_demoted(self, api_client: Client, login, admin) -> None:
        response = api_client.patch(
            membership_url(admin, admin.user.id),
            data=json.dumps({"role": "member"}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "LAST_ADMIN"

    def test_unknown_membership(self, api_client: Client, login, admin) -> None:
        outsider = UserFactory.create()

        response = api_client.patch(
            membership_url(admin, outsider.id),
            data=json.dumps({"role": "member"}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "MEMBERSHIP_NOT_FOUND"

    def test_invalid_role(self, api_client: Client, login, admin, regular) -> None:
        response = api_client.patch(
            membership_url(admin, regular.user.id),
            data=json.dumps({"role": "superuser"}),
            content_type="application/json",
            **login(admin),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_ROLE"


@pytest.mark.django_db
class TestRemoveMembership:
    def test_admin_removes_member(
        self, api_client: Client, login, admin, regular, stytch_client: MagicMock
    ) -> None:
        response = api_client.delete(membership_url(admin, regular.user.id), **login(admin))

        assert response.status_code == 200
        assert not Member.objects.filter(pk=regular.pk).exists()
        admin.organization.refresh_from_db()
        assert admin.organization.member_count == 1

    def test_member_cannot_remove_others(self, api_client: Client, login, admin, regular) -> None:
        response = api_client.delete(membership_url(regular, admin.user.id), **login(regular))

        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"

    def test_sole_admin_cannot_leave(self, api_client: Client, login, admin) -> None:
        response = api_client.delete(membership_url(admin, admin.user.id), **login(admin))

        assert response.status_code == 400
        assert response.json()["code"] == "LAST_ADMIN"

    def test_admin_cannot_remove_self(self, api_client: Client, login, admin) -> None:
        MemberFactory.create(organization=admin.organization, role="admin")

        response = api_client.delete(membership_url(admin, admin.user.id), **login(admin))

        assert response.status_code == 400
        assert response.json()["code"] == "CANNOT_REMOVE_SELF"

    def test_provider_failure_keeps_membership(
        self, api_client: Client, login, admin, regular, stytch_client: MagicMock
    ) -> None:
        stytch_client.organizations.members.delete.side_effect = make_stytch_error()

        response = api_client.delete(membership_url(admin, regular.user.id), **login(admin))

        assert response.status_code == 500
        assert Member.objects.filter(pk=regular.pk).exists()

    def test_other_organization(self, api_client: Client, login, admin) -> None:
        outsider = MemberFactory.create()

        response = api_client.delete(
            membership_url(outsider, outsider.user.id), **login(admin)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_MEMBER"
