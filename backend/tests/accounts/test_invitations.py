"""
Tests for the invitation workflow.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from apps.accounts.invitations import clean_email, clean_role, create_invitation
from apps.accounts.models import Invitation
from apps.core.errors import ApiError, ErrorCode
from tests.accounts.factories import (
    InvitationFactory,
    MemberFactory,
    OrganizationFactory,
    UserFactory,
)
from tests.conftest import make_stytch_error


@pytest.fixture
def stytch_invite(stytch_client: MagicMock) -> MagicMock:
    stytch_client.magic_links.email.invite.return_value = SimpleNamespace(
        member=SimpleNamespace(member_id="member-invited-1")
    )
    return stytch_client.magic_links.email.invite


@pytest.fixture
def org(db):
    return OrganizationFactory.create(plan="professional")


@pytest.fixture
def admin(org):
    return MemberFactory.create(organization=org, role="admin")


class TestCleaners:
    def test_clean_email_normalizes(self) -> None:
        assert clean_email("Sam.Lee@Acme.io") == "sam.lee@acme.io"

    @pytest.mark.parametrize("value", ["", None, "not-an-email", "sam@", "@acme.io"])
    def test_clean_email_rejects(self, value) -> None:
        with pytest.raises(ApiError) as exc_info:
            clean_email(value)

        assert exc_info.value.code == ErrorCode.INVALID_EMAIL_FORMAT

    def test_clean_role_rejects_unknown(self) -> None:
        with pytest.raises(ApiError) as exc_info:
            clean_role("owner")

        assert exc_info.value.code == ErrorCode.INVALID_ROLE


@pytest.mark.django_db
class TestCreateInvitation:
    def test_creates_pending_invitation_and_delivers(
        self, org, admin, stytch_invite: MagicMock
    ) -> None:
        outcome = create_invitation(admin, org, "Sam@Acme.io", "member", message="Welcome!")

        assert outcome.created is True
        invitation = outcome.invitation
        assert invitation.status == Invitation.Status.PENDING
        assert invitation.email_address == "sam@acme.io"
        assert invitation.inviter == admin
        assert invitation.stytch_member_id == "member-invited-1"
        stytch_invite.assert_called_once_with(
            organization_id=org.stytch_org_id,
            email_address="sam@acme.io",
            invited_by_member_id=admin.stytch_member_id,
            roles=[],
            untrusted_metadata={"invitation_message": "Welcome!"},
        )

    def test_admin_invite_assigns_stytch_admin_role(
        self, org, admin, stytch_invite: MagicMock
    ) -> None:
        create_invitation(admin, org, "sam@acme.io", "admin")

        assert stytch_invite.call_args.kwargs["roles"] == ["stytch_admin"]

    def test_invalid_email_checked_first(self, org, stytch_invite: MagicMock) -> None:
        with pytest.raises(ApiError) as exc_info:
            create_invitation(None, org, "nope", "owner")

        assert exc_info.value.code == ErrorCode.INVALID_EMAIL_FORMAT

    def test_invalid_role(self, org, admin, stytch_invite: MagicMock) -> None:
        with pytest.raises(ApiError) as exc_info:
            create_invitation(admin, org, "sam@acme.io", "owner")

        assert exc_info.value.code == ErrorCode.INVALID_ROLE

    def test_non_member_cannot_invite(self, org, stytch_invite: MagicMock) -> None:
        outsider = MemberFactory.create(role="admin")

        with pytest.raises(ApiError) as exc_info:
            create_invitation(outsider, org, "sam@acme.io", "member")

        assert exc_info.value.code == ErrorCode.NOT_MEMBER
        stytch_invite.assert_not_called()

    def test_member_cannot_invite_admin(self, org, stytch_invite: MagicMock) -> None:
        regular = MemberFactory.create(organization=org, role="member")

        with pytest.raises(ApiError) as exc_info:
            create_invitation(regular, org, "sam@acme.io", "admin")

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_PERMISSIONS
        assert not Invitation.objects.exists()

    def test_member_limit_reached(self, stytch_invite: MagicMock) -> None:
        org = OrganizationFactory.create(plan="free")
        admin = MemberFactory.create(organization=org, role="admin")
        MemberFactory.create_batch(4, organization=org)

        with pytest.raises(ApiError) as exc_info:
            create_invitation(admin, org, "sam@acme.io", "member")

        assert exc_info.value.code == ErrorCode.MEMBER_LIMIT_REACHED

    def test_member_limit_uses_overrides_below_plan(self, stytch_invite: MagicMock) -> None:
        org = OrganizationFactory.create(plan="professional", feature_overrides={"max_members": 1})
        admin = MemberFactory.create(organization=org, role="admin")

        with pytest.raises(ApiError) as exc_info:
            create_invitation(admin, org, "sam@acme.io", "member")

        assert exc_info.value.code == ErrorCode.MEMBER_LIMIT_REACHED

    def test_existing_member_is_a_no_op(self, org, admin, stytch_invite: MagicMock) -> None:
        user = UserFactory.create(email="sam@acme.io")
        existing = MemberFactory.create(organization=org, user=user)

        outcome = create_invitation(admin, org, "SAM@acme.io", "member")

        assert outcome.created is False
        assert outcome.invitation is None
        assert outcome.member == existing
        stytch_invite.assert_not_called()

    def test_identical_pending_invitation_is_a_no_op(
        self, org, admin, stytch_invite: MagicMock
    ) -> None:
        pending = InvitationFactory.create(organization=org, email_address="sam@acme.io")

        outcome = create_invitation(admin, org, "sam@acme.io", "member")

        assert outcome.created is False
        assert outcome.invitation == pending
        stytch_invite.assert_not_called()

    def test_pending_invitation_with_other_role_conflicts(
        self, org, admin, stytch_invite: MagicMock
    ) -> None:
        InvitationFactory.create(organization=org, email_address="sam@acme.io", role="guest")

        with pytest.raises(ApiError) as exc_info:
            create_invitation(admin, org, "sam@acme.io", "member")

        assert exc_info.value.code == ErrorCode.INVITATION_EXISTS
        assert exc_info.value.status == 409

    def test_delivery_failure_revokes(self, org, admin, stytch_client: MagicMock) -> None:
        stytch_client.magic_links.email.invite.side_effect = make_stytch_error()

        with pytest.raises(ApiError) as exc_info:
            create_invitation(admin, org, "sam@acme.io", "member")

        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
        invitation = Invitation.objects.get(email_address="sam@acme.io")
        assert invitation.status == Invitation.Status.REVOKED

    def test_revoked_invitation_can_be_reissued(
        self, org, admin, stytch_invite: MagicMock
    ) -> None:
        InvitationFactory.create(
            organization=org, email_address="sam@acme.io", status=Invitation.Status.REVOKED
        )

        outcome = create_invitation(admin, org, "sam@acme.io", "member")

        assert outcome.created is True
