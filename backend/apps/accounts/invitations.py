"""
Invitation workflow.

Only ever moves an invitation from nothing to ``pending``. Acceptance is
driven by Stytch (see apps.accounts.webhooks); revocation happens here
only when delivery fails.
"""

from dataclasses import dataclass

from django.db import transaction
from email_validator import EmailNotValidError, validate_email
from stytch.core.response_base import StytchError

from apps.accounts.authority import Action, MembershipCounts, authorize
from apps.accounts.models import Invitation, Member
from apps.accounts.roles import Role, parse_role, stytch_roles_for
from apps.accounts.stytch_client import get_stytch_client
from apps.core.errors import ApiError, ErrorCode
from apps.core.logging import get_logger
from apps.organizations.models import Organization

logger = get_logger(__name__)


@dataclass(frozen=True)
class InvitationOutcome:
    """
    Result of create_invitation.

    ``created`` is False for no-ops: the address already belongs to a member
    (``invitation`` is None, ``member`` is set) or an identical pending
    invitation already exists.
    """

    invitation: Invitation | None
    created: bool
    member: Member | None = None


def clean_email(email_address: str | None) -> str:
    try:
        validated = validate_email(email_address or "", check_deliverability=False)
    except EmailNotValidError as e:
        raise ApiError(ErrorCode.INVALID_EMAIL_FORMAT, "Invalid email address format") from e
    return validated.normalized.lower()


def clean_role(role: str | None) -> Role:
    parsed = parse_role(role)
    if parsed is None:
        raise ApiError(
            ErrorCode.INVALID_ROLE,
            "Invalid role. Must be one of: " + ", ".join(Role.values),
        )
    return parsed


def create_invitation(
    caller: Member | None,
    organization: Organization,
    email_address: str,
    role: str,
    message: str = "",
) -> InvitationOutcome:
    """
    Invite an email address into an organization.

    Preconditions, first failure wins: email format, role value, the
    caller's authority to invite that role, the plan's member limit, then
    existing membership (a no-op success).

    Raises:
        ApiError: INVALID_EMAIL_FORMAT, INVALID_ROLE, NOT_MEMBER,
            INSUFFICIENT_PERMISSIONS, MEMBER_LIMIT_REACHED,
            INVITATION_EXISTS or INTERNAL_ERROR (delivery failed).
    """
    email = clean_email(email_address)
    target_role = clean_role(role)

    with transaction.atomic():
        locked = Organization.objects.select_for_update().get(pk=organization.pk)
        counts = MembershipCounts.for_organization(locked)
        authorize(
            caller, locked, Action.INVITE_MEMBER, target_role=target_role, counts=counts
        ).raise_for_denial()

        existing_member = (
            Member.objects.select_related("user")
            .filter(organization=locked, user__email__iexact=email)
            .first()
        )
        if existing_member is not None:
            logger.info("invitation_skipped_existing_member", org_id=locked.stytch_org_id)
            return InvitationOutcome(invitation=None, created=False, member=existing_member)

        pending = Invitation.objects.filter(
            organization=locked,
            email_address__iexact=email,
            status=Invitation.Status.PENDING,
        ).first()
        if pending is not None:
            if pending.role == target_role:
                return InvitationOutcome(invitation=pending, created=False)
            raise ApiError(
                ErrorCode.INVITATION_EXISTS,
                f"A pending invitation with role {pending.role} already exists for this address.",
            )

        invitation = Invitation.objects.create(
            organization=locked,
            email_address=email,
            role=target_role,
            inviter=caller,
            message=message or "",
        )

    try:
        deliver_invitation(invitation)
    except StytchError as e:
        logger.error(
            "invitation_delivery_failed",
            org_id=organization.stytch_org_id,
            invitation_id=invitation.id,
            error_type=e.details.error_type,
        )
        invitation.status = Invitation.Status.REVOKED
        invitation.save(update_fields=["status", "updated_at"])
        raise ApiError(ErrorCode.INTERNAL_ERROR, "Failed to send invitation") from e

    logger.info(
        "invitation_created",
        org_id=organization.stytch_org_id,
        invitation_id=invitation.id,
        role=target_role.value,
    )
    return InvitationOutcome(invitation=invitation, created=True)


def deliver_invitation(invitation: Invitation) -> None:
    """
    Send the invite email through Stytch.

    Stytch creates an ``invited`` member record; its id is stored so the
    webhook that reports the member as active can find this invitation.
    """
    inviter = invitation.inviter
    metadata = {"invitation_message": invitation.message} if invitation.message else None
    response = get_stytch_client().magic_links.email.invite(
        organization_id=invitation.organization.stytch_org_id,
        email_address=invitation.email_address,
        invited_by_member_id=inviter.stytch_member_id if inviter else None,
        roles=stytch_roles_for(invitation.role),
        untrusted_metadata=metadata,
    )
    invitation.stytch_member_id = response.member.member_id
    invitation.save(update_fields=["stytch_member_id", "updated_at"])
