"""
Accounts API endpoints.

- Current caller (/auth/me)
- Invitations and memberships of an organization (mounted under /organizations)
"""

from django.http import HttpRequest
from ninja import Router

from apps.accounts.invitations import clean_role, create_invitation
from apps.accounts.models import Member
from apps.accounts.schemas import (
    ChangeRoleRequest,
    CreateInvitationRequest,
    InvitationResponse,
    MemberInfo,
    MembershipResponse,
    MeResponse,
    OrganizationInfo,
    ResolvedContextInfo,
    UserInfo,
)
from apps.accounts.services import change_membership_role, get_membership, remove_membership
from apps.core.auth import RequestContext
from apps.core.schemas import ErrorResponse, MessageResponse
from apps.core.security import SessionBearerAuth
from apps.organizations.directory import require_organization
from apps.organizations.resolver import IdentifierSource

router = Router(tags=["auth"])
membership_router = Router(tags=["memberships"])
bearer_auth = SessionBearerAuth()


def _membership_response(member: Member) -> MembershipResponse:
    return MembershipResponse(
        user_id=member.user.id,
        email=member.user.email,
        name=member.user.name,
        role=member.role,
        permissions=sorted(member.permissions),
        joined_at=member.created_at,
    )


@router.get(
    "/me",
    response={200: MeResponse, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="getCurrentUser",
    summary="Get current user info",
)
def get_current_user(request: HttpRequest) -> MeResponse:
    """
    Get the authenticated user, their session membership and organization,
    and the organization the request resolved to.
    """
    context: RequestContext = request.auth  # type: ignore[attr-defined]
    user, member, org = context.require_auth()
    resolved = context.resolved

    return MeResponse(
        user=UserInfo(id=user.id, email=user.email, name=user.name),
        member=MemberInfo(
            id=member.id,
            stytch_member_id=member.stytch_member_id,
            role=member.role,
            is_admin=member.is_admin,
            permissions=sorted(member.permissions),
        ),
        organization=OrganizationInfo(
            id=org.stytch_org_id,
            name=org.name,
            slug=org.slug,
            plan=org.plan,
        ),
        resolved=ResolvedContextInfo(
            source=resolved.source.value if resolved else IdentifierSource.NONE.value,
            identifier=resolved.identifier if resolved else None,
            mismatch=context.is_mismatch,
        ),
    )


@membership_router.post(
    "/{org_id}/invitations",
    response={
        200: InvitationResponse,
        201: InvitationResponse,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="createInvitation",
    summary="Invite a user to the organization",
)
def invite_member(
    request: HttpRequest, org_id: str, payload: CreateInvitationRequest
) -> tuple[int, InvitationResponse]:
    """
    Invite an email address with a role.

    Returns 201 for a new invitation, 200 when the address is already a
    member or already has an identical pending invitation.
    """
    context: RequestContext = request.auth  # type: ignore[attr-defined]
    organization = require_organization(org_id)
    caller = get_membership(context.user, organization)

    outcome = create_invitation(
        caller,
        organization,
        email_address=payload.email_address,
        role=payload.role,
        message=payload.message,
    )

    if outcome.invitation is None:
        member = outcome.member
        return 200, InvitationResponse(
            email_address=member.user.email,
            role=member.role,
            status="already_member",
            created=False,
        )

    invitation = outcome.invitation
    return (201 if outcome.created else 200), InvitationResponse(
        id=invitation.id,
        email_address=invitation.email_address,
        role=invitation.role,
        status=invitation.status,
        message=invitation.message,
        created=outcome.created,
        created_at=invitation.created_at,
    )


@membership_router.patch(
    "/{org_id}/memberships/{user_id}",
    response={
        200: MembershipResponse,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="changeMembershipRole",
    summary="Change a member's role",
)
def change_role(
    request: HttpRequest, org_id: str, user_id: int, payload: ChangeRoleRequest
) -> MembershipResponse:
    """Admin only. The last admin cannot be demoted and nobody can change their own role."""
    context: RequestContext = request.auth  # type: ignore[attr-defined]
    organization = require_organization(org_id)
    caller = get_membership(context.user, organization)
    new_role = clean_role(payload.role)

    member = change_membership_role(caller, organization, user_id, new_role)
    return _membership_response(member)


@membership_router.delete(
    "/{org_id}/memberships/{user_id}",
    response={
        200: MessageResponse,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="removeMembership",
    summary="Remove a member from the organization",
)
def delete_membership(request: HttpRequest, org_id: str, user_id: int) -> MessageResponse:
    """Admin only. The last admin cannot be removed and nobody can remove themselves."""
    context: RequestContext = request.auth  # type: ignore[attr-defined]
    organization = require_organization(org_id)
    caller = get_membership(context.user, organization)

    remove_membership(caller, organization, user_id)
    return MessageResponse(message="Member removed")
