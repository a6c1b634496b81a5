"""
Accounts services - Stytch sync and membership mutations.

Stytch is the source of truth for members and organizations. The
get_or_create_* helpers keep the local replica in step with it; the
membership mutations change Stytch first and the replica second, while
holding a row lock on the organization so concurrent removals or
demotions cannot leave it without an admin.
"""

from typing import Any

from django.db import IntegrityError, transaction
from stytch.core.response_base import StytchError

from apps.accounts.authority import Action, MembershipCounts, authorize
from apps.accounts.models import Member, User
from apps.accounts.roles import Role, role_from_stytch, role_ids_from_payload, stytch_roles_for
from apps.accounts.stytch_client import get_stytch_client
from apps.core.errors import ApiError, ErrorCode
from apps.core.logging import get_logger
from apps.organizations.directory import get_directory
from apps.organizations.models import Organization

logger = get_logger(__name__)


def get_or_create_user_from_stytch(
    email: str,
    name: str = "",
) -> User:
    """
    Get or create a User from Stytch data.

    Email is the cross-org identifier in Stytch B2B.
    Uses select_for_update for explicit row locking under concurrent requests.
    """
    try:
        user = User.objects.select_for_update().get(email__iexact=email)
        if name and user.name != name:
            user.name = name
            user.save(update_fields=["name", "updated_at"])
        return user
    except User.DoesNotExist:
        try:
            with transaction.atomic():
                return User.objects.create_user(email=email, name=name)
        except IntegrityError:
            # Concurrent insert won the race, fetch the winner
            return User.objects.get(email__iexact=email)


def get_or_create_organization_from_stytch(
    stytch_org_id: str,
    name: str,
    slug: str,
) -> Organization:
    """
    Get or create an Organization from Stytch data.

    Name and slug follow Stytch; plan, custom domain and feature overrides
    are local and left untouched.
    """
    try:
        org = Organization.objects.select_for_update().get(stytch_org_id=stytch_org_id)
        if (org.name, org.slug) != (name, slug):
            org.name = name
            org.slug = slug
            org.save(update_fields=["name", "slug", "updated_at"])
        return org
    except Organization.DoesNotExist:
        try:
            with transaction.atomic():
                return Organization.objects.create(
                    stytch_org_id=stytch_org_id,
                    name=name,
                    slug=slug,
                )
        except IntegrityError:
            return Organization.objects.get(stytch_org_id=stytch_org_id)


def get_or_create_member_from_stytch(
    user: User,
    organization: Organization,
    stytch_member_id: str,
    role: Role | str = Role.MEMBER,
) -> Member:
    """
    Get or create a Member linking User to Organization.

    Keeps Organization.member_count in step when a membership is created.
    """
    try:
        member = Member.objects.select_for_update().get(stytch_member_id=stytch_member_id)
        if member.role != role:
            member.role = role
            member.save(update_fields=["role", "updated_at"])
        return member
    except Member.DoesNotExist:
        try:
            with transaction.atomic():
                member = Member.objects.create(
                    stytch_member_id=stytch_member_id,
                    user=user,
                    organization=organization,
                    role=role,
                )
        except IntegrityError:
            return Member.objects.get(stytch_member_id=stytch_member_id)
        refresh_member_count(organization)
        return member


def refresh_member_count(organization: Organization) -> int:
    """Recompute the denormalized member count from membership rows."""
    count = Member.objects.filter(organization=organization).count()
    Organization.objects.filter(pk=organization.pk).update(member_count=count)
    organization.member_count = count
    # update() bypasses save signals
    get_directory().cache.invalidate(organization)
    return count


def sync_session_to_local(
    stytch_member: Any,  # Stytch Member object from SDK
    stytch_organization: Any,  # Stytch Organization object from SDK
) -> tuple[User, Member, Organization]:
    """
    Sync Stytch session data to local models.

    Called when an authenticated member is missing from the replica.
    Idempotent and concurrency-safe.

    Returns:
        Tuple of (user, member, organization)
    """
    with transaction.atomic():
        org = get_or_create_organization_from_stytch(
            stytch_org_id=stytch_organization.organization_id,
            name=stytch_organization.organization_name,
            slug=stytch_organization.organization_slug,
        )
        user = get_or_create_user_from_stytch(
            email=stytch_member.email_address,
            name=stytch_member.name or "",
        )
        role = role_from_stytch(role_ids_from_payload(getattr(stytch_member, "roles", [])))
        member = get_or_create_member_from_stytch(
            user=user,
            organization=org,
            stytch_member_id=stytch_member.member_id,
            role=role,
        )

    return user, member, org


def get_membership(user: User | None, organization: Organization) -> Member | None:
    """The user's membership in ``organization``, if any."""
    if user is None:
        return None
    return (
        Member.objects.select_related("user", "organization")
        .filter(user=user, organization=organization)
        .first()
    )


def create_organization_for(
    user: User,
    *,
    name: str,
    slug: str,
    plan: str,
    custom_domain: str | None = None,
) -> tuple[Organization, Member]:
    """
    Create an organization with ``user`` as its first admin.

    The organization and the admin member are created in Stytch, then in
    the local replica.
    """
    organization, _ = get_directory().create_organization(
        name=name, slug=slug, plan=plan, custom_domain=custom_domain
    )

    try:
        response = get_stytch_client().organizations.members.create(
            organization_id=organization.stytch_org_id,
            email_address=user.email,
            name=user.name or None,
            roles=stytch_roles_for(Role.ADMIN),
        )
    except StytchError as e:
        logger.error(
            "organization_admin_create_failed",
            org_id=organization.stytch_org_id,
            error_type=e.details.error_type,
        )
        raise ApiError(ErrorCode.INTERNAL_ERROR, "Failed to create organization") from e

    with transaction.atomic():
        member = get_or_create_member_from_stytch(
            user=user,
            organization=organization,
            stytch_member_id=response.member.member_id,
            role=Role.ADMIN,
        )
    return organization, member


def _locked_membership_state(
    organization: Organization, user_id: int
) -> tuple[Organization, Member | None, MembershipCounts]:
    """Lock the organization row and read the target and counts under the lock."""
    locked = Organization.objects.select_for_update().get(pk=organization.pk)
    target = (
        Member.objects.select_related("user")
        .filter(organization=locked, user_id=user_id)
        .first()
    )
    return locked, target, MembershipCounts.for_organization(locked)


def remove_membership(caller: Member | None, organization: Organization, user_id: int) -> None:
    """
    Remove a user's membership from an organization.

    Raises:
        ApiError: NOT_MEMBER, MEMBERSHIP_NOT_FOUND, LAST_ADMIN,
            INSUFFICIENT_PERMISSIONS, CANNOT_REMOVE_SELF or INTERNAL_ERROR.
    """
    with transaction.atomic():
        locked, target, counts = _locked_membership_state(organization, user_id)
        authorize(
            caller, locked, Action.REMOVE_MEMBERSHIP, target=target, counts=counts
        ).raise_for_denial()

        try:
            get_stytch_client().organizations.members.delete(
                organization_id=locked.stytch_org_id,
                member_id=target.stytch_member_id,
            )
        except StytchError as e:
            logger.error(
                "membership_remove_failed",
                org_id=locked.stytch_org_id,
                error_type=e.details.error_type,
            )
            raise ApiError(ErrorCode.INTERNAL_ERROR, "Failed to remove membership") from e

        target.delete()
        refresh_member_count(locked)

    logger.info("membership_removed", org_id=locked.stytch_org_id, target_user_id=user_id)


def change_membership_role(
    caller: Member | None,
    organization: Organization,
    user_id: int,
    new_role: Role,
) -> Member:
    """
    Change a member's role.

    Raises:
        ApiError: NOT_MEMBER, MEMBERSHIP_NOT_FOUND, LAST_ADMIN,
            INSUFFICIENT_PERMISSIONS, CANNOT_CHANGE_OWN_ROLE or INTERNAL_ERROR.
    """
    with transaction.atomic():
        locked, target, counts = _locked_membership_state(organization, user_id)
        authorize(
            caller,
            locked,
            Action.CHANGE_ROLE,
            target=target,
            target_role=new_role,
            counts=counts,
        ).raise_for_denial()

        if target.role == new_role:
            return target

        try:
            get_stytch_client().organizations.members.update(
                organization_id=locked.stytch_org_id,
                member_id=target.stytch_member_id,
                roles=stytch_roles_for(new_role),
            )
        except StytchError as e:
            logger.error(
                "membership_role_change_failed",
                org_id=locked.stytch_org_id,
                error_type=e.details.error_type,
            )
            raise ApiError(ErrorCode.INTERNAL_ERROR, "Failed to change role") from e

        old_role = target.role
        target.role = new_role
        target.save(update_fields=["role", "updated_at"])

    logger.info(
        "membership_role_changed",
        org_id=locked.stytch_org_id,
        target_user_id=user_id,
        old_role=old_role,
        new_role=new_role.value,
    )
    return target
