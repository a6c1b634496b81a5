"""
Membership authority - who may do what to an organization.

``authorize`` is a pure function of the caller's membership, the target
organization, the action and pre-fetched membership counts. It never
touches the database; callers that mutate memberships fetch counts under a
row lock (see apps.accounts.services) and pass them in.

Rules are evaluated in order and the first denial wins. Every denial
carries a stable ErrorCode.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from django.db.models import Count, Q

from apps.accounts.roles import ROLE_RANK, Role, parse_role, rank
from apps.core.errors import ApiError, ErrorCode
from apps.organizations.plans import effective_limits

if TYPE_CHECKING:
    from apps.accounts.models import Member
    from apps.organizations.models import Organization


class Action(StrEnum):
    VIEW_ORGANIZATION = "view_organization"
    INVITE_MEMBER = "invite_member"
    UPDATE_ORGANIZATION = "update_organization"
    DELETE_ORGANIZATION = "delete_organization"
    UPDATE_SETTINGS = "update_settings"
    REMOVE_MEMBERSHIP = "remove_membership"
    CHANGE_ROLE = "change_role"


ADMIN_ACTIONS = frozenset(
    {Action.UPDATE_ORGANIZATION, Action.DELETE_ORGANIZATION, Action.UPDATE_SETTINGS}
)
MEMBERSHIP_ACTIONS = frozenset({Action.REMOVE_MEMBERSHIP, Action.CHANGE_ROLE})


@dataclass(frozen=True)
class Decision:
    allowed: bool
    code: ErrorCode | None = None
    message: str = ""

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, code: ErrorCode, message: str) -> "Decision":
        return cls(allowed=False, code=code, message=message)

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise ApiError(self.code, self.message)


@dataclass(frozen=True)
class MembershipCounts:
    """Snapshot of an organization's membership, with its plan's member ceiling."""

    member_count: int
    admin_count: int
    max_members: int | None = None

    @classmethod
    def for_organization(cls, organization: "Organization") -> "MembershipCounts":
        totals = organization.members.aggregate(
            members=Count("id"),
            admins=Count("id", filter=Q(role=Role.ADMIN)),
        )
        return cls(
            member_count=totals["members"],
            admin_count=totals["admins"],
            max_members=effective_limits(organization).max_members,
        )

    @property
    def at_member_limit(self) -> bool:
        return self.max_members is not None and self.member_count >= self.max_members


def check_admin_invariant(
    target: "Member",
    counts: MembershipCounts,
    new_role: Role | str | None = None,
) -> Decision:
    """
    Deny removing or demoting the organization's last admin.

    ``new_role=None`` means the membership is being removed.
    """
    if target.role != Role.ADMIN:
        return Decision.allow()
    if new_role is not None and rank(new_role) >= ROLE_RANK[Role.ADMIN]:
        return Decision.allow()
    if counts.admin_count <= 1:
        return Decision.deny(
            ErrorCode.LAST_ADMIN,
            "Cannot remove or demote the last administrator of an organization.",
        )
    return Decision.allow()


def _authorize_invite(
    caller: "Member", target_role: Role | str | None, counts: MembershipCounts
) -> Decision:
    caller_role = parse_role(caller.role)
    if caller_role is None or caller_role == Role.GUEST:
        return Decision.deny(
            ErrorCode.INSUFFICIENT_PERMISSIONS, "Guests cannot invite members."
        )
    if rank(target_role) > rank(caller_role):
        return Decision.deny(
            ErrorCode.INSUFFICIENT_PERMISSIONS,
            f"A {caller_role.value} cannot invite a {target_role}.",
        )
    if counts.at_member_limit:
        return Decision.deny(
            ErrorCode.MEMBER_LIMIT_REACHED,
            f"Organization has reached its plan limit of {counts.max_members} members.",
        )
    return Decision.allow()


def _authorize_membership_change(
    caller: "Member",
    organization: "Organization",
    action: Action,
    target: "Member | None",
    target_role: Role | str | None,
    counts: MembershipCounts,
) -> Decision:
    if target is None or target.organization_id != organization.pk:
        return Decision.deny(ErrorCode.MEMBERSHIP_NOT_FOUND, "Membership not found.")

    new_role = target_role if action == Action.CHANGE_ROLE else None
    invariant = check_admin_invariant(target, counts, new_role=new_role)
    if not invariant.allowed:
        return invariant

    if caller.role != Role.ADMIN:
        return Decision.deny(
            ErrorCode.INSUFFICIENT_PERMISSIONS, "Only administrators can manage memberships."
        )

    if target.pk == caller.pk:
        if action == Action.REMOVE_MEMBERSHIP:
            return Decision.deny(
                ErrorCode.CANNOT_REMOVE_SELF, "You cannot remove yourself from the organization."
            )
        return Decision.deny(ErrorCode.CANNOT_CHANGE_OWN_ROLE, "You cannot change your own role.")

    return Decision.allow()


def authorize(
    caller: "Member | None",
    organization: "Organization",
    action: Action,
    *,
    target: "Member | None" = None,
    target_role: Role | str | None = None,
    confirmed: bool = False,
    counts: MembershipCounts | None = None,
) -> Decision:
    """
    Decide whether ``caller`` may perform ``action`` on ``organization``.

    Args:
        caller: The caller's membership in ``organization`` (None if they have none).
        organization: The organization acted upon.
        action: What the caller wants to do.
        target: Membership acted upon, for remove_membership/change_role.
        target_role: Role being granted, for invite_member/change_role.
        confirmed: Explicit confirmation, required by delete_organization.
        counts: Membership counts, required by invite_member and membership actions.
    """
    if caller is None or caller.organization_id != organization.pk:
        return Decision.deny(ErrorCode.NOT_MEMBER, "You are not a member of this organization.")

    if action == Action.VIEW_ORGANIZATION:
        return Decision.allow()

    if action == Action.INVITE_MEMBER:
        if counts is None:
            raise ValueError("invite_member requires membership counts")
        return _authorize_invite(caller, target_role, counts)

    if action in ADMIN_ACTIONS:
        if caller.role != Role.ADMIN:
            return Decision.deny(
                ErrorCode.INSUFFICIENT_PERMISSIONS, "Administrator access required."
            )
        if action == Action.DELETE_ORGANIZATION and not confirmed:
            return Decision.deny(
                ErrorCode.CONFIRMATION_REQUIRED,
                "Organization deletion requires explicit confirmation.",
            )
        return Decision.allow()

    if action in MEMBERSHIP_ACTIONS:
        if counts is None:
            raise ValueError(f"{action} requires membership counts")
        return _authorize_membership_change(
            caller, organization, action, target, target_role, counts
        )

    raise ValueError(f"Unknown action: {action}")
