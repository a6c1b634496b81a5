"""
Organization roles and the capabilities each one grants.

Role order is admin > member > guest. ROLE_RANK is the only place the
order is defined; the Membership Authority compares ranks, never names.
"""

from collections.abc import Iterable
from enum import StrEnum

from django.db import models

from apps.accounts.constants import StytchRoles


class Role(models.TextChoices):
    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"
    GUEST = "guest", "Guest"


ROLE_RANK: dict[Role, int] = {
    Role.ADMIN: 3,
    Role.MEMBER: 2,
    Role.GUEST: 1,
}


class Capability(StrEnum):
    MANAGE_ORGANIZATION = "manage_organization"
    MANAGE_MEMBERS = "manage_members"
    CREATE_PROJECTS = "create_projects"
    VIEW_REPORTS = "view_reports"
    MANAGE_REPORTS = "manage_reports"
    MANAGE_AUTOMATIONS = "manage_automations"
    MANAGE_INTEGRATIONS = "manage_integrations"
    ACCESS_ANALYTICS = "access_analytics"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.MEMBER: frozenset(
        {
            Capability.CREATE_PROJECTS,
            Capability.VIEW_REPORTS,
            Capability.MANAGE_REPORTS,
            Capability.MANAGE_AUTOMATIONS,
            Capability.ACCESS_ANALYTICS,
        }
    ),
    Role.GUEST: frozenset({Capability.VIEW_REPORTS}),
}


def parse_role(value: str | None) -> Role | None:
    """Return the Role for a string value, or None if it is not a role."""
    try:
        return Role(value)
    except ValueError:
        return None


def rank(role: Role | str) -> int:
    parsed = parse_role(role)
    return ROLE_RANK[parsed] if parsed is not None else 0


def outranks_or_equals(role: Role | str, other: Role | str) -> bool:
    return rank(role) >= rank(other)


def capabilities_for(role: Role | str, overrides: Iterable[str] = ()) -> frozenset[str]:
    """Role-derived capabilities plus any per-member overrides."""
    parsed = parse_role(role)
    base = ROLE_CAPABILITIES.get(parsed, frozenset()) if parsed is not None else frozenset()
    return frozenset(str(c) for c in base) | frozenset(overrides)


def role_from_stytch(role_ids: Iterable[str]) -> Role:
    """
    Map Stytch RBAC role IDs to a local role.

    stytch_admin wins over anything else; the guest role only applies when
    the member has no admin role. Everyone else is a member.
    """
    role_ids = set(role_ids)
    if StytchRoles.ADMIN in role_ids:
        return Role.ADMIN
    if StytchRoles.GUEST in role_ids:
        return Role.GUEST
    return Role.MEMBER


def stytch_roles_for(role: Role | str) -> list[str]:
    """Explicit Stytch role assignments for a local role."""
    parsed = parse_role(role)
    if parsed == Role.ADMIN:
        return [StytchRoles.ADMIN]
    if parsed == Role.GUEST:
        return [StytchRoles.GUEST]
    return []


def role_ids_from_payload(roles: Iterable) -> list[str]:
    """
    Extract role IDs from a Stytch member ``roles`` list.

    Items are SDK objects in API responses and dicts in webhook payloads,
    e.g. [{"role_id": "stytch_admin", "sources": [...]}, ...].
    """
    role_ids = []
    for r in roles or []:
        role_id = r.get("role_id") if isinstance(r, dict) else getattr(r, "role_id", None)
        if role_id:
            role_ids.append(role_id)
    return role_ids
