"""
Stytch configuration constants.

These values must match the configuration in the Stytch Dashboard.
See: https://stytch.com/docs/b2b/guides/rbac/overview
"""


class StytchRoles:
    """
    Stytch RBAC role identifiers.

    These must match the role IDs configured in the Stytch Dashboard.
    ``stytch_member`` is assigned implicitly to every member.
    """

    ADMIN = "stytch_admin"
    """Admin role ID - grants full organization management permissions."""

    MEMBER = "stytch_member"

    GUEST = "guest"
    """Custom role ID - read-only access to reports."""


class MemberStatus:
    """Stytch member status values as sent in member payloads."""

    ACTIVE = "active"
    INVITED = "invited"
    PENDING = "pending"
    DELETED = "deleted"
