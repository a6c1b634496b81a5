"""
Tests for roles, capabilities and Stytch role mapping.
"""

import pytest

from apps.accounts.roles import (
    Capability,
    Role,
    capabilities_for,
    outranks_or_equals,
    parse_role,
    rank,
    role_from_stytch,
    role_ids_from_payload,
    stytch_roles_for,
)


class TestRanking:
    def test_order(self) -> None:
        assert rank(Role.ADMIN) > rank(Role.MEMBER) > rank(Role.GUEST)

    def test_unknown_role_ranks_lowest(self) -> None:
        assert rank("owner") == 0

    def test_outranks_or_equals(self) -> None:
        assert outranks_or_equals("admin", "member") is True
        assert outranks_or_equals("member", "member") is True
        assert outranks_or_equals("guest", "member") is False

    def test_parse_role(self) -> None:
        assert parse_role("guest") == Role.GUEST
        assert parse_role("owner") is None
        assert parse_role(None) is None


class TestCapabilities:
    def test_admin_has_everything(self) -> None:
        assert capabilities_for(Role.ADMIN) == frozenset(str(c) for c in Capability)

    def test_guest_can_only_view_reports(self) -> None:
        assert capabilities_for(Role.GUEST) == frozenset({"view_reports"})

    def test_member_cannot_manage_members(self) -> None:
        assert "manage_members" not in capabilities_for(Role.MEMBER)

    def test_overrides_are_added(self) -> None:
        assert "manage_integrations" in capabilities_for(Role.GUEST, ["manage_integrations"])

    def test_unknown_role_has_only_overrides(self) -> None:
        assert capabilities_for("owner", ["view_reports"]) == frozenset({"view_reports"})


class TestStytchMapping:
    @pytest.mark.parametrize(
        ("role_ids", "expected"),
        [
            (["stytch_member", "stytch_admin"], Role.ADMIN),
            (["stytch_admin", "guest"], Role.ADMIN),
            (["stytch_member", "guest"], Role.GUEST),
            (["stytch_member"], Role.MEMBER),
            ([], Role.MEMBER),
        ],
    )
    def test_role_from_stytch(self, role_ids, expected) -> None:
        assert role_from_stytch(role_ids) == expected

    def test_stytch_roles_for(self) -> None:
        assert stytch_roles_for(Role.ADMIN) == ["stytch_admin"]
        assert stytch_roles_for(Role.GUEST) == ["guest"]
        assert stytch_roles_for(Role.MEMBER) == []

    def test_role_ids_from_webhook_dicts(self) -> None:
        roles = [{"role_id": "stytch_member", "sources": []}, {"role_id": "stytch_admin"}]

        assert role_ids_from_payload(roles) == ["stytch_member", "stytch_admin"]

    def test_role_ids_from_sdk_objects(self) -> None:
        class SdkRole:
            def __init__(self, role_id: str) -> None:
                self.role_id = role_id

        assert role_ids_from_payload([SdkRole("guest")]) == ["guest"]

    def test_role_ids_from_none(self) -> None:
        assert role_ids_from_payload(None) == []
