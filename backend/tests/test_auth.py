"""Tests for tokens and role-based permissions."""

from datetime import timedelta

import pytest

from firmbook.auth.jwt import create_access_token, decode_token
from firmbook.auth.permissions import ALL_PERMISSIONS, has_permission, resolve_permissions


@pytest.mark.unit
class TestPermissions:

    def test_partner_and_admin_get_everything(self):
        assert set(resolve_permissions(["Partner"])) == ALL_PERMISSIONS
        assert set(resolve_permissions(["Admin"])) == ALL_PERMISSIONS

    def test_accounts_cannot_override(self):
        perms = resolve_permissions(["Accounts"])
        assert has_permission(perms, "billing.write")
        assert has_permission(perms, "reports.export")
        assert not has_permission(perms, "billing.admin")

    def test_staff_can_submit_and_read_reports_only(self):
        assert resolve_permissions(["Staff"]) == ["billing.submit", "reports.read"]

    def test_roles_are_unioned(self):
        perms = resolve_permissions(["Staff", "Accounts"])
        assert "billing.write" in perms
        assert perms == sorted(perms)

    def test_unknown_role_grants_nothing(self):
        assert resolve_permissions(["Intern"]) == []


@pytest.mark.unit
class TestTokens:

    def test_round_trip_claims(self):
        token = create_access_token("emp_partner", ["Partner"], ["billing.read"])
        payload = decode_token(token)

        assert payload["sub"] == "emp_partner"
        assert payload["roles"] == ["Partner"]
        assert payload["permissions"] == ["billing.read"]
        assert payload["type"] == "access"

    def test_expired_token_decodes_to_empty(self):
        token = create_access_token("emp_partner", [], [], expires_delta=timedelta(seconds=-5))
        assert decode_token(token) == {}

    def test_garbage_token_decodes_to_empty(self):
        assert decode_token("not-a-jwt") == {}
