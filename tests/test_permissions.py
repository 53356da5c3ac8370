"""Tests for siteflow.core.permissions module."""

from __future__ import annotations

import pytest

from siteflow.core.intent.taxonomy import ActionType
from siteflow.core.permissions import ROLE_PERMISSIONS, PermissionChecker, Role


class TestPermissionChecker:
    """Tests for role-based gating."""

    @pytest.mark.parametrize("action", [a for a in ActionType if a != ActionType.UNKNOWN])
    def test_admin_allowed_everything(self, action):
        assert PermissionChecker(Role.ADMIN).can_perform(action)

    def test_regulatory_read_only(self):
        checker = PermissionChecker("regulatory")
        assert checker.can_perform(ActionType.CHECK_INVENTORY)
        assert checker.can_perform(ActionType.VIEW_ANALYTICS)
        assert not checker.can_perform(ActionType.CREATE_WAYBILL)

    def test_denial_message(self):
        result = PermissionChecker("staff").check_permission(ActionType.CREATE_WAYBILL)
        assert result.allowed is False
        assert result.message == (
            "You don't have permission to perform this action. "
            "Your role (staff) cannot execute: create waybill"
        )

    def test_manager_cannot_create_sites(self):
        checker = PermissionChecker(Role.MANAGER)
        assert checker.can_perform(ActionType.CREATE_WAYBILL)
        assert not checker.can_perform(ActionType.CREATE_SITE)
        assert not checker.can_perform(ActionType.UPDATE_ASSET)

    def test_supervisor_can_update_assets(self):
        assert PermissionChecker("data_entry_supervisor").can_perform(ActionType.UPDATE_ASSET)

    def test_unrecognised_role_allowed_nothing(self):
        checker = PermissionChecker("visitor")
        assert checker.role is None
        assert checker.allowed_actions() == frozenset()
        result = checker.check_permission(ActionType.CHECK_INVENTORY)
        assert not result.allowed
        assert "Your role (visitor)" in result.message

    def test_unknown_never_listed(self):
        """UNKNOWN is not an executable action for any role."""
        for actions in ROLE_PERMISSIONS.values():
            assert ActionType.UNKNOWN not in actions

    def test_every_role_has_a_table(self):
        assert set(ROLE_PERMISSIONS) == set(Role)
