"""Role-based permission gating for siteflow actions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .intent.taxonomy import ActionType


class Role(str, Enum):
    """User roles known to the assistant."""

    ADMIN = "admin"  # Full access, bypasses the table
    DATA_ENTRY_SUPERVISOR = "data_entry_supervisor"
    REGULATORY = "regulatory"
    MANAGER = "manager"
    STAFF = "staff"


PRIVILEGED_ROLE = Role.ADMIN

ROLE_PERMISSIONS: dict[Role, frozenset[ActionType]] = {
    Role.ADMIN: frozenset(a for a in ActionType if a != ActionType.UNKNOWN),
    Role.DATA_ENTRY_SUPERVISOR: frozenset({
        ActionType.CREATE_WAYBILL,
        ActionType.ADD_ASSET,
        ActionType.PROCESS_RETURN,
        ActionType.UPDATE_ASSET,
        ActionType.CHECK_INVENTORY,
        ActionType.VIEW_ANALYTICS,
    }),
    Role.REGULATORY: frozenset({
        ActionType.CHECK_INVENTORY,
        ActionType.VIEW_ANALYTICS,
    }),
    Role.MANAGER: frozenset({
        ActionType.CREATE_WAYBILL,
        ActionType.ADD_ASSET,
        ActionType.PROCESS_RETURN,
        ActionType.CHECK_INVENTORY,
        ActionType.VIEW_ANALYTICS,
    }),
    Role.STAFF: frozenset({
        ActionType.CHECK_INVENTORY,
        ActionType.VIEW_ANALYTICS,
    }),
}


@dataclass(frozen=True)
class PermissionResult:
    allowed: bool
    message: str = ""


class PermissionChecker:
    """Allow-list check of an action against a role.

    Stateless apart from the role it was built for. Unrecognised role
    strings are allowed nothing.
    """

    def __init__(self, role: Role | str) -> None:
        self.role_name = role.value if isinstance(role, Role) else str(role)
        try:
            self.role: Role | None = Role(self.role_name)
        except ValueError:
            self.role = None

    def check_permission(self, action: ActionType) -> PermissionResult:
        if self.role == PRIVILEGED_ROLE:
            return PermissionResult(allowed=True)

        if action in self.allowed_actions():
            return PermissionResult(allowed=True)

        return PermissionResult(
            allowed=False,
            message=(
                "You don't have permission to perform this action. "
                f"Your role ({self.role_name}) cannot execute: {action.label}"
            ),
        )

    def can_perform(self, action: ActionType) -> bool:
        return self.check_permission(action).allowed

    def allowed_actions(self) -> frozenset[ActionType]:
        if self.role is None:
            return frozenset()
        return ROLE_PERMISSIONS[self.role]


__all__ = ["PRIVILEGED_ROLE", "ROLE_PERMISSIONS", "PermissionChecker", "PermissionResult", "Role"]
