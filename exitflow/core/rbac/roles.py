"""Role definitions for the exit workflow.

Roles:
1. Student - raises, submits and withdraws their own exit request
2. Superintendent, Accounts, Library, Mess - own departmental clearance items
3. Admin - owns administrative items, approves and rejects
4. Trustee - approves, rejects and holds the override capability
5. System - automated transitions (checklist instantiation)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from .checker import PermissionChecker
from .permissions import OVERRIDE_PERMISSION, Action, Permission, Resource


class Role(str, Enum):
    """Actor roles known to the engine."""

    STUDENT = "STUDENT"
    SUPERINTENDENT = "SUPERINTENDENT"
    ACCOUNTS = "ACCOUNTS"
    LIBRARY = "LIBRARY"
    MESS = "MESS"
    ADMIN = "ADMIN"
    TRUSTEE = "TRUSTEE"
    SYSTEM = "SYSTEM"


# Roles that may own a clearance item
CLEARANCE_OWNER_ROLES: FrozenSet[Role] = frozenset({
    Role.SUPERINTENDENT,
    Role.ACCOUNTS,
    Role.LIBRARY,
    Role.MESS,
    Role.ADMIN,
})


def _build_permissions(*perms: tuple) -> List[str]:
    """Build permission strings from (Resource, Action) tuples."""
    return [str(Permission(r, a)) for r, a in perms]


STUDENT_PERMISSIONS = _build_permissions(
    (Resource.EXIT_REQUESTS, Action.CREATE),
    (Resource.EXIT_REQUESTS, Action.READ),
    (Resource.EXIT_REQUESTS, Action.SUBMIT),
    (Resource.EXIT_REQUESTS, Action.WITHDRAW),
    (Resource.CLEARANCE_ITEMS, Action.READ),
    (Resource.CERTIFICATES, Action.READ),
)

DEPARTMENT_PERMISSIONS = _build_permissions(
    (Resource.EXIT_REQUESTS, Action.READ),
    (Resource.EXIT_REQUESTS, Action.LIST),
    (Resource.CLEARANCE_ITEMS, Action.READ),
    (Resource.CLEARANCE_ITEMS, Action.LIST),
    (Resource.CLEARANCE_ITEMS, Action.UPDATE),
    (Resource.DASHBOARD, Action.READ),
)

ACCOUNTS_PERMISSIONS = DEPARTMENT_PERMISSIONS + _build_permissions(
    (Resource.FINANCIALS, Action.READ),
    (Resource.FINANCIALS, Action.UPDATE),
)

ADMIN_PERMISSIONS = DEPARTMENT_PERMISSIONS + _build_permissions(
    (Resource.EXIT_REQUESTS, Action.APPROVE),
    (Resource.EXIT_REQUESTS, Action.REJECT),
    (Resource.FINANCIALS, Action.READ),
    (Resource.CERTIFICATES, Action.ISSUE),
    (Resource.AUDIT_LOGS, Action.READ),
    (Resource.AUDIT_LOGS, Action.LIST),
)

TRUSTEE_PERMISSIONS = ["*:*"]

SYSTEM_PERMISSIONS = _build_permissions(
    (Resource.EXIT_REQUESTS, Action.READ),
    (Resource.CLEARANCE_ITEMS, Action.READ),
)


DEFAULT_ROLE_PERMISSIONS: Dict[Role, List[str]] = {
    Role.STUDENT: STUDENT_PERMISSIONS,
    Role.SUPERINTENDENT: DEPARTMENT_PERMISSIONS,
    Role.ACCOUNTS: ACCOUNTS_PERMISSIONS,
    Role.LIBRARY: DEPARTMENT_PERMISSIONS,
    Role.MESS: DEPARTMENT_PERMISSIONS,
    Role.ADMIN: ADMIN_PERMISSIONS,
    Role.TRUSTEE: TRUSTEE_PERMISSIONS,
    Role.SYSTEM: SYSTEM_PERMISSIONS,
}


def get_default_role_permissions(role: Role) -> List[str]:
    """Get permissions list for a default role."""
    return list(DEFAULT_ROLE_PERMISSIONS[role])


@dataclass(frozen=True)
class Actor:
    """
    Identity and capabilities of whoever performs an operation.

    Supplied by the authorization layer and threaded explicitly through
    every call; the engine never reads ambient session state.
    """
    actor_id: str
    name: str
    role: Role
    permissions: List[str] = field(default_factory=list)
    device_info: Optional[str] = None
    ip_address: Optional[str] = None

    @classmethod
    def with_default_permissions(cls, actor_id: str, name: str, role: Role, **kwargs) -> "Actor":
        return cls(actor_id, name, role, get_default_role_permissions(role), **kwargs)

    @property
    def can_override(self) -> bool:
        """Whether the actor holds the approval override capability."""
        return PermissionChecker(self.permissions).has_permission(OVERRIDE_PERMISSION)


SYSTEM_ACTOR = Actor("system", "System", Role.SYSTEM, SYSTEM_PERMISSIONS)
