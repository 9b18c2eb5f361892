"""Permission model for the exit workflow.

Uses a matrix approach: permissions = actions × resources.

Permission string format: "resource:action"
Examples:
  - exit_requests:approve
  - exit_requests:override
  - clearance_items:update
  - dashboard:read
"""

from enum import Enum
from typing import NamedTuple, FrozenSet


class Resource(str, Enum):
    """Resources that can be protected by permissions."""

    EXIT_REQUESTS = "exit_requests"       # Exit request lifecycle
    CLEARANCE_ITEMS = "clearance_items"   # Departmental clearance items
    FINANCIALS = "financials"             # Deposit, dues and refunds
    CERTIFICATES = "certificates"         # Exit certificates
    DASHBOARD = "dashboard"               # Fleet-wide dashboard
    AUDIT_LOGS = "audit_logs"             # Audit trail


class Action(str, Enum):
    """Actions that can be performed on resources."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    LIST = "list"

    SUBMIT = "submit"
    WITHDRAW = "withdraw"
    APPROVE = "approve"
    REJECT = "reject"
    OVERRIDE = "override"         # Reverse an approved decision
    ISSUE = "issue"               # Issue certificates
    EXPORT = "export"


class Permission(NamedTuple):
    """A permission is a combination of resource and action."""
    resource: Resource
    action: Action

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}"

    @classmethod
    def from_string(cls, perm_str: str) -> "Permission":
        """Parse a permission string like 'exit_requests:approve'."""
        parts = perm_str.split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid permission format: {perm_str}")
        return cls(Resource(parts[0]), Action(parts[1]))


# Maps each resource to its valid actions
PERMISSION_MATRIX: dict[Resource, FrozenSet[Action]] = {
    Resource.EXIT_REQUESTS: frozenset([
        Action.CREATE, Action.READ, Action.LIST, Action.SUBMIT, Action.WITHDRAW,
        Action.APPROVE, Action.REJECT, Action.OVERRIDE,
    ]),
    Resource.CLEARANCE_ITEMS: frozenset([
        Action.READ, Action.LIST, Action.UPDATE,
    ]),
    Resource.FINANCIALS: frozenset([
        Action.READ, Action.UPDATE,
    ]),
    Resource.CERTIFICATES: frozenset([
        Action.READ, Action.ISSUE,
    ]),
    Resource.DASHBOARD: frozenset([
        Action.READ,
    ]),
    Resource.AUDIT_LOGS: frozenset([
        Action.READ, Action.LIST, Action.EXPORT,
    ]),
}


def _generate_permission_definitions() -> dict[str, Permission]:
    """Generate all valid permission combinations from the matrix."""
    permissions = {}
    for resource, actions in PERMISSION_MATRIX.items():
        for action in actions:
            perm = Permission(resource, action)
            permissions[str(perm)] = perm
    return permissions


# All valid permissions as a dictionary: "resource:action" -> Permission
PERMISSION_DEFINITIONS = _generate_permission_definitions()

OVERRIDE_PERMISSION = str(Permission(Resource.EXIT_REQUESTS, Action.OVERRIDE))


def is_valid_permission(perm_str: str) -> bool:
    """Check if a permission string is valid."""
    return perm_str in PERMISSION_DEFINITIONS


def get_permissions_for_resource(resource: Resource) -> list[str]:
    """Get all valid permission strings for a resource."""
    return [
        str(Permission(resource, action))
        for action in PERMISSION_MATRIX.get(resource, set())
    ]
