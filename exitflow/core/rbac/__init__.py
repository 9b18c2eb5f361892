"""RBAC (Role-Based Access Control) module for the exit workflow.

Defines roles, the permission model, and the actor record handed to the engine.
"""

from .permissions import Permission, Resource, Action, PERMISSION_DEFINITIONS, OVERRIDE_PERMISSION
from .checker import PermissionChecker
from .roles import Actor, Role, CLEARANCE_OWNER_ROLES, SYSTEM_ACTOR, get_default_role_permissions

__all__ = [
    "Permission",
    "Resource",
    "Action",
    "PERMISSION_DEFINITIONS",
    "OVERRIDE_PERMISSION",
    "PermissionChecker",
    "Actor",
    "Role",
    "CLEARANCE_OWNER_ROLES",
    "SYSTEM_ACTOR",
    "get_default_role_permissions",
]
