"""Permission checking utilities.

Authorization itself belongs to the calling layer; the engine only receives
the resulting role and capability flags. The checker turns a permission list
supplied by that layer into those flags.
"""

from typing import List, Union

from .permissions import Permission


class PermissionChecker:
    """Checks if an actor has specific permissions based on their role."""

    def __init__(self, user_permissions: List[str]):
        """
        Initialize with the actor's permissions list.

        Args:
            user_permissions: List of permission strings from the actor's role
        """
        self.permissions = set(user_permissions)

    def has_permission(self, permission: Union[str, Permission]) -> bool:
        """Check if the actor has a specific permission."""
        perm_str = str(permission) if isinstance(permission, Permission) else permission

        if perm_str in self.permissions:
            return True

        # resource:* grants all actions on resource, *:* grants everything
        if ":" in perm_str:
            resource = perm_str.split(":")[0]
            if f"{resource}:*" in self.permissions:
                return True
            if "*:*" in self.permissions:
                return True

        return False

    def has_any_permission(self, permissions: List[Union[str, Permission]]) -> bool:
        """Check if the actor has any of the given permissions."""
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: List[Union[str, Permission]]) -> bool:
        """Check if the actor has all of the given permissions."""
        return all(self.has_permission(p) for p in permissions)
