"""Role and permission entities."""

from .permission import Permission, PermissionCode, permission_grants, MANAGE_ACTION, WILDCARD
from .role import Role
from .effective_access import EffectiveAccess
from .protocols import RoleStore

__all__ = [
    "Permission",
    "PermissionCode",
    "permission_grants",
    "MANAGE_ACTION",
    "WILDCARD",
    "Role",
    "EffectiveAccess",
    "RoleStore",
]
