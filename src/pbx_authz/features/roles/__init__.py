"""Roles feature for pbx-authz.

- entities/: roles, permission codes and effective access
- services/: hierarchy expansion and requirement checks
- repositories/: role store implementations
"""

from .entities import (
    Permission,
    PermissionCode,
    permission_grants,
    Role,
    EffectiveAccess,
    RoleStore,
)
from .services import RoleHierarchyResolver, compute_closure
from .repositories import InMemoryRoleStore

__all__ = [
    # Entities
    "Permission",
    "PermissionCode",
    "permission_grants",
    "Role",
    "EffectiveAccess",

    # Protocols
    "RoleStore",

    # Services
    "RoleHierarchyResolver",
    "compute_closure",

    # Repository Implementations
    "InMemoryRoleStore",
]
