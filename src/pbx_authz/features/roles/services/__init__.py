"""Role services."""

from .role_hierarchy import RoleHierarchyResolver, compute_closure, validate_role_parents

__all__ = ["RoleHierarchyResolver", "compute_closure", "validate_role_parents"]
