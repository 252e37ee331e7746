"""Role store implementations."""

from .memory_role_store import InMemoryRoleStore

__all__ = ["InMemoryRoleStore"]
