"""Policy store implementations."""

from .memory_stores import InMemoryPolicyStore, InMemoryAttributeStore

__all__ = ["InMemoryPolicyStore", "InMemoryAttributeStore"]
