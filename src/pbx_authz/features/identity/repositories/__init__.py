"""Identity store implementations."""

from .memory_stores import InMemoryUserStore, InMemorySessionStore

__all__ = ["InMemoryUserStore", "InMemorySessionStore"]
