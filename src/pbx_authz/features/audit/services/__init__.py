"""Audit services."""

from .audit_recorder import AuditRecorder

__all__ = ["AuditRecorder"]
