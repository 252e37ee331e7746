"""Audit entities."""

from .audit_event import AuditEvent, AuditAction, AuditResult, RiskLevel
from .protocols import AuditSink

__all__ = ["AuditEvent", "AuditAction", "AuditResult", "RiskLevel", "AuditSink"]
