"""Audit feature for pbx-authz.

Access decisions become immutable ``AuditEvent`` records that are delivered
to a sink in the background, off the request path.
"""

from .entities import AuditEvent, AuditAction, AuditResult, RiskLevel, AuditSink
from .services import AuditRecorder
from .repositories import LoggingAuditSink, InMemoryAuditSink

__all__ = [
    "AuditEvent",
    "AuditAction",
    "AuditResult",
    "RiskLevel",
    "AuditSink",
    "AuditRecorder",
    "LoggingAuditSink",
    "InMemoryAuditSink",
]
