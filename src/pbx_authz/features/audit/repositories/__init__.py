"""Audit sinks."""

from .sinks import LoggingAuditSink, InMemoryAuditSink

__all__ = ["LoggingAuditSink", "InMemoryAuditSink"]
