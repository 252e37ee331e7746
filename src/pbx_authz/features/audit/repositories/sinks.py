"""Audit sink implementations."""

import json
import logging
from typing import List

from ....config.logging_config import AUDIT_LOGGER_NAME
from ..entities import AuditEvent, AuditResult


class LoggingAuditSink:
    """Writes each event as one JSON line on the audit logger."""

    def __init__(self, logger_name: str = AUDIT_LOGGER_NAME):
        self._logger = logging.getLogger(logger_name)

    async def write(self, event: AuditEvent) -> None:
        level = logging.INFO if event.result == AuditResult.SUCCESS else logging.WARNING
        self._logger.log(level, json.dumps(event.to_dict(), default=str, sort_keys=True))


class InMemoryAuditSink:
    """Keeps events in a list, for development and tests."""

    def __init__(self):
        self.events: List[AuditEvent] = []

    async def write(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> List[str]:
        return [event.action.value for event in self.events]

    def clear(self) -> None:
        self.events.clear()
