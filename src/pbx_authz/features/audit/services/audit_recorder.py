"""Asynchronous audit event delivery.

``record`` hands an event to a bounded queue and returns immediately; a
background consumer writes queued events to the sink. When the queue is full
the configured overflow policy decides what is lost:

- ``drop_oldest`` evicts the oldest queued event,
- ``drop_newest`` discards the incoming event,
- ``block`` waits up to ``put_timeout`` for space in a detached task.

Sink failures are logged and counted; they never reach the caller.
"""

import asyncio
import logging
from typing import Dict, Optional, Set

from ....config.settings import AuditOverflowPolicy
from ..entities import AuditEvent, AuditSink

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Bounded queue plus background consumer in front of an audit sink."""

    def __init__(
        self,
        sink: AuditSink,
        max_queue_size: int = 1000,
        overflow_policy: AuditOverflowPolicy = AuditOverflowPolicy.DROP_OLDEST,
        put_timeout: float = 0.5,
        drain_timeout: float = 5.0,
    ):
        self._sink = sink
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self._overflow_policy = AuditOverflowPolicy(overflow_policy)
        self._put_timeout = put_timeout
        self._drain_timeout = drain_timeout
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._pending_puts: Set[asyncio.Task] = set()

        self._delivered = 0
        self._dropped = 0
        self._failed = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "queued": self._queue.qsize(),
            "delivered": self._delivered,
            "dropped": self._dropped,
            "failed": self._failed,
        }

    def start(self) -> None:
        """Start the background consumer."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._consume_loop())
        logger.info("Started audit recorder")

    async def stop(self) -> None:
        """Deliver what is queued (bounded by the drain timeout), then stop."""
        if not self._running:
            return

        try:
            await asyncio.wait_for(self._drain(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Audit drain timed out with {self._queue.qsize()} events undelivered")

        self._running = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info(f"Stopped audit recorder: {self.stats}")

    async def _drain(self) -> None:
        if self._pending_puts:
            await asyncio.gather(*list(self._pending_puts), return_exceptions=True)
        await self._queue.join()

    async def flush(self) -> None:
        """Wait until every queued event has been handed to the sink."""
        if self._running:
            await self._drain()

    def record(self, event: AuditEvent) -> bool:
        """Queue an event without waiting.

        Returns:
            False when the event was dropped immediately
        """
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            pass

        if self._overflow_policy == AuditOverflowPolicy.DROP_NEWEST:
            self._dropped += 1
            logger.warning(f"Audit queue full, dropping {event.action.value} event")
            return False

        if self._overflow_policy == AuditOverflowPolicy.DROP_OLDEST:
            try:
                oldest = self._queue.get_nowait()
                self._queue.task_done()
                self._dropped += 1
                logger.warning(f"Audit queue full, dropping oldest {oldest.action.value} event")
            except asyncio.QueueEmpty:
                pass
            try:
                self._queue.put_nowait(event)
                return True
            except asyncio.QueueFull:
                self._dropped += 1
                return False

        task = asyncio.create_task(self._put_with_timeout(event))
        self._pending_puts.add(task)
        task.add_done_callback(self._pending_puts.discard)
        return True

    async def _put_with_timeout(self, event: AuditEvent) -> None:
        try:
            await asyncio.wait_for(self._queue.put(event), timeout=self._put_timeout)
        except asyncio.TimeoutError:
            self._dropped += 1
            logger.warning(f"Audit queue full for {self._put_timeout}s, dropping {event.action.value} event")

    async def _consume_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._sink.write(event)
                self._delivered += 1
            except Exception as e:
                self._failed += 1
                logger.error(f"Failed to write audit event {event.event_id}: {e}")
            finally:
                self._queue.task_done()
