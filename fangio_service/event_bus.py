"""In-process publish/subscribe keyed by plan id.

Delivery is synchronous fan-out at emission time. The bus never buffers; a
consumer that cannot keep up must bring its own buffer (see
``QueueSubscriber``, used by the live event stream).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional, Set

from .metrics import event_subscribers
from .schemas import AuditEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[AuditEvent], None]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, Set[EventHandler]] = {}

    def subscribe(self, plan_id: str, handler: EventHandler) -> None:
        handlers = self._subscribers.setdefault(plan_id, set())
        if handler in handlers:
            return
        handlers.add(handler)
        event_subscribers.inc()

    def unsubscribe(self, plan_id: str, handler: EventHandler) -> None:
        handlers = self._subscribers.get(plan_id)
        if not handlers or handler not in handlers:
            return
        handlers.discard(handler)
        event_subscribers.dec()
        if not handlers:
            del self._subscribers[plan_id]

    def publish(self, event: AuditEvent) -> None:
        handlers = self._subscribers.get(event.plan_id)
        if not handlers:
            return
        # copy: a handler may unsubscribe itself while we iterate
        for handler in list(handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("event handler failed for plan %s (%s)", event.plan_id, event.type.value)

    def subscriber_count(self, plan_id: str) -> int:
        return len(self._subscribers.get(plan_id, ()))

    def clear(self) -> None:
        for handlers in self._subscribers.values():
            event_subscribers.dec(len(handlers))
        self._subscribers.clear()


class QueueSubscriber:
    """Bounded per-subscriber buffer bridging the bus to an async consumer.

    When the queue is full the newest event is dropped and a warning logged,
    so a stalled stream never blocks emission.
    """

    def __init__(self, plan_id: str, maxsize: int = 1000):
        self.plan_id = plan_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def __call__(self, event: AuditEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "subscriber queue full for plan %s, dropping %s event (%d dropped)",
                self.plan_id,
                event.type.value,
                self.dropped,
            )

    async def get(self, timeout: Optional[float] = None) -> Optional[AuditEvent]:
        """Next event, or None if ``timeout`` elapses first."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
