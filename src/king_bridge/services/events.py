"""Bounded, best-effort outbound event channel."""

import logging
import queue
from typing import Any, Dict, Optional

from king_bridge.constants import EVENT_BUFFER_SIZE
from king_bridge.models.event import EventType, KingEvent

logger = logging.getLogger(__name__)


class EventStream:
    """Consumer side of the event queue. Events can be taken, never put."""

    def __init__(self, events: "queue.Queue[KingEvent]"):
        self._events = events

    def get(self, block: bool = True, timeout: Optional[float] = None) -> KingEvent:
        return self._events.get(block=block, timeout=timeout)

    def get_nowait(self) -> KingEvent:
        return self._events.get_nowait()

    def empty(self) -> bool:
        return self._events.empty()

    def qsize(self) -> int:
        return self._events.qsize()


class EventEmitter:
    """Publishes KingEvents without ever blocking the publisher.

    This is a live-state feed, not an audit log: when the queue is full the
    event is dropped and the drop is logged.
    """

    def __init__(self, maxsize: int = EVENT_BUFFER_SIZE):
        self._queue: "queue.Queue[KingEvent]" = queue.Queue(maxsize=maxsize)
        self._stream = EventStream(self._queue)
        self.dropped = 0

    @property
    def stream(self) -> EventStream:
        return self._stream

    def emit(self, event_type: EventType, data: Optional[Dict[str, Any]] = None) -> bool:
        event = KingEvent(type=event_type, data=data or {})
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            logger.warning(f"Event queue full, dropping event: {event_type.value}")
            return False
        return True
