"""
flowstream Event Queue - Bounded FIFO buffer between event producers and consumers

Drop-on-full: when the queue is at capacity new events are rejected and
counted, existing events are never evicted. The loop must never stall
because a slow consumer fell behind.
"""

import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .models import FlowEvent

DEFAULT_MAX_SIZE = 1000


class EventQueue:
    """
    Thread-safe bounded queue of FlowEvents.

    A single lock guards the deque and the dropped counter, so a transport
    thread may dequeue while the execution loop enqueues.

    Example:
        queue = EventQueue(max_size=2)
        queue.enqueue(a)   # True
        queue.enqueue(b)   # True
        queue.enqueue(c)   # False, dropped_events == 1
        queue.dequeue()    # a
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")

        self._max_size = max_size
        self._events: Deque[FlowEvent] = deque()
        self._dropped_events = 0
        self._lock = threading.Lock()

    def enqueue(self, event: FlowEvent) -> bool:
        """Append *event*. Returns False (and counts a drop) when full."""
        with self._lock:
            if len(self._events) >= self._max_size:
                self._dropped_events += 1
                return False
            self._events.append(event)
            return True

    def dequeue(self) -> Optional[FlowEvent]:
        """Remove and return the oldest event, or None when empty"""
        with self._lock:
            if not self._events:
                return None
            return self._events.popleft()

    def peek(self) -> Optional[FlowEvent]:
        """Return the oldest event without removing it"""
        with self._lock:
            return self._events[0] if self._events else None

    def drain(self) -> List[FlowEvent]:
        """Remove and return every queued event, oldest first"""
        with self._lock:
            events = list(self._events)
            self._events.clear()
            return events

    def size(self) -> int:
        with self._lock:
            return len(self._events)

    def is_empty(self) -> bool:
        return self.size() == 0

    def get_max_size(self) -> int:
        return self._max_size

    def get_dropped_event_count(self) -> int:
        with self._lock:
            return self._dropped_events

    def get_stats(self) -> Dict[str, Any]:
        """Snapshot of queue occupancy and overflow"""
        with self._lock:
            size = len(self._events)
            dropped = self._dropped_events
        return {
            "size": size,
            "max_size": self._max_size,
            "dropped_events": dropped,
            "is_empty": size == 0,
            "utilization": size / self._max_size * 100,
        }

    def clear(self) -> None:
        """Drop all queued events. The dropped counter is kept."""
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        return self.size()
