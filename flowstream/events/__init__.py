"""
flowstream Events - Event model, bounded queue and event manager

Usage:
    from flowstream.events import EventQueue, EventType, FlowEventManager

    manager = FlowEventManager(EventQueue(max_size=1000))
    manager.register_default_events()
    manager.subscribe(lambda event: print(event.to_sse(), end=""))
    manager.emit(EventType.TOKEN_RECEIVED, {"token": "Hello"})
"""

from .models import EventType, FlowEvent
from .queue import EventQueue
from .manager import (
    FlowEventManager,
    RegisteredEvent,
    EventRegistrationError,
    LifecycleEvent,
    LifecycleObserver,
)

__all__ = [
    "EventType",
    "FlowEvent",
    "EventQueue",
    "FlowEventManager",
    "RegisteredEvent",
    "EventRegistrationError",
    "LifecycleEvent",
    "LifecycleObserver",
]
