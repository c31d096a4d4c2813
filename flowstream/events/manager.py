"""
flowstream Event Manager - Registration and broadcast hub for flow events

Provides:
- FlowEventManager: enqueue + callbacks + listeners for every emitted event
- RegisteredEvent: name -> (type, callback) binding
- LifecycleEvent / LifecycleObserver: translated flow lifecycle events for a
  secondary observer system
"""

import copy
import inspect
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import (
    Any, Callable, Dict, List, Optional, Protocol, Union, runtime_checkable
)

from .models import EventType, FlowEvent
from .queue import EventQueue


EVENT_NAME_PREFIX = "on_"

# Callback and listener signature: (FlowEvent) -> None
EventCallback = Callable[[FlowEvent], Any]


class EventRegistrationError(ValueError):
    """Raised when an event name is empty or does not start with 'on_'"""


@dataclass
class RegisteredEvent:
    """Binding of a symbolic event name to an event type"""
    name: str
    type: EventType
    callback: Optional[EventCallback] = None


@dataclass
class LifecycleEvent:
    """
    Agent lifecycle event derived from flow lifecycle events.

    kind is one of "agent.started", "agent.completed", "agent.failed".
    """
    kind: str
    agent: str
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@runtime_checkable
class LifecycleObserver(Protocol):
    """Secondary observer that receives translated lifecycle events"""

    def dispatch(self, event: LifecycleEvent) -> Any:
        ...


_LIFECYCLE_KINDS = {
    EventType.FLOW_STARTED: "agent.started",
    EventType.FLOW_COMPLETED: "agent.completed",
    EventType.FLOW_FAILED: "agent.failed",
}


class FlowEventManager:
    """
    Hub for flow events.

    Every emission builds a FlowEvent, tries to enqueue it, runs the
    callbacks registered for its type and notifies every subscribed
    listener. Queue admission is attempted first, but notification happens
    whether or not the queue accepted the event. Consumer failures are
    logged and counted, never raised to the emitter.

    Example:
        manager = FlowEventManager(EventQueue(max_size=500))
        manager.register_event("on_error", EventType.ERROR, lambda e: print(e.data))
        listener_id = manager.subscribe(lambda e: print(e.type))

        manager.emit(EventType.TOKEN_RECEIVED, {"token": "Hello"})
        manager.emit_named("on_error", {"message": "boom"})
    """

    def __init__(
        self,
        queue: Optional[EventQueue] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._queue = queue if queue is not None else EventQueue()
        self._logger = logger or logging.getLogger(__name__)
        self._registered_events: Dict[str, RegisteredEvent] = {}
        self._listeners: Dict[str, EventCallback] = {}
        self._observer: Optional[LifecycleObserver] = None
        self._initialized = False

        self._callback_errors = 0
        self._listener_errors = 0

    # ===== Registration =====

    def register_event(
        self,
        name: str,
        event_type: Union[EventType, str],
        callback: Optional[EventCallback] = None,
    ) -> "FlowEventManager":
        """
        Bind *name* to *event_type* with an optional callback.

        Args:
            name: Symbolic name, must start with 'on_' (e.g. 'on_token')
            event_type: EventType (or its string value)
            callback: Called with the FlowEvent on every matching emission

        Raises:
            EventRegistrationError: If the name is empty or badly prefixed
            TypeError: If the callback is a coroutine function
        """
        if not name:
            raise EventRegistrationError("Event name cannot be empty")
        if not name.startswith(EVENT_NAME_PREFIX):
            raise EventRegistrationError(
                f"Event name must start with '{EVENT_NAME_PREFIX}', got: {name}"
            )
        _require_sync(callback, f"Callback for {name}")

        resolved = EventType(event_type)
        self._registered_events[name] = RegisteredEvent(name, resolved, callback)
        self._logger.debug(f"Registered event: {name} -> {resolved.value}")
        return self

    def register_default_events(self) -> "FlowEventManager":
        """Register the standard event-name vocabulary"""
        return (
            self.register_event("on_token", EventType.TOKEN_RECEIVED)
            .register_event("on_vertices_sorted", EventType.VERTICES_SORTED)
            .register_event("on_error", EventType.ERROR)
            .register_event("on_end", EventType.FLOW_COMPLETED)
            .register_event("on_message", EventType.MESSAGE_ADDED)
            .register_event("on_remove_message", EventType.MESSAGE_REMOVED)
            .register_event("on_end_vertex", EventType.VERTEX_COMPLETED)
            .register_event("on_build_start", EventType.BUILD_STARTED)
            .register_event("on_build_end", EventType.BUILD_COMPLETED)
        )

    def register_streaming_events(self) -> "FlowEventManager":
        """Register the names needed for token streaming"""
        return (
            self.register_event("on_message", EventType.MESSAGE_ADDED)
            .register_event("on_token", EventType.TOKEN_RECEIVED)
            .register_event("on_end", EventType.FLOW_COMPLETED)
        )

    def get_registered_events(self) -> List[str]:
        return list(self._registered_events.keys())

    def has_event(self, name: str) -> bool:
        return name in self._registered_events

    def set_lifecycle_observer(
        self, observer: Optional[LifecycleObserver]
    ) -> "FlowEventManager":
        """Forward flow started/completed/failed events to *observer*"""
        self._observer = observer
        return self

    # ===== Emission =====

    def emit(
        self,
        event_type: Union[EventType, str],
        data: Optional[Dict[str, Any]] = None,
        id: Optional[str] = None,
    ) -> bool:
        """
        Build and emit an event.

        Returns:
            True if the event was queued. False means the queue was full;
            callbacks and listeners were still notified.
        """
        event = FlowEvent(
            type=EventType(event_type),
            data=data or {},
            timestamp=time.time(),
            id=id,
        )
        return self.emit_event(event)

    def emit_event(self, event: FlowEvent) -> bool:
        """Emit a prebuilt event (see FlowEvent factories)"""
        if event.id is None:
            event = event.with_id(self._generate_event_id(event.type))

        queued = self._queue.enqueue(event)
        if not queued:
            self._logger.warning(
                f"Failed to enqueue event: {event.type.value} (queue full)"
            )

        self._execute_callbacks(event)
        self._notify_listeners(event)
        self._dispatch_lifecycle_event(event)

        return queued

    def emit_named(self, name: str, data: Optional[Dict[str, Any]] = None) -> bool:
        """Emit the event type registered under *name*"""
        registered = self._registered_events.get(name)
        if registered is None:
            self._logger.warning(f"Attempted to emit unregistered event: {name}")
            return False
        return self.emit(registered.type, data)

    # ===== Listeners =====

    def subscribe(self, listener: EventCallback) -> str:
        """
        Subscribe *listener* to every event.

        Listeners run synchronously inside emit() and receive their own copy
        of each event.

        Returns:
            Listener ID for unsubscribe()
        """
        _require_sync(listener, "Listener")
        listener_id = f"listener-{uuid.uuid4().hex}"
        self._listeners[listener_id] = listener
        self._logger.debug(f"New subscriber registered: {listener_id}")
        return listener_id

    def unsubscribe(self, listener_id: str) -> bool:
        if self._listeners.pop(listener_id, None) is None:
            return False
        self._logger.debug(f"Subscriber unregistered: {listener_id}")
        return True

    def clear_listeners(self) -> None:
        self._listeners.clear()
        self._logger.debug("All listeners cleared")

    def get_listener_count(self) -> int:
        return len(self._listeners)

    def get_queue(self) -> EventQueue:
        return self._queue

    # ===== Internal dispatch =====

    def _execute_callbacks(self, event: FlowEvent) -> None:
        for name, registered in list(self._registered_events.items()):
            if registered.type != event.type or registered.callback is None:
                continue
            try:
                _deliver(registered.callback, event)
            except Exception as e:
                self._callback_errors += 1
                self._logger.error(
                    f"Error in event callback for {name}: {e}", exc_info=True
                )

    def _notify_listeners(self, event: FlowEvent) -> None:
        # Copy so listeners may unsubscribe themselves while being notified
        for listener_id, listener in list(self._listeners.items()):
            try:
                _deliver(listener, event)
            except Exception as e:
                self._listener_errors += 1
                self._logger.error(
                    f"Error in listener {listener_id}: {e}", exc_info=True
                )

    def _dispatch_lifecycle_event(self, event: FlowEvent) -> None:
        if self._observer is None:
            return

        kind = _LIFECYCLE_KINDS.get(event.type)
        if kind is None:
            return

        lifecycle_event = LifecycleEvent(
            kind=kind,
            agent=event.data.get("agent", "flow"),
            timestamp=event.timestamp,
            data=copy.deepcopy(event.data),
            error=(
                event.data.get("error", "Unknown error")
                if event.type == EventType.FLOW_FAILED else None
            ),
        )
        try:
            self._observer.dispatch(lifecycle_event)
        except Exception as e:
            self._logger.error(f"Lifecycle observer error for {kind}: {e}", exc_info=True)

    @staticmethod
    def _generate_event_id(event_type: EventType) -> str:
        return f"{event_type.value}-{uuid.uuid4().hex}"

    # ===== Service lifecycle =====

    def get_name(self) -> str:
        return "event_manager"

    def initialize(self) -> None:
        if not self._initialized:
            self._initialized = True
            self._logger.debug("FlowEventManager initialized")

    def teardown(self) -> None:
        self.clear_listeners()
        self._queue.clear()
        self._initialized = False
        self._logger.debug("FlowEventManager torn down")

    def is_ready(self) -> bool:
        return self._initialized

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._queue.get_stats(),
            "listener_count": self.get_listener_count(),
            "callback_errors": self._callback_errors,
            "listener_errors": self._listener_errors,
        }

    def get_schema(self) -> Dict[str, Any]:
        return {
            "name": self.get_name(),
            "type": "event_manager",
            "queue_max_size": self._queue.get_max_size(),
            "registered_events": self.get_registered_events(),
            "listener_count": self.get_listener_count(),
        }


def _require_sync(consumer: Optional[EventCallback], label: str) -> None:
    if consumer is not None and inspect.iscoroutinefunction(consumer):
        raise TypeError(f"{label} must be a regular function, not a coroutine function")


def _deliver(consumer: EventCallback, event: FlowEvent) -> None:
    """Call *consumer* with a private copy of *event*"""
    outcome = consumer(event.clone())
    if inspect.isawaitable(outcome):
        if inspect.iscoroutine(outcome):
            outcome.close()
        raise TypeError("Event consumer returned an awaitable; it was not run")
