"""
flowstream Event Models - Data structures for flow execution events

This module defines:
- EventType: the closed vocabulary of event type strings
- FlowEvent: immutable event record with named factories
- Serialization helpers (dict, JSON, Server-Sent-Events framing)
"""

import copy
import json
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    """Types of events emitted during flow execution"""
    # Flow lifecycle events
    FLOW_STARTED = "flow.started"
    FLOW_COMPLETED = "flow.completed"
    FLOW_FAILED = "flow.failed"
    FLOW_PAUSED = "flow.paused"
    FLOW_RESUMED = "flow.resumed"

    # Token streaming events
    TOKEN_RECEIVED = "token.received"
    TOKEN_CHUNK = "token.chunk"

    # Iteration events
    ITERATION_STARTED = "iteration.started"
    ITERATION_COMPLETED = "iteration.completed"
    ITERATION_FAILED = "iteration.failed"

    # Tool execution events
    TOOL_STARTED = "tool.started"
    TOOL_COMPLETED = "tool.completed"
    TOOL_FAILED = "tool.failed"

    # Progress events
    PROGRESS_UPDATE = "progress.update"
    STEP_STARTED = "step.started"
    STEP_COMPLETED = "step.completed"

    # Message events
    MESSAGE_ADDED = "add_message"
    MESSAGE_REMOVED = "remove_message"

    # Vertex/build events (graph-builder compatible names)
    VERTEX_STARTED = "vertex.started"
    VERTEX_COMPLETED = "end_vertex"
    VERTICES_SORTED = "vertices_sorted"
    BUILD_STARTED = "build_start"
    BUILD_COMPLETED = "build_end"

    # Diagnostics
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


FLOW_LIFECYCLE_TYPES = frozenset({
    EventType.FLOW_STARTED,
    EventType.FLOW_COMPLETED,
    EventType.FLOW_FAILED,
    EventType.FLOW_PAUSED,
    EventType.FLOW_RESUMED,
})

TOOL_EVENT_TYPES = frozenset({
    EventType.TOOL_STARTED,
    EventType.TOOL_COMPLETED,
    EventType.TOOL_FAILED,
})


@dataclass(frozen=True)
class FlowEvent:
    """
    Immutable record of something that happened during flow execution.

    All events have:
    - type: One of the EventType constants
    - data: Type-specific payload (documented on each factory)
    - timestamp: Wall-clock seconds with sub-second precision
    - id: Optional identifier, assigned by the event manager on emission

    Example:
        event = FlowEvent.token("Hello", iteration=1)
        event.type            # EventType.TOKEN_RECEIVED
        event.data["token"]   # "Hello"
        event.to_sse()        # 'event: token.received\\ndata: {...}\\n\\n'
    """
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    id: Optional[str] = None

    def __post_init__(self):
        # Raises ValueError for strings outside the vocabulary
        object.__setattr__(self, "type", EventType(self.type))
        # The payload is a private deep copy
        object.__setattr__(self, "data", copy.deepcopy(self.data or {}))

    # ===== Factories =====

    @classmethod
    def flow_started(cls, **data: Any) -> "FlowEvent":
        """Flow started. Common keys: agent, input."""
        return cls(EventType.FLOW_STARTED, data)

    @classmethod
    def flow_completed(cls, **data: Any) -> "FlowEvent":
        """Flow completed. Common keys: answer, duration."""
        return cls(EventType.FLOW_COMPLETED, data)

    @classmethod
    def flow_failed(cls, error: str, **data: Any) -> "FlowEvent":
        """Flow failed. Keys: error."""
        return cls(EventType.FLOW_FAILED, {"error": error, **data})

    @classmethod
    def token(cls, token: str, **data: Any) -> "FlowEvent":
        """Token delta received from the model. Keys: token, usually iteration."""
        return cls(EventType.TOKEN_RECEIVED, {"token": token, **data})

    @classmethod
    def token_chunk(cls, chunk: str, **data: Any) -> "FlowEvent":
        """Larger text chunk delivered at once. Keys: token."""
        return cls(EventType.TOKEN_CHUNK, {"token": chunk, **data})

    @classmethod
    def iteration_started(cls, iteration: int, **data: Any) -> "FlowEvent":
        """Iteration started. Keys: iteration."""
        return cls(EventType.ITERATION_STARTED, {"iteration": iteration, **data})

    @classmethod
    def iteration_completed(cls, iteration: int, **data: Any) -> "FlowEvent":
        """Iteration completed. Keys: iteration, tokens, stop_reason."""
        return cls(EventType.ITERATION_COMPLETED, {"iteration": iteration, **data})

    @classmethod
    def iteration_failed(cls, iteration: int, error: str, **data: Any) -> "FlowEvent":
        """Iteration failed. Keys: iteration, error."""
        return cls(
            EventType.ITERATION_FAILED,
            {"iteration": iteration, "error": error, **data},
        )

    @classmethod
    def tool_started(
        cls,
        tool: str,
        input: Optional[Dict[str, Any]] = None,
        **data: Any
    ) -> "FlowEvent":
        """Tool execution started. Keys: tool, input."""
        return cls(EventType.TOOL_STARTED, {"tool": tool, "input": input or {}, **data})

    @classmethod
    def tool_completed(cls, tool: str, result: Any, **data: Any) -> "FlowEvent":
        """Tool execution completed. Keys: tool, result, usually is_error."""
        return cls(EventType.TOOL_COMPLETED, {"tool": tool, "result": result, **data})

    @classmethod
    def progress(cls, percent: float, **data: Any) -> "FlowEvent":
        """Progress update. Keys: percent (0-100)."""
        return cls(EventType.PROGRESS_UPDATE, {"percent": percent, **data})

    @classmethod
    def error(cls, message: str, **data: Any) -> "FlowEvent":
        """Error. Keys: message."""
        return cls(EventType.ERROR, {"message": message, **data})

    @classmethod
    def warning(cls, message: str, **data: Any) -> "FlowEvent":
        """Warning. Keys: message."""
        return cls(EventType.WARNING, {"message": message, **data})

    @classmethod
    def info(cls, message: str, **data: Any) -> "FlowEvent":
        """Informational message. Keys: message."""
        return cls(EventType.INFO, {"message": message, **data})

    # ===== Predicates =====

    def is_token(self) -> bool:
        return self.type in (EventType.TOKEN_RECEIVED, EventType.TOKEN_CHUNK)

    def is_flow_event(self) -> bool:
        return self.type in FLOW_LIFECYCLE_TYPES

    def is_error(self) -> bool:
        return self.type in (EventType.ERROR, EventType.FLOW_FAILED)

    def is_progress(self) -> bool:
        return self.type == EventType.PROGRESS_UPDATE

    def is_tool_event(self) -> bool:
        return self.type in TOOL_EVENT_TYPES

    def duration_from(self, start_event: "FlowEvent") -> float:
        """Seconds elapsed between *start_event* and this event"""
        return self.timestamp - start_event.timestamp

    def with_id(self, event_id: str) -> "FlowEvent":
        """Return a copy of this event carrying *event_id*"""
        return replace(self, id=event_id)

    def clone(self) -> "FlowEvent":
        """Independent copy, payload included"""
        return replace(self)

    # ===== Serialization =====

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization"""
        return {
            "type": self.type.value,
            "data": copy.deepcopy(self.data),
            "timestamp": self.timestamp,
            "id": self.id,
        }

    def to_json(self) -> str:
        """JSON body used by the SSE wire format"""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def to_sse(self) -> str:
        """Render as a Server-Sent-Events frame"""
        return f"event: {self.type.value}\ndata: {self.to_json()}\n\n"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowEvent":
        """Create event from dictionary"""
        return cls(
            type=EventType(data["type"]),
            data=data.get("data") or {},
            timestamp=data.get("timestamp", time.time()),
            id=data.get("id"),
        )
