"""
Tests for flowstream event models.

Tests:
- EventType vocabulary
- FlowEvent immutability and type coercion
- Factories and predicates
- Serialization (dict, JSON, SSE framing)
"""

import dataclasses
import json

import pytest

from flowstream.events import EventType, FlowEvent


class TestEventType:
    """Tests for the EventType vocabulary"""

    def test_lifecycle_values(self):
        assert EventType.FLOW_STARTED == "flow.started"
        assert EventType.FLOW_COMPLETED == "flow.completed"
        assert EventType.FLOW_FAILED == "flow.failed"

    def test_graph_builder_compatible_values(self):
        """Message and vertex events keep their legacy wire names"""
        assert EventType.MESSAGE_ADDED == "add_message"
        assert EventType.MESSAGE_REMOVED == "remove_message"
        assert EventType.VERTEX_COMPLETED == "end_vertex"
        assert EventType.BUILD_STARTED == "build_start"
        assert EventType.BUILD_COMPLETED == "build_end"

    def test_vocabulary_is_closed(self):
        with pytest.raises(ValueError):
            EventType("token.exploded")


class TestFlowEvent:
    """Tests for FlowEvent construction"""

    def test_string_type_is_coerced(self):
        event = FlowEvent("token.received", {"token": "hi"})
        assert event.type is EventType.TOKEN_RECEIVED

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            FlowEvent("not.a.type", {})

    def test_events_are_immutable(self):
        event = FlowEvent.info("hello")
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.data = {}

    def test_data_is_copied(self):
        """Mutating the source dict does not change the event"""
        payload = {"message": "before"}
        event = FlowEvent(EventType.INFO, payload)
        payload["message"] = "after"
        assert event.data["message"] == "before"

    def test_with_id_returns_copy(self):
        event = FlowEvent.info("hello")
        tagged = event.with_id("info-1")
        assert tagged.id == "info-1"
        assert event.id is None
        assert tagged.timestamp == event.timestamp

    def test_duration_from(self):
        start = FlowEvent(EventType.FLOW_STARTED, {}, timestamp=100.0)
        end = FlowEvent(EventType.FLOW_COMPLETED, {}, timestamp=102.5)
        assert end.duration_from(start) == pytest.approx(2.5)


class TestFactories:
    """Tests for FlowEvent named constructors"""

    def test_token(self):
        event = FlowEvent.token("Hel", iteration=2)
        assert event.type == EventType.TOKEN_RECEIVED
        assert event.data == {"token": "Hel", "iteration": 2}

    def test_token_chunk_uses_token_key(self):
        event = FlowEvent.token_chunk("Hello world")
        assert event.type == EventType.TOKEN_CHUNK
        assert event.data["token"] == "Hello world"

    def test_flow_failed(self):
        event = FlowEvent.flow_failed("boom", iterations=3)
        assert event.type == EventType.FLOW_FAILED
        assert event.data == {"error": "boom", "iterations": 3}

    def test_iteration_failed(self):
        event = FlowEvent.iteration_failed(4, "timeout")
        assert event.data == {"iteration": 4, "error": "timeout"}

    def test_tool_started_defaults_input(self):
        event = FlowEvent.tool_started("search")
        assert event.data == {"tool": "search", "input": {}}

    def test_tool_completed(self):
        event = FlowEvent.tool_completed("search", "3 results", is_error=False)
        assert event.data["result"] == "3 results"
        assert event.data["is_error"] is False

    def test_progress(self):
        event = FlowEvent.progress(40.0, current_iteration=2)
        assert event.type == EventType.PROGRESS_UPDATE
        assert event.data["percent"] == 40.0

    def test_diagnostics(self):
        assert FlowEvent.error("e").data == {"message": "e"}
        assert FlowEvent.warning("w").type == EventType.WARNING
        assert FlowEvent.info("i").type == EventType.INFO


class TestPredicates:
    """Tests for event classification helpers"""

    def test_is_token(self):
        assert FlowEvent.token("a").is_token()
        assert FlowEvent.token_chunk("abc").is_token()
        assert not FlowEvent.info("a").is_token()

    def test_is_flow_event(self):
        assert FlowEvent.flow_started().is_flow_event()
        assert FlowEvent(EventType.FLOW_PAUSED, {}).is_flow_event()
        assert not FlowEvent.iteration_started(1).is_flow_event()

    def test_is_error(self):
        assert FlowEvent.error("x").is_error()
        assert FlowEvent.flow_failed("x").is_error()
        assert not FlowEvent.warning("x").is_error()

    def test_is_progress(self):
        assert FlowEvent.progress(10).is_progress()
        assert not FlowEvent.info("x").is_progress()

    def test_is_tool_event(self):
        assert FlowEvent.tool_started("t").is_tool_event()
        assert FlowEvent(EventType.TOOL_FAILED, {}).is_tool_event()
        assert not FlowEvent.token("t").is_tool_event()


class TestSerialization:
    """Tests for dict / JSON / SSE rendering"""

    def test_to_dict(self):
        event = FlowEvent(EventType.INFO, {"message": "hi"}, timestamp=1.5, id="info-1")
        assert event.to_dict() == {
            "type": "info",
            "data": {"message": "hi"},
            "timestamp": 1.5,
            "id": "info-1",
        }

    def test_from_dict(self):
        event = FlowEvent.from_dict({
            "type": "tool.started",
            "data": {"tool": "search"},
            "timestamp": 3.0,
        })
        assert event.type == EventType.TOOL_STARTED
        assert event.timestamp == 3.0
        assert event.id is None

    def test_to_json_keeps_unicode(self):
        event = FlowEvent.token("héllo")
        assert "héllo" in event.to_json()

    def test_to_json_stringifies_unknown_objects(self):
        event = FlowEvent.info("x", payload=object())
        decoded = json.loads(event.to_json())
        assert isinstance(decoded["data"]["payload"], str)

    def test_to_sse_frame(self):
        event = FlowEvent.token("Hi", iteration=1)
        frame = event.to_sse()

        assert frame.startswith("event: token.received\ndata: ")
        assert frame.endswith("\n\n")

        body = frame[len("event: token.received\ndata: "):-2]
        assert json.loads(body)["data"] == {"token": "Hi", "iteration": 1}
