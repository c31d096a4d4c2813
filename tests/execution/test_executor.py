"""
Tests for StreamingFlowExecutor.

Tests:
- Event stream shape (flow.started ... flow.completed)
- Progress events and token filtering
- Failed runs, execute(), SSE frames
- Queue overflow and running-state guards
"""

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from flowstream.config import LoopConfig, StreamConfig
from flowstream.context import AgentContext
from flowstream.events import EventQueue, EventType, FlowEventManager
from flowstream.execution import StreamingFlowExecutor
from flowstream.streaming import sse_response
from flowstream.tools import tool


@tool
def lookup(key: str) -> str:
    """Look up a value"""
    return f"value-of-{key}"


def make_context(client, max_iterations=5, tools=None):
    return AgentContext(
        client=client,
        task="Find the value",
        config=LoopConfig(model="test-model", max_iterations=max_iterations),
        tools=tools,
    )


async def collect(agen):
    return [item async for item in agen]


class TestStream:

    @pytest.mark.asyncio
    async def test_flow_envelope(self, script):
        client = script.client([script.text_turn("Hel", "lo")])
        executor = StreamingFlowExecutor()

        events = await collect(executor.stream(make_context(client)))
        types = [e.type for e in events]

        assert types[0] == EventType.FLOW_STARTED
        assert types[-1] == EventType.FLOW_COMPLETED
        assert types.count(EventType.TOKEN_RECEIVED) == 2
        assert events[0].data["input"] == "Find the value"
        assert events[-1].data["answer"] == "Hello"
        assert events[-1].data["iterations"] == 1

    @pytest.mark.asyncio
    async def test_events_carry_ids(self, script):
        client = script.client([script.text_turn("ok")])
        events = await collect(StreamingFlowExecutor().stream(make_context(client)))
        assert all(e.id for e in events)

    @pytest.mark.asyncio
    async def test_progress_after_each_iteration(self, script):
        client = script.client([
            script.tool_turn("lookup", {"key": "a"}),
            script.text_turn("value-of-a"),
        ])
        executor = StreamingFlowExecutor()

        events = await collect(executor.stream(make_context(client, tools=[lookup])))

        progress = [e for e in events if e.is_progress()]
        assert [e.data["percent"] for e in progress] == [20.0, 40.0]
        assert progress[0].data["current_iteration"] == 1

        # Each progress update follows its iteration.completed
        types = [e.type for e in events]
        first = types.index(EventType.PROGRESS_UPDATE)
        assert types[first - 1] == EventType.ITERATION_COMPLETED

    @pytest.mark.asyncio
    async def test_progress_disabled(self, script):
        client = script.client([script.text_turn("ok")])
        executor = StreamingFlowExecutor()

        events = await collect(executor.stream(make_context(client), track_progress=False))

        assert not any(e.is_progress() for e in events)

    @pytest.mark.asyncio
    async def test_token_events_filtered(self, script):
        client = script.client([script.text_turn("a", "b", "c")])
        executor = StreamingFlowExecutor(config=StreamConfig(stream_tokens=False))

        events = await collect(executor.stream(make_context(client)))

        assert not any(e.is_token() for e in events)
        assert events[-1].data["answer"] == "abc"

    @pytest.mark.asyncio
    async def test_failed_run(self, script):
        client = script.client([
            script.tool_turn("lookup", {"key": "a"}, call_id="c1"),
            script.tool_turn("lookup", {"key": "b"}, call_id="c2"),
        ])
        executor = StreamingFlowExecutor()

        events = await collect(executor.stream(make_context(client, max_iterations=2, tools=[lookup])))

        assert events[-1].type == EventType.FLOW_FAILED
        assert events[-1].data["error"] == "Maximum iterations (2) reached without completion"

    @pytest.mark.asyncio
    async def test_cancelled_run(self, script):
        client = script.client([script.text_turn("never")])
        cancel = asyncio.Event()
        cancel.set()

        events = await collect(
            StreamingFlowExecutor().stream(make_context(client), cancel_event=cancel)
        )

        assert events[-1].type == EventType.FLOW_FAILED
        assert events[-1].data["error"] == "Execution cancelled"

    @pytest.mark.asyncio
    async def test_listener_sees_everything_despite_overflow(self, script):
        """A tiny queue drops events; listeners still get all of them"""
        manager = FlowEventManager(EventQueue(max_size=2))
        seen = []
        manager.subscribe(seen.append)
        client = script.client([script.text_turn(*[f"t{i}" for i in range(20)])])
        executor = StreamingFlowExecutor(event_manager=manager)

        events = await collect(executor.stream(make_context(client), track_progress=False))

        assert len(seen) == 24  # flow.started, iteration.started, 20 tokens, iteration.completed, flow.completed
        assert len(events) < len(seen)
        assert events[-1].type == EventType.FLOW_COMPLETED
        assert manager.get_queue().get_dropped_event_count() == len(seen) - len(events)

    @pytest.mark.asyncio
    async def test_lifecycle_observer(self, script):
        kinds = []

        class Observer:
            def dispatch(self, event):
                kinds.append(event.kind)

        executor = StreamingFlowExecutor()
        executor.event_manager.set_lifecycle_observer(Observer())
        client = script.client([script.text_turn("ok")])

        await collect(executor.stream(make_context(client)))

        assert kinds == ["agent.started", "agent.completed"]


class TestRunningState:

    @pytest.mark.asyncio
    async def test_running_flags(self, script):
        client = script.client([script.text_turn("ok")])
        executor = StreamingFlowExecutor()
        snapshots = []

        async for event in executor.stream(make_context(client)):
            snapshots.append((executor.is_running(), executor.get_current_progress()))

        assert all(running for running, _ in snapshots)
        assert snapshots[0][1]["total_iterations"] == 5
        assert executor.is_running() is False
        assert executor.get_current_progress() is None

    @pytest.mark.asyncio
    async def test_concurrent_stream_rejected(self, script):
        executor = StreamingFlowExecutor()
        first = executor.stream(make_context(script.client([script.text_turn("a")])))
        await first.__anext__()

        with pytest.raises(RuntimeError, match="already running"):
            await executor.stream(make_context(script.client([]))).__anext__()

        await first.aclose()
        assert executor.is_running() is False

    @pytest.mark.asyncio
    async def test_listener_removed_after_run(self, script):
        executor = StreamingFlowExecutor()
        client = script.client([script.text_turn("ok")])

        await collect(executor.stream(make_context(client)))

        assert executor.event_manager.get_listener_count() == 0


class TestExecute:

    @pytest.mark.asyncio
    async def test_execute_returns_result(self, script):
        client = script.client([
            script.tool_turn("lookup", {"key": "x"}),
            script.text_turn("value-of-x"),
        ])
        executor = StreamingFlowExecutor()

        result = await executor.execute(make_context(client, tools=[lookup]))

        assert result.success is True
        assert result.answer == "value-of-x"
        assert result.iterations == 2
        assert result.tool_calls[0]["tool"] == "lookup"

    @pytest.mark.asyncio
    async def test_execute_failure(self, script):
        client = script.client(
            turns=[[ConnectionError("reset")]],
            responses=[RuntimeError("provider down")],
        )

        result = await StreamingFlowExecutor().execute(make_context(client))

        assert result.success is False
        assert result.error == "provider down"


class TestSSE:

    @pytest.mark.asyncio
    async def test_stream_sse_frames(self, script):
        client = script.client([script.text_turn("Hi")])
        executor = StreamingFlowExecutor()

        frames = await collect(executor.stream_sse(make_context(client)))

        assert frames[0].startswith("event: flow.started\n")
        assert frames[-2].startswith("event: flow.completed\n")
        assert frames[-1] == "data: [DONE]\n\n"

    def test_served_through_fastapi(self, script):
        app = FastAPI()

        @app.get("/run")
        async def run():
            client = script.client([script.text_turn("Hello", " SSE")])
            return sse_response(StreamingFlowExecutor().stream_sse(make_context(client)))

        response = TestClient(app).get("/run")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert "event: token.received" in response.text
        assert '"answer": "Hello SSE"' in response.text
        assert response.text.endswith("data: [DONE]\n\n")


class TestServiceLifecycle:

    def test_lifecycle(self):
        executor = StreamingFlowExecutor()
        assert executor.get_name() == "streaming_flow_executor"
        assert executor.is_ready() is False

        executor.initialize()
        assert executor.is_ready() is True
        assert executor.event_manager.is_ready() is True

        executor.teardown()
        assert executor.is_ready() is False

    def test_schema(self):
        schema = StreamingFlowExecutor().get_schema()
        assert schema["type"] == "flow_executor"
        assert schema["supports_sse"] is True
        assert "token_streaming" in schema["features"]

    def test_queue_size_from_config(self):
        executor = StreamingFlowExecutor(config=StreamConfig(queue_max_size=7))
        assert executor.event_manager.get_queue().get_max_size() == 7

    def test_loop_is_wired_to_manager(self):
        executor = StreamingFlowExecutor()
        assert executor.loop._event_manager is executor.event_manager
