"""
flowstream Executor - Runs a streaming loop and yields its live event stream

StreamingFlowExecutor wraps one run in flow.started / flow.completed (or
flow.failed), runs the loop as an asyncio task, and drains the event queue
while the task is in flight so consumers see events as they happen.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional

from ..config import StreamConfig
from ..context import AgentContext, AgentResult
from ..events.manager import FlowEventManager
from ..events.models import EventType, FlowEvent
from ..events.queue import EventQueue
from ..streaming.loop import StreamingLoop
from ..streaming.sse import format_done, format_event
from .progress import FlowProgress


class StreamingFlowExecutor:
    """
    Streams the events of a run.

    Example:
        executor = StreamingFlowExecutor()
        async for event in executor.stream(context):
            if event.is_token():
                print(event.data["token"], end="", flush=True)

        # Or as SSE frames behind FastAPI
        return sse_response(executor.stream_sse(context))
    """

    def __init__(
        self,
        event_manager: Optional[FlowEventManager] = None,
        loop: Optional[StreamingLoop] = None,
        config: Optional[StreamConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or StreamConfig()
        self._logger = logger or logging.getLogger(__name__)
        self._event_manager = event_manager or FlowEventManager(
            EventQueue(self.config.queue_max_size)
        )
        self._loop = loop or StreamingLoop(logger=logger)
        self._loop.set_flow_event_manager(self._event_manager)

        self._running = False
        self._progress: Optional[FlowProgress] = None
        self._initialized = False

    @property
    def event_manager(self) -> FlowEventManager:
        return self._event_manager

    @property
    def loop(self) -> StreamingLoop:
        return self._loop

    # ===== Execution =====

    async def stream(
        self,
        context: AgentContext,
        track_progress: Optional[bool] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[FlowEvent]:
        """
        Run *context* and yield every queued event, in emission order.

        Args:
            context: Run to execute
            track_progress: Emit progress.update after each iteration
                (defaults to config.track_progress)
            cancel_event: Forwarded to the loop

        Raises:
            RuntimeError: If this executor is already streaming a run
        """
        if self._running:
            raise RuntimeError("Executor is already running a flow")

        if track_progress is None:
            track_progress = self.config.track_progress

        self._running = True
        queue = self._event_manager.get_queue()
        listener_id: Optional[str] = None

        if track_progress:
            self._progress = FlowProgress(
                context.config.max_iterations, {"task": context.task}
            ).start()
            listener_id = self._event_manager.subscribe(self._track_progress)

        task: Optional[asyncio.Task] = None
        try:
            self._event_manager.emit_event(FlowEvent.flow_started(
                agent=self._loop.get_name(),
                input=context.task,
                max_iterations=context.config.max_iterations,
            ))

            task = asyncio.create_task(self._loop.execute(context, cancel_event))
            while not task.done():
                for event in queue.drain():
                    if self._should_yield(event):
                        yield event
                await asyncio.wait({task}, timeout=self.config.poll_interval)

            try:
                task.result()
            except Exception as e:
                self._logger.error(f"Flow execution failed: {e}", exc_info=True)
                context.fail(str(e) or type(e).__name__)

            # Flush the run's events so the terminal event can still be queued
            for event in queue.drain():
                if self._should_yield(event):
                    yield event

            if context.is_completed():
                if self._progress is not None:
                    self._progress.complete()
                self._event_manager.emit_event(FlowEvent.flow_completed(
                    answer=context.get_answer(),
                    iterations=context.get_iteration(),
                    duration=context.get_execution_time(),
                    token_usage=context.get_token_usage(),
                ))
            else:
                self._event_manager.emit_event(FlowEvent.flow_failed(
                    context.get_error() or "Unknown error",
                    iterations=context.get_iteration(),
                ))

            for event in queue.drain():
                if self._should_yield(event):
                    yield event

            dropped = queue.get_dropped_event_count()
            if dropped:
                self._logger.warning(f"{dropped} events dropped so far (queue full)")
        finally:
            if task is not None and not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            if listener_id is not None:
                self._event_manager.unsubscribe(listener_id)
            self._running = False
            self._progress = None

    async def stream_sse(
        self,
        context: AgentContext,
        track_progress: Optional[bool] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        """Same as stream(), rendered as SSE frames and closed with [DONE]"""
        async for event in self.stream(context, track_progress, cancel_event):
            yield format_event(event)
        yield format_done()

    async def execute(
        self,
        context: AgentContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AgentResult:
        """Run to completion, discarding the event stream"""
        async for _ in self.stream(context, track_progress=False, cancel_event=cancel_event):
            pass
        return context.to_result()

    def _should_yield(self, event: FlowEvent) -> bool:
        return self.config.stream_tokens or not event.is_token()

    def _track_progress(self, event: FlowEvent) -> None:
        progress = self._progress
        if progress is None:
            return

        if event.type == EventType.ITERATION_STARTED:
            progress.start_iteration(event.data.get("iteration", 0))
        elif event.type == EventType.ITERATION_COMPLETED:
            progress.start_iteration(event.data.get("iteration", progress.current_iteration))
            self._event_manager.emit_event(
                FlowEvent.progress(progress.get_progress(), **progress.to_dict())
            )

    # ===== State =====

    def is_running(self) -> bool:
        return self._running

    def get_current_progress(self) -> Optional[Dict[str, Any]]:
        return self._progress.to_dict() if self._progress is not None else None

    # ===== Service lifecycle =====

    def get_name(self) -> str:
        return "streaming_flow_executor"

    def initialize(self) -> None:
        if not self._initialized:
            self._event_manager.initialize()
            self._initialized = True
            self._logger.debug("StreamingFlowExecutor initialized")

    def teardown(self) -> None:
        self._running = False
        self._progress = None
        self._initialized = False
        self._logger.debug("StreamingFlowExecutor torn down")

    def is_ready(self) -> bool:
        return self._initialized

    def get_schema(self) -> Dict[str, Any]:
        return {
            "name": self.get_name(),
            "type": "flow_executor",
            "is_running": self._running,
            "supports_streaming": True,
            "supports_sse": True,
            "features": [
                "token_streaming",
                "progress_tracking",
                "event_emission",
                "multiple_listeners",
            ],
        }
