"""
flowstream Streaming Loop - Drives a run through stream/tool iterations

Each iteration streams one model response token by token, appends it to
the conversation, and either finishes the run (end_turn) or dispatches the
requested tools and goes around again (tool_use). Everything observable is
emitted through a FlowEventManager.
"""

import asyncio
import copy
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..context import AgentContext
from ..events.manager import FlowEventManager
from ..events.models import FlowEvent
from ..llm.base import LLMResponse, StopReason, ToolCall, Usage, stop_reason_for
from ..tools.models import ToolResult
from .buffer import ContentBuffer

# (iteration, response, context) -> None | Awaitable[None]
IterationCallback = Callable[[int, LLMResponse, AgentContext], Any]

# (tool_name, input, result) -> None | Awaitable[None]
ToolCallback = Callable[[str, Dict[str, Any], ToolResult], Any]


@dataclass
class StreamOutcome:
    """
    Result of one streaming attempt.

    Either the assembled response, or the transport error that broke the
    stream together with how many token events were already emitted.
    """
    response: Optional[LLMResponse] = None
    error: Optional[Exception] = None
    tokens_emitted: int = 0

    @classmethod
    def ok(cls, response: LLMResponse, tokens_emitted: int = 0) -> "StreamOutcome":
        return cls(response=response, tokens_emitted=tokens_emitted)

    @classmethod
    def fallback_needed(cls, error: Exception, tokens_emitted: int) -> "StreamOutcome":
        return cls(error=error, tokens_emitted=tokens_emitted)

    @property
    def needs_fallback(self) -> bool:
        return self.response is None


class StreamingLoop:
    """
    Streaming execution loop.

    Per iteration:
        iteration.started -> token.received* -> iteration.completed
        -> (tool.started -> tool.completed)* when the model asked for tools

    If the stream breaks, the same request is retried without streaming.
    The run fails when an iteration raises, when it is cancelled, or when
    max_iterations is reached without an end_turn.

    Example:
        manager = FlowEventManager()
        loop = StreamingLoop(manager).on_tool_execution(
            lambda name, tool_input, result: print(name, result.content)
        )
        context = await loop.execute(context)
    """

    def __init__(
        self,
        event_manager: Optional[FlowEventManager] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._event_manager = event_manager
        self._logger = logger or logging.getLogger(__name__)
        self._on_iteration: Optional[IterationCallback] = None
        self._on_tool_execution: Optional[ToolCallback] = None

    def set_flow_event_manager(self, manager: Optional[FlowEventManager]) -> "StreamingLoop":
        self._event_manager = manager
        return self

    def on_iteration(self, callback: Optional[IterationCallback]) -> "StreamingLoop":
        """Called after each response is appended, before iteration.completed"""
        self._on_iteration = callback
        return self

    def on_tool_execution(self, callback: Optional[ToolCallback]) -> "StreamingLoop":
        """Called after each tool runs, before tool.completed"""
        self._on_tool_execution = callback
        return self

    def get_name(self) -> str:
        return "streaming"

    # ===== Execution =====

    async def execute(
        self,
        context: AgentContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AgentContext:
        """
        Run iterations until the context is terminal.

        Args:
            context: Run state; mutated in place
            cancel_event: When set, the run fails before the next iteration

        Returns:
            The same context, completed or failed
        """
        max_iterations = context.config.max_iterations
        self._logger.info(f"Starting streaming loop (max_iterations={max_iterations})")

        while not context.is_completed() and not context.has_failed():
            if cancel_event is not None and cancel_event.is_set():
                self._logger.info(f"Execution cancelled before iteration {context.get_iteration() + 1}")
                context.fail("Execution cancelled")
                self._emit(FlowEvent.error("Execution cancelled", iteration=context.get_iteration()))
                break

            if context.has_reached_max_iterations():
                break

            iteration = context.increment_iteration()
            self._emit(FlowEvent.iteration_started(iteration))

            try:
                finished = await self._run_iteration(context, iteration)
            except Exception as e:
                message = str(e) or type(e).__name__
                self._logger.error(f"Iteration {iteration} failed: {message}", exc_info=True)
                self._emit(FlowEvent.iteration_failed(iteration, message))
                self._emit(FlowEvent.error(message, iteration=iteration))
                context.fail(message)
                break

            if finished:
                break

        if (
            not context.is_completed()
            and not context.has_failed()
            and context.has_reached_max_iterations()
        ):
            message = f"Maximum iterations ({max_iterations}) reached without completion"
            self._logger.warning(message)
            context.fail(message)
            self._emit(FlowEvent.error(message, iteration=context.get_iteration()))

        return context

    async def _run_iteration(self, context: AgentContext, iteration: int) -> bool:
        """One model call plus tool dispatch. Returns True when the run is done."""
        client = context.client
        params: Dict[str, Any] = {
            **context.config.to_api_params(),
            "messages": context.get_messages(),
            "tools": context.get_tool_definitions() or None,
            "stream": True,
        }

        outcome = await self._stream_response(client, params, iteration)
        if outcome.needs_fallback:
            response = await self._fallback(client, params, iteration, outcome)
        else:
            response = outcome.response

        usage = response.usage or Usage()
        context.add_token_usage(usage.input_tokens, usage.output_tokens)

        blocks = response.content_blocks()
        context.add_message({"role": "assistant", "content": blocks})

        await self._invoke(self._on_iteration, iteration, response, context)
        self._emit(FlowEvent.iteration_completed(
            iteration,
            tokens=usage.to_dict(),
            stop_reason=response.stop_reason.value,
        ))

        if response.stop_reason == StopReason.END_TURN:
            answer = "\n".join(
                block.get("text", "") for block in blocks if block.get("type") == "text"
            )
            context.complete(answer)
            self._logger.info(f"Run completed after {iteration} iteration(s)")
            return True

        if response.stop_reason == StopReason.TOOL_USE:
            results = await self._execute_tools(context, blocks)
            if results:
                context.add_message({"role": "user", "content": results})
            else:
                self._logger.warning(
                    f"Iteration {iteration} stopped for tool_use without tool_use blocks"
                )
            return False

        self._logger.warning(
            f"Iteration {iteration} ended with stop reason '{response.stop_reason.value}', continuing"
        )
        return False

    # ===== Streaming =====

    async def _stream_response(
        self,
        client: Any,
        params: Dict[str, Any],
        iteration: int,
    ) -> StreamOutcome:
        request = {k: v for k, v in params.items() if k != "stream"}
        buffer = ContentBuffer()
        tokens_emitted = 0

        raw_stop_reason: Any = None
        usage: Optional[Usage] = None
        tool_calls: List[ToolCall] = []

        try:
            async for chunk in client.stream_completion(**request):
                if chunk.content:
                    buffer.add_text(chunk.content)
                    tokens_emitted += 1
                    self._emit(FlowEvent.token(chunk.content, iteration=iteration))

                if chunk.is_final:
                    if chunk.stop_reason is not None:
                        raw_stop_reason = chunk.stop_reason
                    if chunk.usage is not None:
                        usage = chunk.usage
                    for tool_call in chunk.tool_calls or []:
                        tool_calls.append(tool_call)
                        buffer.add_block(tool_call.to_block())
        except Exception as e:
            return StreamOutcome.fallback_needed(e, tokens_emitted)

        buffer.finish_block()
        self._logger.debug(f"Iteration {iteration} stream stats: {buffer.get_statistics()}")

        return StreamOutcome.ok(
            LLMResponse(
                content=buffer.get_text(),
                tool_calls=tool_calls,
                stop_reason=stop_reason_for(raw_stop_reason),
                usage=usage or Usage(),
                blocks=buffer.get_blocks(),
            ),
            tokens_emitted,
        )

    async def _fallback(
        self,
        client: Any,
        params: Dict[str, Any],
        iteration: int,
        outcome: StreamOutcome,
    ) -> LLMResponse:
        self._logger.warning(
            f"Streaming failed on iteration {iteration}, "
            f"falling back to non-streaming call: {outcome.error}"
        )
        self._emit(FlowEvent.warning(
            "Streaming failed, retrying without streaming",
            reason="stream_fallback",
            error=str(outcome.error),
            tokens_emitted=outcome.tokens_emitted,
            iteration=iteration,
        ))

        request = {k: v for k, v in params.items() if k != "stream"}
        response = await client.chat_completion(**request)

        # Authoritative text for consumers that already rendered partial tokens
        if response.content:
            self._emit(FlowEvent.token_chunk(response.content, iteration=iteration))
        return response

    # ===== Tools =====

    async def _execute_tools(
        self,
        context: AgentContext,
        blocks: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []

        for block in blocks:
            if block.get("type") != "tool_use":
                continue

            name = block.get("name", "")
            # Private copy; the history block keeps what the model sent
            tool_input = copy.deepcopy(block.get("input") or {})
            self._emit(FlowEvent.tool_started(name, tool_input))

            tool = context.get_tool(name)
            if tool is None:
                self._logger.warning(f"Model requested unknown tool: {name}")
                result = ToolResult.error(f"Unknown tool: {name}")
            else:
                self._logger.debug(f"Executing tool {name} with input {tool_input}")
                result = await tool.execute(copy.deepcopy(tool_input))

            context.record_tool_call(name, tool_input, result.content, result.is_error)
            await self._invoke(self._on_tool_execution, name, tool_input, result)
            self._emit(FlowEvent.tool_completed(name, result.content, is_error=result.is_error))

            results.append(result.to_api_format(block.get("id", "")))

        return results

    # ===== Helpers =====

    def _emit(self, event: FlowEvent) -> None:
        if self._event_manager is not None:
            self._event_manager.emit_event(event)

    @staticmethod
    async def _invoke(callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        outcome = callback(*args)
        if inspect.isawaitable(outcome):
            await outcome
