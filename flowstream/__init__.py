"""
flowstream - Streaming flow-execution core for tool-using LLM agents

flowstream drives an agent through iterations of
"call model -> receive tokens -> optionally invoke tools -> repeat"
and publishes everything that happens as a live event stream.

Key Features:
- Immutable FlowEvent model with a closed type vocabulary and SSE framing
- Bounded, drop-on-full EventQueue with a dropped-events counter
- FlowEventManager: named registration, callbacks and listeners with
  failure isolation
- StreamingLoop with non-streaming fallback and tool dispatch
- StreamingFlowExecutor: async iterator over the events of a run
- Built-in LLM client (powered by litellm)

Quick Start:
    from flowstream import (
        AgentContext, LoopConfig, StreamingFlowExecutor, tool,
    )
    from flowstream.llm import LiteLLMClient

    @tool
    def add(a: int, b: int) -> str:
        '''Add two integers'''
        return str(a + b)

    context = AgentContext(
        client=LiteLLMClient(model="gpt-4o", provider_name="openai"),
        task="What is 2 + 40?",
        config=LoopConfig(model="gpt-4o", max_iterations=5),
        tools=[add],
    )

    async for event in StreamingFlowExecutor().stream(context):
        if event.is_token():
            print(event.data["token"], end="", flush=True)
"""

from .config import (
    ConfigurationError,
    FlowConfig,
    LoopConfig,
    StreamConfig,
    load_config,
)
from .context import AgentContext, AgentResult, RunStatus, ToolCallRecord
from .events import (
    EventQueue,
    EventRegistrationError,
    EventType,
    FlowEvent,
    FlowEventManager,
    LifecycleEvent,
    LifecycleObserver,
    RegisteredEvent,
)
from .execution import FlowProgress, StreamingFlowExecutor
from .protocols import StreamingLLMClient
from .streaming import ContentBuffer, StreamingLoop, StreamOutcome
from .tools import Tool, ToolResult, tool

__version__ = "0.1.0"

__all__ = [
    # Config
    "ConfigurationError",
    "FlowConfig",
    "LoopConfig",
    "StreamConfig",
    "load_config",
    # Context
    "AgentContext",
    "AgentResult",
    "RunStatus",
    "ToolCallRecord",
    # Events
    "EventQueue",
    "EventRegistrationError",
    "EventType",
    "FlowEvent",
    "FlowEventManager",
    "LifecycleEvent",
    "LifecycleObserver",
    "RegisteredEvent",
    # Execution
    "FlowProgress",
    "StreamingFlowExecutor",
    # Streaming
    "ContentBuffer",
    "StreamingLoop",
    "StreamOutcome",
    # Protocols
    "StreamingLLMClient",
    # Tools
    "Tool",
    "ToolResult",
    "tool",
]
