"""
flowstream LLM Types - Transport-neutral request and response shapes

The streaming loop only talks to a transport through these types:
a transport turns a message list into either one LLMResponse or a sequence
of StreamChunk deltas. BaseLLMClient holds the plumbing every transport
shares (config overrides, tool formatting, running text totals).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from ..tools.models import Tool


class StopReason(str, Enum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    TOOL_USE = "tool_use"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


# Provider finish reasons (OpenAI and Anthropic spellings) and the StopReason
# they stand for
FINISH_REASONS = {
    "stop": StopReason.END_TURN,
    "end_turn": StopReason.END_TURN,
    "length": StopReason.MAX_TOKENS,
    "max_tokens": StopReason.MAX_TOKENS,
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "tool_use": StopReason.TOOL_USE,
    "stop_sequence": StopReason.STOP_SEQUENCE,
    "content_filter": StopReason.CONTENT_FILTER,
    "error": StopReason.ERROR,
}


def stop_reason_for(finish_reason: Optional[str]) -> StopReason:
    """Unknown or missing finish reasons count as a normal end of turn"""
    if isinstance(finish_reason, StopReason):
        return finish_reason
    return FINISH_REASONS.get(finish_reason or "stop", StopReason.END_TURN)


@dataclass
class LLMConfig:
    """
    Connection and sampling settings for a transport.

    Field names follow litellm's keyword arguments so they can be passed
    through unchanged. Keys this class does not know about are kept in
    ``extra`` and forwarded as-is (``api_version`` for Azure, ``top_p``...).
    """
    model: str = "gpt-4o"
    provider: str = "openai"
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: float = 60
    num_retries: int = 3
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LLMConfig":
        names = {f.name for f in fields(cls)} - {"extra"}
        kwargs = {k: v for k, v in data.items() if k in names}
        extra = {k: v for k, v in data.items() if k not in names and k != "extra"}
        extra.update(data.get("extra") or {})
        return cls(**kwargs, extra=extra)

    def sampling(self) -> Dict[str, Any]:
        return {"model": self.model, "temperature": self.temperature, "max_tokens": self.max_tokens}


@dataclass
class ToolCall:
    """One tool invocation requested by the model"""
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_block(self) -> Dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.arguments}


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @classmethod
    def from_openai(cls, raw: Any) -> Optional["Usage"]:
        """Read an OpenAI-style usage object (prompt/completion token counts)"""
        if raw is None:
            return None
        return cls(
            input_tokens=getattr(raw, "prompt_tokens", 0) or 0,
            output_tokens=getattr(raw, "completion_tokens", 0) or 0,
        )

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(self.input_tokens + other.input_tokens, self.output_tokens + other.output_tokens)

    def to_dict(self) -> Dict[str, int]:
        return {"input": self.input_tokens, "output": self.output_tokens}


@dataclass
class LLMResponse:
    """
    A complete model turn.

    ``blocks`` is set when the turn was assembled from a stream and keeps
    the blocks in arrival order; otherwise content_blocks() derives them
    from ``content`` followed by ``tool_calls``.
    """
    content: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    stop_reason: StopReason = StopReason.END_TURN
    usage: Optional[Usage] = None
    model: Optional[str] = None
    blocks: Optional[List[Dict[str, Any]]] = None
    raw: Optional[Any] = field(default=None, repr=False)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def content_blocks(self) -> List[Dict[str, Any]]:
        if self.blocks is not None:
            return list(self.blocks)
        text = [{"type": "text", "text": self.content}] if self.content else []
        return text + [call.to_block() for call in self.tool_calls]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "blocks": self.content_blocks(),
            "stop_reason": self.stop_reason.value,
            "usage": self.usage.to_dict() if self.usage else None,
            "model": self.model,
        }


@dataclass
class StreamChunk:
    """
    One delta of a streamed turn.

    Text arrives in ``content``. A chunk with ``is_final`` set carries the
    stop reason, the assembled tool calls and usage; transports may send
    several final chunks (usage often trails the finish reason).
    ``text_so_far`` is filled in by BaseLLMClient.stream_completion.
    """
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    is_final: bool = False
    stop_reason: Optional[StopReason] = None
    usage: Optional[Usage] = None
    text_so_far: str = ""


ToolSpec = Union[Dict[str, Any], Tool]


class BaseLLMClient(ABC):
    """
    Shared base for transports.

    Subclasses implement ``_call_api`` and the async generator
    ``_stream_api``; the public methods merge per-call overrides and
    convert tools to the provider's function-calling format first. Every
    subclass satisfies the StreamingLLMClient protocol.

    Example:
        class EchoClient(BaseLLMClient):
            async def _call_api(self, messages, tools=None, **kwargs):
                return LLMResponse(content=messages[-1]["content"])

            async def _stream_api(self, messages, tools=None, **kwargs):
                yield StreamChunk(content=messages[-1]["content"])
                yield StreamChunk(is_final=True, stop_reason=StopReason.END_TURN)
    """

    provider: str = "unknown"

    def __init__(self, config: Optional[LLMConfig] = None, **overrides):
        self.config = config or LLMConfig(**overrides)
        if config is not None:
            for key, value in overrides.items():
                if hasattr(self.config, key):
                    setattr(self.config, key, value)

    @abstractmethod
    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> LLMResponse:
        ...

    @abstractmethod
    def _stream_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> AsyncIterator[StreamChunk]:
        ...

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[ToolSpec]] = None,
        config: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Run one turn without streaming.

        ``config`` entries take precedence over keyword arguments.
        """
        return await self._call_api(messages, self._format_tools(tools), **{**kwargs, **(config or {})})

    async def stream_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[ToolSpec]] = None,
        config: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> AsyncIterator[StreamChunk]:
        """
        Run one turn as a stream of chunks.

        Example:
            async for chunk in client.stream_completion(messages):
                print(chunk.content, end="", flush=True)
        """
        text = ""
        stream = self._stream_api(messages, self._format_tools(tools), **{**kwargs, **(config or {})})
        async for chunk in stream:
            text += chunk.content
            chunk.text_so_far = text
            yield chunk

    def _format_tools(self, tools: Optional[List[ToolSpec]]) -> Optional[List[Dict[str, Any]]]:
        """Tool objects and definitions become provider schemas; anything else passes through"""
        if not tools:
            return None
        formatted = []
        for spec in tools:
            definition = spec.to_definition() if isinstance(spec, Tool) else spec
            formatted.append(
                self._format_tool(definition) if "input_schema" in definition else definition
            )
        return formatted

    def _format_tool(self, definition: Dict[str, Any]) -> Dict[str, Any]:
        """OpenAI function schema; transports with another format override this"""
        parameters = definition.get("input_schema") or {"type": "object", "properties": {}}
        return {
            "type": "function",
            "function": {
                "name": definition["name"],
                "description": definition.get("description", ""),
                "parameters": parameters,
            },
        }

    async def close(self) -> None:
        """Release transport resources; nothing to do by default"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
