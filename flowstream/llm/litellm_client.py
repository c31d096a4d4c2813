"""
flowstream LiteLLM Client - One transport for every provider litellm routes to

The loop keeps history as content-block messages (text / tool_use /
tool_result blocks). litellm speaks the OpenAI chat format, so requests are
converted on the way out and tool-call deltas are reassembled on the way in.
"""

import json
import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional

from .base import (
    BaseLLMClient,
    LLMConfig,
    LLMResponse,
    StreamChunk,
    ToolCall,
    Usage,
    stop_reason_for,
)

logger = logging.getLogger(__name__)

# Where the API key is looked up when the config has none
API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

# litellm needs "<provider>/<model>" for these; OpenAI models go bare
PREFIXED_PROVIDERS = ("anthropic", "azure", "gemini", "ollama", "bedrock", "vertex_ai", "mistral", "groq")

# Handled explicitly when building a request
_HANDLED_KWARGS = frozenset({"model", "system", "max_tokens", "temperature", "stream", "tool_choice"})


def litellm_model_name(provider: str, model: str) -> str:
    """Routing name for litellm, e.g. ``anthropic/claude-sonnet-4``"""
    provider = provider.lower()
    if provider in PREFIXED_PROVIDERS and not model.startswith(f"{provider}/"):
        return f"{provider}/{model}"
    return model


def decode_arguments(raw: Any) -> Dict[str, Any]:
    """Tool arguments as a dict; undecodable or non-object JSON gives {}"""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring malformed tool arguments: {raw!r}")
        return {}
    return value if isinstance(value, dict) else {}


def to_openai_messages(
    messages: List[Dict[str, Any]],
    system: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Convert content-block messages to OpenAI chat messages.

    An assistant message becomes one message whose tool_use blocks turn
    into ``tool_calls``. Each tool_result block becomes its own ``tool``
    message. String content is left alone.
    """
    out: List[Dict[str, Any]] = [{"role": "system", "content": system}] if system else []

    for message in messages:
        role, content = message.get("role"), message.get("content")
        if not isinstance(content, list):
            out.append({"role": role, "content": content})
            continue

        text = "\n".join(b.get("text", "") for b in content if b.get("type") == "text")

        if role == "assistant":
            entry: Dict[str, Any] = {"role": "assistant", "content": text or None}
            calls = [_openai_tool_call(b) for b in content if b.get("type") == "tool_use"]
            if calls:
                entry["tool_calls"] = calls
            out.append(entry)
            continue

        out.extend(
            {"role": "tool", "tool_call_id": b.get("tool_use_id", ""), "content": b.get("content", "")}
            for b in content if b.get("type") == "tool_result"
        )
        if text:
            out.append({"role": role, "content": text})

    return out


def _openai_tool_call(block: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": block.get("id", ""),
        "type": "function",
        "function": {"name": block.get("name", ""), "arguments": json.dumps(block.get("input") or {})},
    }


class ToolCallAssembler:
    """
    Rebuilds tool calls from streamed fragments.

    OpenAI-style streams send each call as pieces keyed by ``index``: the
    id and name arrive once, the JSON arguments arrive split across chunks.
    """

    def __init__(self):
        self._parts: Dict[int, Dict[str, str]] = {}

    def feed(self, deltas: Optional[List[Any]]) -> None:
        for delta in deltas or []:
            part = self._parts.setdefault(delta.index, {"id": "", "name": "", "arguments": ""})
            if delta.id:
                part["id"] = delta.id
            function = delta.function
            if function is None:
                continue
            if function.name:
                part["name"] = function.name
            if function.arguments:
                part["arguments"] += function.arguments

    def build(self) -> List[ToolCall]:
        return [
            ToolCall(id=part["id"], name=part["name"], arguments=decode_arguments(part["arguments"]))
            for _, part in sorted(self._parts.items())
        ]


class LiteLLMClient(BaseLLMClient):
    """
    Transport backed by ``litellm.acompletion``.

    Example:
        client = LiteLLMClient(model="claude-sonnet-4", provider_name="anthropic")
        async for chunk in client.stream_completion([{"role": "user", "content": "Hi"}]):
            print(chunk.content, end="")
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        provider_name: Optional[str] = None,
        **kwargs,
    ):
        """
        Args:
            config: Connection settings; built from ``kwargs`` when omitted,
                in which case ``model`` is required
            provider_name: Overrides ``config.provider``
            **kwargs: LLMConfig fields
        """
        if config is None and "model" not in kwargs:
            raise ValueError("model is required")
        super().__init__(config, **kwargs)

        self.provider = (provider_name or self.config.provider).lower()
        self.model_name = litellm_model_name(self.provider, self.config.model)

        api_key = self.config.api_key
        if not api_key and self.provider in API_KEY_ENV:
            api_key = os.environ.get(API_KEY_ENV[self.provider])

        self.request_defaults: Dict[str, Any] = {
            "timeout": self.config.timeout,
            "num_retries": self.config.num_retries,
            **({"api_base": self.config.api_base} if self.config.api_base else {}),
            **({"api_key": api_key} if api_key else {}),
            **self.config.extra,
        }

        logger.info(f"LiteLLM transport ready: provider={self.provider}, model={self.model_name}")

    def build_request(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]],
        overrides: Dict[str, Any],
    ) -> Dict[str, Any]:
        """litellm.acompletion kwargs for one call (streaming flags not included)"""
        model = overrides.get("model")
        request: Dict[str, Any] = {
            **self.request_defaults,
            "model": litellm_model_name(self.provider, model) if model else self.model_name,
            "messages": to_openai_messages(messages, overrides.get("system")),
            "max_tokens": overrides.get("max_tokens", self.config.max_tokens),
            "temperature": overrides.get("temperature", self.config.temperature),
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = overrides.get("tool_choice", "auto")
        request.update((k, v) for k, v in overrides.items() if k not in _HANDLED_KWARGS)
        return request

    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ) -> LLMResponse:
        import litellm

        request = self.build_request(messages, tools, kwargs)
        logger.debug(
            f"acompletion model={request['model']} messages={len(request['messages'])} "
            f"tools={len(tools or [])}"
        )
        response = await litellm.acompletion(**request)

        choice = response.choices[0]
        calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=decode_arguments(tc.function.arguments))
            for tc in choice.message.tool_calls or []
        ]
        return LLMResponse(
            content=choice.message.content or "",
            tool_calls=calls,
            stop_reason=stop_reason_for(choice.finish_reason),
            usage=Usage.from_openai(getattr(response, "usage", None)),
            model=getattr(response, "model", None) or self.config.model,
            raw=response,
        )

    async def _stream_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ) -> AsyncIterator[StreamChunk]:
        import litellm

        request = self.build_request(messages, tools, kwargs)
        request["stream"] = True
        request["stream_options"] = {"include_usage": True}

        assembler = ToolCallAssembler()
        async for event in await litellm.acompletion(**request):
            if not event.choices:
                # Usage arrives on its own choice-less chunk at the end
                usage = Usage.from_openai(getattr(event, "usage", None))
                if usage is not None:
                    yield StreamChunk(is_final=True, usage=usage)
                continue

            choice = event.choices[0]
            assembler.feed(choice.delta.tool_calls)

            if choice.finish_reason is None:
                yield StreamChunk(content=choice.delta.content or "")
                continue

            yield StreamChunk(
                content=choice.delta.content or "",
                is_final=True,
                stop_reason=stop_reason_for(choice.finish_reason),
                tool_calls=assembler.build() or None,
            )
