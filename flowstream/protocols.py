"""
flowstream Protocols - Abstract interfaces for dependency injection

These protocols define the contracts that external implementations must
fulfill, so the streaming loop works with any model provider.
"""

from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class StreamingLLMClient(Protocol):
    """
    Model transport consumed by the streaming loop.

    stream_completion yields StreamChunk-like objects (``content`` delta,
    ``is_final``, ``stop_reason``, ``tool_calls``, ``usage``) and raises on
    transport failure, including a connection closed mid-stream.
    chat_completion is the non-streaming fallback and returns an
    LLMResponse-like object.

    Example:
        class MyClient:
            async def stream_completion(self, messages, tools=None, **kwargs):
                async for delta in my_sdk.stream(messages):
                    yield StreamChunk(content=delta)

            async def chat_completion(self, messages, tools=None, **kwargs):
                return LLMResponse(content=await my_sdk.complete(messages))
    """

    def stream_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs: Any
    ) -> AsyncIterator[Any]:
        ...

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs: Any
    ) -> Any:
        ...
