"""
flowstream LLM - Model transports for the streaming loop

Provides a single LiteLLMClient that supports all providers litellm knows:
- OpenAI, Anthropic, Azure OpenAI, Google Gemini, Ollama

Usage:
    from flowstream.llm import LiteLLMClient, LLMConfig

    client = LiteLLMClient(config=LLMConfig(model="gpt-4o", provider="openai"))
    async for chunk in client.stream_completion(messages=[...]):
        print(chunk.content, end="")
"""

from .base import (
    BaseLLMClient,
    LLMConfig,
    LLMResponse,
    StreamChunk,
    StopReason,
    ToolCall,
    Usage,
)
from .litellm_client import LiteLLMClient

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "StreamChunk",
    "StopReason",
    "ToolCall",
    "Usage",
    "LiteLLMClient",
]
