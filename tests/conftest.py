"""Shared fixtures: a scripted LLM client and builders for its turns.

ScriptedLLMClient replays pre-built stream turns. A turn is a list of
StreamChunk objects; an Exception in the list is raised at that point, which
simulates a connection dropping mid-stream.
"""

import copy
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from flowstream.llm.base import (
    BaseLLMClient,
    LLMConfig,
    LLMResponse,
    StopReason,
    StreamChunk,
    ToolCall,
    Usage,
)


TurnItem = Union[StreamChunk, Exception]


class ScriptedLLMClient(BaseLLMClient):
    provider = "scripted"

    def __init__(
        self,
        turns: Optional[Sequence[List[TurnItem]]] = None,
        responses: Optional[Sequence[Union[LLMResponse, Exception]]] = None,
    ):
        super().__init__(LLMConfig(model="scripted-model"))
        self.turns = list(turns or [])
        self.responses = list(responses or [])
        self.stream_calls: List[Dict[str, Any]] = []
        self.chat_calls: List[Dict[str, Any]] = []

    async def _stream_api(self, messages, tools=None, **kwargs):
        self.stream_calls.append({"messages": copy.deepcopy(messages), "tools": tools, **kwargs})
        if not self.turns:
            raise AssertionError("No scripted stream turn left")
        for item in self.turns.pop(0):
            if isinstance(item, Exception):
                raise item
            yield item

    async def _call_api(self, messages, tools=None, **kwargs):
        self.chat_calls.append({"messages": copy.deepcopy(messages), "tools": tools, **kwargs})
        if not self.responses:
            raise AssertionError("No scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def text_turn(*tokens: str, input_tokens: int = 10, output_tokens: int = 5,
              stop_reason: StopReason = StopReason.END_TURN) -> List[TurnItem]:
    """Text deltas followed by one final chunk"""
    chunks: List[TurnItem] = [StreamChunk(content=t) for t in tokens]
    chunks.append(StreamChunk(
        is_final=True,
        stop_reason=stop_reason,
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens),
    ))
    return chunks


def tool_turn(name: str, arguments: Dict[str, Any], call_id: str = "call_1",
              text: Optional[str] = None) -> List[TurnItem]:
    """Optional text, then a final chunk requesting one tool call"""
    chunks: List[TurnItem] = [StreamChunk(content=text)] if text else []
    chunks.append(StreamChunk(
        is_final=True,
        stop_reason=StopReason.TOOL_USE,
        tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)],
        usage=Usage(input_tokens=20, output_tokens=8),
    ))
    return chunks


class Script:
    """Namespace handed to tests through the ``script`` fixture"""
    client = ScriptedLLMClient
    text_turn = staticmethod(text_turn)
    tool_turn = staticmethod(tool_turn)


@pytest.fixture
def script():
    return Script
