"""
flowstream Context - Per-run state mutated by the streaming loop

AgentContext holds everything one run needs: the model transport, the
message history, the tools, the iteration counter, the terminal state
and accumulated token usage. AgentResult is the immutable summary built
from a finished context.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .config import LoopConfig
from .tools.models import Tool

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    """State of a run"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ToolCallRecord:
    """One tool invocation made during a run"""
    tool: str
    input: Dict[str, Any]
    result: str
    is_error: bool = False
    iteration: int = 0
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.tool,
            "input": self.input,
            "result": self.result,
            "is_error": self.is_error,
            "iteration": self.iteration,
            "timestamp": self.timestamp,
        }


@dataclass
class AgentResult:
    """Outcome of a finished run"""
    success: bool
    answer: str = ""
    messages: List[Dict[str, Any]] = field(default_factory=list)
    iterations: int = 0
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def succeeded(cls, answer: str, **kwargs) -> "AgentResult":
        return cls(success=True, answer=answer, **kwargs)

    @classmethod
    def failed(cls, error: str, **kwargs) -> "AgentResult":
        if not error or not error.strip():
            raise ValueError("Error message cannot be empty for failure result")
        return cls(success=False, error=error, **kwargs)

    @property
    def token_usage(self) -> Dict[str, int]:
        return self.metadata.get("token_usage", {"input": 0, "output": 0, "total": 0})

    @property
    def tool_calls(self) -> List[Dict[str, Any]]:
        return self.metadata.get("tool_calls", [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "answer": self.answer,
            "iterations": self.iterations,
            "error": self.error,
            "metadata": self.metadata,
        }


class AgentContext:
    """
    Execution context for one run of the streaming loop.

    The task becomes the first user message. Once the context reaches a
    terminal state (completed or failed) further complete()/fail() calls
    are ignored, so a run ends in exactly one terminal state.

    Example:
        context = AgentContext(
            client=LiteLLMClient(config=LLMConfig(model="gpt-4o")),
            task="What's 2 + 2?",
            config=LoopConfig(model="gpt-4o", max_iterations=5),
            tools=[add],
        )
        await StreamingLoop().execute(context)
        print(context.get_answer())
    """

    def __init__(
        self,
        client: Any,
        task: str,
        config: Optional[LoopConfig] = None,
        tools: Optional[Iterable[Tool]] = None,
        messages: Optional[List[Dict[str, Any]]] = None,
    ):
        self.client = client
        self.task = task
        self.config = config or LoopConfig()

        self._tools: Dict[str, Tool] = {}
        for tool in tools or []:
            self.add_tool(tool)

        self.messages: List[Dict[str, Any]] = list(messages or [])
        self.messages.append({"role": "user", "content": task})

        self.status = RunStatus.RUNNING
        self._iteration = 0
        self._answer: Optional[str] = None
        self._error: Optional[str] = None
        self._tool_calls: List[ToolCallRecord] = []
        self._token_usage = {"input": 0, "output": 0}
        self._metadata: Dict[str, Any] = {}

        self.start_time = time.time()
        self.end_time: Optional[float] = None

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def get_tool(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def add_tool(self, tool: Tool) -> None:
        if tool.name in self._tools:
            logger.debug(f"Replacing tool '{tool.name}'")
        self._tools[tool.name] = tool

    def remove_tool(self, name: str) -> None:
        self._tools.pop(name, None)

    def get_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def get_tool_definitions(self) -> List[Dict[str, Any]]:
        return [tool.to_definition() for tool in self._tools.values()]

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    def get_messages(self) -> List[Dict[str, Any]]:
        return list(self.messages)

    # ------------------------------------------------------------------
    # Iterations
    # ------------------------------------------------------------------

    def get_iteration(self) -> int:
        return self._iteration

    def increment_iteration(self) -> int:
        self._iteration += 1
        return self._iteration

    def has_reached_max_iterations(self) -> bool:
        return self._iteration >= self.config.max_iterations

    # ------------------------------------------------------------------
    # Terminal state
    # ------------------------------------------------------------------

    def complete(self, answer: str) -> None:
        """Mark the run successful. Ignored once terminal."""
        if self.status != RunStatus.RUNNING:
            logger.debug(f"complete() ignored, context already {self.status.value}")
            return
        self._answer = answer
        self.status = RunStatus.COMPLETED
        self.end_time = time.time()

    def fail(self, error: str) -> None:
        """Mark the run failed. Ignored once terminal."""
        if self.status != RunStatus.RUNNING:
            logger.debug(f"fail() ignored, context already {self.status.value}")
            return
        self._error = error
        self.status = RunStatus.FAILED
        self.end_time = time.time()

    def is_completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def has_failed(self) -> bool:
        return self.status == RunStatus.FAILED

    def is_terminal(self) -> bool:
        return self.status != RunStatus.RUNNING

    def get_answer(self) -> Optional[str]:
        return self._answer

    def get_error(self) -> Optional[str]:
        return self._error

    # ------------------------------------------------------------------
    # Tool calls and token usage
    # ------------------------------------------------------------------

    def record_tool_call(
        self,
        tool_name: str,
        tool_input: Dict[str, Any],
        result: str,
        is_error: bool = False,
    ) -> None:
        self._tool_calls.append(ToolCallRecord(
            tool=tool_name,
            input=dict(tool_input),
            result=result,
            is_error=is_error,
            iteration=self._iteration,
        ))

    def get_tool_calls(self) -> List[ToolCallRecord]:
        return list(self._tool_calls)

    def add_token_usage(self, input_tokens: int, output_tokens: int) -> None:
        self._token_usage["input"] += input_tokens
        self._token_usage["output"] += output_tokens

    def get_token_usage(self) -> Dict[str, int]:
        return {
            "input": self._token_usage["input"],
            "output": self._token_usage["output"],
            "total": self._token_usage["input"] + self._token_usage["output"],
        }

    # ------------------------------------------------------------------
    # Metadata and timing
    # ------------------------------------------------------------------

    def add_metadata(self, key: str, value: Any) -> None:
        self._metadata[key] = value

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return self._metadata.get(key, default)

    def get_all_metadata(self) -> Dict[str, Any]:
        return dict(self._metadata)

    def get_execution_time(self) -> float:
        """Seconds since the context was created (until it turned terminal)"""
        end = self.end_time if self.end_time is not None else time.time()
        return end - self.start_time

    def get_time_per_iteration(self) -> float:
        if self._iteration == 0:
            return 0.0
        return self.get_execution_time() / self._iteration

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def to_result(self) -> AgentResult:
        metadata: Dict[str, Any] = {
            "token_usage": self.get_token_usage(),
            "tool_calls": [call.to_dict() for call in self._tool_calls],
            "execution_time": self.get_execution_time(),
            "start_time": self.start_time,
            "end_time": self.end_time,
        }
        metadata.update(self._metadata)

        common = {
            "messages": self.get_messages(),
            "iterations": self._iteration,
            "metadata": metadata,
        }
        if self.has_failed():
            return AgentResult.failed(self._error or "Unknown error", **common)
        if not self.is_completed():
            return AgentResult.failed("Execution did not complete", **common)
        return AgentResult.succeeded(self._answer or "", **common)

    def __repr__(self) -> str:
        return (
            f"AgentContext(status={self.status.value}, iterations={self._iteration}, "
            f"messages={len(self.messages)})"
        )
