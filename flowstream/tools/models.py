"""
flowstream Tool Models - Data structures for tool calling
"""

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """
    Result of a tool execution

    Attributes:
        content: String result content (fed back to the model)
        is_error: Whether execution failed
        data: Optional structured data for further processing
    """
    content: str
    is_error: bool = False
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def success(cls, content: str, data: Optional[Dict[str, Any]] = None) -> "ToolResult":
        return cls(content=content, data=data)

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls(content=message, is_error=True)

    def to_api_format(self, tool_use_id: str) -> Dict[str, Any]:
        """Render as a tool_result content block for the next model turn"""
        block: Dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": tool_use_id,
            "content": self.content,
        }
        if self.is_error:
            block["is_error"] = True
        return block


@dataclass
class Tool:
    """
    A tool the model can invoke.

    Attributes:
        name: Tool name (used in tool_use blocks)
        description: What this tool does (shown to the model)
        input_schema: JSON Schema for the tool input
        handler: Function(input: dict) -> str | dict, sync or async
    """
    name: str
    description: str
    handler: Callable[[Dict[str, Any]], Any]
    input_schema: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    async def execute(self, tool_input: Dict[str, Any]) -> ToolResult:
        """
        Run the handler with *tool_input*.

        Handler exceptions become error results so the model can react.
        """
        try:
            result = self.handler(tool_input)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(f"Tool '{self.name}' execution failed: {e}", exc_info=True)
            return ToolResult.error(f"Error executing {self.name}: {e}")

        if isinstance(result, ToolResult):
            return result
        if isinstance(result, dict):
            return ToolResult.success(
                json.dumps(result, ensure_ascii=False, indent=2), data=result
            )
        return ToolResult.success("" if result is None else str(result))

    def to_definition(self) -> Dict[str, Any]:
        """Tool definition sent with model requests"""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }
