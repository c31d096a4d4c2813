"""
flowstream Tools - Tools the streaming loop can dispatch

Provides:
- Tool: name, description, input schema and handler
- ToolResult: text content plus error flag
- @tool decorator: build a Tool from a typed function

Usage:
    from flowstream.tools import tool

    @tool
    def add(a: int, b: int) -> str:
        '''Add two integers'''
        return str(a + b)
"""

from .models import Tool, ToolResult
from .decorator import tool

__all__ = [
    "Tool",
    "ToolResult",
    "tool",
]
