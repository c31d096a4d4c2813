"""
flowstream Streaming - Token streaming loop, content buffer and SSE helpers

Provides:
- StreamingLoop: stream -> tools -> repeat, with non-streaming fallback
- StreamOutcome: result of one streaming attempt
- ContentBuffer: accumulates streamed text into content blocks
- SSE helpers: frame formatters and a FastAPI StreamingResponse wrapper
"""

from .buffer import ContentBuffer
from .loop import IterationCallback, StreamingLoop, StreamOutcome, ToolCallback
from .sse import (
    SSE_HEADERS,
    SSE_MEDIA_TYPE,
    format_comment,
    format_data,
    format_done,
    format_event,
    format_ping,
    format_retry,
    iter_queue,
    sse_response,
)

__all__ = [
    "ContentBuffer",
    "StreamingLoop",
    "StreamOutcome",
    "IterationCallback",
    "ToolCallback",
    "SSE_HEADERS",
    "SSE_MEDIA_TYPE",
    "format_comment",
    "format_data",
    "format_done",
    "format_event",
    "format_ping",
    "format_retry",
    "iter_queue",
    "sse_response",
]
