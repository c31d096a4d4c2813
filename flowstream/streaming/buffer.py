"""
flowstream Content Buffer - Accumulates streamed text into content blocks
"""

import time
from typing import Any, Dict, List, Optional


class ContentBuffer:
    """
    Accumulates streamed text fragments into content blocks.

    Text is appended to an open "current" block. finish_block() closes it;
    add_block() inserts a structured block (e.g. a tool invocation) after
    closing any pending text. get_blocks() always includes the open block,
    so a consumer can read a complete, ordered view mid-stream.

    Example:
        buffer = ContentBuffer()
        buffer.add_text("Hello")
        buffer.add_text(" world")
        buffer.add_block({"type": "tool_use", "id": "t1", "name": "search", "input": {}})
        buffer.get_blocks()
        # [{"type": "text", "text": "Hello world"}, {"type": "tool_use", ...}]
    """

    def __init__(self):
        self._text_buffer = ""
        self._current_block = ""
        self._blocks: List[Dict[str, Any]] = []

        self._total_chunks = 0
        self._total_bytes = 0
        self._start_time: Optional[float] = None
        self._last_chunk_time: Optional[float] = None

    def add_text(self, text: str) -> None:
        """Append a text fragment to the running text and the current block"""
        if not text:
            return

        now = time.monotonic()
        if self._start_time is None:
            self._start_time = now
        self._last_chunk_time = now

        self._text_buffer += text
        self._current_block += text
        self._total_chunks += 1
        self._total_bytes += len(text.encode("utf-8"))

    def finish_block(self) -> None:
        """Close the current text block, if any"""
        if self._current_block:
            self._blocks.append({"type": "text", "text": self._current_block})
            self._current_block = ""

    def add_block(self, block: Dict[str, Any]) -> None:
        """Finish pending text, then append *block* verbatim"""
        self.finish_block()
        self._blocks.append(block)

    def get_blocks(self) -> List[Dict[str, Any]]:
        """Finalized blocks plus the open text block when non-empty"""
        blocks = list(self._blocks)
        if self._current_block:
            blocks.append({"type": "text", "text": self._current_block})
        return blocks

    def get_text(self) -> str:
        """All text seen so far, across blocks"""
        return self._text_buffer

    def get_block_count(self) -> int:
        return len(self._blocks) + (1 if self._current_block else 0)

    def is_empty(self) -> bool:
        return not self._text_buffer and not self._blocks

    def get_statistics(self) -> Dict[str, Any]:
        """Throughput statistics derived from the chunk counters"""
        duration = 0.0
        if self._start_time is not None and self._last_chunk_time is not None:
            duration = self._last_chunk_time - self._start_time

        return {
            "total_chunks": self._total_chunks,
            "total_bytes": self._total_bytes,
            "duration_seconds": duration,
            "bytes_per_second": self._total_bytes / duration if duration > 0 else 0,
            "chunks_per_second": self._total_chunks / duration if duration > 0 else 0,
            "average_chunk_size": (
                self._total_bytes / self._total_chunks if self._total_chunks else 0
            ),
        }

    def clear(self) -> None:
        """Reset text, blocks and counters"""
        self._text_buffer = ""
        self._current_block = ""
        self._blocks = []
        self._total_chunks = 0
        self._total_bytes = 0
        self._start_time = None
        self._last_chunk_time = None
