"""
flowstream Execution - Run a streaming loop and follow its progress
"""

from .executor import StreamingFlowExecutor
from .progress import FlowProgress

__all__ = [
    "StreamingFlowExecutor",
    "FlowProgress",
]
