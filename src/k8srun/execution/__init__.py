"""Execution lifecycle: stream output, wait for completion, reap the pod."""

from .handle import Execution, ExecutionState
from .reaper import Reaper, ReapScope
from .streamer import LogStreamer
from .waiter import CompletionWaiter

__all__ = [
    "Execution",
    "ExecutionState",
    "LogStreamer",
    "CompletionWaiter",
    "Reaper",
    "ReapScope",
]
