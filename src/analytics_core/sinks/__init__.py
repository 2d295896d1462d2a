"""Analytics sinks - destinations for event batches."""

from .base import BatchSink
from .console import ConsoleSink
from .http import HttpSink

__all__ = [
    "BatchSink",
    "ConsoleSink",
    "HttpSink",
]
