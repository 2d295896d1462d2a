"""Base sink interface."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod

from ..envelope import EnrichedEvent
from ..errors import SerializationError


def encode_batch(batch: list[EnrichedEvent]) -> bytes:
    """Encode a batch as a JSON array of flattened envelopes."""
    try:
        return json.dumps([envelope.to_dict() for envelope in batch]).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize analytics batch: {e}") from e


class BatchSink(ABC):
    """
    Abstract base class for analytics sinks.

    Sinks receive batches of envelopes and make one delivery attempt.
    They report the outcome instead of raising.
    """

    @abstractmethod
    async def send(self, batch: list[EnrichedEvent]) -> bool:
        """
        Deliver a batch once.

        Returns True if the destination accepted it, False otherwise.
        """
        ...

    async def start(self) -> None:
        """Initialize the sink (called when the dispatcher starts)."""
        pass

    async def stop(self) -> None:
        """Clean up the sink (called when the dispatcher stops)."""
        pass

    async def health_check(self) -> bool:
        """Check if the sink is healthy."""
        return True
