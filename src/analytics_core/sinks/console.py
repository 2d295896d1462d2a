"""Console sink for local development."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..envelope import EnrichedEvent
from ..errors import SerializationError
from .base import BatchSink, encode_batch


logger = logging.getLogger(__name__)

PREFIX = "[ANALYTICS]"


def summarize(envelope: EnrichedEvent) -> str:
    """One-line description of an envelope."""
    owner = envelope.event.owner_id
    service = envelope.event.source_service
    parts = [envelope.timestamp.isoformat(), envelope.type_name]
    if owner is not None:
        parts.append(f"user={owner}")
    if service is not None:
        parts.append(f"service={service}")
    parts.append(f"host={envelope.hostname or '-'}")
    return " ".join(parts)


@dataclass
class ConsoleSink(BatchSink):
    """
    Prints batches to stdout instead of sending them.

    Useful when no ingestion service is running. By default each batch is a
    header line plus one summary line per envelope. With ``payload=True``
    the JSON body an HttpSink would POST is printed as-is.
    """
    payload: bool = False

    async def send(self, batch: list[EnrichedEvent]) -> bool:
        if not batch:
            return True

        if self.payload:
            try:
                body = encode_batch(batch)
            except SerializationError as e:
                logger.warning(f"Failed to print analytics events: {e}")
                return False
            print(f"{PREFIX} {body.decode()}")
            return True

        print(f"{PREFIX} batch of {len(batch)} events")
        for envelope in batch:
            print(f"{PREFIX}   {summarize(envelope)}")
        return True
