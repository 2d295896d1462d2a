"""HTTP sink - posts batches to the analytics ingestion service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from ..envelope import EnrichedEvent
from ..errors import SerializationError
from .base import BatchSink, encode_batch


logger = logging.getLogger(__name__)

BATCH_PATH = "/events/batch"


@dataclass
class HttpSink(BatchSink):
    """
    Sink that POSTs each batch as a JSON array to ``{base_url}/events/batch``.

    One attempt per batch. Non-2xx responses, transport errors and
    serialization failures are logged at warning level and the batch is
    dropped.

    Config:
        base_url: Ingestion service address (e.g. "http://localhost:8094")
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """
    base_url: str
    timeout: float = 5.0
    transport: httpx.AsyncBaseTransport | None = None

    # Internal state
    _client: httpx.AsyncClient | None = field(default=None, init=False)

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}{BATCH_PATH}"

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, batch: list[EnrichedEvent]) -> bool:
        count = len(batch)
        if count == 0:
            return True

        try:
            body = encode_batch(batch)
        except SerializationError as e:
            logger.warning(f"Failed to send analytics events: {e}")
            return False

        if self._client is None:
            await self.start()

        try:
            response = await self._client.post(
                self.url,
                content=body,
                headers={"Content-Type": "application/json"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Failed to send analytics events: {e!r}")
            return False

        if response.is_success:
            logger.debug(f"Sent {count} analytics events")
            return True

        logger.warning(f"Failed to send analytics events: HTTP {response.status_code}")
        return False

    async def health_check(self) -> bool:
        return self._client is not None
