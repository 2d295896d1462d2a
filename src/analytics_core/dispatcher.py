"""Batching dispatcher - the single consumer of the ingest queue."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from .envelope import EnrichedEvent
from .ingest_queue import FlushRequest, IngestQueue, Stop
from .sinks.base import BatchSink


logger = logging.getLogger(__name__)


@dataclass
class Dispatcher:
    """
    Collects envelopes into batches and hands them to a sink.

    A batch is flushed when it reaches ``batch_size`` or when the periodic
    timer fires with at least one envelope pending. Exactly one flush is in
    flight at a time; while it runs, new envelopes wait in the queue.

    After every flush attempt the batch is cleared, whether or not the sink
    accepted it. Nothing is retried.

    By default the timer keeps its own schedule and is not reset by a
    size-triggered flush. Set ``reset_timer_on_flush`` to restart it after
    every flush.
    """
    queue: IngestQueue
    sink: BatchSink

    # Batch configuration
    batch_size: int = 100
    flush_interval_seconds: float = 10.0
    reset_timer_on_flush: bool = False

    # Internal state
    _batch: list[EnrichedEvent] = field(default_factory=list, init=False)
    _running: bool = field(default=False, init=False)
    _last_flush: float = field(default_factory=time.time, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "batches_sent": 0,
            "events_sent": 0,
            "flush_errors": 0,
            "events_discarded": 0,
            "size_flushes": 0,
            "timer_flushes": 0,
            "forced_flushes": 0,
        }

    async def run(self) -> None:
        """
        Main dispatch loop. Runs until a Stop message arrives or the task
        is cancelled; either way the remaining envelopes get one last flush.

        A sink that fails to start is logged, and the shutdown path still
        runs, so the queue closes and later events are dropped.
        """
        loop = asyncio.get_running_loop()
        self._running = True

        try:
            await self.sink.start()
            logger.info(
                f"Analytics dispatcher started (batch_size={self.batch_size}, "
                f"interval={self.flush_interval_seconds}s)"
            )

            next_tick = loop.time() + self.flush_interval_seconds
            while True:
                timeout = next_tick - loop.time()
                if timeout <= 0:
                    if self._batch:
                        await self._flush("timer")
                    next_tick += self.flush_interval_seconds
                    if next_tick <= loop.time():
                        # Ticks missed during a slow flush are collapsed
                        next_tick = loop.time() + self.flush_interval_seconds
                    continue

                try:
                    item = await asyncio.wait_for(self.queue.get(), timeout=timeout)
                except asyncio.TimeoutError:
                    continue

                if isinstance(item, Stop):
                    break

                if isinstance(item, FlushRequest):
                    # Only what was queued before the request; later events
                    # wait for the normal triggers
                    stop_requested = await self._drain([item], limit=self.queue.depth)
                    if self.reset_timer_on_flush:
                        next_tick = loop.time() + self.flush_interval_seconds
                    if stop_requested:
                        break
                    continue

                self._batch.append(item)
                if len(self._batch) >= self.batch_size:
                    await self._flush("size")
                    if self.reset_timer_on_flush:
                        next_tick = loop.time() + self.flush_interval_seconds

        except asyncio.CancelledError:
            logger.info("Analytics dispatcher cancelled")

        except Exception as e:
            logger.error(f"Analytics dispatcher failed: {e}")

        finally:
            await self._shutdown()

    async def _drain(self, requests: list[FlushRequest], limit: int | None = None) -> bool:
        """
        Flush the current batch plus up to ``limit`` queued items
        (everything, if ``limit`` is None).

        Returns True if a Stop message was found while draining.
        """
        stop_requested = False
        taken = 0
        while limit is None or taken < limit:
            try:
                item = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            taken += 1

            if isinstance(item, Stop):
                stop_requested = True
            elif isinstance(item, FlushRequest):
                requests.append(item)
            else:
                self._batch.append(item)
                if len(self._batch) >= self.batch_size:
                    await self._flush("forced")

        if self._batch:
            await self._flush("forced")

        for request in requests:
            request.resolve()
        return stop_requested

    async def _shutdown(self) -> None:
        # Final best-effort flush, then refuse further work. The queue is
        # closed first, so the unbounded drain below terminates.
        self.queue.close()
        try:
            await self._drain([])
        except Exception as e:
            logger.error(f"Final analytics flush failed: {e}")
        finally:
            self.queue.mark_finished()
            self._running = False
            try:
                await self.sink.stop()
            except Exception as e:
                logger.error(f"Analytics sink failed to stop: {e}")
            logger.info(f"Analytics dispatcher stopped. Stats: {self._stats}")

    async def _flush(self, reason: str) -> None:
        """Send the current batch once, then clear it unconditionally."""
        if not self._batch:
            return

        batch = self._batch
        self._batch = []
        self._last_flush = time.time()
        self._stats[f"{reason}_flushes"] += 1

        try:
            delivered = await self.sink.send(batch)
        except Exception as e:
            # Sinks should not raise; keep the loop alive if one does
            logger.error(f"Analytics sink error: {e}")
            delivered = False

        if delivered:
            self._stats["batches_sent"] += 1
            self._stats["events_sent"] += len(batch)
        else:
            self._stats["flush_errors"] += 1
            self._stats["events_discarded"] += len(batch)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def buffer_size(self) -> int:
        """Current batch size."""
        return len(self._batch)

    @property
    def stats(self) -> dict:
        """Get dispatcher statistics."""
        return {
            **self._stats,
            "buffer_size": self.buffer_size,
            "seconds_since_flush": time.time() - self._last_flush,
        }
