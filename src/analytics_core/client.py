"""Analytics client - the producer-facing handle."""

from __future__ import annotations

import asyncio
import concurrent.futures
import copy
import logging
import threading
from dataclasses import dataclass, field, replace

import httpx

from .config import ClientConfig, NOOP_ANALYTICS_URL
from .dispatcher import Dispatcher
from .envelope import Enricher
from .errors import ChannelClosed, WorkerNotRunning
from .events import AnalyticsEvent
from .ingest_queue import FlushRequest, IngestQueue, Stop
from .sinks.base import BatchSink
from .sinks.console import ConsoleSink
from .sinks.http import HttpSink


logger = logging.getLogger(__name__)


def create_sink(
    config: ClientConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BatchSink:
    """Create the sink selected by ``config.sink_type``."""
    if config.sink_type == "console":
        return ConsoleSink()
    return HttpSink(
        base_url=config.analytics_url,
        timeout=config.timeout_seconds,
        transport=transport,
    )


def _run_loop_forever(loop: asyncio.AbstractEventLoop) -> None:
    asyncio.set_event_loop(loop)
    try:
        loop.run_forever()
    finally:
        loop.close()


@dataclass
class _Worker:
    """
    The dispatcher bound to a client, plus the event loop it runs on.

    If the client is built inside a running event loop the dispatcher is a
    task on that loop. Otherwise it gets a daemon thread with its own loop.
    """
    queue: IngestQueue
    dispatcher: Dispatcher
    loop: asyncio.AbstractEventLoop
    thread: threading.Thread | None = None

    # Task (same-loop mode) or concurrent future (thread mode)
    _handle: asyncio.Task | concurrent.futures.Future | None = field(default=None, init=False)

    @classmethod
    def spawn(cls, queue: IngestQueue, dispatcher: Dispatcher) -> _Worker:
        try:
            loop = asyncio.get_running_loop()
            thread = None
        except RuntimeError:
            loop = asyncio.new_event_loop()
            thread = threading.Thread(
                target=_run_loop_forever,
                args=(loop,),
                name="analytics-dispatcher",
                daemon=True,
            )
            thread.start()

        queue.bind(loop)
        worker = cls(queue=queue, dispatcher=dispatcher, loop=loop, thread=thread)
        if thread is None:
            worker._handle = loop.create_task(dispatcher.run(), name="analytics-dispatcher")
        else:
            worker._handle = asyncio.run_coroutine_threadsafe(dispatcher.run(), loop)
        return worker

    @property
    def done(self) -> bool:
        return self._handle is None or self._handle.done()

    def request_stop(self) -> None:
        if self.queue.closed:
            return
        self.queue.close()
        try:
            self.queue.put_control(Stop())
        except WorkerNotRunning:
            pass

    async def flush(self) -> None:
        if self.done or self.queue.closed:
            raise WorkerNotRunning("Analytics dispatcher is not running")
        request = FlushRequest()
        self.queue.put_control(request)
        await asyncio.wrap_future(request.done)

    async def wait(self, timeout: float) -> None:
        if self._handle is None:
            return
        try:
            if isinstance(self._handle, asyncio.Task) and self._on_own_loop():
                await asyncio.wait_for(asyncio.shield(self._handle), timeout=timeout)
            elif isinstance(self._handle, asyncio.Task):
                # Task lives on another loop; poll from here
                future = asyncio.run_coroutine_threadsafe(_await_task(self._handle), self.loop)
                await asyncio.wait_for(asyncio.wrap_future(future), timeout=timeout)
            else:
                await asyncio.wait_for(asyncio.wrap_future(self._handle), timeout=timeout)
        except asyncio.TimeoutError:
            raise
        except Exception as e:
            logger.error(f"Analytics dispatcher exited with an error: {e}")
        self._stop_thread()

    def wait_sync(self, timeout: float) -> None:
        if not isinstance(self._handle, concurrent.futures.Future):
            return
        try:
            self._handle.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            raise
        except Exception as e:
            logger.error(f"Analytics dispatcher exited with an error: {e}")
        self._stop_thread()

    def _stop_thread(self) -> None:
        if self.thread is not None and not self.loop.is_closed():
            try:
                self.loop.call_soon_threadsafe(self.loop.stop)
            except RuntimeError:
                pass

    def _on_own_loop(self) -> bool:
        try:
            return asyncio.get_running_loop() is self.loop
        except RuntimeError:
            return False


async def _await_task(task: asyncio.Task) -> None:
    await task


class AnalyticsClient:
    """
    Client for tracking analytics events.

    Events are enriched with a timestamp and host/environment tags, queued,
    and sent to the ingestion service in batches by a background dispatcher.
    ``track`` never blocks and never raises, even if the service is down.

    Usage:
        client = AnalyticsClient("http://localhost:8094")
        client.track(AuthLoginAttempt(email="user@example.com", success=True))

        # On shutdown (optional - without it the dispatcher runs until exit)
        await client.aclose()

    Handles are cheap to share between threads and tasks; ``clone()`` gives
    another handle to the same queue and dispatcher.
    """

    def __init__(
        self,
        analytics_url: str | None = None,
        *,
        config: ClientConfig | None = None,
        sink: BatchSink | None = None,
        enricher: Enricher | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if config is None:
            config = ClientConfig() if analytics_url is None else ClientConfig(analytics_url=analytics_url)
        elif analytics_url is not None:
            config = replace(config, analytics_url=analytics_url)

        self.config = config
        self._enricher = enricher or Enricher()
        self._worker: _Worker | None = None

        if not config.enabled:
            logger.info("Analytics disabled, events will be dropped")
            return

        queue = IngestQueue(
            max_size=config.max_queue_size,
            overflow_policy=config.overflow_policy,
        )
        dispatcher = Dispatcher(
            queue=queue,
            sink=sink or create_sink(config, transport),
            batch_size=config.batch_size,
            flush_interval_seconds=config.flush_interval_seconds,
            reset_timer_on_flush=config.reset_timer_on_flush,
        )
        self._worker = _Worker.spawn(queue, dispatcher)

    @classmethod
    def noop(cls) -> AnalyticsClient:
        """Client pointed at an unreachable endpoint, for tests or disabled analytics."""
        return cls(config=ClientConfig(analytics_url=NOOP_ANALYTICS_URL, sink_type="http", enabled=True))

    def clone(self) -> AnalyticsClient:
        """Another handle to the same queue, dispatcher and config."""
        return copy.copy(self)

    def track(self, event: AnalyticsEvent) -> None:
        """
        Track an analytics event (non-blocking).

        Dropped silently if the dispatcher has stopped.
        """
        if self._worker is None:
            return
        envelope = self._enricher.enrich(event)
        try:
            self._worker.queue.put(envelope)
        except ChannelClosed:
            pass

    def track_if(self, condition: bool, event: AnalyticsEvent) -> None:
        """Track an event only if a condition is true."""
        if condition:
            self.track(event)

    async def flush(self) -> None:
        """
        Flush everything tracked so far and wait for the attempt to finish.

        Raises WorkerNotRunning if the client is disabled or closed.
        """
        if self._worker is None:
            raise WorkerNotRunning("Analytics client is disabled")
        await self._worker.flush()

    async def aclose(self) -> None:
        """Final best-effort flush, then stop the dispatcher."""
        if self._worker is None:
            return
        self._worker.request_stop()
        try:
            await self._worker.wait(self.config.shutdown_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for analytics dispatcher to stop")

    def close(self) -> None:
        """
        Stop the dispatcher from synchronous code.

        With a background thread this waits for the final flush. When the
        dispatcher shares the caller's event loop it only signals the stop;
        use ``aclose`` to wait.
        """
        if self._worker is None:
            return
        self._worker.request_stop()
        try:
            self._worker.wait_sync(self.config.shutdown_timeout_seconds)
        except concurrent.futures.TimeoutError:
            logger.warning("Timed out waiting for analytics dispatcher to stop")

    @property
    def enabled(self) -> bool:
        return self._worker is not None

    @property
    def running(self) -> bool:
        """True while the dispatcher is alive and accepting events."""
        return (
            self._worker is not None
            and not self._worker.done
            and not self._worker.queue.closed
        )

    @property
    def stats(self) -> dict:
        """Get client statistics."""
        if self._worker is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "running": self.running,
            **self._worker.queue.stats,
            **self._worker.dispatcher.stats,
        }
