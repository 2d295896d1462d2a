"""Ingest queue between producers and the dispatcher."""

from __future__ import annotations

import asyncio
import concurrent.futures
from collections import deque
from dataclasses import dataclass, field

from .envelope import EnrichedEvent
from .errors import ChannelClosed, WorkerNotRunning


class Stop:
    """Tells the dispatcher to flush what it has and exit."""
    __slots__ = ()


@dataclass(eq=False)
class FlushRequest:
    """Asks the dispatcher to flush everything queued so far."""
    done: concurrent.futures.Future = field(default_factory=concurrent.futures.Future)

    def resolve(self) -> None:
        if not self.done.done():
            self.done.set_result(None)

    def fail(self, exc: BaseException) -> None:
        if not self.done.done():
            self.done.set_exception(exc)


ControlMessage = Stop | FlushRequest
QueueItem = EnrichedEvent | Stop | FlushRequest


@dataclass
class IngestQueue:
    """
    Multi-producer / single-consumer channel of envelopes.

    Producers may call ``put`` from any thread; items are handed to the
    dispatcher's event loop, so only that loop ever touches the underlying
    deque. ``put`` never blocks.

    With ``max_size == 0`` the queue is unbounded. Otherwise at most
    ``max_size`` envelopes are held, and the oldest (``drop_oldest``) or the
    incoming (``drop_newest``) envelope is discarded when full. Control
    messages do not count towards the bound, are never dropped and keep
    their place in line.
    """
    max_size: int = 0
    overflow_policy: str = "drop_oldest"

    # Internal state
    _items: deque = field(default_factory=deque, init=False)
    _ready: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _envelopes: int = field(default=0, init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _closed: bool = field(default=False, init=False)
    _finished: bool = field(default=False, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "enqueued": 0,
            "dropped": 0,
        }

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the queue to the event loop the dispatcher runs on."""
        self._loop = loop

    def put(self, envelope: EnrichedEvent) -> None:
        """
        Hand an envelope to the dispatcher (non-blocking).

        Raises ChannelClosed if the queue is closed or its loop is gone.
        """
        if self._closed or self._loop is None:
            raise ChannelClosed()

        if self._on_loop_thread():
            self._put_now(envelope)
            return

        try:
            self._loop.call_soon_threadsafe(self._put_now, envelope)
        except RuntimeError:
            # Event loop is closed
            raise ChannelClosed() from None

    def put_control(self, message: ControlMessage) -> None:
        """Queue a control message behind everything already submitted."""
        if self._loop is None:
            raise WorkerNotRunning("Dispatcher was never started")
        if isinstance(message, FlushRequest) and self._closed:
            raise WorkerNotRunning("Dispatcher is stopping or stopped")

        try:
            self._loop.call_soon_threadsafe(self._put_control_now, message)
        except RuntimeError:
            raise WorkerNotRunning("Dispatcher event loop is closed") from None

    def close(self) -> None:
        """Stop accepting envelopes. Already queued items stay available."""
        self._closed = True

    def mark_finished(self) -> None:
        """Called by the dispatcher on exit; late flush requests fail fast."""
        self._closed = True
        self._finished = True
        while self._items:
            item = self._pop()
            if isinstance(item, FlushRequest):
                item.fail(WorkerNotRunning("Dispatcher has stopped"))

    async def get(self) -> QueueItem:
        """Next item (dispatcher only)."""
        while not self._items:
            self._ready.clear()
            await self._ready.wait()
        return self._pop()

    def get_nowait(self) -> QueueItem:
        """Next item without waiting; raises asyncio.QueueEmpty (dispatcher only)."""
        if not self._items:
            raise asyncio.QueueEmpty()
        return self._pop()

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _pop(self) -> QueueItem:
        item = self._items.popleft()
        if isinstance(item, EnrichedEvent):
            self._envelopes -= 1
        return item

    def _push(self, item: QueueItem) -> None:
        self._items.append(item)
        self._ready.set()

    def _put_now(self, envelope: EnrichedEvent) -> None:
        if self._finished:
            return

        if self.max_size and self._envelopes >= self.max_size:
            if self.overflow_policy == "drop_newest":
                self._stats["dropped"] += 1
                return
            self._drop_oldest()

        self._push(envelope)
        self._envelopes += 1
        self._stats["enqueued"] += 1

    def _put_control_now(self, message: ControlMessage) -> None:
        if self._finished:
            if isinstance(message, FlushRequest):
                message.fail(WorkerNotRunning("Dispatcher has stopped"))
            return
        self._push(message)

    def _drop_oldest(self) -> None:
        # Remove the oldest envelope in place; control messages stay put
        for index, item in enumerate(self._items):
            if isinstance(item, EnrichedEvent):
                del self._items[index]
                self._envelopes -= 1
                self._stats["dropped"] += 1
                return

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def depth(self) -> int:
        """Current number of queued items, control messages included."""
        return len(self._items)

    @property
    def dropped(self) -> int:
        return self._stats["dropped"]

    @property
    def stats(self) -> dict:
        return {
            **self._stats,
            "queue_depth": self.depth,
        }
