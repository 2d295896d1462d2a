"""Tests for the batching dispatcher."""

import asyncio

import pytest

from analytics_core.dispatcher import Dispatcher
from analytics_core.ingest_queue import FlushRequest, IngestQueue, Stop

from conftest import BrokenStartSink, ExplodingSink, RecordingSink, make_envelope


async def start_dispatcher(sink, **kwargs):
    queue = IngestQueue()
    queue.bind(asyncio.get_running_loop())
    dispatcher = Dispatcher(queue=queue, sink=sink, **kwargs)
    task = asyncio.create_task(dispatcher.run())
    await asyncio.sleep(0)
    return queue, dispatcher, task


async def stop_dispatcher(queue, task):
    queue.close()
    queue.put_control(Stop())
    await asyncio.wait_for(task, timeout=2.0)


def put_many(queue, count, start=0):
    for i in range(start, start + count):
        queue.put(make_envelope(i))


class TrafficSink(RecordingSink):
    """Sink that sees a full batch worth of new events arrive during each send."""

    def __init__(self):
        super().__init__()
        self.queue = None
        self.produced = 0

    async def send(self, batch):
        await asyncio.sleep(0)
        if self.queue is not None:
            put_many(self.queue, len(batch), start=1000 + self.produced)
            self.produced += len(batch)
        return await super().send(batch)


class TestSizeTrigger:
    @pytest.mark.asyncio
    async def test_flush_on_size(self, sink):
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=3, flush_interval_seconds=10)

        put_many(queue, 2)
        await asyncio.sleep(0.05)
        assert sink.batches == []
        assert dispatcher.buffer_size == 2

        put_many(queue, 1, start=2)
        await asyncio.sleep(0.05)
        assert sink.sizes == [3]
        assert [e.event.duration_ms for e in sink.batches[0]] == [0, 1, 2]
        assert dispatcher.buffer_size == 0
        assert dispatcher.stats["size_flushes"] == 1

        await stop_dispatcher(queue, task)

    @pytest.mark.asyncio
    async def test_burst_then_timer(self, sink):
        """250 events at once: two full batches now, the rest on the next tick."""
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=100, flush_interval_seconds=0.5)

        put_many(queue, 250)
        await asyncio.sleep(0.1)
        assert sink.sizes == [100, 100]

        await asyncio.sleep(0.6)
        assert sink.sizes == [100, 100, 50]
        assert dispatcher.stats["size_flushes"] == 2
        assert dispatcher.stats["timer_flushes"] == 1

        await stop_dispatcher(queue, task)


class TestTimerTrigger:
    @pytest.mark.asyncio
    async def test_single_event_flushed_by_timer(self, sink):
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=100, flush_interval_seconds=0.2)

        put_many(queue, 1)
        await asyncio.sleep(0.05)
        assert sink.batches == []

        await asyncio.sleep(0.3)
        assert sink.sizes == [1]
        assert dispatcher.stats["timer_flushes"] == 1

        # Empty batch: ticks pass without flushing
        await asyncio.sleep(0.5)
        assert sink.sizes == [1]

        await stop_dispatcher(queue, task)

    @pytest.mark.asyncio
    async def test_timer_not_reset_by_size_flush(self, sink):
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=2, flush_interval_seconds=0.5)

        await asyncio.sleep(0.3)
        put_many(queue, 3)
        await asyncio.sleep(0.35)
        # Size flush at ~0.3s, timer flush of the leftover at ~0.5s
        assert sink.sizes == [2, 1]

        await stop_dispatcher(queue, task)

    @pytest.mark.asyncio
    async def test_timer_reset_by_size_flush(self, sink):
        queue, dispatcher, task = await start_dispatcher(
            sink, batch_size=2, flush_interval_seconds=0.5, reset_timer_on_flush=True,
        )

        await asyncio.sleep(0.3)
        put_many(queue, 3)
        await asyncio.sleep(0.35)
        # Timer restarted at ~0.3s, so the leftover waits until ~0.8s
        assert sink.sizes == [2]

        await asyncio.sleep(0.3)
        assert sink.sizes == [2, 1]

        await stop_dispatcher(queue, task)


class TestFailures:
    @pytest.mark.asyncio
    async def test_batch_cleared_after_rejected_flush(self):
        sink = RecordingSink(accept=False)
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=2, flush_interval_seconds=10)

        put_many(queue, 4)
        await asyncio.sleep(0.05)

        assert sink.sizes == [2, 2]
        assert [e.event.duration_ms for e in sink.envelopes] == [0, 1, 2, 3]
        assert dispatcher.buffer_size == 0
        assert dispatcher.stats["flush_errors"] == 2
        assert dispatcher.stats["events_discarded"] == 4
        assert dispatcher.stats["batches_sent"] == 0

        await stop_dispatcher(queue, task)

    @pytest.mark.asyncio
    async def test_raising_sink_does_not_kill_dispatcher(self):
        sink = ExplodingSink()
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=2, flush_interval_seconds=10)

        put_many(queue, 4)
        await asyncio.sleep(0.05)

        assert sink.calls == 2
        assert dispatcher.running
        assert not task.done()
        assert dispatcher.buffer_size == 0

        await stop_dispatcher(queue, task)


class TestShutdown:
    @pytest.mark.asyncio
    async def test_stop_flushes_pending(self, sink):
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=100, flush_interval_seconds=10)

        put_many(queue, 5)
        await stop_dispatcher(queue, task)

        assert sink.sizes == [5]
        assert sink.stopped
        assert not dispatcher.running
        assert queue.closed

    @pytest.mark.asyncio
    async def test_stop_flushes_in_chunks(self, sink):
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=100, flush_interval_seconds=10)

        put_many(queue, 250)
        await stop_dispatcher(queue, task)

        assert sink.sizes == [100, 100, 50]
        assert [e.event.duration_ms for e in sink.envelopes] == list(range(250))

    @pytest.mark.asyncio
    async def test_cancel_flushes_pending(self, sink):
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=100, flush_interval_seconds=10)

        put_many(queue, 3)
        await asyncio.sleep(0.01)
        task.cancel()
        await asyncio.wait_for(task, timeout=2.0)

        assert sink.sizes == [3]
        assert not dispatcher.running

    @pytest.mark.asyncio
    async def test_sink_start_failure_closes_queue(self, caplog):
        sink = BrokenStartSink()
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=100, flush_interval_seconds=10)
        await asyncio.wait_for(task, timeout=1.0)

        assert "cannot open" in caplog.text
        assert queue.closed
        assert not dispatcher.running
        assert sink.stopped


class TestForcedFlush:
    @pytest.mark.asyncio
    async def test_flush_request(self, sink):
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=100, flush_interval_seconds=10)

        put_many(queue, 3)
        request = FlushRequest()
        queue.put_control(request)
        await asyncio.wait_for(asyncio.wrap_future(request.done), timeout=1.0)

        assert sink.sizes == [3]
        assert dispatcher.stats["forced_flushes"] == 1
        assert dispatcher.running

        put_many(queue, 1, start=3)
        await stop_dispatcher(queue, task)
        assert sink.sizes == [3, 1]

    @pytest.mark.asyncio
    async def test_flush_request_with_nothing_pending(self, sink):
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=100, flush_interval_seconds=10)

        request = FlushRequest()
        queue.put_control(request)
        await asyncio.wait_for(asyncio.wrap_future(request.done), timeout=1.0)
        assert sink.batches == []

        await stop_dispatcher(queue, task)

    @pytest.mark.asyncio
    async def test_flush_request_returns_under_steady_traffic(self):
        """New events keep arriving while every batch is in flight."""
        sink = TrafficSink()
        queue, dispatcher, task = await start_dispatcher(sink, batch_size=5, flush_interval_seconds=10)
        sink.queue = queue

        put_many(queue, 5)
        request = FlushRequest()
        queue.put_control(request)
        await asyncio.wait_for(asyncio.wrap_future(request.done), timeout=1.0)

        assert dispatcher.stats["forced_flushes"] >= 1
        assert dispatcher.running

        sink.queue = None
        await stop_dispatcher(queue, task)
