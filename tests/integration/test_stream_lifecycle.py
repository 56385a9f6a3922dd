"""
End-to-end stream lifecycle against the in-memory SQS/S3 fakes.

Contract:
  - opening a stream is lazy: no client, no call until the first message is requested;
  - queue client first, store client second; released in reverse order, exactly once,
    on completion, error, aclose(), leaving `async with`, or task cancellation;
  - no collaborator call after release;
  - invalid configuration fails before any client is created;
  - separate streams own separate clients.
"""

from __future__ import annotations

import asyncio

import pytest

from sqsstream import open_stream, queue_name, send_to_queue_using_s3
from sqsstream.api.errors import ConfigurationError, StreamClosedError
from sqsstream.core.config import OverflowMode, StreamConfig
from sqsstream.core.time import ManualClock
from tests.helpers import InMemQueue, collect, take

pytestmark = [pytest.mark.integration]


def _overflow_cfg(aws, **kw) -> StreamConfig:
    return StreamConfig(
        queue_name=aws.queue,
        queue_factory=aws.sqs.factory(),
        mode=OverflowMode(bucket_name=aws.bucket, store_factory=aws.s3.factory()),
        **kw,
    )


def _inline_cfg(aws, **kw) -> StreamConfig:
    return StreamConfig(queue_name=aws.queue, queue_factory=aws.sqs.factory(), **kw)


def _assert_released_once(aws, *, store: bool = True) -> None:
    assert [c.close_count for c in aws.sqs.clients] == [1]
    if store:
        assert [c.close_count for c in aws.s3.clients] == [1]
        closes = [e for e in aws.events if e[1] == "close"]
        assert closes == [("s3", "close"), ("sqs", "close")]
    # nothing happens after the queue client is gone
    assert aws.events[-1] == ("sqs", "close")


# ---------------------------------------------------------------------------
# Opening
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_open_is_lazy(aws):
    stream = open_stream(_overflow_cfg(aws))
    assert aws.sqs.clients == [] and aws.s3.clients == []
    assert aws.events == []
    await stream.aclose()
    assert aws.sqs.clients == []


def test_invalid_config_fails_before_any_client(aws):
    with pytest.raises(ConfigurationError):
        open_stream(_inline_cfg(aws, max_messages=0))
    with pytest.raises(ConfigurationError):
        open_stream(StreamConfig(queue_name=aws.queue, queue_factory=None))
    assert aws.sqs.clients == [] and aws.events == []


@pytest.mark.asyncio
async def test_clients_acquired_queue_first_then_store(aws):
    aws.s3.put(aws.bucket, "k", b"x")
    aws.sqs.push(aws.queue, "k")
    async with open_stream(_overflow_cfg(aws)) as stream:
        await take(stream, 1)
        assert len(aws.sqs.clients) == 1 and len(aws.s3.clients) == 1
        assert aws.events[0] == ("sqs", "get_queue_url", aws.queue)
    _assert_released_once(aws)


# ---------------------------------------------------------------------------
# Release paths
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_release_on_aclose(aws):
    aws.s3.put(aws.bucket, "k1", b"one")
    aws.s3.put(aws.bucket, "k2", b"two")
    aws.sqs.push(aws.queue, "k1", "k2")
    stream = open_stream(_overflow_cfg(aws))

    [msg] = await take(stream, 1)
    await stream.aclose()
    await stream.aclose()

    assert msg.payload == b"one"
    assert stream.closed
    _assert_released_once(aws)
    with pytest.raises(StopAsyncIteration):
        await anext(stream)
    assert aws.events[-1] == ("sqs", "close")


@pytest.mark.asyncio
async def test_release_when_consumer_raises(aws):
    aws.sqs.push(aws.queue, "a", "b")
    with pytest.raises(RuntimeError, match="consumer bug"):
        async with open_stream(_inline_cfg(aws)) as stream:
            async for _ in stream:
                raise RuntimeError("consumer bug")
    _assert_released_once(aws, store=False)


@pytest.mark.asyncio
async def test_release_on_receive_error(aws):
    aws.sqs.fail("receive", ConnectionError("sqs down"))
    stream = open_stream(_overflow_cfg(aws))

    with pytest.raises(ConnectionError):
        await collect(stream)

    assert stream.closed
    _assert_released_once(aws)


@pytest.mark.asyncio
async def test_release_on_unknown_queue(aws):
    stream = open_stream(StreamConfig(queue_name="missing", queue_factory=aws.sqs.factory()))
    with pytest.raises(LookupError):
        await anext(stream)
    _assert_released_once(aws, store=False)


@pytest.mark.asyncio
async def test_release_on_cancellation_waits_for_inflight_receive(aws):
    aws.sqs.receive_delay = 0.05
    stream = open_stream(_overflow_cfg(aws))
    started = asyncio.Event()

    async def consume():
        started.set()
        async for _ in stream:
            pass

    task = asyncio.create_task(consume())
    await started.wait()
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert aws.sqs.in_flight == 0
    assert stream.closed
    _assert_released_once(aws)


@pytest.mark.asyncio
async def test_repeated_cancellation_still_waits_for_inflight_receive(aws):
    aws.sqs.receive_delay = 0.1
    stream = open_stream(_overflow_cfg(aws))
    in_flight_at_close: list[int] = []
    queue_close = InMemQueue.close

    async def close_and_record(self) -> None:
        in_flight_at_close.append(aws.sqs.in_flight)
        await queue_close(self)

    async def consume():
        async for _ in stream:
            pass

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(InMemQueue, "close", close_and_record)
        task = asyncio.create_task(consume())
        await asyncio.sleep(0.02)
        task.cancel()
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert in_flight_at_close == [0]
    assert aws.sqs.in_flight == 0
    _assert_released_once(aws)


@pytest.mark.asyncio
async def test_close_failure_is_logged_not_raised(aws):
    class FailingClose(InMemQueue):
        async def close(self) -> None:
            await super().close()
            raise OSError("close failed")

    def factory():
        client = FailingClose(aws.sqs)
        aws.sqs.clients.append(client)
        return client

    cfg = StreamConfig(
        queue_name=aws.queue,
        queue_factory=factory,
        mode=OverflowMode(bucket_name=aws.bucket, store_factory=aws.s3.factory()),
    )
    aws.s3.put(aws.bucket, "k", b"x")
    aws.sqs.push(aws.queue, "k")

    async with open_stream(cfg) as stream:
        await take(stream, 1)

    _assert_released_once(aws)


@pytest.mark.asyncio
async def test_closed_stream_cannot_be_reentered(aws):
    stream = open_stream(_inline_cfg(aws))
    await stream.aclose()
    with pytest.raises(StreamClosedError):
        async with stream:
            pass


# ---------------------------------------------------------------------------
# Behaviour through the public surface
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_send_then_receive_round_trip(aws):
    sender_queue, sender_store = aws.sqs.factory()(), aws.s3.factory()()
    key = await send_to_queue_using_s3(sender_queue, aws.url, sender_store, aws.bucket, b"hello-world")

    async with open_stream(_overflow_cfg(aws)) as stream:
        [msg] = await take(stream, 1)
        assert msg.payload == b"hello-world"
        assert msg.overflow_key == key
        await msg.delete()

    assert (aws.bucket, key) not in aws.s3.objects
    assert aws.sqs.deleted[-1][1] == msg.receipt_handle


@pytest.mark.asyncio
async def test_stale_pointers_are_skipped_in_stream(aws):
    aws.s3.put(aws.bucket, "live", b"payload")
    aws.sqs.push(aws.queue, "stale-1", "live", "stale-2")

    async with open_stream(_overflow_cfg(aws, schedule=None)) as stream:
        [msg] = await take(stream, 1)

    assert msg.overflow_key == "live"
    assert len(aws.sqs.deleted) == 1


@pytest.mark.asyncio
async def test_independent_streams_own_their_clients(aws):
    aws.sqs.push(aws.queue, "a", "b", "c")
    builder = queue_name(aws.queue).queue_factory(aws.sqs.factory()).receive_options(max_messages=1)
    first, second = builder.messages(), builder.messages()

    [a] = await take(first, 1)
    [b] = await take(second, 1)
    await first.aclose()
    [c] = await take(second, 1)
    await second.aclose()

    assert [m.text() for m in (a, b, c)] == ["a", "b", "c"]
    assert len(aws.sqs.clients) == 2
    assert all(client.close_count == 1 for client in aws.sqs.clients)
    assert first.stream_id != second.stream_id


@pytest.mark.asyncio
async def test_scheduled_stream_ends_with_schedule(aws):
    aws.sqs.script(aws.queue, ["a", "b"], [], ["c"], [])
    stream = queue_name(aws.queue).queue_factory(aws.sqs.factory()).wait_times([0, 1]).messages()

    out = await collect(stream)

    assert [m.text() for m in out] == ["a", "b", "c"]
    assert [e[4] for e in aws.sqs.calls("receive")] == [0, 0, 1, 0]
    assert stream.closed
    _assert_released_once(aws, store=False)


@pytest.mark.asyncio
async def test_interval_stream_follows_clock(aws):
    clock = ManualClock(start_ms=0)
    aws.sqs.script(aws.queue, ["a"], [], [], ["b"], [])
    stream = queue_name(aws.queue).queue_factory(aws.sqs.factory()).clock(clock).interval(10).messages()

    out = await take(stream, 2)
    await stream.aclose()

    assert [m.text() for m in out] == ["a", "b"]
    assert clock.sleeps == [10_000, 10_000]
    # inline timestamps come from the stream clock
    assert out[1].timestamp == clock.now_dt()
    _assert_released_once(aws, store=False)
