# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Consumer-facing builder.

Every call returns a new builder; nothing is validated until `config()` or
`messages()` is called.

    stream = (
        sqsstream.queue_name("orders")
        .queue_factory(sqs_factory(region_name="eu-west-1"))
        .bucket_name("orders-overflow")
        .store_factory(s3_factory(region_name="eu-west-1"))
        .interval(30)
        .messages()
    )
"""

from collections.abc import AsyncIterable, Callable, Iterable
from dataclasses import dataclass, replace
from functools import partial

from .api.errors import ConfigurationError
from .core.config import LONG_POLL_WAIT_SEC, MAX_MESSAGES, InlineMode, Mode, OverflowMode, StreamConfig, StreamSettings
from .core.time import Clock, SystemClock, TimeUnit
from .runtime.lifecycle import MessageStream
from .runtime.schedule import interval_schedule, scaled_schedule
from .transport.boto import s3_factory, sqs_factory
from .transport.clients import ObjectStoreFactory, QueueFactory

__all__ = ["OverflowBuilder", "SqsBuilder", "from_settings", "queue_name"]

# Schedule factories receive the stream clock so interval ticks follow it.
_ScheduleSpec = Callable[[Clock], AsyncIterable[int]]


def _scaled(times, unit: TimeUnit, _clock: Clock) -> AsyncIterable[int]:
    return scaled_schedule(times, unit)


def _interval(every: float, unit: TimeUnit, clock: Clock) -> AsyncIterable[int]:
    return interval_schedule(every, unit, clock=clock)


@dataclass(frozen=True)
class SqsBuilder:
    """Immutable stream configuration under construction."""

    name: str
    queue_maker: QueueFactory | None = None
    mode: Mode = InlineMode()
    schedule_spec: _ScheduleSpec | None = None
    clock_: Clock | None = None
    max_messages: int = MAX_MESSAGES
    long_poll_wait_sec: int = LONG_POLL_WAIT_SEC

    def queue_factory(self, factory: QueueFactory) -> SqsBuilder:
        return replace(self, queue_maker=factory)

    sqs_factory = queue_factory

    def bucket_name(self, bucket: str) -> OverflowBuilder:
        """Switch to overflow mode; the returned builder requires a store factory."""
        return OverflowBuilder(self, bucket)

    def inline(self) -> SqsBuilder:
        return replace(self, mode=InlineMode())

    def wait_times(
        self,
        times: Iterable[float] | AsyncIterable[float],
        unit: TimeUnit = TimeUnit.SECONDS,
    ) -> SqsBuilder:
        """
        Scheduled polling driven by `times`: each value (rounded, converted to
        whole seconds) starts one tick. `times` is iterated once per stream, so
        pass a re-iterable (list, custom iterable) if the builder opens several.
        """
        return replace(self, schedule_spec=partial(_scaled, times, TimeUnit(unit)))

    def interval(self, every: float, unit: TimeUnit = TimeUnit.SECONDS) -> SqsBuilder:
        """Scheduled polling with an immediate tick, then one tick per `every` `unit`."""
        if TimeUnit(unit).to_millis(every) <= 0:
            raise ConfigurationError("interval must be positive")
        return replace(self, schedule_spec=partial(_interval, every, TimeUnit(unit)))

    def continuous(self) -> SqsBuilder:
        """Back to continuous long polling (the default)."""
        return replace(self, schedule_spec=None)

    def receive_options(self, *, max_messages: int | None = None, long_poll_wait_sec: int | None = None) -> SqsBuilder:
        return replace(
            self,
            max_messages=self.max_messages if max_messages is None else max_messages,
            long_poll_wait_sec=self.long_poll_wait_sec if long_poll_wait_sec is None else long_poll_wait_sec,
        )

    def clock(self, clock: Clock) -> SqsBuilder:
        return replace(self, clock_=clock)

    def config(self) -> StreamConfig:
        """Validated StreamConfig; raises ConfigurationError."""
        if self.queue_maker is None:
            raise ConfigurationError("queue_factory is required")
        clock = self.clock_ or SystemClock()
        schedule = partial(self.schedule_spec, clock) if self.schedule_spec is not None else None
        return StreamConfig(
            queue_name=self.name,
            queue_factory=self.queue_maker,
            mode=self.mode,
            schedule=schedule,
            long_poll_wait_sec=self.long_poll_wait_sec,
            max_messages=self.max_messages,
        ).validate()

    def messages(self) -> MessageStream:
        """A new stream (one subscription) over the configured queue."""
        return MessageStream(self.config(), clock=self.clock_)


@dataclass(frozen=True)
class OverflowBuilder:
    """Intermediate step after `bucket_name(...)`: only a store factory completes it."""

    parent: SqsBuilder
    bucket: str

    def store_factory(self, factory: ObjectStoreFactory) -> SqsBuilder:
        return replace(self.parent, mode=OverflowMode(bucket_name=self.bucket, store_factory=factory))

    s3_factory = store_factory


def queue_name(name: str) -> SqsBuilder:
    """Entry point: a builder for the queue called `name`."""
    if not isinstance(name, str) or not name:
        raise ConfigurationError("queue name must be a non-empty string")
    return SqsBuilder(name=name)


def from_settings(settings: StreamSettings) -> SqsBuilder:
    """Builder wired to boto3 clients as described by `settings`."""
    kwargs = settings.client_kwargs()
    builder = (
        queue_name(settings.queue_name)
        .queue_factory(sqs_factory(**kwargs))
        .receive_options(max_messages=settings.max_messages, long_poll_wait_sec=settings.long_poll_wait_sec)
    )
    if settings.bucket_name:
        builder = builder.bucket_name(settings.bucket_name).store_factory(s3_factory(**kwargs))
    if settings.poll_interval_sec:
        builder = builder.interval(settings.poll_interval_sec)
    return builder
