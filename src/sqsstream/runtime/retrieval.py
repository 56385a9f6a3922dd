# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Retrieval loop: repeated poll cycles shaped into a demand-driven stream.

Two modes:
- continuous: long polls (20 s, 10 messages) into a small buffer, one message
  resolved and emitted per request from the consumer;
- scheduled: per schedule tick, one receive with the tick's wait time, then
  zero-wait receives until an empty batch, emitting as it goes.

Both are async generators, so nothing is fetched until the consumer asks for
the next message, and at most one receive is outstanding per stream. Errors
from the queue or the overflow store end the stream; there is no retry here.
"""

from collections import deque
from collections.abc import AsyncIterable, AsyncIterator
from contextlib import aclosing

from ..api.messages import ResolvedMessage
from ..core.log import get_logger
from ..transport.clients import RawMessage
from .poll import PollCycle

__all__ = ["RetrievalLoop"]


class RetrievalLoop:
    """
    Drives a PollCycle against one queue URL.

    The URL is resolved by the caller once per stream. `max_messages` caps
    every receive and therefore the size of the continuous-mode buffer.
    """

    def __init__(
        self,
        *,
        poll: PollCycle,
        queue_url: str,
        max_messages: int = 10,
        long_poll_wait_sec: int = 20,
    ) -> None:
        self.poll = poll
        self.queue_url = queue_url
        self.max_messages = max_messages
        self.long_poll_wait_sec = long_poll_wait_sec
        # refilled only when empty, so it never holds more than one batch
        self._buffer: deque[RawMessage] = deque()
        self.log = get_logger("runtime.retrieval")

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    # ---- continuous long polling

    async def continuous(self) -> AsyncIterator[ResolvedMessage]:
        while True:
            yield await self._next_resolved()

    async def _next_resolved(self) -> ResolvedMessage:
        # Dropped (stale) messages are skipped without returning to the consumer.
        while True:
            while not self._buffer:
                self._buffer.extend(await self.poll.fetch(self.queue_url, self.max_messages, self.long_poll_wait_sec))
            resolved = await self.poll.resolve(self._buffer.popleft())
            if resolved is not None:
                return resolved

    # ---- scheduled polling

    async def scheduled(self, schedule: AsyncIterable[int]) -> AsyncIterator[ResolvedMessage]:
        ticks = aiter(schedule)
        try:
            async for wait_seconds in ticks:
                async with aclosing(self.drain(wait_seconds)) as messages:
                    async for message in messages:
                        yield message
        finally:
            if hasattr(ticks, "aclose"):
                await ticks.aclose()

    async def drain(self, wait_seconds: int) -> AsyncIterator[ResolvedMessage]:
        """
        One tick: receive with `wait_seconds`, then with zero wait, until a
        receive comes back empty.
        """
        wait = wait_seconds
        batches = 0
        while True:
            batch = await self.poll.fetch(self.queue_url, self.max_messages, wait)
            if not batch:
                break
            batches += 1
            for raw in batch:
                resolved = await self.poll.resolve(raw)
                if resolved is not None:
                    yield resolved
            wait = 0
        if batches:
            self.log.info("tick drained", batches=batches, wait_sec=wait_seconds)
