# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Stream lifecycle: client ownership bound to one consumption session.

`open_stream(config)` validates the configuration and returns a
`MessageStream`. Nothing touches the network until the first message is
requested; at that point the queue client is created, then the overflow store
client (overflow mode only). Both are closed in reverse order exactly once
when the stream ends: normal completion, an error, `aclose()`, leaving
`async with`, or cancellation of the consuming task.

    async with open_stream(cfg) as stream:
        async for msg in stream:
            handle(msg.payload)
            await msg.delete()
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, aclosing
from typing import Any

from ..api.errors import StreamClosedError
from ..api.messages import ResolvedMessage, Service
from ..core.config import StreamConfig
from ..core.log import get_logger, swallow
from ..core.time import Clock, SystemClock
from .poll import PollCycle, settle
from .resolver import PayloadResolver
from .retrieval import RetrievalLoop

__all__ = ["MessageStream", "open_stream"]


class MessageStream:
    """
    Async iterator of ResolvedMessage for one subscription.

    Each instance owns its own clients; open another stream for another
    subscription. Close it from the task that consumes it (or cancel that
    task); closing while a `__anext__` is in flight on another task is not
    supported.
    """

    def __init__(self, config: StreamConfig, *, clock: Clock | None = None) -> None:
        self.config = config.validate()
        self.clock = clock or SystemClock()
        self.stream_id = uuid.uuid4().hex[:12]
        self._gen: AsyncIterator[ResolvedMessage] | None = None
        self._closed = False
        self._fields: dict[str, Any] = {
            "stream_id": self.stream_id,
            "queue": config.queue_name,
            "mode": config.mode.describe(),
        }
        self.log = get_logger("runtime.stream")

    @property
    def closed(self) -> bool:
        return self._closed

    # ---- async iterator

    def __aiter__(self) -> MessageStream:
        return self

    async def __anext__(self) -> ResolvedMessage:
        if self._closed:
            raise StopAsyncIteration
        if self._gen is None:
            self._gen = self._run()
        try:
            return await self._gen.__anext__()
        except BaseException:
            # The generator is finished (exhausted, failed or cancelled) and has
            # already released its clients.
            self._closed = True
            raise

    async def aclose(self) -> None:
        """Stop the stream and release its clients. Idempotent."""
        self._closed = True
        gen, self._gen = self._gen, None
        if gen is not None:
            await gen.aclose()

    # ---- async context manager

    async def __aenter__(self) -> MessageStream:
        if self._closed:
            raise StreamClosedError(f"stream {self.stream_id} is closed")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ---- internals

    async def _run(self) -> AsyncIterator[ResolvedMessage]:
        cfg = self.config
        async with AsyncExitStack() as stack:
            queue = cfg.queue_factory()
            stack.push_async_callback(self._release, queue, "queue")
            store = None
            if (overflow := cfg.overflow) is not None:
                store = overflow.store_factory()
                stack.push_async_callback(self._release, store, "store")

            service = Service(queue_name=cfg.queue_name, queue_factory=cfg.queue_factory, mode=cfg.mode)
            queue_url = await settle(queue.get_queue_url(cfg.queue_name))
            resolver = PayloadResolver(queue=queue, queue_url=queue_url, service=service, store=store, clock=self.clock)
            loop = RetrievalLoop(
                poll=PollCycle(queue=queue, resolver=resolver),
                queue_url=queue_url,
                max_messages=cfg.max_messages,
                long_poll_wait_sec=cfg.long_poll_wait_sec,
            )
            source = loop.continuous() if cfg.schedule is None else loop.scheduled(cfg.schedule())
            self.log.info("stream opened", queue_url=queue_url, continuous=cfg.continuous, **self._fields)

            try:
                async with aclosing(source) as messages:
                    async for message in messages:
                        yield message
            except (GeneratorExit, asyncio.CancelledError) as e:
                self.log.info("stream closed by consumer", reason=type(e).__name__, **self._fields)
                raise
            except Exception as e:
                self.log.warning("stream failed", error=repr(e), **self._fields)
                raise

    async def _release(self, client: Any, role: str) -> None:
        with swallow(
            logger=self.log,
            level=logging.WARNING,
            code=f"stream.close.{role}",
            msg=f"{role} client close failed",
            extra=self._fields,
        ):
            await client.close()
        self.log.debug("client released", role=role, **self._fields)


def open_stream(config: StreamConfig, *, clock: Clock | None = None) -> MessageStream:
    """Validate `config` and return a new, not yet connected, MessageStream."""
    return MessageStream(config, clock=clock)
