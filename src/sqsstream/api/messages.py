# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Public message types handed to consumers.

`ResolvedMessage` is what a stream yields: the materialized payload plus the
receipt handle needed to acknowledge it. Each message carries a `Service`,
the read-only bundle of factories and identifiers that lets a consumer
acknowledge or inspect messages without re-deriving configuration.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

from ..core.config import InlineMode, Mode, OverflowMode
from ..core.log import get_logger, swallow
from ..core.utils import decode_body
from ..transport.clients import ObjectStoreClient, QueueClient, QueueFactory

__all__ = ["ResolvedMessage", "Service"]

log = get_logger("messages")


@dataclass(frozen=True)
class Service:
    """
    Capabilities shared by every message of a stream.

    Attributes:
        queue_name: Queue the messages were received from.
        queue_factory: Zero-argument queue client constructor.
        mode: InlineMode() or OverflowMode(bucket_name, store_factory).
    """

    queue_name: str
    queue_factory: QueueFactory
    mode: Mode = InlineMode()

    @property
    def bucket_name(self) -> str | None:
        return self.mode.bucket_name if isinstance(self.mode, OverflowMode) else None

    @asynccontextmanager
    async def open_queue(self) -> AsyncIterator[QueueClient]:
        """Fresh queue client from the factory, closed on exit."""
        client = self.queue_factory()
        try:
            yield client
        finally:
            with swallow(logger=log, level=logging.WARNING, code="service.queue.close", msg="queue client close failed"):
                await client.close()

    @asynccontextmanager
    async def open_store(self) -> AsyncIterator[ObjectStoreClient | None]:
        """Fresh overflow store client (None in inline mode), closed on exit."""
        if not isinstance(self.mode, OverflowMode):
            yield None
            return
        client = self.mode.store_factory()
        try:
            yield client
        finally:
            with swallow(logger=log, level=logging.WARNING, code="service.store.close", msg="store client close failed"):
                await client.close()

    async def queue_url(self, queue: QueueClient) -> str:
        return await queue.get_queue_url(self.queue_name)


@dataclass(frozen=True)
class ResolvedMessage:
    """
    A message ready for consumption.

    Attributes:
        receipt_handle: Token used to delete the message from the queue.
        payload: Message content. The inline body (UTF-8) or the overflow object bytes.
        timestamp: Overflow object last-modified time, or receipt time for inline messages.
        overflow_key: Object key when the payload came from the overflow store, else None.
        service: Capabilities for follow-up operations.
    """

    receipt_handle: str
    payload: bytes
    timestamp: datetime
    overflow_key: str | None
    service: Service

    @property
    def is_overflow(self) -> bool:
        return self.overflow_key is not None

    def text(self, encoding: str = "utf-8") -> str:
        return decode_body(self.payload, encoding)

    async def delete(self, *, queue: QueueClient | None = None, store: ObjectStoreClient | None = None) -> None:
        """
        Acknowledge the message.

        The overflow object (if any) is deleted first, then the queue message.
        Clients that are not passed in are created from the service factories
        and closed afterwards.
        """
        async with AsyncExitStack() as stack:
            if queue is None:
                queue = await stack.enter_async_context(self.service.open_queue())
            bucket = self.service.bucket_name
            if self.overflow_key is not None and bucket is not None:
                if store is None:
                    store = await stack.enter_async_context(self.service.open_store())
                await store.delete_object(bucket, self.overflow_key)
            url = await self.service.queue_url(queue)
            await queue.delete_message(url, self.receipt_handle)
            log.debug("message deleted", queue=self.service.queue_name, overflow_key=self.overflow_key)
