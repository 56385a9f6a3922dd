# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
One bounded receive against the queue, and its resolution.

Batch size and wait time are per-call arguments so the same cycle serves both
retrieval modes. Collaborator calls are never interrupted: if the awaiting
task is cancelled mid-call, the call is allowed to finish and the
cancellation is re-raised right after.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable
from typing import TypeVar

from ..api.messages import ResolvedMessage
from ..core.log import get_logger, swallow
from ..transport.clients import QueueClient, RawMessage
from .resolver import PayloadResolver

__all__ = ["PollCycle", "settle"]

T = TypeVar("T")

log = get_logger("runtime.poll")


async def settle(call: Awaitable[T]) -> T:
    """
    Await `call` to completion even when the current task is cancelled.

    On cancellation the in-flight call keeps running; once it returns (or
    fails) a single CancelledError is propagated, however many cancellations
    arrived meanwhile. The call's own failure is logged and dropped in that
    case since the stream is going away anyway.
    """
    task = asyncio.ensure_future(call)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        while not task.done():
            try:
                await asyncio.wait({task})
            except asyncio.CancelledError:
                # repeated cancel while the call is still running
                continue
        if not task.cancelled():
            with swallow(logger=log, level=logging.DEBUG, code="poll.settle", msg="in-flight call failed after cancel"):
                task.result()
        raise


class PollCycle:
    """Receive calls plus per-message resolution for one stream."""

    def __init__(self, *, queue: QueueClient, resolver: PayloadResolver) -> None:
        self.queue = queue
        self.resolver = resolver

    async def fetch(self, queue_url: str, max_count: int, wait_seconds: int) -> list[RawMessage]:
        """One receive call; messages in service order."""
        batch = await settle(self.queue.receive_messages(queue_url, max_count, wait_seconds))
        log.debug("receive", count=len(batch), wait_sec=wait_seconds, max_count=max_count)
        return batch

    async def resolve(self, raw: RawMessage) -> ResolvedMessage | None:
        return await settle(self.resolver.resolve(raw))

    async def cycle(self, queue_url: str, max_count: int, wait_seconds: int) -> AsyncIterator[ResolvedMessage]:
        """Fetch one batch and yield its resolved messages in order, skipping drops."""
        for raw in await self.fetch(queue_url, max_count, wait_seconds):
            resolved = await self.resolve(raw)
            if resolved is not None:
                yield resolved
