# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Payload resolution: RawMessage -> ResolvedMessage | None.

Inline mode turns the body into the payload. Overflow mode treats the body as
an object key: a present object is fetched in full; a missing one means the
pointer is stale (already consumed or expired), so the queue message is
deleted and nothing is emitted.
"""

from ..api.messages import ResolvedMessage, Service
from ..core.config import OverflowMode
from ..core.log import get_logger
from ..core.time import Clock, SystemClock
from ..core.utils import encode_body
from ..transport.clients import ObjectStoreClient, QueueClient, RawMessage

__all__ = ["PayloadResolver"]


class PayloadResolver:
    """
    Resolver bound to one stream's clients.

    At most one collaborator side effect per call: a queue delete (stale
    pointer) or an object read (present object). No retries.
    """

    def __init__(
        self,
        *,
        queue: QueueClient,
        queue_url: str,
        service: Service,
        store: ObjectStoreClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        overflow = service.mode if isinstance(service.mode, OverflowMode) else None
        if overflow is not None and store is None:
            raise ValueError("overflow mode requires an object store client")
        self.queue = queue
        self.queue_url = queue_url
        self.store = store
        self.service = service
        self.clock = clock or SystemClock()
        self._bucket = overflow.bucket_name if overflow is not None else None
        self.log = get_logger("runtime.resolver")

    async def resolve(self, raw: RawMessage) -> ResolvedMessage | None:
        if self._bucket is None or self.store is None:
            return ResolvedMessage(
                receipt_handle=raw.receipt_handle,
                payload=encode_body(raw.body),
                timestamp=self.clock.now_dt(),
                overflow_key=None,
                service=self.service,
            )
        return await self._resolve_overflow(raw, self._bucket, self.store)

    async def _resolve_overflow(self, raw: RawMessage, bucket: str, store: ObjectStoreClient) -> ResolvedMessage | None:
        key = raw.body
        if not await store.object_exists(bucket, key):
            await self.queue.delete_message(self.queue_url, raw.receipt_handle)
            self.log.info("stale overflow pointer dropped", bucket=bucket, key=key, message_id=raw.message_id)
            return None
        obj = await store.get_object(bucket, key)
        return ResolvedMessage(
            receipt_handle=raw.receipt_handle,
            payload=obj.data,
            timestamp=obj.last_modified,
            overflow_key=key,
            service=self.service,
        )
