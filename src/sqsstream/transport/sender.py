# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Send side of the overflow protocol.

The payload is uploaded to the overflow bucket under a fresh id and the id is
enqueued as the message body. If the enqueue fails, the upload is deleted so
no orphan object is left behind; if that cleanup fails too, both errors are
reported together as a `CompensationError`.
"""

from collections.abc import Callable, Mapping

from ..api.errors import CompensationError
from ..core.log import get_logger
from ..core.utils import new_overflow_id
from .clients import ObjectStoreClient, QueueClient

__all__ = ["send_to_queue_using_s3"]

log = get_logger("transport.sender")


async def send_to_queue_using_s3(
    queue: QueueClient,
    queue_url: str,
    store: ObjectStoreClient,
    bucket_name: str,
    payload: bytes,
    *,
    headers: Mapping[str, str] | None = None,
    id_factory: Callable[[], str] = new_overflow_id,
) -> str:
    """
    Upload `payload` to `bucket_name` and enqueue a pointer to it.

    Returns:
        The overflow object key, which is also the queue message body.

    Raises:
        The queue error itself when the send fails and cleanup succeeds.
        CompensationError when both the send and the cleanup fail.
    """
    if queue is None or store is None:
        raise ValueError("queue and store clients are required")
    if not queue_url or not bucket_name:
        raise ValueError("queue_url and bucket_name are required")
    if not isinstance(payload, (bytes, bytearray)):
        raise TypeError("payload must be bytes")

    key = id_factory()
    await store.put_object(bucket_name, key, bytes(payload), headers or {})
    try:
        await queue.send_message(queue_url, key)
    except Exception as send_err:
        log.warning("send failed, removing uploaded overflow object", bucket=bucket_name, key=key, exc_info=send_err)
        try:
            await store.delete_object(bucket_name, key)
        except Exception as cleanup_err:
            raise CompensationError(send_err, cleanup_err, key=key) from cleanup_err
        raise
    log.debug("overflow message sent", bucket=bucket_name, key=key, size=len(payload))
    return key
