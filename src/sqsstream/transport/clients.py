# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Collaborator abstractions: the queue service and the overflow object store.

This module defines:
- `RawMessage`: one record as returned by a receive call.
- `StoredObject`: the content and last-modified time of an overflow object.
- `QueueClient` protocol: URL lookup, receive, delete, send, shutdown.
- `ObjectStoreClient` protocol: exists, get, put, delete, shutdown.

Concrete implementations (boto3) live in `transport.boto`; tests use
in-memory fakes. Every method is a coroutine so the retrieval loop can await
blocking calls without occupying the event loop.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

__all__ = [
    "ObjectStoreClient",
    "ObjectStoreFactory",
    "QueueClient",
    "QueueFactory",
    "RawMessage",
    "StoredObject",
]


@dataclass(frozen=True)
class RawMessage:
    """
    A message as delivered by the queue service.

    Attributes:
        body: Message body. A payload (inline mode) or an object key (overflow mode).
        receipt_handle: Opaque token required to delete the message.
        message_id: Service-assigned id, if reported.
        attributes: Service attributes (e.g. SentTimestamp), informational only.
    """

    body: str
    receipt_handle: str
    message_id: str | None = None
    attributes: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class StoredObject:
    """Full content of an overflow object and its last-modified time (UTC)."""

    data: bytes
    last_modified: datetime


@runtime_checkable
class QueueClient(Protocol):
    """
    Queue service client owned by a single stream.

    `close()` is called exactly once by the owner; implementations should
    release connection pools there.
    """

    async def get_queue_url(self, queue_name: str) -> str: ...

    async def receive_messages(self, queue_url: str, max_count: int, wait_seconds: int) -> list[RawMessage]: ...

    async def delete_message(self, queue_url: str, receipt_handle: str) -> None: ...

    async def send_message(self, queue_url: str, body: str) -> str: ...

    async def close(self) -> None: ...


@runtime_checkable
class ObjectStoreClient(Protocol):
    """Overflow object store client owned by a single stream."""

    async def object_exists(self, bucket: str, key: str) -> bool: ...

    async def get_object(self, bucket: str, key: str) -> StoredObject: ...

    async def put_object(
        self, bucket: str, key: str, data: bytes, headers: Mapping[str, str] | None = None
    ) -> None: ...

    async def delete_object(self, bucket: str, key: str) -> None: ...

    async def close(self) -> None: ...


QueueFactory = Callable[[], QueueClient]
ObjectStoreFactory = Callable[[], ObjectStoreClient]
