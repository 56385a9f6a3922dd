# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
boto3-backed implementations of the collaborator protocols.

- `BotoQueueClient` wraps an SQS client; `BotoObjectStore` wraps an S3 client.
- boto3 is blocking, so every call runs in a worker thread via
  `asyncio.to_thread`; the event loop stays free while a long poll waits.
- `sqs_factory(...)` / `s3_factory(...)` return the zero-argument factories a
  stream expects. Credentials, regions and proxies stay in boto3's hands.

No retries are added here: botocore's own retry configuration is the place
for that, and anything it gives up on propagates to the stream.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..core.log import get_logger
from ..core.utils import split_object_headers
from .clients import ObjectStoreClient, QueueClient, RawMessage, StoredObject

__all__ = [
    "BotoObjectStore",
    "BotoQueueClient",
    "s3_factory",
    "sqs_factory",
]

# Must exceed the 20 s long-poll wait, otherwise receives time out client-side.
_SQS_CONFIG = Config(read_timeout=70, connect_timeout=5)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class BotoQueueClient(QueueClient):
    """SQS through a boto3 client."""

    def __init__(self, client: Any) -> None:
        self._client = client
        self.log = get_logger("transport.sqs")

    async def get_queue_url(self, queue_name: str) -> str:
        resp = await asyncio.to_thread(self._client.get_queue_url, QueueName=queue_name)
        return resp["QueueUrl"]

    async def receive_messages(self, queue_url: str, max_count: int, wait_seconds: int) -> list[RawMessage]:
        resp = await asyncio.to_thread(
            self._client.receive_message,
            QueueUrl=queue_url,
            MaxNumberOfMessages=max_count,
            WaitTimeSeconds=wait_seconds,
            AttributeNames=["All"],
        )
        return [
            RawMessage(
                body=m.get("Body", ""),
                receipt_handle=m["ReceiptHandle"],
                message_id=m.get("MessageId"),
                attributes=m.get("Attributes") or {},
            )
            for m in resp.get("Messages", [])
        ]

    async def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        await asyncio.to_thread(self._client.delete_message, QueueUrl=queue_url, ReceiptHandle=receipt_handle)

    async def send_message(self, queue_url: str, body: str) -> str:
        resp = await asyncio.to_thread(self._client.send_message, QueueUrl=queue_url, MessageBody=body)
        message_id = resp.get("MessageId", "")
        self.log.debug("message sent", queue_url=queue_url, message_id=message_id)
        return message_id

    async def close(self) -> None:
        await asyncio.to_thread(self._client.close)


class BotoObjectStore(ObjectStoreClient):
    """S3 through a boto3 client."""

    def __init__(self, client: Any) -> None:
        self._client = client
        self.log = get_logger("transport.s3")

    async def object_exists(self, bucket: str, key: str) -> bool:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=bucket, Key=key)
        except ClientError as e:
            if str(e.response.get("Error", {}).get("Code")) in _NOT_FOUND_CODES:
                return False
            raise
        return True

    async def get_object(self, bucket: str, key: str) -> StoredObject:
        def _read() -> StoredObject:
            resp = self._client.get_object(Bucket=bucket, Key=key)
            body = resp["Body"]
            try:
                data = body.read()
            finally:
                body.close()
            return StoredObject(data=data, last_modified=resp["LastModified"])

        return await asyncio.to_thread(_read)

    async def put_object(self, bucket: str, key: str, data: bytes, headers: Mapping[str, str] | None = None) -> None:
        params = split_object_headers(headers)
        await asyncio.to_thread(
            self._client.put_object, Bucket=bucket, Key=key, Body=data, ContentLength=len(data), **params
        )
        self.log.debug("object stored", bucket=bucket, key=key, size=len(data))

    async def delete_object(self, bucket: str, key: str) -> None:
        await asyncio.to_thread(self._client.delete_object, Bucket=bucket, Key=key)

    async def close(self) -> None:
        await asyncio.to_thread(self._client.close)


def sqs_factory(*, session: boto3.session.Session | None = None, **client_kwargs: Any):
    """
    Zero-argument factory producing a fresh `BotoQueueClient` per call.

    `client_kwargs` go to `boto3.client("sqs", ...)` (region_name, endpoint_url, ...).
    """
    client_kwargs.setdefault("config", _SQS_CONFIG)

    def _make() -> BotoQueueClient:
        maker = session.client if session is not None else boto3.client
        return BotoQueueClient(maker("sqs", **client_kwargs))

    return _make


def s3_factory(*, session: boto3.session.Session | None = None, **client_kwargs: Any):
    """Zero-argument factory producing a fresh `BotoObjectStore` per call."""

    def _make() -> BotoObjectStore:
        maker = session.client if session is not None else boto3.client
        return BotoObjectStore(maker("s3", **client_kwargs))

    return _make
