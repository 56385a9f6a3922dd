from __future__ import annotations

"""
In-memory stand-ins for SQS and S3.

Both brokers keep their state outside the clients, so every client built by a
factory sees the same queues/objects (as separate boto3 clients would). All
collaborator calls are appended to a shared `events` list as
(service, op, *args) tuples, which lets tests assert ordering across services
and that nothing is called after a client was closed.
"""

import asyncio
from collections import deque
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from sqsstream.core.log import get_logger
from sqsstream.transport.clients import ObjectStoreClient, QueueClient, RawMessage, StoredObject

LOG = get_logger("tests.aws")

EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


class ClientClosed(RuntimeError):
    pass


class _Broker:
    service = "?"

    def __init__(self, events: list[tuple] | None = None) -> None:
        self.events: list[tuple] = events if events is not None else []
        self.failures: dict[str, deque[BaseException]] = {}
        self.clients: list[Any] = []

    def fail(self, op: str, *errors: BaseException) -> None:
        """Make the next len(errors) calls of `op` raise these errors, in order."""
        self.failures.setdefault(op, deque()).extend(errors)

    def calls(self, op: str | None = None) -> list[tuple]:
        return [e for e in self.events if e[0] == self.service and (op is None or e[1] == op)]

    def _record(self, op: str, *args: Any) -> None:
        self.events.append((self.service, op, *args))
        LOG.debug("fake.call", event="fake.call", service=self.service, op=op)
        pending = self.failures.get(op)
        if pending:
            raise pending.popleft()


# ───────────────────────── SQS ─────────────────────────


class InMemSqs(_Broker):
    service = "sqs"

    def __init__(self, events: list[tuple] | None = None, *, receive_delay: float = 0.0) -> None:
        super().__init__(events)
        self.queues: dict[str, deque[RawMessage]] = {}
        self.scripts: dict[str, deque[list[RawMessage]]] = {}
        self.deleted: list[tuple[str, str]] = []
        self.receive_delay = receive_delay
        self.in_flight = 0
        self.max_in_flight = 0
        self._seq = 0

    @staticmethod
    def url(queue_name: str) -> str:
        return f"https://sqs.test/000000000000/{queue_name}"

    @staticmethod
    def name_of(url: str) -> str:
        return url.rsplit("/", 1)[-1]

    def create_queue(self, queue_name: str) -> str:
        self.queues.setdefault(queue_name, deque())
        return self.url(queue_name)

    def raw(self, body: str) -> RawMessage:
        self._seq += 1
        return RawMessage(body=body, receipt_handle=f"rh-{self._seq}", message_id=f"m-{self._seq}")

    def push(self, queue_name: str, *bodies: str) -> list[RawMessage]:
        q = self.queues.setdefault(queue_name, deque())
        msgs = [self.raw(b) for b in bodies]
        q.extend(msgs)
        return msgs

    def script(self, queue_name: str, *batches: list[str]) -> list[list[RawMessage]]:
        """
        Exact results for the next receives on `queue_name`, one batch per call.
        Once the script is used up, receives fall back to the queue contents.
        """
        self.create_queue(queue_name)
        made = [[self.raw(b) for b in batch] for batch in batches]
        self.scripts.setdefault(queue_name, deque()).extend(made)
        return made

    def factory(self):
        def _make() -> InMemQueue:
            client = InMemQueue(self)
            self.clients.append(client)
            return client

        return _make


class InMemQueue(QueueClient):
    def __init__(self, broker: InMemSqs) -> None:
        self.broker = broker
        self.close_count = 0

    def _enter(self, op: str, *args: Any) -> None:
        if self.close_count:
            raise ClientClosed(f"sqs client closed, {op} refused")
        self.broker._record(op, *args)

    async def get_queue_url(self, queue_name: str) -> str:
        self._enter("get_queue_url", queue_name)
        if queue_name not in self.broker.queues:
            raise LookupError(f"queue does not exist: {queue_name}")
        return self.broker.url(queue_name)

    async def receive_messages(self, queue_url: str, max_count: int, wait_seconds: int) -> list[RawMessage]:
        self._enter("receive", queue_url, max_count, wait_seconds)
        b = self.broker
        b.in_flight += 1
        b.max_in_flight = max(b.max_in_flight, b.in_flight)
        try:
            await asyncio.sleep(b.receive_delay)
            name = b.name_of(queue_url)
            script = b.scripts.get(name)
            if script:
                return script.popleft()
            q = b.queues.setdefault(name, deque())
            return [q.popleft() for _ in range(min(max_count, len(q)))]
        finally:
            b.in_flight -= 1

    async def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        self._enter("delete", queue_url, receipt_handle)
        self.broker.deleted.append((queue_url, receipt_handle))

    async def send_message(self, queue_url: str, body: str) -> str:
        self._enter("send", queue_url, body)
        msg = self.broker.push(self.broker.name_of(queue_url), body)[0]
        return msg.message_id or ""

    async def close(self) -> None:
        self.broker.events.append(("sqs", "close"))
        self.close_count += 1


# ───────────────────────── S3 ─────────────────────────


class InMemS3(_Broker):
    service = "s3"

    def __init__(self, events: list[tuple] | None = None) -> None:
        super().__init__(events)
        self.objects: dict[tuple[str, str], StoredObject] = {}
        self.headers: dict[tuple[str, str], dict[str, str]] = {}

    def put(self, bucket: str, key: str, data: bytes, *, last_modified: datetime = EPOCH) -> None:
        self.objects[(bucket, key)] = StoredObject(data=data, last_modified=last_modified)

    def factory(self):
        def _make() -> InMemObjectStore:
            client = InMemObjectStore(self)
            self.clients.append(client)
            return client

        return _make


class InMemObjectStore(ObjectStoreClient):
    def __init__(self, broker: InMemS3) -> None:
        self.broker = broker
        self.close_count = 0

    def _enter(self, op: str, *args: Any) -> None:
        if self.close_count:
            raise ClientClosed(f"s3 client closed, {op} refused")
        self.broker._record(op, *args)

    async def object_exists(self, bucket: str, key: str) -> bool:
        self._enter("exists", bucket, key)
        return (bucket, key) in self.broker.objects

    async def get_object(self, bucket: str, key: str) -> StoredObject:
        self._enter("get", bucket, key)
        try:
            return self.broker.objects[(bucket, key)]
        except KeyError:
            raise LookupError(f"NoSuchKey: {bucket}/{key}") from None

    async def put_object(self, bucket: str, key: str, data: bytes, headers: Mapping[str, str] | None = None) -> None:
        self._enter("put", bucket, key)
        self.broker.put(bucket, key, data, last_modified=datetime.now(UTC))
        self.broker.headers[(bucket, key)] = dict(headers or {})

    async def delete_object(self, bucket: str, key: str) -> None:
        self._enter("delete_object", bucket, key)
        self.broker.objects.pop((bucket, key), None)

    async def close(self) -> None:
        self.broker.events.append(("s3", "close"))
        self.close_count += 1
