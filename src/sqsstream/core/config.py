from __future__ import annotations

"""
sqsstream.core.config
=====================

Configuration for a message stream.

- `InlineMode` / `OverflowMode`: tagged variant selecting how bodies are
  resolved. A bucket name always travels with its store factory.
- `StreamConfig`: immutable runtime configuration (factories included),
  validated once when a stream is opened.
- `StreamSettings`: declarative settings (pydantic) loadable from a JSON file
  and the environment, used to derive a builder with boto3 factories.
"""

import json
import os
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..api.errors import ConfigurationError
from ..transport.clients import ObjectStoreFactory, QueueFactory

# SQS service limits
LONG_POLL_WAIT_SEC = 20
MAX_MESSAGES = 10

Schedule = Callable[[], AsyncIterable[int]]


@dataclass(frozen=True)
class InlineMode:
    """Message bodies are the payloads."""

    def describe(self) -> str:
        return "inline"


@dataclass(frozen=True)
class OverflowMode:
    """Message bodies are keys of objects in `bucket_name`, read through `store_factory`."""

    bucket_name: str
    store_factory: ObjectStoreFactory

    def describe(self) -> str:
        return f"overflow:{self.bucket_name}"


Mode = InlineMode | OverflowMode


@dataclass(frozen=True)
class StreamConfig:
    """
    Everything a stream needs, fixed at build time.

    Attributes:
        queue_name: Target queue; resolved to a URL once per stream.
        queue_factory: Zero-argument constructor of the queue client, called once per stream.
        mode: InlineMode() or OverflowMode(bucket, store_factory).
        schedule: Zero-argument factory returning a fresh wait-time schedule
            (whole seconds) per stream. None selects continuous long polling.
        long_poll_wait_sec: Wait time of continuous-mode receive calls.
        max_messages: Batch size of every receive call.
    """

    queue_name: str
    queue_factory: QueueFactory
    mode: Mode = InlineMode()
    schedule: Schedule | None = None
    long_poll_wait_sec: int = LONG_POLL_WAIT_SEC
    max_messages: int = MAX_MESSAGES

    @property
    def overflow(self) -> OverflowMode | None:
        return self.mode if isinstance(self.mode, OverflowMode) else None

    @property
    def continuous(self) -> bool:
        return self.schedule is None

    def validate(self) -> StreamConfig:
        """Raise ConfigurationError on the first invalid option; return self otherwise."""
        if not isinstance(self.queue_name, str) or not self.queue_name:
            raise ConfigurationError("queue_name must be a non-empty string")
        if not callable(self.queue_factory):
            raise ConfigurationError("queue_factory is required and must be callable")
        if isinstance(self.mode, OverflowMode):
            if not isinstance(self.mode.bucket_name, str) or not self.mode.bucket_name:
                raise ConfigurationError("overflow bucket_name must be a non-empty string")
            if not callable(self.mode.store_factory):
                raise ConfigurationError("overflow mode requires a store factory")
        elif not isinstance(self.mode, InlineMode):
            raise ConfigurationError(f"unknown mode: {self.mode!r}")
        if self.schedule is not None and not callable(self.schedule):
            raise ConfigurationError("schedule must be a zero-argument callable")
        if not 0 <= self.long_poll_wait_sec <= LONG_POLL_WAIT_SEC:
            raise ConfigurationError(f"long_poll_wait_sec must be within 0..{LONG_POLL_WAIT_SEC}")
        if not 1 <= self.max_messages <= MAX_MESSAGES:
            raise ConfigurationError(f"max_messages must be within 1..{MAX_MESSAGES}")
        return self


# ---------------------------------------------------------------------------


class StreamSettings(BaseModel):
    """
    Declarative settings for a stream backed by boto3 clients.

    `poll_interval_sec` selects scheduled polling (one tick per interval);
    leaving it unset selects continuous long polling.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    queue_name: str = Field(..., min_length=1)
    bucket_name: str | None = Field(default=None, min_length=1)
    region_name: str | None = None
    endpoint_url: str | None = None
    poll_interval_sec: float | None = Field(default=None, gt=0)
    long_poll_wait_sec: int = Field(default=LONG_POLL_WAIT_SEC, ge=0, le=LONG_POLL_WAIT_SEC)
    max_messages: int = Field(default=MAX_MESSAGES, ge=1, le=MAX_MESSAGES)

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments shared by the boto3 SQS and S3 clients."""
        return {k: v for k, v in (("region_name", self.region_name), ("endpoint_url", self.endpoint_url)) if v}

    @classmethod
    def load(cls, path: Path | str | None = None, *, overrides: dict[str, Any] | None = None) -> StreamSettings:
        """
        Load settings from a JSON file (if given and present), then the
        environment, then explicit overrides.

        Env:
          - SQSSTREAM_QUEUE_NAME
          - SQSSTREAM_BUCKET_NAME
          - SQSSTREAM_POLL_INTERVAL_SEC
          - AWS_REGION / AWS_DEFAULT_REGION
          - AWS_ENDPOINT_URL
        """
        data: dict[str, Any] = {}

        file_path = Path(path) if path else None
        if file_path is not None and file_path.exists():
            try:
                data.update(json.loads(file_path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                raise ConfigurationError(f"cannot read settings file {file_path}: {e}") from e

        env_map = {
            "queue_name": os.getenv("SQSSTREAM_QUEUE_NAME"),
            "bucket_name": os.getenv("SQSSTREAM_BUCKET_NAME"),
            "poll_interval_sec": os.getenv("SQSSTREAM_POLL_INTERVAL_SEC"),
            "region_name": os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION"),
            "endpoint_url": os.getenv("AWS_ENDPOINT_URL"),
        }
        data.update({k: v for k, v in env_map.items() if v})

        if overrides:
            data.update(overrides)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
