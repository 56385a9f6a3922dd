from __future__ import annotations

# Runtime package version, taken from the installed distribution metadata.
try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("sqsstream")
except Exception:  # pragma: no cover
    # running from a source checkout without an install
    __version__ = "0.0.0"

from .api.errors import CompensationError, ConfigurationError, SqsStreamError, StreamClosedError
from .api.messages import ResolvedMessage, Service
from .builder import OverflowBuilder, SqsBuilder, from_settings, queue_name
from .core.config import InlineMode, OverflowMode, StreamConfig, StreamSettings
from .core.time import TimeUnit
from .runtime.lifecycle import MessageStream, open_stream
from .transport.clients import ObjectStoreClient, QueueClient, RawMessage, StoredObject
from .transport.sender import send_to_queue_using_s3

__all__ = [
    "CompensationError",
    "ConfigurationError",
    "InlineMode",
    "MessageStream",
    "ObjectStoreClient",
    "OverflowBuilder",
    "OverflowMode",
    "QueueClient",
    "RawMessage",
    "ResolvedMessage",
    "Service",
    "SqsBuilder",
    "SqsStreamError",
    "StoredObject",
    "StreamClosedError",
    "StreamConfig",
    "StreamSettings",
    "TimeUnit",
    "__version__",
    "from_settings",
    "open_stream",
    "queue_name",
    "send_to_queue_using_s3",
]
