# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Public types: consumer-facing messages and the error taxonomy.
"""

from .errors import CompensationError, ConfigurationError, SqsStreamError, StreamClosedError
from .messages import ResolvedMessage, Service

__all__ = [
    "CompensationError",
    "ConfigurationError",
    "ResolvedMessage",
    "Service",
    "SqsStreamError",
    "StreamClosedError",
]
