# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Collaborator abstractions and implementations.
"""

from .boto import BotoObjectStore, BotoQueueClient, s3_factory, sqs_factory
from .clients import ObjectStoreClient, QueueClient, RawMessage, StoredObject
from .sender import send_to_queue_using_s3

__all__ = [
    "BotoObjectStore",
    "BotoQueueClient",
    "ObjectStoreClient",
    "QueueClient",
    "RawMessage",
    "StoredObject",
    "s3_factory",
    "send_to_queue_using_s3",
    "sqs_factory",
]
