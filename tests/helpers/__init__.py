from .aws import EPOCH, ClientClosed, InMemObjectStore, InMemQueue, InMemS3, InMemSqs
from .streams import collect, take

__all__ = [
    "EPOCH",
    "ClientClosed",
    "InMemObjectStore",
    "InMemQueue",
    "InMemS3",
    "InMemSqs",
    "collect",
    "take",
]
