from __future__ import annotations

"""
sqsstream.core.utils
====================

Small helpers with no external dependencies:
- overflow object id generation;
- UTF-8 body (de)coding shared by the resolver and the sender;
- splitting HTTP-style object headers into S3 request parameters.
"""

import uuid
from collections.abc import Mapping
from typing import Any

# Standard object headers and the matching S3 PutObject parameter names.
_HEADER_PARAMS: dict[str, str] = {
    "content-type": "ContentType",
    "content-encoding": "ContentEncoding",
    "content-disposition": "ContentDisposition",
    "content-language": "ContentLanguage",
    "cache-control": "CacheControl",
}


def new_overflow_id() -> str:
    """Random 32-char hex id (uuid4 without dashes) used as the overflow object key."""
    return uuid.uuid4().hex


def encode_body(body: str | bytes) -> bytes:
    return body if isinstance(body, bytes) else body.encode("utf-8")


def decode_body(data: bytes | str, encoding: str = "utf-8") -> str:
    return data if isinstance(data, str) else data.decode(encoding)


def split_object_headers(headers: Mapping[str, str] | None) -> dict[str, Any]:
    """
    Map object headers onto PutObject keyword arguments.

    Well-known HTTP headers become their dedicated parameters; anything else is
    stored as user metadata. `x-amz-meta-` prefixes are stripped.

        >>> split_object_headers({"Content-Type": "text/plain", "x-amz-meta-origin": "etl"})
        {'ContentType': 'text/plain', 'Metadata': {'origin': 'etl'}}
    """
    params: dict[str, Any] = {}
    metadata: dict[str, str] = {}
    for name, value in (headers or {}).items():
        lowered = name.lower()
        if lowered in _HEADER_PARAMS:
            params[_HEADER_PARAMS[lowered]] = value
        elif lowered == "content-length":
            # derived from the payload
            continue
        else:
            key = lowered[len("x-amz-meta-") :] if lowered.startswith("x-amz-meta-") else name
            metadata[key] = value
    if metadata:
        params["Metadata"] = metadata
    return params
