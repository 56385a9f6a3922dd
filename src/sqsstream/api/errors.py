# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Error taxonomy for sqsstream.

Only configuration problems and compensation failures are wrapped. Errors
raised by the queue service or the overflow store (botocore `ClientError`,
connection errors, ...) propagate unmodified and terminate the stream.
"""


class SqsStreamError(Exception):
    """Base class for all sqsstream errors."""

    ...


class ConfigurationError(SqsStreamError, ValueError):
    """
    A required option is missing or invalid. Raised when the stream is opened,
    before any network call is made.
    """

    ...


class StreamClosedError(SqsStreamError):
    """The stream was already closed and cannot be entered again."""

    ...


class CompensationError(SqsStreamError):
    """
    A send failed after its payload was uploaded, and deleting the uploaded
    object failed as well. Both failures are kept.

    Attributes:
        primary: The error raised by the queue send.
        cleanup: The error raised while deleting the overflow object.
        key: Overflow object key that may now be orphaned.
    """

    def __init__(self, primary: BaseException, cleanup: BaseException, *, key: str | None = None) -> None:
        super().__init__(f"send failed ({primary!r}) and overflow cleanup failed ({cleanup!r})")
        self.primary = primary
        self.cleanup = cleanup
        self.key = key

    @property
    def errors(self) -> tuple[BaseException, BaseException]:
        return (self.primary, self.cleanup)
