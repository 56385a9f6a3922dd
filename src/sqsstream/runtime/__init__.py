# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Retrieval engine: resolver, poll cycle, retrieval loop and stream lifecycle.
"""

from .lifecycle import MessageStream, open_stream
from .poll import PollCycle
from .resolver import PayloadResolver
from .retrieval import RetrievalLoop
from .schedule import interval_schedule, scaled_schedule

__all__ = [
    "MessageStream",
    "PayloadResolver",
    "PollCycle",
    "RetrievalLoop",
    "interval_schedule",
    "open_stream",
    "scaled_schedule",
]
