from __future__ import annotations

"""
sqsstream.core.time
===================

Clock abstractions and time units:
- Clock Protocol injected into resolvers and schedules.
- SystemClock: production default.
- ManualClock: deterministic time for tests (sleeping only advances the clock).
- TimeUnit: converts schedule values to whole seconds.
"""

import asyncio
import math
import time
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol


class Clock(Protocol):
    def now_dt(self) -> datetime: ...
    def mono_ms(self) -> int: ...
    async def sleep_ms(self, ms: int) -> None: ...


class SystemClock:
    """Wall clock in UTC plus the process monotonic clock."""

    def now_dt(self) -> datetime:
        return datetime.now(UTC)

    def mono_ms(self) -> int:
        return time.monotonic_ns() // 1_000_000

    async def sleep_ms(self, ms: int) -> None:
        await asyncio.sleep(max(0.0, ms / 1000.0))


class ManualClock(SystemClock):
    """
    Controllable clock for tests.

    Wall and monotonic time start at `start_ms` and advance only through
    `sleep_ms` / `advance`. `sleep_ms` still yields to the event loop once so
    that other tasks get a chance to run.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self.sleeps: list[int] = []

    def now_dt(self) -> datetime:
        return datetime.fromtimestamp(self._now / 1000.0, tz=UTC)

    def mono_ms(self) -> int:
        return self._now

    def advance(self, ms: int) -> None:
        self._now += max(0, int(ms))

    async def sleep_ms(self, ms: int) -> None:
        inc = max(0, int(ms))
        self.sleeps.append(inc)
        self._now += inc
        await asyncio.sleep(0)


class TimeUnit(str, Enum):
    """Unit attached to wait-time schedule values."""

    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"

    @property
    def millis(self) -> int:
        return _UNIT_MS[self]

    def to_seconds(self, value: float) -> int:
        """
        Round `value` half up to an integer count of this unit, then convert
        it to whole seconds (truncating). 1500 ms -> 1 s, 2.5 s -> 3 s.
        """
        return (_round_half_up(value) * self.millis) // 1000

    def to_millis(self, value: float) -> int:
        return _round_half_up(value * self.millis)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


_UNIT_MS: dict[TimeUnit, int] = {
    TimeUnit.MILLISECONDS: 1,
    TimeUnit.SECONDS: 1_000,
    TimeUnit.MINUTES: 60_000,
    TimeUnit.HOURS: 3_600_000,
}
