# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Wait-time schedules for scheduled polling.

A schedule is an async iterator of whole seconds; each value starts one tick
whose first receive waits that long. The retrieval loop pulls the next value
only after the previous tick has drained, so ticks never overlap.
"""

from collections.abc import AsyncIterable, AsyncIterator, Iterable

from ..core.time import Clock, SystemClock, TimeUnit

__all__ = ["interval_schedule", "scaled_schedule"]


async def scaled_schedule(
    times: Iterable[float] | AsyncIterable[float],
    unit: TimeUnit = TimeUnit.SECONDS,
) -> AsyncIterator[int]:
    """Convert each value of `times` from `unit` to whole seconds."""
    unit = TimeUnit(unit)
    if isinstance(times, AsyncIterable):
        async for value in times:
            yield _checked(unit.to_seconds(value))
    else:
        for value in times:
            yield _checked(unit.to_seconds(value))


async def interval_schedule(
    every: float,
    unit: TimeUnit = TimeUnit.SECONDS,
    *,
    clock: Clock | None = None,
) -> AsyncIterator[int]:
    """
    An immediate tick, then one tick per interval, forever. Every tick has a
    zero wait time.

    Ticks are anchored to the start time. When draining a tick overruns one or
    more deadlines, the missed ticks collapse into a single immediate tick and
    the schedule continues from the next future deadline.
    """
    period_ms = TimeUnit(unit).to_millis(every)
    if period_ms <= 0:
        raise ValueError("interval must be positive")
    clock = clock or SystemClock()
    yield 0
    next_at = clock.mono_ms() + period_ms
    while True:
        now = clock.mono_ms()
        if now < next_at:
            await clock.sleep_ms(next_at - now)
            next_at += period_ms
        else:
            missed = (now - next_at) // period_ms + 1
            next_at += missed * period_ms
        yield 0


def _checked(seconds: int) -> int:
    if seconds < 0:
        raise ValueError(f"wait time must be non-negative, got {seconds}s")
    return seconds
