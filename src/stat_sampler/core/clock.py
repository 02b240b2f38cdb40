"""
Monotonic cycle clocks used for interval and duration arithmetic.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    hz: int

    def cycles(self) -> int: ...


class MonotonicClock:
    """Nanosecond monotonic counter exposed as a 1 GHz cycle clock."""

    hz = 1_000_000_000

    def cycles(self) -> int:
        return time.monotonic_ns()


def cycles_to_ms(cycles: int, hz: int) -> int:
    return cycles * 1000 // hz


def ms_to_cycles(ms: int, hz: int) -> int:
    return ms * hz // 1000


__all__ = ["Clock", "MonotonicClock", "cycles_to_ms", "ms_to_cycles"]
