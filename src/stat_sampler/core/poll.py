"""
Poll-driven scheduler that samples every due periodic session of a registry.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..exceptions import SamplerError
from .registry import SessionRegistry

LOG = logging.getLogger(__name__)

MIN_TICK_MS = 1


class PollDispatcher:
    """Advance time for all sessions of a registry.

    ``poll()`` never sleeps; it is meant to be called from a caller-owned loop
    at a cadence finer than the smallest configured interval. ``run()`` is
    such a loop for callers that have nothing else to do.
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self.registry = registry

    def poll(self) -> int:
        sampled = 0
        for session in self.registry.sessions():
            if not session.is_due():
                continue
            try:
                session.sample()
            except SamplerError:
                LOG.warning("Polling session %s failed", session.name, exc_info=True)
                continue
            sampled += 1
        if sampled:
            LOG.debug("Poll sampled %d session(s)", sampled)
        return sampled

    def _has_periodic_work(self) -> bool:
        return any(
            session.sample_interval_ms > 0 and session.is_active()
            for session in self.registry.sessions()
        )

    def default_tick_ms(self) -> int:
        intervals = [
            session.sample_interval_ms
            for session in self.registry.sessions()
            if session.sample_interval_ms > 0
        ]
        if not intervals:
            return MIN_TICK_MS
        return max(MIN_TICK_MS, min(intervals) // 2)

    def run(self, stop_event: Optional[threading.Event] = None, tick_ms: Optional[int] = None) -> int:
        """Poll until ``stop_event`` is set or no active periodic session remains.

        Returns the total number of session samples taken.
        """
        stop_event = stop_event or threading.Event()
        tick = (tick_ms or self.default_tick_ms()) / 1000.0
        total = 0
        while not stop_event.is_set() and self._has_periodic_work():
            total += self.poll()
            stop_event.wait(tick)
        return total


__all__ = ["PollDispatcher"]
