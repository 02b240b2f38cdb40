"""
In-memory sink keeping the most recent samples in a fixed-capacity ring.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..core.clock import Clock, MonotonicClock
from ..core.ops import SinkFlags
from ..core.session import Session
from ..exceptions import InvalidArgumentError
from ..memory.ring_buffer import RingBuffer
from .base import BaseSink

LOG = logging.getLogger(__name__)


@dataclass
class RingBufferSinkConfig:
    max_entries: int

    def __post_init__(self):
        if self.max_entries <= 0:
            raise InvalidArgumentError("max_entries must be positive")


@dataclass(frozen=True)
class RingBufferEntry:
    """One source's values from one sampling pass."""

    timestamp: int
    source_name: str
    source_id: int
    ids: np.ndarray
    values: np.ndarray

    @property
    def num_stats(self) -> int:
        return len(self.ids)

    def copy(self) -> "RingBufferEntry":
        return RingBufferEntry(
            self.timestamp,
            self.source_name,
            self.source_id,
            self.ids.copy(),
            self.values.copy(),
        )


class RingBufferSink(BaseSink):
    """Keeps the last ``max_entries`` outputs; the oldest entry is evicted first.

    Timestamps are cycles of the given clock (the session clock when the
    sink is created through :meth:`create`).
    """

    NAME = "ringbuffer"
    FLAGS = SinkFlags.NO_NAMES

    def __init__(self, max_entries: int, clock: Optional[Clock] = None):
        super().__init__()
        self.config = RingBufferSinkConfig(max_entries)
        self.clock: Clock = clock or MonotonicClock()
        self.buffer: RingBuffer[RingBufferEntry] = RingBuffer(max_entries)

    @classmethod
    def create(
        cls,
        session: Session,
        config: RingBufferSinkConfig,
        name: Optional[str] = None,
    ) -> "RingBufferSink":
        sink = cls(config.max_entries, clock=session.clock)
        sink.attach(session, name)
        return sink

    @property
    def capacity(self) -> int:
        return self.buffer.capacity

    @property
    def evicted(self) -> int:
        return self.buffer.evicted

    def write(self, source_name, source_id, names, ids, values) -> None:
        entry = RingBufferEntry(
            timestamp=self.clock.cycles(),
            source_name=source_name,
            source_id=int(source_id),
            ids=np.array(ids, dtype=np.uint64),
            values=np.array(values, dtype=np.uint64),
        )
        self.buffer.put(entry)

    def count(self) -> int:
        return len(self.buffer)

    def read(self, max_entries: Optional[int] = None) -> List[RingBufferEntry]:
        """Copies of up to ``max_entries`` entries, oldest first. Non-destructive."""
        return [entry.copy() for entry in self.buffer.peek(max_entries)]

    def drain(self, max_entries: int, timeout: float = 0.1) -> List[RingBufferEntry]:
        """Remove and return up to ``max_entries`` entries, waiting up to ``timeout``."""
        return self.buffer.get(max_entries, timeout=timeout)

    def clear(self) -> int:
        dropped = self.buffer.clear()
        LOG.debug("Ring buffer sink cleared %d entries", dropped)
        return dropped

    def close(self) -> None:
        self.clear()
