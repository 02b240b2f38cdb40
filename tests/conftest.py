from typing import Dict, List, Optional

import numpy as np
import pytest

from stat_sampler.core import SessionRegistry, SinkFlags, SinkOps, SourceOps


class FakeClock:
    """Manually advanced 1 kHz clock: one cycle per millisecond."""

    hz = 1000

    def __init__(self) -> None:
        self.now = 0

    def cycles(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeSource:
    """Source whose stats are ``<prefix><i>`` with id ``i`` and value ``i * 100``."""

    def __init__(self, names: List[str]) -> None:
        self.names = list(names)
        self.values: Dict[int, int] = {i: i * 100 for i in range(len(self.names))}
        self.size_queries = 0
        self.fill_queries = 0
        self.fetches = 0
        self.resets: List[Optional[List[int]]] = []
        self.started = 0
        self.stopped = 0

    @classmethod
    def numbered(cls, count: int, prefix: str = "test_stat_") -> "FakeSource":
        return cls([f"{prefix}{i}" for i in range(count)])


def _names_get(source_id, names, ids, src):
    if names is None:
        src.size_queries += 1
        return len(src.names)
    src.fill_queries += 1
    for i in range(min(len(names), len(src.names))):
        names[i] = src.names[i]
        ids[i] = i
    return len(src.names)


def _values_get(source_id, ids, values, src):
    src.fetches += 1
    for i, stat_id in enumerate(ids):
        values[i] = src.values[int(stat_id)]
    return len(ids)


def _reset(source_id, ids, src):
    src.resets.append(None if ids is None else [int(i) for i in ids])
    for stat_id in src.values if ids is None else (int(i) for i in ids):
        src.values[stat_id] = 0
    return 0


def _source_start(source_id, src):
    src.started += 1


def _source_stop(source_id, src):
    src.stopped += 1


FAKE_SOURCE_OPS = SourceOps(
    names_get=_names_get,
    values_get=_values_get,
    reset=_reset,
    start=_source_start,
    stop=_source_stop,
)


class RecordingSink:
    """Collects every output call as a dict."""

    def __init__(self) -> None:
        self.calls: List[dict] = []
        self.started = 0
        self.stopped = 0
        self.destroyed = 0

    def ops(self, flags: SinkFlags = SinkFlags.NONE) -> SinkOps:
        return SinkOps(
            output=_output, flags=flags, start=_sink_start, stop=_sink_stop, destroy=_sink_destroy
        )


def _output(source_name, source_id, names, ids, values, sink):
    sink.calls.append(
        {
            "source_name": source_name,
            "source_id": source_id,
            "names": None if names is None else list(names),
            "ids": np.array(ids),
            "values": np.array(values),
        }
    )
    return 0


def _sink_start(sink):
    sink.started += 1


def _sink_stop(sink):
    sink.stopped += 1


def _sink_destroy(sink):
    sink.destroyed += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    reg = SessionRegistry(clock=clock)
    yield reg
    reg.close()
