import io
import json
import re

import numpy as np
import pytest

from conftest import FAKE_SOURCE_OPS, FakeSource
from stat_sampler.core import SessionConfig, sampling_session
from stat_sampler.exceptions import InvalidArgumentError
from stat_sampler.sinks import (
    ConsoleSink,
    FileSink,
    FileSinkConfig,
    RingBufferSink,
    RingBufferSinkConfig,
    TraceSink,
    TraceSinkConfig,
)


@pytest.fixture
def session(registry):
    return registry.create(SessionConfig.manual("sinks"))


def _source(session, count=3, name="fake", source_id=0):
    src = FakeSource.numbered(count)
    session.register_source(name, source_id, FAKE_SOURCE_OPS, src)
    return src


def test_ring_buffer_sink_keeps_last_entries(session, clock):
    """Tests that a capacity 3 sink keeps samples 3, 4 and 5 of five."""
    src = _source(session, count=1)
    sink = RingBufferSink.create(session, RingBufferSinkConfig(max_entries=3))
    session.start()
    for i in range(1, 6):
        src.values[0] = i
        clock.advance(1)
        session.sample()

    assert sink.count() == 3
    assert sink.evicted == 2
    entries = sink.read()
    assert [int(e.values[0]) for e in entries] == [3, 4, 5]
    assert [e.timestamp for e in entries] == [3, 4, 5]
    assert entries[0].source_name == "fake"
    assert entries[0].num_stats == 1
    assert [int(e.values[0]) for e in sink.read(2)] == [3, 4]


def test_ring_buffer_sink_copies_data(session):
    """Tests that entries own their arrays and readers get copies."""
    _source(session, count=2)
    sink = RingBufferSink.create(session, RingBufferSinkConfig(max_entries=4))
    session.start()
    session.sample()

    first = sink.read()[0]
    first.values[0] = 999
    assert int(sink.read()[0].values[0]) == 0
    assert sink.read()[0].values.flags.writeable
    assert sink.lookup_name("fake", 1) == "test_stat_1"


def test_ring_buffer_sink_clear_and_destroy(session):
    """Tests clear, drain and destroy."""
    _source(session)
    sink = RingBufferSink.create(session, RingBufferSinkConfig(max_entries=2))
    session.start()
    session.sample()
    session.sample()
    assert sink.clear() == 2
    assert sink.count() == 0
    assert sink.read() == []

    session.sample()
    assert len(sink.drain(5)) == 1
    sink.destroy()
    assert session.sinks() == []
    assert not sink.attached


def test_ring_buffer_sink_rejects_zero_capacity():
    """Tests capacity validation."""
    with pytest.raises(InvalidArgumentError, match="max_entries must be positive"):
        RingBufferSink(0)
    with pytest.raises(InvalidArgumentError, match="max_entries must be positive"):
        RingBufferSinkConfig(max_entries=0)
    assert RingBufferSink(5).config == RingBufferSinkConfig(max_entries=5)


def test_file_sink_csv(session, tmp_path):
    """Tests the CSV header and rows."""
    path = tmp_path / "out" / "stats.csv"
    _source(session, count=3)
    sink = FileSink.create(session, FileSinkConfig(path))
    session.start()
    session.sample()
    session.sample()
    sink.destroy()

    lines = path.read_text().splitlines()
    assert lines[0] == "timestamp,source_name,source_id,test_stat_0,test_stat_1,test_stat_2"
    assert len(lines) == 3
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2},fake,0,0,100,200", lines[1])
    assert sink.closed


def test_file_sink_append(session, tmp_path):
    """Tests that append mode keeps earlier content and truncate mode drops it."""
    path = tmp_path / "stats.csv"
    path.write_text("previous\n")
    _source(session)
    sink = FileSink.create(session, FileSinkConfig(path, append=True))
    session.start()
    session.sample()
    sink.destroy()
    assert path.read_text().startswith("previous\n")

    sink = FileSink.create(session, FileSinkConfig(path))
    sink.destroy()
    assert path.read_text() == ""


def test_file_sink_json(session, tmp_path):
    """Tests one pretty-printed object per sample."""
    path = tmp_path / "stats.json"
    _source(session, count=2)
    sink = FileSink.create(session, FileSinkConfig(path, format="json"))
    session.start()
    session.sample()
    session.sample()
    sink.close()

    decoder = json.JSONDecoder()
    text = path.read_text()
    objects = []
    pos = 0
    while pos < len(text.strip()):
        obj, pos = decoder.raw_decode(text, pos)
        objects.append(obj)
        while pos < len(text) and text[pos].isspace():
            pos += 1
    assert len(objects) == 2
    assert objects[1]["sample_count"] == 1
    assert objects[0]["source_name"] == "fake"
    assert objects[0]["stats"] == [
        {"id": 0, "name": "test_stat_0", "value": 0},
        {"id": 1, "name": "test_stat_1", "value": 100},
    ]
    assert isinstance(objects[0]["timestamp"], int)


def test_file_sink_text(session, tmp_path):
    """Tests the human readable block layout."""
    path = tmp_path / "stats.txt"
    _source(session, count=2)
    sink = FileSink.create(session, FileSinkConfig(path, format="text"))
    session.start()
    session.sample()
    sink.close()

    lines = path.read_text().splitlines()
    assert re.fullmatch(r"=== Sample #0 at \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} ===", lines[0])
    assert lines[1] == "Source: fake (ID=0)"
    assert lines[2] == "Statistics:"
    assert lines[3] == f"  [0] {'test_stat_0':<50} : 0"
    assert lines[4] == f"  [1] {'test_stat_1':<50} : 100"
    assert lines[5] == ""


def test_file_sink_without_names(tmp_path):
    """Tests that nameless output falls back to index/id lines and skips the CSV header."""
    ids = np.array([7, 9], dtype=np.uint64)
    values = np.array([1, 2], dtype=np.uint64)

    text = FileSink(FileSinkConfig(tmp_path / "s.txt", format="text"))
    text.write("dev", 3, None, ids, values)
    text.close()
    lines = (tmp_path / "s.txt").read_text().splitlines()
    assert lines[3:5] == ["  [0] ID=7 : 1", "  [1] ID=9 : 2"]

    csv_sink = FileSink(FileSinkConfig(tmp_path / "s.csv"))
    csv_sink.write("dev", 3, None, ids, values)
    csv_sink.close()
    rows = (tmp_path / "s.csv").read_text().splitlines()
    assert len(rows) == 1
    assert rows[0].endswith(",dev,3,1,2")
    with pytest.raises(ValueError):
        csv_sink.write("dev", 3, None, ids, values)


def test_file_sink_config_validation(tmp_path):
    """Tests format validation."""
    with pytest.raises(InvalidArgumentError):
        FileSinkConfig(tmp_path / "x", format="xml")
    assert FileSinkConfig(tmp_path / "x", format="JSON").format == "json"


def test_console_sink_truncates(session):
    """Tests the console block and the trailer for hidden stats."""
    _source(session, count=12)
    out = io.StringIO()
    ConsoleSink.create(session, stream=out, max_stats=10)
    session.start()
    session.sample()

    lines = out.getvalue().splitlines()
    assert lines[1] == "=== fake (ID=0) - 12 stats ==="
    assert lines[2] == f"  [0] {'test_stat_0':<50} : 0"
    assert len(lines) == 13
    assert lines[-1] == "  ... and 2 more stats"


def test_freeing_session_closes_sinks(registry, tmp_path):
    """Tests that leaving sampling_session closes and detaches file and trace sinks."""
    with sampling_session(registry, SessionConfig.manual("owned")) as session:
        _source(session)
        file_sink = FileSink.create(session, FileSinkConfig(tmp_path / "stats.csv"))
        trace_sink = TraceSink.create(session, TraceSinkConfig(tmp_path / "trace"))
        session.sample()
        assert file_sink.attached

    assert file_sink.closed
    assert not file_sink.attached
    assert not trace_sink.attached
    assert trace_sink.closed
    assert len((tmp_path / "stats.csv").read_text().splitlines()) == 2
    # Destroying after the session is gone is a no-op.
    file_sink.destroy()
    trace_sink.destroy()


def test_registry_close_clears_ring_buffer_sink(registry):
    """Tests that closing the registry releases ring buffer entries."""
    session = registry.create(SessionConfig.manual())
    _source(session)
    sink = RingBufferSink.create(session, RingBufferSinkConfig(max_entries=2))
    session.start()
    session.sample()
    registry.close()
    assert sink.count() == 0
    assert not sink.attached
