import pytest

from stat_sampler.core import SessionConfig
from stat_sampler.sources import STATS, SystemStatsSource, read_snapshot


class FakeReader:
    def __init__(self):
        self.snap = {stat.name: 1000 for stat in STATS}

    def __call__(self):
        return dict(self.snap)


@pytest.fixture
def session(registry):
    return registry.create(SessionConfig.manual("system"))


def test_read_snapshot_covers_catalog():
    """Tests that psutil provides every advertised stat."""
    snap = read_snapshot()
    assert set(snap) == {stat.name for stat in STATS}
    assert snap["mem_total_bytes"] > 0
    assert all(value >= 0 for value in snap.values())


def test_system_source_catalog(session):
    """Tests the stable name/id catalog."""
    SystemStatsSource.register(session, reader=FakeReader())
    names = session.xstats_names_get("system")
    assert [n.name for n in names] == [stat.name for stat in STATS]
    assert [n.stat_id for n in names] == list(range(len(STATS)))
    assert names[0].source_id == 0


def test_system_source_filter_and_values(session):
    """Tests filtering network stats and reading their values."""
    reader = FakeReader()
    handle = SystemStatsSource.register(session, reader=reader)
    session.set_filter(handle, ["net_*_bytes"])
    session.start()
    session.sample()
    values = session.xstats_get("system")
    assert [v.name for v in values] == ["net_rx_bytes", "net_tx_bytes"]
    assert all(v.value == 1000 for v in values)


def test_system_source_reset_counters_only(session):
    """Tests that reset turns counters into deltas and leaves gauges alone."""
    reader = FakeReader()
    SystemStatsSource.register(session, reader=reader)
    assert session.xstats_reset("system") == 1

    reader.snap["net_rx_bytes"] = 1500
    reader.snap["mem_used_bytes"] = 2000
    values = {v.name: v.value for v in session.xstats_get("system")}
    assert values["net_rx_bytes"] == 500
    assert values["cpu_user_ms"] == 0
    assert values["mem_used_bytes"] == 2000


def test_system_source_real_host(session):
    """Tests a full pass against the live host."""
    SystemStatsSource.register(session)
    session.start()
    assert session.sample() == 1
