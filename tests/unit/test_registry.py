import pytest

from stat_sampler.core import SessionConfig, SessionRegistry, SessionState, sampling_session
from stat_sampler.exceptions import InvalidArgumentError, NotFoundError


def test_registry_holds_many_sessions(registry):
    """Tests that the registry grows past its initial capacity."""
    sessions = [registry.create(SessionConfig.manual(f"s{i}")) for i in range(40)]
    assert len(registry) == 40
    assert registry.capacity >= 40
    assert registry.sessions() == sessions
    assert registry.find("s17") is sessions[17]


def test_registry_default_names_and_lookup(registry):
    """Tests generated session names and missing lookups."""
    session = registry.create()
    assert session.name.startswith("session_")
    assert session.sample_interval_ms == 0
    with pytest.raises(NotFoundError):
        registry.find("nope")


def test_registry_close_frees_sessions(clock):
    """Tests that closing the registry frees every session and refuses new ones."""
    registry = SessionRegistry(clock=clock)
    a = registry.create()
    b = registry.create()
    a.start()
    registry.close()
    assert a.state is SessionState.FREED
    assert b.state is SessionState.FREED
    assert len(registry) == 0
    with pytest.raises(InvalidArgumentError):
        registry.create()


def test_registry_context_manager(clock):
    """Tests that the registry closes on exit."""
    with SessionRegistry(clock=clock) as registry:
        session = registry.create()
    assert session.state is SessionState.FREED


def test_sampling_session_frees_on_exit(registry):
    """Tests the sampling_session context manager."""
    with sampling_session(registry, SessionConfig.manual("ctx")) as session:
        assert session.is_active()
        assert len(registry) == 1
    assert session.state is SessionState.FREED
    assert len(registry) == 0


def test_session_config_validation():
    """Tests config presets and validation."""
    config = SessionConfig.periodic(100, duration_ms=1000, name="p")
    assert (config.sample_interval_ms, config.duration_ms) == (100, 1000)
    assert SessionConfig.manual().with_interval(50).with_duration(200).with_name("x") == SessionConfig(
        name="x", sample_interval_ms=50, duration_ms=200
    )
    with pytest.raises(InvalidArgumentError):
        SessionConfig(sample_interval_ms=-1)
    with pytest.raises(InvalidArgumentError):
        SessionConfig.periodic(0)
    with pytest.raises(InvalidArgumentError):
        SessionConfig(max_patterns=0)


def test_config_setters_keep_duration_past_interval():
    """Tests that chained setters cannot shrink the duration below one interval."""
    with pytest.raises(InvalidArgumentError):
        SessionConfig.periodic(1000).with_duration(10)
    config = SessionConfig.periodic(100, duration_ms=200)
    with pytest.raises(InvalidArgumentError):
        config.with_interval(500)
    assert (config.sample_interval_ms, config.duration_ms) == (100, 200)
    with pytest.raises(InvalidArgumentError):
        config.with_duration(-1)
    assert config.with_duration(0).with_interval(500).sample_interval_ms == 500


def test_session_keeps_own_config_copy(registry):
    """Tests that changing a config after create leaves the session untouched."""
    config = SessionConfig.periodic(100, duration_ms=1000)
    session = registry.create(config)
    config.with_interval(200).with_name("renamed")
    assert session.sample_interval_ms == 100
    assert session.config is not config
    assert session.name != "renamed"
    session.start()
    assert session.is_active()
