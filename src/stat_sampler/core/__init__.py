from contextlib import contextmanager
from typing import Iterator, Optional

from .arena import Arena, Handle
from .clock import Clock, MonotonicClock
from .config import SessionConfig
from .filter import glob_match, match_any
from .ops import SinkFlags, SinkOps, SourceOps
from .poll import PollDispatcher
from .registry import SessionRegistry
from .session import Session, SessionState, XstatName, XstatValue


@contextmanager
def sampling_session(
    registry: SessionRegistry,
    config: Optional[SessionConfig] = None,
    autostart: bool = True,
) -> Iterator[Session]:
    """Create a session, optionally start it, and free it on exit.

    Args:
        registry: Registry that owns the session.
        config: Session configuration (manual-only session when None).
        autostart: Start the session before yielding when True.

    Yields:
        Session: The session; register sources and sinks on it.

    Example:
        >>> with sampling_session(registry, SessionConfig.manual("demo")) as session:
        ...     session.register_source("system", 0, ops)
        ...     session.sample()
    """
    session = registry.create(config)
    try:
        if autostart:
            session.start()
        yield session
    finally:
        session.free()


__all__ = [
    "Arena",
    "Handle",
    "Clock",
    "MonotonicClock",
    "SessionConfig",
    "glob_match",
    "match_any",
    "SinkFlags",
    "SinkOps",
    "SourceOps",
    "PollDispatcher",
    "SessionRegistry",
    "Session",
    "SessionState",
    "XstatName",
    "XstatValue",
    "sampling_session",
]
