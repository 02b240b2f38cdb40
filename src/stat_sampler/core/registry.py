"""
Caller-owned registry of sampling sessions.

The registry replaces process-wide session state: every session created
through it is visible to the poll dispatcher bound to the same registry.
"""

from __future__ import annotations

import itertools
import logging
from typing import Iterator, List, Optional

from ..exceptions import InvalidArgumentError, NotFoundError
from .arena import Arena, Handle
from .clock import Clock, MonotonicClock
from .config import SessionConfig
from .session import Session

LOG = logging.getLogger(__name__)

_REGISTRY_IDS = itertools.count(1)


class SessionRegistry:
    """Growable set of sessions sharing one clock."""

    def __init__(self, clock: Optional[Clock] = None, initial_capacity: int = 8) -> None:
        self.clock: Clock = clock or MonotonicClock()
        self.registry_id = next(_REGISTRY_IDS)
        self._sessions: Arena[Session] = Arena(
            self.registry_id, initial_capacity=initial_capacity, kind="session"
        )
        self._handles: dict[int, Handle] = {}
        self._session_ids = itertools.count(1)
        self._closed = False

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return (session for _, session in self._sessions.items())

    def __enter__(self) -> "SessionRegistry":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def capacity(self) -> int:
        return self._sessions.capacity

    def create(self, config: Optional[SessionConfig] = None) -> Session:
        if self._closed:
            raise InvalidArgumentError("Session registry has been closed")
        config = config or SessionConfig()
        session = Session(config, next(self._session_ids), clock=self.clock, registry=self)
        self._handles[id(session)] = self._sessions.insert(session)
        LOG.debug("Created session %s", session.name)
        return session

    def remove(self, session: Session) -> None:
        """Drop a session from the registry. Called by :meth:`Session.free`."""
        handle = self._handles.pop(id(session), None)
        if handle is None:
            raise InvalidArgumentError(f"Session {session.name} is not in this registry")
        self._sessions.release(handle)

    def find(self, name: str) -> Session:
        for session in self:
            if session.name == name:
                return session
        raise NotFoundError(f"No session named {name!r}")

    def sessions(self) -> List[Session]:
        return list(self)

    def close(self) -> None:
        """Free every remaining session."""
        for session in self.sessions():
            session.free()
        self._closed = True


__all__ = ["SessionRegistry"]
