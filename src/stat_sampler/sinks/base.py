"""
Base class for the reference sinks.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, List, Optional

import numpy as np

from ..core.arena import Handle
from ..core.ops import SinkFlags, SinkOps
from ..core.session import Session, SessionState

LOG = logging.getLogger(__name__)


def _output(source_name, source_id, names, ids, values, user_data) -> None:
    user_data.write(source_name, source_id, names, ids, values)


def _start(user_data) -> None:
    user_data.on_start()


def _stop(user_data) -> None:
    user_data.on_stop()


def _destroy(user_data) -> None:
    user_data.on_session_free()


class BaseSink(abc.ABC):
    """Contract for sinks that register themselves on a session.

    The sink object is the ``user_data`` of its ops table, so one instance
    serves exactly one registration.
    """

    NAME: str = ""
    FLAGS: SinkFlags = SinkFlags.NONE

    def __init__(self) -> None:
        self.session: Optional[Session] = None
        self.handle: Optional[Handle] = None

    @property
    def attached(self) -> bool:
        return self.session is not None

    def ops(self) -> SinkOps:
        return SinkOps(
            output=_output, flags=self.FLAGS, start=_start, stop=_stop, destroy=_destroy
        )

    def attach(self, session: Session, name: Optional[str] = None) -> Handle:
        if self.attached:
            raise RuntimeError(f"Sink {self.NAME} is already attached to a session")
        self.handle = session.register_sink(name or self.NAME, self.ops(), self)
        self.session = session
        LOG.debug("Sink %s attached to session %s", self.NAME, session.name)
        return self.handle

    def detach(self) -> None:
        if self.session is None or self.handle is None:
            return
        session, handle = self.session, self.handle
        self.session = None
        self.handle = None
        if session.state is not SessionState.FREED and handle in session.sinks():
            session.unregister_sink(handle)
        LOG.debug("Sink %s detached", self.NAME)

    def destroy(self) -> None:
        """Unregister from the session and release resources."""
        self.detach()
        self.close()

    def on_session_free(self) -> None:
        """The owning session was freed and has already dropped this sink."""
        self.session = None
        self.handle = None
        self.close()

    def lookup_name(self, source_name: str, stat_id: int, source_id: Optional[int] = None) -> str:
        """Resolve a stat name on demand when registered without names."""
        if self.session is None:
            raise RuntimeError(f"Sink {self.NAME} is not attached")
        handle = self.session.find_source(source_name, source_id)
        return self.session.source_xstats_name(handle, stat_id)

    @abc.abstractmethod
    def write(
        self,
        source_name: str,
        source_id: int,
        names: Optional[List[str]],
        ids: np.ndarray,
        values: np.ndarray,
    ) -> Any:
        """Consume one source's values for one sampling pass."""

    def on_start(self) -> None:
        """Called when the owning session becomes active."""

    def on_stop(self) -> None:
        """Called when the owning session stops or expires."""

    def close(self) -> None:
        """Release files or buffers held by the sink."""
