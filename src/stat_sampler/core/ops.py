"""
Callback tables that adapt statistics producers (sources) and consumers
(sinks) to a session.

Every callback receives the ``user_data`` object given at registration.
A callback signals failure by raising or by returning a negative integer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from typing import Any, Callable, List, Optional

import numpy as np

from ..exceptions import InvalidArgumentError

# names_get(source_id, names, ids, user_data) -> total count
NamesGetFn = Callable[[int, Optional[List[str]], Optional[np.ndarray], Any], int]
# values_get(source_id, ids, values, user_data) -> count
ValuesGetFn = Callable[[int, np.ndarray, np.ndarray, Any], int]
# reset(source_id, ids or None, user_data) -> 0
ResetFn = Callable[[int, Optional[np.ndarray], Any], Optional[int]]
SourceHookFn = Callable[[int, Any], Optional[int]]

# output(source_name, source_id, names or None, ids, values, user_data)
OutputFn = Callable[[str, int, Optional[List[str]], np.ndarray, np.ndarray, Any], Optional[int]]
SinkHookFn = Callable[[Any], Optional[int]]


class SinkFlags(IntFlag):
    NONE = 0
    # Deliver ids and values only; names stay available through
    # Session.source_xstats_name().
    NO_NAMES = 1


@dataclass(frozen=True)
class SourceOps:
    """Capability table of a source. ``names_get`` and ``values_get`` are required."""

    names_get: Optional[NamesGetFn] = None
    values_get: Optional[ValuesGetFn] = None
    reset: Optional[ResetFn] = None
    start: Optional[SourceHookFn] = None
    stop: Optional[SourceHookFn] = None

    def validate(self) -> None:
        if self.names_get is None or self.values_get is None:
            raise InvalidArgumentError("Source ops require names_get and values_get")

    @property
    def has_reset(self) -> bool:
        return self.reset is not None


@dataclass(frozen=True)
class SinkOps:
    """Capability table of a sink. ``output`` is required."""

    output: Optional[OutputFn] = None
    flags: SinkFlags = SinkFlags.NONE
    start: Optional[SinkHookFn] = None
    stop: Optional[SinkHookFn] = None
    # Called once when the owning session is freed; the sink releases its resources.
    destroy: Optional[SinkHookFn] = None

    def validate(self) -> None:
        if self.output is None:
            raise InvalidArgumentError("Sink ops require an output callback")

    @property
    def wants_names(self) -> bool:
        return not self.flags & SinkFlags.NO_NAMES


def failed(result: Any) -> bool:
    """True when a callback returned a negative status."""
    return isinstance(result, (int, np.integer)) and not isinstance(result, bool) and result < 0


__all__ = ["SourceOps", "SinkOps", "SinkFlags", "failed"]
