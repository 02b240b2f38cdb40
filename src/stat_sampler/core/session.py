"""
Sampling sessions: ownership of sources and sinks, catalog caching,
filtering and the per-pass fan-out from every source to every sink.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..exceptions import (
    AlreadyActiveError,
    AlreadyStoppedError,
    InvalidArgumentError,
    NotFoundError,
    NotStartedError,
    NotSupportedError,
    SamplerError,
    SessionTimeoutError,
    TooManyPatternsError,
)
from .arena import Arena, Handle
from .clock import Clock, MonotonicClock, cycles_to_ms
from .config import SessionConfig, check_window
from .filter import filter_mask
from .ops import SinkOps, SourceOps, failed

if TYPE_CHECKING:
    from .registry import SessionRegistry

LOG = logging.getLogger(__name__)

# How many times the fill query is repeated when a source reports more stats
# than were allocated after the size query.
MAX_CATALOG_QUERIES = 3

SourceRef = Union[Handle, str]


class SessionState(Enum):
    CREATED = "created"
    ACTIVE = "active"
    STOPPED = "stopped"
    FREED = "freed"


@dataclass(frozen=True)
class XstatName:
    source_name: str
    source_id: int
    stat_id: int
    name: str


@dataclass(frozen=True)
class XstatValue:
    source_name: str
    source_id: int
    stat_id: int
    name: str
    value: int


def _readonly(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


class _Source:
    """Source record: adapter, cached catalog, filter and value buffer."""

    def __init__(self, name: str, source_id: int, ops: SourceOps, user_data: Any) -> None:
        self.name = name
        self.source_id = source_id
        self.ops = ops
        self.user_data = user_data
        self.patterns: Tuple[str, ...] = ()
        self.names: Optional[List[str]] = None
        self.ids: Optional[np.ndarray] = None
        self.filtered_names: List[str] = []
        self.filtered_ids = np.zeros(0, dtype=np.uint64)
        self.values = np.zeros(0, dtype=np.uint64)

    @property
    def has_catalog(self) -> bool:
        return self.ids is not None

    def set_catalog(self, names: List[str], ids: np.ndarray) -> None:
        self.names = names
        self.ids = ids
        self.apply_filter()

    def invalidate(self) -> None:
        self.names = None
        self.ids = None
        self.filtered_names = []
        self.filtered_ids = np.zeros(0, dtype=np.uint64)
        self.values = np.zeros(0, dtype=np.uint64)

    def apply_filter(self) -> None:
        if self.ids is None or self.names is None:
            return
        if self.patterns:
            mask = filter_mask(self.names, self.patterns)
            self.filtered_ids = self.ids[mask] if len(mask) else self.ids[:0].copy()
            self.filtered_names = [n for n, keep in zip(self.names, mask) if keep]
        else:
            self.filtered_ids = self.ids.copy()
            self.filtered_names = list(self.names)
        self.filtered_ids.flags.writeable = False
        self.values = np.zeros(len(self.filtered_ids), dtype=np.uint64)

    def name_of(self, stat_id: int) -> Optional[str]:
        if self.ids is None or self.names is None:
            return None
        hits = np.flatnonzero(self.ids == np.uint64(stat_id))
        if not len(hits):
            return None
        return self.names[int(hits[0])]

    def release(self) -> None:
        self.patterns = ()
        self.invalidate()


class _Sink:
    def __init__(self, name: str, ops: SinkOps, user_data: Any) -> None:
        self.name = name
        self.ops = ops
        self.user_data = user_data


class Session:
    """A scheduling and ownership unit binding sources to sinks.

    Sessions are created through :meth:`SessionRegistry.create`. The session
    layer does no locking: register, filter and sample calls must come from a
    single control thread.
    """

    def __init__(
        self,
        config: SessionConfig,
        session_id: int,
        clock: Optional[Clock] = None,
        registry: Optional["SessionRegistry"] = None,
    ) -> None:
        self.config = replace(config)
        self.session_id = session_id
        self.name = config.name or f"session_{session_id}"
        self.clock: Clock = clock or MonotonicClock()
        self._registry = registry
        self._state = SessionState.CREATED
        self._expired = False
        self._duration_ms = config.duration_ms
        self.start_time = 0
        self.last_sample_time = 0
        self.sample_count = 0
        self._sources: Arena[_Source] = Arena(session_id, kind="source")
        self._sinks: Arena[_Sink] = Arena(session_id, kind="sink")

    def __repr__(self) -> str:
        return f"Session(name={self.name!r}, state={self._state.value})"

    # -- lifecycle ---------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def sample_interval_ms(self) -> int:
        return self.config.sample_interval_ms

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    def _check_live(self) -> None:
        if self._state is SessionState.FREED:
            raise InvalidArgumentError(f"Session {self.name} has been freed")

    def elapsed_ms(self, since: Optional[int] = None) -> int:
        start = self.start_time if since is None else since
        return cycles_to_ms(self.clock.cycles() - start, self.clock.hz)

    def _duration_elapsed(self) -> bool:
        return self._duration_ms > 0 and self.elapsed_ms() >= self._duration_ms

    def start(self, duration_ms: Optional[int] = None) -> None:
        self._check_live()
        if self._state is SessionState.ACTIVE:
            raise AlreadyActiveError(f"Session {self.name} is already active")
        if duration_ms is not None:
            check_window(self.config.sample_interval_ms, duration_ms)
            self._duration_ms = duration_ms

        for _, source in self._sources.items():
            source.invalidate()
        self.start_time = self.clock.cycles()
        self.last_sample_time = self.start_time
        self._expired = False
        self._state = SessionState.ACTIVE
        self._run_start_hooks()
        LOG.info(
            "Session %s started (interval=%dms, duration=%dms)",
            self.name,
            self.config.sample_interval_ms,
            self._duration_ms,
        )

    def stop(self) -> None:
        self._check_live()
        if self._state is not SessionState.ACTIVE:
            raise AlreadyStoppedError(f"Session {self.name} is not active")
        self._deactivate()
        LOG.info("Session %s stopped", self.name)

    def _deactivate(self) -> None:
        self._state = SessionState.STOPPED
        self._run_stop_hooks()

    def _expire(self) -> None:
        self._expired = True
        self._deactivate()
        LOG.info("Session %s expired after %dms", self.name, self._duration_ms)

    def is_active(self) -> bool:
        if self._state is not SessionState.ACTIVE:
            return False
        if self._duration_elapsed():
            self._expire()
            return False
        return True

    def is_due(self) -> bool:
        """True when a periodic session should be sampled by the poll dispatcher."""
        interval = self.config.sample_interval_ms
        if interval == 0 or not self.is_active():
            return False
        return self.elapsed_ms(self.last_sample_time) >= interval

    def free(self) -> None:
        self._check_live()
        if self._state is SessionState.ACTIVE:
            self._deactivate()
        for handle in self._sinks.handles():
            sink = self._sinks.get(handle)
            self.unregister_sink(handle)
            if sink.ops.destroy is not None:
                self._call_hook("sink", sink.name, sink.ops.destroy, sink.user_data)
        for handle in self._sources.handles():
            self.unregister_source(handle)
        if self._registry is not None:
            self._registry.remove(self)
            self._registry = None
        self._state = SessionState.FREED
        LOG.debug("Session %s freed", self.name)

    def _run_start_hooks(self) -> None:
        for _, source in self._sources.items():
            if source.ops.start is not None:
                self._call_hook("source", source.name, source.ops.start, source.source_id, source.user_data)
        for _, sink in self._sinks.items():
            if sink.ops.start is not None:
                self._call_hook("sink", sink.name, sink.ops.start, sink.user_data)

    def _run_stop_hooks(self) -> None:
        for _, source in self._sources.items():
            if source.ops.stop is not None:
                self._call_hook("source", source.name, source.ops.stop, source.source_id, source.user_data)
        for _, sink in self._sinks.items():
            if sink.ops.stop is not None:
                self._call_hook("sink", sink.name, sink.ops.stop, sink.user_data)

    @staticmethod
    def _call_hook(kind: str, name: str, hook, *args) -> None:
        try:
            ret = hook(*args)
        except Exception:
            LOG.warning("Lifecycle hook of %s %s failed", kind, name, exc_info=True)
            return
        if failed(ret):
            LOG.warning("Lifecycle hook of %s %s returned %d", kind, name, ret)

    # -- registration ------------------------------------------------------

    def register_source(
        self, name: str, source_id: int, ops: SourceOps, user_data: Any = None
    ) -> Handle:
        self._check_live()
        if not name:
            raise InvalidArgumentError("Source name must not be empty")
        if ops is None:
            raise InvalidArgumentError("Source ops are required")
        ops.validate()
        source = _Source(name, int(source_id), ops, user_data)
        handle = self._sources.insert(source)
        if self._state is SessionState.ACTIVE and ops.start is not None:
            self._call_hook("source", name, ops.start, source.source_id, user_data)
        LOG.debug("Registered source %s (id=%d) in session %s", name, source_id, self.name)
        return handle

    def unregister_source(self, handle: Handle) -> None:
        self._check_live()
        source = self._sources.release(handle)
        if self._state is SessionState.ACTIVE and source.ops.stop is not None:
            self._call_hook("source", source.name, source.ops.stop, source.source_id, source.user_data)
        source.release()
        LOG.debug("Unregistered source %s from session %s", source.name, self.name)

    def register_sink(self, name: str, ops: SinkOps, user_data: Any = None) -> Handle:
        self._check_live()
        if not name:
            raise InvalidArgumentError("Sink name must not be empty")
        if ops is None:
            raise InvalidArgumentError("Sink ops are required")
        ops.validate()
        handle = self._sinks.insert(_Sink(name, ops, user_data))
        if self._state is SessionState.ACTIVE and ops.start is not None:
            self._call_hook("sink", name, ops.start, user_data)
        LOG.debug("Registered sink %s in session %s", name, self.name)
        return handle

    def unregister_sink(self, handle: Handle) -> None:
        self._check_live()
        sink = self._sinks.release(handle)
        if self._state is SessionState.ACTIVE and sink.ops.stop is not None:
            self._call_hook("sink", sink.name, sink.ops.stop, sink.user_data)
        LOG.debug("Unregistered sink %s from session %s", sink.name, self.name)

    def sources(self) -> List[Handle]:
        return self._sources.handles()

    def sinks(self) -> List[Handle]:
        return self._sinks.handles()

    def source_name(self, handle: Handle) -> str:
        return self._sources.get(handle).name

    def sink_name(self, handle: Handle) -> str:
        return self._sinks.get(handle).name

    def find_source(self, name: str, source_id: Optional[int] = None) -> Handle:
        for handle, source in self._sources.items():
            if source.name == name and (source_id is None or source.source_id == source_id):
                return handle
        raise NotFoundError(f"No source named {name!r} in session {self.name}")

    def _resolve(self, ref: SourceRef) -> _Source:
        self._check_live()
        if isinstance(ref, str):
            ref = self.find_source(ref)
        return self._sources.get(ref)

    # -- filtering ---------------------------------------------------------

    def set_filter(self, handle: Handle, patterns: Sequence[str]) -> None:
        source = self._resolve(handle)
        if isinstance(patterns, str):
            raise InvalidArgumentError("patterns must be a sequence of strings")
        copied = tuple(str(p) for p in patterns)
        if not copied:
            raise InvalidArgumentError("A filter needs at least one pattern")
        if len(copied) > self.config.max_patterns:
            raise TooManyPatternsError(
                f"{len(copied)} patterns exceed the limit of {self.config.max_patterns}"
            )
        source.patterns = copied
        source.apply_filter()

    def clear_filter(self, handle: Handle) -> None:
        source = self._resolve(handle)
        source.patterns = ()
        source.apply_filter()

    def get_filter(self, handle: Handle) -> Tuple[str, ...]:
        return self._resolve(handle).patterns

    def filtered_ids(self, handle: Handle) -> np.ndarray:
        return self._resolve(handle).filtered_ids

    def invalidate_catalog(self, handle: Handle) -> None:
        self._resolve(handle).invalidate()

    def source_xstats_name(self, handle: Handle, stat_id: int) -> str:
        """Look up a stat name by id, for sinks registered without names."""
        source = self._resolve(handle)
        name = source.name_of(stat_id)
        if name is None:
            raise NotFoundError(f"Stat id {stat_id} not in catalog of source {source.name}")
        return name

    # -- catalog protocol --------------------------------------------------

    def _build_catalog(self, source: _Source) -> None:
        """Size query, exact allocation, fill query. Raises on failure."""
        names_get = source.ops.names_get
        assert names_get is not None
        count = names_get(source.source_id, None, None, source.user_data)
        if count is None or failed(count):
            raise SamplerError(f"size query returned {count}")
        count = int(count)

        total = count
        for _ in range(MAX_CATALOG_QUERIES):
            names = [""] * count
            ids = np.zeros(count, dtype=np.uint64)
            total = names_get(source.source_id, names, ids, source.user_data)
            if total is None or failed(total):
                raise SamplerError(f"fill query returned {total}")
            total = int(total)
            if total <= count:
                source.set_catalog(names[:total], ids[:total].copy())
                LOG.debug("Source %s catalog holds %d stats", source.name, total)
                return
            LOG.debug(
                "Source %s reported %d stats for a capacity of %d, re-querying",
                source.name,
                total,
                count,
            )
            count = total

        LOG.warning(
            "Source %s catalog truncated to %d of %d stats", source.name, len(names), total
        )
        source.set_catalog(names, ids)

    def _ensure_catalog(self, source: _Source) -> bool:
        if source.has_catalog:
            return True
        try:
            self._build_catalog(source)
        except Exception:
            LOG.warning("Source %s: failed to enumerate stats", source.name, exc_info=True)
            return False
        return True

    def _fetch(self, source: _Source, ids: np.ndarray, values: np.ndarray) -> int:
        values_get = source.ops.values_get
        assert values_get is not None
        ret = values_get(source.source_id, ids, values, source.user_data)
        if failed(ret):
            raise SamplerError(f"value fetch returned {ret}")
        if ret is None:
            return len(ids)
        return min(int(ret), len(ids))

    # -- sampling ----------------------------------------------------------

    def sample(self) -> int:
        """Run one sampling pass; return how many sources were delivered."""
        self._check_live()
        if self._state is not SessionState.ACTIVE:
            raise NotStartedError(f"Session {self.name} is not active")
        if self._duration_elapsed():
            self._expire()
            raise SessionTimeoutError(f"Session {self.name} duration exceeded")

        delivered = 0
        for _, source in self._sources.items():
            if not self._ensure_catalog(source):
                continue
            n = len(source.filtered_ids)
            if n == 0:
                LOG.debug("Source %s has no stats selected, skipping", source.name)
                continue
            try:
                got = self._fetch(source, source.filtered_ids, source.values)
            except Exception:
                LOG.warning("Source %s: failed to fetch values", source.name, exc_info=True)
                continue
            if got < n:
                LOG.debug("Source %s returned %d of %d values", source.name, got, n)
            ids = source.filtered_ids[:got]
            values = _readonly(source.values[:got])
            names = source.filtered_names[:got]
            self._deliver(source, names, ids, values)
            delivered += 1

        self.last_sample_time = self.clock.cycles()
        self.sample_count += 1
        return delivered

    def _deliver(
        self, source: _Source, names: List[str], ids: np.ndarray, values: np.ndarray
    ) -> None:
        for _, sink in self._sinks.items():
            output = sink.ops.output
            assert output is not None
            try:
                ret = output(
                    source.name,
                    source.source_id,
                    names if sink.ops.wants_names else None,
                    ids,
                    values,
                    sink.user_data,
                )
            except Exception:
                LOG.warning(
                    "Sink %s failed on source %s", sink.name, source.name, exc_info=True
                )
                continue
            if failed(ret):
                LOG.warning("Sink %s returned %d on source %s", sink.name, ret, source.name)

    # -- introspection -----------------------------------------------------

    def _selected(self, ref: Optional[SourceRef]) -> List[_Source]:
        if ref is None:
            self._check_live()
            return [source for _, source in self._sources.items()]
        return [self._resolve(ref)]

    def xstats_names_get(self, source: Optional[SourceRef] = None) -> List[XstatName]:
        """Full catalog of one source, or of every source when ``source`` is None."""
        out: List[XstatName] = []
        for src in self._selected(source):
            if not src.has_catalog:
                try:
                    self._build_catalog(src)
                except Exception as exc:
                    if source is not None:
                        raise SamplerError(f"Source {src.name}: failed to enumerate stats") from exc
                    LOG.warning("Source %s: failed to enumerate stats", src.name, exc_info=True)
                    continue
            assert src.names is not None and src.ids is not None
            out.extend(
                XstatName(src.name, src.source_id, int(stat_id), name)
                for name, stat_id in zip(src.names, src.ids)
            )
        return out

    def xstats_get(
        self, source: Optional[SourceRef] = None, ids: Optional[Sequence[int]] = None
    ) -> List[XstatValue]:
        """Current values; ``ids`` defaults to the filtered set and needs a named source."""
        if ids is not None and source is None:
            raise InvalidArgumentError("Explicit stat ids require a source")
        out: List[XstatValue] = []
        for src in self._selected(source):
            try:
                if not src.has_catalog:
                    self._build_catalog(src)
                if ids is None:
                    wanted = src.filtered_ids
                    names = src.filtered_names
                else:
                    wanted = np.asarray(ids, dtype=np.uint64)
                    names = []
                    for stat_id in wanted:
                        name = src.name_of(int(stat_id))
                        if name is None:
                            raise NotFoundError(f"Stat id {stat_id} not in catalog of {src.name}")
                        names.append(name)
                values = np.zeros(len(wanted), dtype=np.uint64)
                got = self._fetch(src, wanted, values) if len(wanted) else 0
            except NotFoundError:
                raise
            except Exception as exc:
                if source is not None:
                    raise SamplerError(f"Source {src.name}: failed to fetch values") from exc
                LOG.warning("Source %s: failed to fetch values", src.name, exc_info=True)
                continue
            out.extend(
                XstatValue(src.name, src.source_id, int(wanted[i]), names[i], int(values[i]))
                for i in range(got)
            )
        return out

    def xstats_reset(
        self, source: Optional[SourceRef] = None, ids: Optional[Sequence[int]] = None
    ) -> int:
        """Reset counters through the optional hook; return how many sources were reset."""
        if ids is not None and source is None:
            raise InvalidArgumentError("Explicit stat ids require a source")
        wanted = None if ids is None else np.asarray(ids, dtype=np.uint64)
        count = 0
        for src in self._selected(source):
            if not src.ops.has_reset:
                if source is not None:
                    raise NotSupportedError(f"Source {src.name} does not support reset")
                LOG.debug("Source %s does not support reset, skipping", src.name)
                continue
            try:
                ret = src.ops.reset(src.source_id, wanted, src.user_data)
                if failed(ret):
                    raise SamplerError(f"reset returned {ret}")
            except Exception as exc:
                if source is not None:
                    raise SamplerError(f"Source {src.name}: reset failed") from exc
                LOG.warning("Source %s: reset failed", src.name, exc_info=True)
                continue
            count += 1
        return count


__all__ = ["Session", "SessionState", "XstatName", "XstatValue"]
