"""
Host statistics source backed by psutil.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, NamedTuple, Optional

import numpy as np
import psutil

from ..core.arena import Handle
from ..core.ops import SourceOps
from ..core.session import Session
from ..exceptions import InvalidArgumentError

LOG = logging.getLogger(__name__)

Snapshot = Dict[str, int]


class StatDef(NamedTuple):
    name: str
    # Counters are monotonic and honour reset; gauges are reported as-is.
    counter: bool


STATS: List[StatDef] = [
    StatDef("cpu_user_ms", True),
    StatDef("cpu_system_ms", True),
    StatDef("cpu_idle_ms", True),
    StatDef("mem_total_bytes", False),
    StatDef("mem_available_bytes", False),
    StatDef("mem_used_bytes", False),
    StatDef("mem_free_bytes", False),
    StatDef("swap_used_bytes", False),
    StatDef("swap_free_bytes", False),
    StatDef("disk_read_bytes", True),
    StatDef("disk_write_bytes", True),
    StatDef("disk_read_count", True),
    StatDef("disk_write_count", True),
    StatDef("net_rx_bytes", True),
    StatDef("net_tx_bytes", True),
    StatDef("net_rx_packets", True),
    StatDef("net_tx_packets", True),
    StatDef("net_rx_errors", True),
    StatDef("net_tx_errors", True),
    StatDef("net_rx_dropped", True),
    StatDef("net_tx_dropped", True),
]


def _ms(seconds: float) -> int:
    return int(seconds * 1000)


def read_snapshot() -> Snapshot:
    """Read every host statistic once."""
    cpu = psutil.cpu_times()
    mem = psutil.virtual_memory()
    swap = psutil.swap_memory()
    disk = psutil.disk_io_counters()
    net = psutil.net_io_counters()

    snap: Snapshot = {
        "cpu_user_ms": _ms(cpu.user),
        "cpu_system_ms": _ms(cpu.system),
        "cpu_idle_ms": _ms(cpu.idle),
        "mem_total_bytes": mem.total,
        "mem_available_bytes": mem.available,
        "mem_used_bytes": mem.used,
        "mem_free_bytes": mem.free,
        "swap_used_bytes": swap.used,
        "swap_free_bytes": swap.free,
    }
    # Containers and some VMs expose no disk or network counters.
    snap.update(
        disk_read_bytes=disk.read_bytes if disk else 0,
        disk_write_bytes=disk.write_bytes if disk else 0,
        disk_read_count=disk.read_count if disk else 0,
        disk_write_count=disk.write_count if disk else 0,
    )
    snap.update(
        net_rx_bytes=net.bytes_recv if net else 0,
        net_tx_bytes=net.bytes_sent if net else 0,
        net_rx_packets=net.packets_recv if net else 0,
        net_tx_packets=net.packets_sent if net else 0,
        net_rx_errors=net.errin if net else 0,
        net_tx_errors=net.errout if net else 0,
        net_rx_dropped=net.dropin if net else 0,
        net_tx_dropped=net.dropout if net else 0,
    )
    return snap


def _names_get(source_id, names, ids, user_data):
    return user_data.names_get(names, ids)


def _values_get(source_id, ids, values, user_data):
    return user_data.values_get(ids, values)


def _reset(source_id, ids, user_data):
    user_data.reset(ids)
    return 0


def _start(source_id, user_data):
    user_data.prime()


class SystemStatsSource:
    """CPU, memory, swap, disk and network counters of the host.

    Stat ids are positions in :data:`STATS` and stay stable for the life of
    the process. After :meth:`reset`, counters report deltas against the
    values read at reset time.
    """

    def __init__(self, reader: Optional[Callable[[], Snapshot]] = None):
        self.reader = reader or read_snapshot
        self.baseline = np.zeros(len(STATS), dtype=np.uint64)
        self.last_snapshot: Optional[Snapshot] = None

    @classmethod
    def ops(cls) -> SourceOps:
        return SourceOps(
            names_get=_names_get, values_get=_values_get, reset=_reset, start=_start
        )

    @classmethod
    def register(
        cls,
        session: Session,
        name: str = "system",
        source_id: int = 0,
        reader: Optional[Callable[[], Snapshot]] = None,
    ) -> Handle:
        source = cls(reader)
        return session.register_source(name, source_id, cls.ops(), source)

    def names_get(self, names: Optional[List[str]], ids: Optional[np.ndarray]) -> int:
        if names is not None and ids is not None:
            for i in range(min(len(names), len(STATS))):
                names[i] = STATS[i].name
                ids[i] = i
        return len(STATS)

    def _raw(self) -> np.ndarray:
        snap = self.reader()
        self.last_snapshot = snap
        return np.array([max(int(snap.get(s.name, 0)), 0) for s in STATS], dtype=np.uint64)

    def values_get(self, ids: np.ndarray, values: np.ndarray) -> int:
        raw = self._raw()
        for i, stat_id in enumerate(ids):
            stat_id = int(stat_id)
            if stat_id >= len(STATS):
                raise InvalidArgumentError(f"Unknown system stat id {stat_id}")
            value = raw[stat_id]
            if STATS[stat_id].counter:
                base = self.baseline[stat_id]
                value = value - base if value >= base else 0
            values[i] = value
        return len(ids)

    def reset(self, ids: Optional[np.ndarray] = None) -> None:
        raw = self._raw()
        selected = range(len(STATS)) if ids is None else (int(i) for i in ids)
        for stat_id in selected:
            if stat_id >= len(STATS):
                raise InvalidArgumentError(f"Unknown system stat id {stat_id}")
            if STATS[stat_id].counter:
                self.baseline[stat_id] = raw[stat_id]
        LOG.debug("System stats baseline reset")

    def prime(self) -> None:
        self._raw()
