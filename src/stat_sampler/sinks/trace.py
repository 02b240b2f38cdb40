"""
Binary trace sink.

Writes a CTF 1.8 style ``metadata`` description plus a little-endian event
stream ``<trace_name>_0`` holding one ``sampler_stats`` event per stat.
With compression enabled, each sampling pass becomes one packet (see
:mod:`stat_sampler.core.compression`).
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, List, NamedTuple, Optional, TextIO, Union

from ..core.clock import Clock, MonotonicClock
from ..core.compression import CODECS, get_codec, unpack_packets
from ..core.ops import SinkFlags
from ..core.session import Session
from ..exceptions import InvalidArgumentError
from .base import BaseSink

LOG = logging.getLogger(__name__)

METADATA_FILE = "metadata"
EVENT_ID = 0

EVENT_HEADER = struct.Struct("<QI")
NAME_LEN = struct.Struct("<H")
EVENT_FIELDS = struct.Struct("<HIQQ")

METADATA_TEMPLATE = """\
/* CTF 1.8 */

typealias integer {{ size = 8; align = 8; signed = false; }} := uint8_t;
typealias integer {{ size = 16; align = 16; signed = false; }} := uint16_t;
typealias integer {{ size = 32; align = 32; signed = false; }} := uint32_t;
typealias integer {{ size = 64; align = 64; signed = false; }} := uint64_t;

trace {{
  major = 1;
  minor = 8;
  byte_order = le;
  packet.header := struct {{
    uint32_t magic;
    uint64_t stream_id;
  }};
}};

clock {{
  name = monotonic;
  freq = {freq};
}};

stream {{
  packet.context := struct {{
    uint64_t timestamp_begin;
    uint64_t timestamp_end;
    uint64_t events_discarded;
  }};
  event.header := struct {{
    uint64_t timestamp;
    uint32_t id;
  }};
}};

event {{
  name = "sampler_stats";
  id = {event_id};
  fields := struct {{
    string source_name;
    uint16_t source_id;
    uint32_t num_stats;
    uint64_t stat_id;
    uint64_t stat_value;
  }};
}};
"""


class TraceEvent(NamedTuple):
    timestamp: int
    event_id: int
    source_name: str
    source_id: int
    num_stats: int
    stat_id: int
    value: int


@dataclass
class TraceSinkConfig:
    trace_dir: Union[str, Path]
    trace_name: str = "trace"
    compression: str = "none"

    def __post_init__(self):
        if not str(self.trace_dir):
            raise InvalidArgumentError("Trace sink needs a directory")
        if not self.trace_name:
            raise InvalidArgumentError("Trace sink needs a trace name")
        self.trace_dir = Path(self.trace_dir)
        if self.compression not in CODECS:
            raise InvalidArgumentError(f"Unsupported compression: {self.compression}")

    @property
    def stream_path(self) -> Path:
        return Path(self.trace_dir) / f"{self.trace_name}_0"

    @property
    def metadata_path(self) -> Path:
        return Path(self.trace_dir) / METADATA_FILE


def encode_events(
    timestamp: int, source_name: str, source_id: int, ids, values
) -> bytes:
    """Encode one ``sampler_stats`` event per stat."""
    if not 0 <= source_id <= 0xFFFF:
        raise ValueError(f"source_id {source_id} does not fit the trace layout")
    name = source_name.encode("utf-8") + b"\0"
    n = len(ids)
    parts: List[bytes] = []
    for stat_id, value in zip(ids, values):
        parts.append(EVENT_HEADER.pack(timestamp, EVENT_ID))
        parts.append(NAME_LEN.pack(len(name)))
        parts.append(name)
        parts.append(EVENT_FIELDS.pack(source_id, n, int(stat_id), int(value)))
    return b"".join(parts)


def decode_events(data: bytes) -> Iterator[TraceEvent]:
    offset = 0
    while offset < len(data):
        timestamp, event_id = EVENT_HEADER.unpack_from(data, offset)
        offset += EVENT_HEADER.size
        (name_len,) = NAME_LEN.unpack_from(data, offset)
        offset += NAME_LEN.size
        name = data[offset : offset + name_len].rstrip(b"\0").decode("utf-8")
        offset += name_len
        source_id, n, stat_id, value = EVENT_FIELDS.unpack_from(data, offset)
        offset += EVENT_FIELDS.size
        yield TraceEvent(timestamp, event_id, name, source_id, n, stat_id, value)


def read_trace(stream_path: Union[str, Path], compressed: bool = False) -> List[TraceEvent]:
    """Decode a trace stream written by :class:`TraceSink`."""
    data = Path(stream_path).read_bytes()
    if not compressed:
        return list(decode_events(data))

    events: List[TraceEvent] = []
    for payload in unpack_packets(data):
        events.extend(decode_events(payload))
    return events


class TraceSink(BaseSink):
    NAME = "trace"
    FLAGS = SinkFlags.NO_NAMES

    def __init__(self, config: TraceSinkConfig, clock: Optional[Clock] = None):
        super().__init__()
        self.config = config
        self.clock: Clock = clock or MonotonicClock()
        self.codec = get_codec(config.compression)
        self.compressed = config.compression != "none"
        Path(config.trace_dir).mkdir(parents=True, exist_ok=True)
        self._metadata: Optional[TextIO] = open(config.metadata_path, "w", encoding="utf-8")
        try:
            self._stream: Optional[BinaryIO] = open(config.stream_path, "wb")
        except OSError:
            self._metadata.close()
            raise
        self.metadata_written = False
        self.event_count = 0
        LOG.info("Trace sink writing to %s", config.trace_dir)

    @classmethod
    def create(
        cls, session: Session, config: TraceSinkConfig, name: Optional[str] = None
    ) -> "TraceSink":
        sink = cls(config, clock=session.clock)
        try:
            sink.attach(session, name)
        except Exception:
            sink.close()
            raise
        return sink

    @property
    def closed(self) -> bool:
        return self._stream is None

    def _write_metadata(self) -> None:
        assert self._metadata is not None
        self._metadata.write(METADATA_TEMPLATE.format(freq=self.clock.hz, event_id=EVENT_ID))
        self._metadata.flush()
        self.metadata_written = True

    def write(self, source_name, source_id, names, ids, values) -> None:
        if self._stream is None:
            raise ValueError(f"Trace sink {self.config.trace_dir} is closed")
        if not self.metadata_written:
            self._write_metadata()

        records = encode_events(self.clock.cycles(), source_name, int(source_id), ids, values)
        if self.compressed:
            self._stream.write(self.codec.pack(records))
        else:
            self._stream.write(records)
        self._stream.flush()
        self.event_count += len(ids)

    def close(self) -> None:
        for fh in (self._metadata, self._stream):
            if fh is not None:
                fh.close()
        if self._stream is not None:
            LOG.debug("Trace sink closed after %d events", self.event_count)
        self._metadata = None
        self._stream = None
