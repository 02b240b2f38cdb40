from .base import BaseSink
from .console import ConsoleSink
from .file import FileSink, FileSinkConfig
from .ringbuffer import RingBufferEntry, RingBufferSink, RingBufferSinkConfig
from .trace import TraceEvent, TraceSink, TraceSinkConfig, read_trace

__all__ = [
    "BaseSink",
    "ConsoleSink",
    "FileSink",
    "FileSinkConfig",
    "RingBufferEntry",
    "RingBufferSink",
    "RingBufferSinkConfig",
    "TraceEvent",
    "TraceSink",
    "TraceSinkConfig",
    "read_trace",
]
