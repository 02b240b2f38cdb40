"""
stat-sampler: periodic statistics sampling

Sessions bind statistics sources to output sinks, cache each source's stat
catalog, apply glob filters and fan every sampling pass out to all sinks.
"""

from stat_sampler.core import (
    PollDispatcher,
    Session,
    SessionConfig,
    SessionRegistry,
    SinkFlags,
    SinkOps,
    SourceOps,
    sampling_session,
)
from stat_sampler.sinks import (
    ConsoleSink,
    FileSink,
    FileSinkConfig,
    RingBufferSink,
    RingBufferSinkConfig,
    TraceSink,
    TraceSinkConfig,
)
from stat_sampler.sources import SystemStatsSource

__version__ = "0.1.0"

__all__ = [
    "PollDispatcher",
    "Session",
    "SessionConfig",
    "SessionRegistry",
    "SinkFlags",
    "SinkOps",
    "SourceOps",
    "sampling_session",
    "ConsoleSink",
    "FileSink",
    "FileSinkConfig",
    "RingBufferSink",
    "RingBufferSinkConfig",
    "TraceSink",
    "TraceSinkConfig",
    "SystemStatsSource",
    "__version__",
]
