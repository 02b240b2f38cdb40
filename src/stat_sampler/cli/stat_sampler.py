"""
`stat-sampler` command line interface that samples host statistics.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from ..core import PollDispatcher, Session, SessionConfig, SessionRegistry
from ..core.compression import CODECS
from ..exceptions import SamplerError
from ..sinks import (
    BaseSink,
    ConsoleSink,
    FileSink,
    FileSinkConfig,
    RingBufferSink,
    RingBufferSinkConfig,
    TraceSink,
    TraceSinkConfig,
)
from ..sinks.file import FORMATS
from ..sources import SystemStatsSource

LOG = logging.getLogger("stat_sampler")


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stat-sampler",
        description="Periodically sample host statistics and write them to console, file or trace.",
    )
    parser.add_argument("--interval", type=int, default=1000, help="Sample interval in ms.")
    parser.add_argument(
        "--duration", type=int, default=0, help="Total duration in ms (0 = until Ctrl+C)."
    )
    parser.add_argument("--output", type=Path, help="Write samples to this file.")
    parser.add_argument(
        "--format", choices=FORMATS, default="csv", help="Encoding used with --output."
    )
    parser.add_argument(
        "--append", action="store_true", help="Append to --output instead of truncating it."
    )
    parser.add_argument("--trace-dir", type=Path, help="Write a binary trace to this directory.")
    parser.add_argument("--trace-name", type=str, default="trace", help="Trace stream name.")
    parser.add_argument(
        "--compression",
        choices=sorted(CODECS),
        default="none",
        help="Compression of the trace stream.",
    )
    parser.add_argument(
        "--ring-size",
        type=int,
        help="Keep the last N samples in memory and summarise them at exit.",
    )
    parser.add_argument(
        "--filter",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Glob pattern selecting stat names (repeatable, e.g. 'net_*').",
    )
    parser.add_argument(
        "--max-stats", type=int, default=10, help="Stats printed per sample on the console."
    )
    parser.add_argument(
        "--log",
        type=str,
        default="INFO",
        help="Log level (DEBUG, INFO, WARNING, ERROR).",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_sinks(
    session: Session, args: argparse.Namespace, stream: Optional[TextIO] = None
) -> List[BaseSink]:
    sinks: List[BaseSink] = []
    try:
        if args.output:
            config = FileSinkConfig(args.output, format=args.format, append=args.append)
            sinks.append(FileSink.create(session, config))
        if args.trace_dir:
            trace = TraceSinkConfig(args.trace_dir, args.trace_name, args.compression)
            sinks.append(TraceSink.create(session, trace))
        if args.ring_size is not None:
            sinks.append(RingBufferSink.create(session, RingBufferSinkConfig(args.ring_size)))
        if not sinks:
            sinks.append(ConsoleSink.create(session, stream=stream, max_stats=args.max_stats))
    except Exception:
        for sink in sinks:
            sink.destroy()
        raise
    return sinks


def summarize_ring(sink: RingBufferSink, out: TextIO) -> None:
    entries = sink.read()
    out.write(f"Ring buffer holds {len(entries)} of {sink.capacity} samples\n")
    if not entries:
        return
    last = entries[-1]
    out.write(f"Last sample from {last.source_name} (ID={last.source_id}):\n")
    for stat_id, value in zip(last.ids, last.values):
        try:
            name = sink.lookup_name(last.source_name, int(stat_id), last.source_id)
        except SamplerError:
            name = f"ID={int(stat_id)}"
        out.write(f"  {name:<30} : {int(value)}\n")


def main(argv: Sequence[str] | None = None, stream: Optional[TextIO] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log)
    out = stream or sys.stdout

    registry = SessionRegistry()
    sinks: List[BaseSink] = []
    try:
        try:
            config = SessionConfig.periodic(args.interval, args.duration, name="stat-sampler")
            session = registry.create(config)
            source = SystemStatsSource.register(session)
            if args.filter:
                session.set_filter(source, args.filter)
            sinks = build_sinks(session, args, stream=out)
            session.start()
        except (SamplerError, ValueError, OSError) as exc:
            LOG.error("Invalid configuration: %s", exc)
            return 1

        dispatcher = PollDispatcher(registry)
        try:
            total = dispatcher.run()
        except KeyboardInterrupt:
            LOG.info("Interrupted, stopping")
            total = session.sample_count
        LOG.info("Took %d samples", total)

        for sink in sinks:
            if isinstance(sink, RingBufferSink):
                summarize_ring(sink, out)
    finally:
        registry.close()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
