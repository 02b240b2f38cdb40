import sys
from typing import Optional, TextIO

from ..core.session import Session
from ..exceptions import InvalidArgumentError
from .base import BaseSink


class ConsoleSink(BaseSink):
    """Prints one block per source per sampling pass, at most ``max_stats`` lines each."""

    NAME = "console"

    def __init__(
        self, stream: Optional[TextIO] = None, max_stats: Optional[int] = 10, title: str = ""
    ):
        super().__init__()
        if max_stats is not None and max_stats < 0:
            raise InvalidArgumentError("max_stats must not be negative")
        self.stream = stream
        self.max_stats = max_stats
        self.title = title
        self.sample_count = 0

    @classmethod
    def create(cls, session: Session, name: Optional[str] = None, **kwargs) -> "ConsoleSink":
        sink = cls(**kwargs)
        sink.attach(session, name)
        return sink

    def write(self, source_name, source_id, names, ids, values) -> None:
        out = self.stream or sys.stdout
        n = len(ids)
        prefix = f"{self.title}: " if self.title else ""
        out.write(f"\n=== {prefix}{source_name} (ID={source_id}) - {n} stats ===\n")
        shown = n if self.max_stats is None else min(n, self.max_stats)
        for i in range(shown):
            if names is not None:
                out.write(f"  [{int(ids[i])}] {names[i]:<50} : {int(values[i])}\n")
            else:
                out.write(f"  [{i}] ID={int(ids[i])} : {int(values[i])}\n")
        if shown < n:
            out.write(f"  ... and {n - shown} more stats\n")
        out.flush()
        self.sample_count += 1
