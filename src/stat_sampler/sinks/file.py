"""
File sink: one record per source per sampling pass in CSV, JSON or text.
"""

from __future__ import annotations

import csv
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, TextIO, Union

import numpy as np

from ..core.session import Session
from ..exceptions import InvalidArgumentError
from .base import BaseSink

LOG = logging.getLogger(__name__)

FORMATS = ("csv", "json", "text")
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class FileSinkConfig:
    path: Union[str, Path]
    format: str = "csv"
    append: bool = False

    def __post_init__(self):
        if not str(self.path):
            raise InvalidArgumentError("File sink needs a path")
        self.path = Path(self.path)
        self.format = self.format.lower()
        if self.format not in FORMATS:
            raise InvalidArgumentError(
                f"Unsupported file format: {self.format} (expected one of {', '.join(FORMATS)})"
            )


class FileSink(BaseSink):
    NAME = "file"

    def __init__(self, config: FileSinkConfig):
        super().__init__()
        self.config = config
        self.path: Path = Path(config.path)
        self.format = config.format
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh: Optional[TextIO] = open(
            self.path, "a" if config.append else "w", encoding="utf-8", newline=""
        )
        self._csv = csv.writer(self._fh, lineterminator="\n") if self.format == "csv" else None
        self.header_written = False
        self.sample_count = 0
        LOG.info("File sink writing %s to %s", self.format, self.path)

    @classmethod
    def create(
        cls, session: Session, config: FileSinkConfig, name: Optional[str] = None
    ) -> "FileSink":
        sink = cls(config)
        try:
            sink.attach(session, name)
        except Exception:
            sink.close()
            raise
        return sink

    @property
    def closed(self) -> bool:
        return self._fh is None

    def write(self, source_name, source_id, names, ids, values) -> None:
        if self._fh is None:
            raise ValueError(f"File sink {self.path} is closed")
        if self.format == "csv":
            self._write_csv(source_name, source_id, names, values)
        elif self.format == "json":
            self._write_json(source_name, source_id, names, ids, values)
        else:
            self._write_text(source_name, source_id, names, ids, values)
        self._fh.flush()
        self.sample_count += 1

    def _write_csv(
        self, source_name: str, source_id: int, names: Optional[List[str]], values: np.ndarray
    ) -> None:
        assert self._csv is not None
        if not self.header_written and names is not None:
            self._csv.writerow(["timestamp", "source_name", "source_id", *names])
            self.header_written = True
        stamp = datetime.now().strftime(TIME_FORMAT)
        self._csv.writerow([stamp, source_name, source_id, *(int(v) for v in values)])

    def _write_json(self, source_name, source_id, names, ids, values) -> None:
        stats = []
        for i, stat_id in enumerate(ids):
            stat = {"id": int(stat_id)}
            if names is not None:
                stat["name"] = names[i]
            stat["value"] = int(values[i])
            stats.append(stat)
        record = {
            "timestamp": int(time.time()),
            "source_name": source_name,
            "source_id": int(source_id),
            "sample_count": self.sample_count,
            "stats": stats,
        }
        self._fh.write(json.dumps(record, indent=2))
        self._fh.write("\n")

    def _write_text(self, source_name, source_id, names, ids, values) -> None:
        lines = [
            f"=== Sample #{self.sample_count} at {datetime.now().strftime(TIME_FORMAT)} ===",
            f"Source: {source_name} (ID={source_id})",
            "Statistics:",
        ]
        for i, stat_id in enumerate(ids):
            if names is not None:
                lines.append(f"  [{int(stat_id)}] {names[i]:<50} : {int(values[i])}")
            else:
                lines.append(f"  [{i}] ID={int(stat_id)} : {int(values[i])}")
        lines.append("")
        self._fh.write("\n".join(lines) + "\n")

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            LOG.debug("File sink %s closed after %d records", self.path, self.sample_count)
