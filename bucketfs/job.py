"""A concurrent read job over a set of objects and its statistics."""

from __future__ import annotations

import logging
import math
import queue
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, Protocol

KB = 1024
MB = 1024 * KB

IMPLEMENTATIONS = ("vendor", "google")
REPORT_INTERVAL = 10.0
CHUNK_SIZE = 128 * 1024

logger = logging.getLogger(__name__)


class ReadError(Exception):
    """Reading an object failed part way through."""


class Client(Protocol):
    """Something that opens readers for objects by name."""

    def new_reader(self, object_name: str) -> BinaryIO: ...


@dataclass
class Job:
    """One benchmark configuration."""

    protocol: str
    connections: int
    implementation: str

    def run(self, client: Client, object_names: Iterable[str]) -> Stats:
        """Read every object concurrently through ``client`` and collect stats."""
        if self.implementation not in IMPLEMENTATIONS:
            raise ValueError(
                f"Unknown reader implementation: {self.implementation!r}"
            )

        names = list(object_names)
        stats = Stats(job=self)
        events: queue.Queue = queue.Queue()

        start = time.monotonic()
        with ThreadPoolExecutor(max_workers=max(1, self.connections)) as pool:
            for name in names:
                pool.submit(_read_object, client, name, events)

            pending = len(names)
            last_total = 0
            next_tick = start + REPORT_INTERVAL
            while pending:
                timeout = max(0.0, next_tick - time.monotonic())
                try:
                    kind, value = events.get(timeout=timeout)
                except queue.Empty:
                    read_bytes = stats.total_bytes - last_total
                    last_total = stats.total_bytes
                    stats.mbps.append((read_bytes // MB) / REPORT_INTERVAL)
                    next_tick += REPORT_INTERVAL
                    continue

                if kind == "bytes":
                    stats.total_bytes += value
                elif kind == "file":
                    stats.total_files += 1
                    pending -= 1
                elif kind == "skip":
                    pending -= 1
                else:
                    raise value

            stats.duration = time.monotonic() - start
        return stats


def _read_object(client: Client, name: str, events: queue.Queue) -> None:
    try:
        reader = client.new_reader(name)
    except Exception as exc:
        print(f"Skip {name!r}: {exc}")
        events.put(("skip", None))
        return

    try:
        with closing(reader):
            while chunk := reader.read(CHUNK_SIZE):
                events.put(("bytes", len(chunk)))
    except Exception as exc:
        error = ReadError(f"read {name!r} fails: {exc}")
        error.__cause__ = exc
        events.put(("error", error))
        return

    events.put(("file", 1))


@dataclass
class Stats:
    """Results of running a job; ``duration`` is in seconds."""

    job: Job
    total_bytes: int = 0
    total_files: int = 0
    mbps: list[float] = field(default_factory=list)
    duration: float = 0.0

    def throughput(self) -> float:
        """Average throughput in MB/s."""
        megabytes = self.total_bytes / MB
        if self.duration <= 0:
            return math.inf if megabytes else math.nan
        return megabytes / self.duration

    def report(self) -> str:
        """Build a summary of the run, log it and return it."""
        text = (
            f"# TEST READER {self.job.protocol}\n"
            f"Protocol: {self.job.implementation} "
            f"({self.job.connections} connections per host)\n"
            f"Total bytes: {self.total_bytes:d}\n"
            f"Total files: {self.total_files:d}\n"
            f"Avg Throughput: {self.throughput():.1f} MB/s\n"
        )
        logger.info("%s", text)
        return text

    def query(self, key: str) -> str:
        """Return the summary column named ``key`` as text, or ``""``."""
        if key == "Protocol":
            return self.job.protocol
        if key == "Implementation":
            return self.job.implementation
        if key == "Connections":
            return f"{self.job.connections:d}"
        if key == "TotalBytes (MB)":
            return f"{self.total_bytes // MB:d}"
        if key == "TotalFiles":
            return f"{self.total_files:d}"
        if key == "Throughput (MB/s)":
            return f"{self.throughput():.1f}"
        return ""