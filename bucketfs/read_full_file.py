"""Measure opening a file and reading it from start to end, repeatedly."""

from __future__ import annotations

import argparse
import logging
import math
import os
import sys
import tempfile
import time
from dataclasses import dataclass, field
from typing import BinaryIO

from bucketfs.format import format_bytes, format_duration
from bucketfs.percentile import duration_percentile

PERCENTILES = (50, 90, 98)
DEFAULT_DURATION = 10.0
DEFAULT_FILE_SIZE = 1 << 26
DEFAULT_READ_SIZE = 1 << 20

_NANOS_PER_SECOND = 1_000_000_000
_FILL_CHUNK = 1 << 20
_LOG_FORMAT = "%(asctime)s.%(msecs)03d %(filename)s:%(lineno)d: %(message)s"

logger = logging.getLogger(__name__)


@dataclass
class ReadTimings:
    """Sorted observations in nanoseconds."""

    full_file_reads: list[int] = field(default_factory=list)
    read_calls: list[int] = field(default_factory=list)


def _fill_random(f: BinaryIO, size: int) -> None:
    remaining = size
    while remaining > 0:
        chunk = os.urandom(min(_FILL_CHUNK, remaining))
        f.write(chunk)
        remaining -= len(chunk)


def _read_whole_file(path: str, buf: bytearray, timings: ReadTimings) -> None:
    view = memoryview(buf)
    with open(path, "rb", buffering=0) as f:
        file_start = time.perf_counter_ns()
        while True:
            call_start = time.perf_counter_ns()
            count = f.readinto(view)
            timings.read_calls.append(time.perf_counter_ns() - call_start)
            if not count:
                break
        timings.full_file_reads.append(time.perf_counter_ns() - file_start)


def _report(name: str, bytes_per_observation: int, observations: list[int]) -> str:
    lines = [f"\n{name}:"]
    for ptile in PERCENTILES:
        elapsed = duration_percentile(observations, ptile)
        seconds = elapsed / _NANOS_PER_SECOND
        bandwidth = bytes_per_observation / seconds if seconds else math.inf
        lines.append(
            f"  {ptile:02d}th ptile: {format_duration(elapsed):>10} "
            f"({format_bytes(bandwidth)}/s)"
        )
    return "\n".join(lines) + "\n"


def run(directory: str, duration: float, file_size: int, read_size: int) -> ReadTimings:
    """Write a random file in ``directory`` and time reading it for ``duration`` seconds.

    The file is always read at least once. The report is printed and the
    sorted timings returned.
    """
    if not directory:
        raise ValueError("You must set --dir.")

    logger.info("Creating a temporary file in %s.", directory)
    fd, path = tempfile.mkstemp(prefix="sequential_read", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            logger.info("Writing %d random bytes.", file_size)
            _fill_random(f, file_size)

        limit_ns = int(duration * _NANOS_PER_SECOND)
        logger.info("Measuring for %s...", format_duration(limit_ns))

        timings = ReadTimings()
        buf = bytearray(read_size)
        overall_start = time.perf_counter_ns()
        while (
            not timings.full_file_reads
            or time.perf_counter_ns() - overall_start < limit_ns
        ):
            _read_whole_file(path, buf, timings)
    finally:
        logger.info("Deleting %s.", path)
        os.remove(path)

    timings.full_file_reads.sort()
    timings.read_calls.sort()

    logger.info(
        "Read the file %d times, using %d calls to read(2).",
        len(timings.full_file_reads),
        len(timings.read_calls),
    )

    print(_report("Full-file read times", file_size, timings.full_file_reads), end="")
    print(_report("read(2) latencies", read_size, timings.read_calls), end="")
    print()
    return timings


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point; returns the exit status."""
    parser = argparse.ArgumentParser(
        description="Time reading a whole file from start to end."
    )
    parser.add_argument("--dir", default="", help="Directory within which to write the file.")
    parser.add_argument(
        "--duration", type=float, default=DEFAULT_DURATION, help="How long to run, in seconds."
    )
    parser.add_argument(
        "--file_size", type=int, default=DEFAULT_FILE_SIZE, help="Size of file to use."
    )
    parser.add_argument(
        "--read_size", type=int, default=DEFAULT_READ_SIZE, help="Size of each call to read(2)."
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT, datefmt="%H:%M:%S")

    try:
        run(args.dir, args.duration, args.file_size, args.read_size)
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())