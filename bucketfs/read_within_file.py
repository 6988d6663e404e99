"""Measure repeated reads within an existing file, sequentially or at random."""

from __future__ import annotations

import argparse
import logging
import math
import os
import sys
import time
from dataclasses import dataclass
from random import randrange
from typing import BinaryIO

from bucketfs.format import format_bytes, format_duration

DEFAULT_DURATION = 10.0
DEFAULT_READ_SIZE = 1 << 20

_NANOS_PER_SECOND = 1_000_000_000
_LOG_FORMAT = "%(asctime)s.%(msecs)03d %(filename)s:%(lineno)d: %(message)s"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadSummary:
    """How many reads were made, how many bytes they returned, and how long it took."""

    read_count: int
    bytes_read: int
    elapsed_ns: int


def _rate(amount: float, elapsed_ns: int) -> float:
    seconds = elapsed_ns / _NANOS_PER_SECOND
    if seconds:
        return amount / seconds
    return math.inf if amount else math.nan


def read_random(f: BinaryIO, file_size: int, read_size: int, duration: float) -> ReadSummary:
    """Read ``read_size`` bytes at random offsets for ``duration`` seconds."""
    if file_size < read_size:
        raise ValueError(
            f"File size of {file_size} bytes not large enough for reads of "
            f"{read_size} bytes"
        )

    limit_ns = int(duration * _NANOS_PER_SECOND)
    read_count = 0
    bytes_read = 0
    start = time.perf_counter_ns()
    while time.perf_counter_ns() - start < limit_ns:
        offset = randrange(file_size - read_size)
        f.seek(offset)
        data = f.read(read_size)
        if len(data) != read_size:
            raise OSError(
                f"ReadAt: short read of {len(data)} bytes at offset {offset}"
            )
        read_count += 1
        bytes_read += len(data)

    elapsed = time.perf_counter_ns() - start

    print(
        f"Read {read_count} times ({format_bytes(bytes_read)}) in "
        f"{format_duration(elapsed)} ({_rate(read_count, elapsed):.1f} Hz)"
    )
    print()
    return ReadSummary(read_count, bytes_read, elapsed)


def read_sequential(f: BinaryIO, read_size: int, duration: float) -> ReadSummary:
    """Read forward in ``read_size`` chunks, rewinding at end of file."""
    limit_ns = int(duration * _NANOS_PER_SECOND)
    read_count = 0
    bytes_read = 0
    start = time.perf_counter_ns()
    while time.perf_counter_ns() - start < limit_ns:
        data = f.read(read_size)
        if not data:
            f.seek(0)
        bytes_read += len(data)
        read_count += 1

    elapsed = time.perf_counter_ns() - start

    print(
        f"Read {read_count} times ({format_bytes(bytes_read)}) in "
        f"{format_duration(elapsed)} ({_rate(read_count, elapsed):.1f} Hz, "
        f"{format_bytes(_rate(bytes_read, elapsed))}/s)"
    )
    print()
    return ReadSummary(read_count, bytes_read, elapsed)


def run(path: str, random: bool, duration: float, read_size: int) -> ReadSummary:
    """Open ``path`` and read from it for ``duration`` seconds."""
    if not path:
        raise ValueError("You must set --file.")

    with open(path, "rb") as f:
        size = f.seek(0, os.SEEK_END)
        logger.info("%s has size %s.", f.name, format_bytes(size))

        if random:
            return read_random(f, size, read_size, duration)
        return read_sequential(f, read_size, duration)


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point; returns the exit status."""
    parser = argparse.ArgumentParser(description="Time reads within a file.")
    parser.add_argument("--file", default="", help="Path to file to read.")
    parser.add_argument(
        "--random", action="store_true", help="Read randomly? Otherwise sequentially."
    )
    parser.add_argument(
        "--duration", type=float, default=DEFAULT_DURATION, help="How long to run, in seconds."
    )
    parser.add_argument(
        "--read_size", type=int, default=DEFAULT_READ_SIZE, help="Size of each call to read(2)."
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT, datefmt="%H:%M:%S")

    try:
        run(args.file, args.random, args.duration, args.read_size)
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())