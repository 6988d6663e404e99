"""Repeatedly overwrite a local file to measure write CPU efficiency."""

from __future__ import annotations

import argparse
import logging
import math
import os
import sys
import tempfile
import time
from contextlib import suppress
from dataclasses import dataclass

from bucketfs.format import format_bytes, format_duration

DEFAULT_DURATION = 10.0
DEFAULT_FILE_SIZE = 1 << 26
DEFAULT_WRITE_SIZE = 1 << 20

_NANOS_PER_SECOND = 1_000_000_000
_LOG_FORMAT = "%(asctime)s.%(msecs)03d %(filename)s:%(lineno)d: %(message)s"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteSummary:
    """How many writes were made, how many bytes they wrote, and how long it took."""

    write_count: int
    bytes_written: int
    elapsed_ns: int


def _rate(amount: float, elapsed_ns: int) -> float:
    seconds = elapsed_ns / _NANOS_PER_SECOND
    if seconds:
        return amount / seconds
    return math.inf if amount else math.nan


def run(directory: str, duration: float, file_size: int, write_size: int) -> WriteSummary:
    """Extend a temporary file to ``file_size`` bytes and overwrite it with zeroes.

    Writes of ``write_size`` bytes are made from the start of the file again
    and again for ``duration`` seconds, without closing the file in between.
    """
    if not directory:
        raise ValueError("You must set --dir.")

    logger.info("Creating a temporary file in %s.", directory)
    fd, path = tempfile.mkstemp(prefix="write_locally", dir=directory)
    f = os.fdopen(fd, "r+b", buffering=0)
    try:
        logger.info("Truncating to %d bytes.", file_size)
        f.truncate(file_size)

        logger.info("Measuring...")
        limit_ns = int(duration * _NANOS_PER_SECOND)
        buf = bytes(write_size)
        write_count = 0
        bytes_written = 0
        start = time.perf_counter_ns()

        while time.perf_counter_ns() - start < limit_ns:
            f.seek(0)
            written = 0
            while written < file_size and time.perf_counter_ns() - start < limit_ns:
                count = f.write(buf) or 0
                written += count
                bytes_written += count
                write_count += 1

        elapsed = time.perf_counter_ns() - start
    finally:
        logger.info("Truncating and closing %s.", path)
        with suppress(OSError):
            f.truncate(0)
        with suppress(OSError):
            f.close()
        logger.info("Deleting %s.", path)
        with suppress(OSError):
            os.remove(path)

    print(
        f"Wrote {write_count} times ({format_bytes(bytes_written)}) in "
        f"{format_duration(elapsed)} ({_rate(write_count, elapsed):.1f} Hz, "
        f"{format_bytes(_rate(bytes_written, elapsed))}/s)"
    )
    print()
    return WriteSummary(write_count, bytes_written, elapsed)


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point; returns the exit status."""
    parser = argparse.ArgumentParser(description="Time overwriting a local file.")
    parser.add_argument("--dir", default="", help="Directory within which to write the file.")
    parser.add_argument(
        "--duration", type=float, default=DEFAULT_DURATION, help="How long to run, in seconds."
    )
    parser.add_argument(
        "--file_size", type=int, default=DEFAULT_FILE_SIZE, help="Size of file to use."
    )
    parser.add_argument(
        "--write_size", type=int, default=DEFAULT_WRITE_SIZE, help="Size of each call to write(2)."
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT, datefmt="%H:%M:%S")

    try:
        run(args.dir, args.duration, args.file_size, args.write_size)
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())