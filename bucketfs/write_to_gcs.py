"""Write a file and close it, timing the writes and the close separately."""

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

DEFAULT_FILE_SIZE = 1 << 30
DEFAULT_WRITE_SIZE = 1 << 20

_NANOS_PER_SECOND = 1_000_000_000
_LOG_FORMAT = "%(asctime)s.%(msecs)03d %(filename)s:%(lineno)d: %(message)s"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlushSummary:
    """Bytes written, time spent writing and time spent closing, in nanoseconds."""

    bytes_written: int
    write_ns: int
    close_ns: int


def _rate(amount: float, elapsed_ns: int) -> float:
    seconds = elapsed_ns / _NANOS_PER_SECOND
    if seconds:
        return amount / seconds
    return math.inf if amount else math.nan


def run(directory: str, file_size: int, write_size: int) -> FlushSummary:
    """Write ``file_size`` zero bytes to a temporary file, then close it.

    Each call writes a full ``write_size`` buffer; the byte count is credited
    with at most what remains of ``file_size``.
    """
    if not directory:
        raise ValueError("You must set --dir.")

    logger.info("Creating a temporary file in %s.", directory)
    fd, path = tempfile.mkstemp(prefix="write_to_gcs", dir=directory)
    try:
        f = os.fdopen(fd, "wb", buffering=0)
        logger.info("Writing...")
        buf = bytes(write_size)
        bytes_written = 0
        start = time.perf_counter_ns()
        try:
            while bytes_written < file_size:
                to_write = min(file_size - bytes_written, write_size)
                f.write(buf)
                bytes_written += to_write
        except BaseException:
            with suppress(OSError):
                f.close()
            raise
        write_ns = time.perf_counter_ns() - start

        logger.info("Flushing...")
        start = time.perf_counter_ns()
        f.close()
        close_ns = time.perf_counter_ns() - start
    finally:
        logger.info("Deleting %s.", path)
        with suppress(OSError):
            os.remove(path)

    print(
        f"Wrote {format_bytes(bytes_written)} in {format_duration(write_ns)} "
        f"({format_bytes(_rate(bytes_written, write_ns))}/s)"
    )
    print(
        f"Flushed {format_bytes(bytes_written)} in {format_duration(close_ns)} "
        f"({format_bytes(_rate(bytes_written, close_ns))}/s)"
    )
    print()
    return FlushSummary(bytes_written, write_ns, close_ns)


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point; returns the exit status."""
    parser = argparse.ArgumentParser(description="Time writing and flushing a file.")
    parser.add_argument("--dir", default="", help="Directory within which to write the file.")
    parser.add_argument(
        "--file_size", type=int, default=DEFAULT_FILE_SIZE, help="How many bytes to write."
    )
    parser.add_argument(
        "--write_size", type=int, default=DEFAULT_WRITE_SIZE, help="Size of each call to write(2)."
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT, datefmt="%H:%M:%S")

    try:
        run(args.dir, args.file_size, args.write_size)
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())