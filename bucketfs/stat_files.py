"""Create a set of open anonymous files and measure repeatedly statting them."""

from __future__ import annotations

import argparse
import logging
import math
import os
import sys
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import BinaryIO, Iterable

from bucketfs.format import format_duration, format_hertz

PARALLELISM = 128
DEFAULT_NUM_FILES = 4
DEFAULT_DURATION = 10.0

_NANOS_PER_SECOND = 1_000_000_000
_LOG_FORMAT = "%(asctime)s.%(msecs)03d %(filename)s:%(lineno)d: %(message)s"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatSummary:
    """How many stat calls were made and how long they took in total."""

    stat_count: int
    elapsed_ns: int


def _close_all(files: Iterable[BinaryIO]) -> None:
    for f in files:
        f.close()


def create_files(directory: str, num_files: int) -> list[BinaryIO]:
    """Create ``num_files`` anonymous temporary files in ``directory`` in parallel.

    On failure every file already created is closed and the first error raised.
    """
    workers = min(PARALLELISM, max(1, num_files))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(tempfile.TemporaryFile, dir=directory)
            for _ in range(num_files)
        ]

    files: list[BinaryIO] = []
    errors: list[BaseException] = []
    for future in futures:
        try:
            files.append(future.result())
        except OSError as exc:
            errors.append(exc)

    if errors:
        _close_all(files)
        raise errors[0]
    return files


def run(directory: str, num_files: int, duration: float) -> StatSummary:
    """Stat ``num_files`` open files round-robin for ``duration`` seconds."""
    if not directory:
        raise ValueError("You must set --dir.")
    if num_files <= 0:
        raise ValueError(f"Invalid setting for --num_files: {num_files}")

    logger.info("Creating %d temporary files...", num_files)
    files = create_files(directory, num_files)

    try:
        logger.info("Measuring...")
        limit_ns = int(duration * _NANOS_PER_SECOND)
        stat_count = 0
        start = time.perf_counter_ns()
        while time.perf_counter_ns() - start < limit_ns:
            os.fstat(files[stat_count % len(files)].fileno())
            stat_count += 1
        elapsed = time.perf_counter_ns() - start
    finally:
        _close_all(files)

    seconds = elapsed / _NANOS_PER_SECOND
    if seconds:
        rate = stat_count / seconds
    else:
        rate = math.inf if stat_count else math.nan

    print(f"Statted {stat_count} times in {format_duration(elapsed)} ({format_hertz(rate)})")
    print()
    return StatSummary(stat_count, elapsed)


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point; returns the exit status."""
    parser = argparse.ArgumentParser(description="Time statting open files.")
    parser.add_argument("--dir", default="", help="Directory within which to create the files.")
    parser.add_argument(
        "--num_files", type=int, default=DEFAULT_NUM_FILES, help="Number of files to create."
    )
    parser.add_argument(
        "--duration", type=float, default=DEFAULT_DURATION, help="How long to run, in seconds."
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT, datefmt="%H:%M:%S")

    try:
        run(args.dir, args.num_files, args.duration)
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())