"""Concurrently read objects of one bucket, comparing reader configurations."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from bucketfs.job import Client, Job, Stats

SUMMARY_COLUMNS = (
    "Protocol",
    "Implementation",
    "Connections",
    "TotalBytes (MB)",
    "TotalFiles",
    "Throughput (MB/s)",
)

_SCHEME = "gs://"


def default_jobs() -> list[Job]:
    """The configurations compared by the benchmark."""
    return [
        Job(protocol="HTTP/1.1", connections=50, implementation="vendor"),
        Job(protocol="HTTP/2", connections=50, implementation="vendor"),
        Job(protocol="HTTP/1.1", connections=50, implementation="google"),
        Job(protocol="HTTP/2", connections=50, implementation="google"),
    ]


def parse_object_names(lines: Iterable[str]) -> tuple[str, list[str]]:
    """Split ``gs://bucket/object`` lines into the bucket and object names.

    All lines must name objects of the same bucket.
    """
    bucket = ""
    names: list[str] = []
    for uri in lines:
        path = uri[len(_SCHEME):].rstrip("\n")
        segments = path.split("/")
        if len(segments) <= 1:
            raise ValueError(f"Not a file name: {uri!r}")

        if not bucket:
            bucket = segments[0]
        elif bucket != segments[0]:
            raise ValueError(f"Multiple buckets: {bucket!r}, {segments[0]!r}")

        names.append("/".join(segments[1:]))
    return bucket, names


def format_summary(stats_list: Iterable[Stats]) -> str:
    """Render a table with one row per job's statistics."""
    lines = [
        "".join(f"    {col} |" for col in SUMMARY_COLUMNS),
        "".join("-" * (len(col) + 6) for col in SUMMARY_COLUMNS),
    ]
    for stats in stats_list:
        cells = []
        for col in SUMMARY_COLUMNS:
            value = stats.query(col)
            padding = " " * (len(col) + 4 - len(value))
            cells.append(f"{padding}{value} |")
        lines.append("".join(cells))
    return "\n".join(lines) + "\n"


def run_jobs(
    jobs: Iterable[Job],
    client_factory: Callable[[Job], Client],
    object_names: Iterable[str],
) -> list[Stats]:
    """Run each job over the objects, reporting each and returning the stats.

    Jobs whose client cannot be created are reported and left out.
    """
    names = list(object_names)
    results: list[Stats] = []
    for job in jobs:
        try:
            client = client_factory(job)
        except Exception:
            print(f"Job failed: {job}")
            continue
        stats = job.run(client, names)
        stats.report()
        results.append(stats)
    return results