import io

import pytest

from bucketfs.concurrent_read import (
    SUMMARY_COLUMNS,
    default_jobs,
    format_summary,
    parse_object_names,
    run_jobs,
)
from bucketfs.job import MB, Job, Stats


class _MemoryClient:
    def __init__(self, objects):
        self.objects = objects

    def new_reader(self, object_name):
        return io.BytesIO(self.objects[object_name])


def test_default_jobs_cover_protocols_and_implementations():
    jobs = default_jobs()
    assert len(jobs) == 4
    pairs = {(j.protocol, j.implementation) for j in jobs}
    assert pairs == {
        ("HTTP/1.1", "vendor"),
        ("HTTP/2", "vendor"),
        ("HTTP/1.1", "google"),
        ("HTTP/2", "google"),
    }
    assert all(j.connections == 50 for j in jobs)


def test_parse_object_names():
    bucket, names = parse_object_names(
        ["gs://bucket-name/a.txt\n", "gs://bucket-name/dir/b.txt\n"]
    )
    assert bucket == "bucket-name"
    assert names == ["a.txt", "dir/b.txt"]


def test_parse_object_names_empty():
    assert parse_object_names([]) == ("", [])


def test_parse_object_names_rejects_bucket_only():
    with pytest.raises(ValueError):
        parse_object_names(["gs://bucket-name\n"])


def test_parse_object_names_rejects_multiple_buckets():
    with pytest.raises(ValueError):
        parse_object_names(["gs://one/a\n", "gs://two/b\n"])


def _stats(protocol, total_bytes):
    job = Job(protocol=protocol, connections=50, implementation="vendor")
    return Stats(job=job, total_bytes=total_bytes, total_files=2, duration=1.0)


def test_format_summary_layout():
    table = format_summary([_stats("HTTP/1.1", 3 * MB), _stats("HTTP/2", 5 * MB)])
    lines = table.rstrip("\n").split("\n")
    assert len(lines) == 4
    widths = {len(line) for line in lines}
    assert len(widths) == 1
    for col in SUMMARY_COLUMNS:
        assert f"    {col} |" in lines[0]
    assert set(lines[1]) == {"-"}
    assert lines[2].rstrip(" |").endswith(_stats("HTTP/1.1", 3 * MB).query(SUMMARY_COLUMNS[-1]))


def test_format_summary_rows_hold_values():
    stats = _stats("HTTP/2", 7 * MB)
    row = format_summary([stats]).rstrip("\n").split("\n")[2]
    cells = [cell.strip() for cell in row.split("|") if cell.strip()]
    assert cells == [stats.query(col) for col in SUMMARY_COLUMNS]


def test_run_jobs_skips_failed_clients(capsys):
    objects = {"a": b"abc", "b": b"defgh"}
    jobs = default_jobs()

    def factory(job):
        if job.implementation == "google":
            raise RuntimeError("no credentials")
        return _MemoryClient(objects)

    results = run_jobs(jobs, factory, list(objects))
    assert [s.job.implementation for s in results] == ["vendor", "vendor"]
    assert all(s.total_bytes == 8 and s.total_files == 2 for s in results)
    assert capsys.readouterr().out.count("Job failed") == 2