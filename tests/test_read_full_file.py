import os

import pytest

from bucketfs.read_full_file import main, run


def test_run_requires_directory():
    with pytest.raises(ValueError, match="You must set --dir."):
        run("", 0.0, 1024, 256)


def test_run_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        run(str(tmp_path / "missing"), 0.0, 1024, 256)


def test_run_reads_at_least_once_and_counts_calls(tmp_path):
    timings = run(str(tmp_path), 0.0, 4096, 1024)
    assert len(timings.full_file_reads) >= 1
    # Each full read makes one call per chunk plus the final call hitting EOF.
    assert len(timings.read_calls) == len(timings.full_file_reads) * (4096 // 1024 + 1)


def test_run_returns_sorted_observations(tmp_path):
    timings = run(str(tmp_path), 0.02, 2048, 512)
    assert timings.full_file_reads == sorted(timings.full_file_reads)
    assert timings.read_calls == sorted(timings.read_calls)
    assert all(d >= 0 for d in timings.read_calls)


def test_run_removes_temporary_file(tmp_path):
    run(str(tmp_path), 0.0, 1024, 256)
    assert os.listdir(tmp_path) == []


def test_run_prints_report(tmp_path, capsys):
    run(str(tmp_path), 0.0, 1024, 256)
    out = capsys.readouterr().out
    assert "Full-file read times:" in out
    assert "read(2) latencies:" in out
    for ptile in ("50th ptile", "90th ptile", "98th ptile"):
        assert out.count(ptile) == 2


def test_main_success(tmp_path):
    code = main(
        ["--dir", str(tmp_path), "--duration", "0", "--file_size", "2048", "--read_size", "512"]
    )
    assert code == 0
    assert os.listdir(tmp_path) == []


def test_main_without_directory(capsys):
    assert main([]) == 1
    assert "You must set --dir." in capsys.readouterr().err