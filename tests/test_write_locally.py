import pytest

from bucketfs.write_locally import main, run


def test_run_requires_directory():
    with pytest.raises(ValueError, match="You must set --dir."):
        run("", 0.01, 1024, 256)


def test_run_counts_match_write_size(tmp_path):
    summary = run(str(tmp_path), 0.05, 4096, 1024)
    assert summary.write_count > 0
    assert summary.bytes_written == summary.write_count * 1024
    assert summary.elapsed_ns >= 50_000_000


def test_run_removes_temporary_file(tmp_path):
    run(str(tmp_path), 0.02, 2048, 512)
    assert list(tmp_path.iterdir()) == []


def test_run_prints_report(tmp_path, capsys):
    run(str(tmp_path), 0.02, 2048, 512)
    out = capsys.readouterr().out
    assert out.startswith("Wrote ")
    assert " Hz, " in out


def test_zero_duration_writes_nothing(tmp_path):
    summary = run(str(tmp_path), 0.0, 2048, 512)
    assert summary.write_count == 0
    assert summary.bytes_written == 0


def test_main_without_dir_fails(capsys):
    assert main([]) == 1
    assert "You must set --dir." in capsys.readouterr().err


def test_main_succeeds(tmp_path):
    status = main(
        ["--dir", str(tmp_path), "--duration", "0.01", "--file_size", "1024", "--write_size", "256"]
    )
    assert status == 0
    assert list(tmp_path.iterdir()) == []