import pytest

from bucketfs.write_to_gcs import main, run


def test_run_requires_directory():
    with pytest.raises(ValueError, match="You must set --dir."):
        run("", 1024, 256)


@pytest.mark.parametrize("file_size,write_size", [(4096, 1024), (2500, 1024), (100, 4096)])
def test_bytes_written_matches_file_size(tmp_path, file_size, write_size):
    summary = run(str(tmp_path), file_size, write_size)
    assert summary.bytes_written == file_size
    assert summary.write_ns >= 0
    assert summary.close_ns >= 0


def test_zero_size_writes_nothing(tmp_path):
    summary = run(str(tmp_path), 0, 1024)
    assert summary.bytes_written == 0


def test_temporary_file_removed(tmp_path):
    run(str(tmp_path), 2048, 512)
    assert list(tmp_path.iterdir()) == []


def test_report_lines(tmp_path, capsys):
    run(str(tmp_path), 2048, 512)
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("Wrote 2.00 KiB in ")
    assert lines[1].startswith("Flushed 2.00 KiB in ")


def test_main_without_dir_fails(capsys):
    assert main([]) == 1
    assert "You must set --dir." in capsys.readouterr().err


def test_main_succeeds(tmp_path):
    assert main(["--dir", str(tmp_path), "--file_size", "1024", "--write_size", "256"]) == 0
    assert list(tmp_path.iterdir()) == []