"""Mount flags, a local content cache, directory handles and file system benchmarks for a bucket-backed file system."""

__version__ = "0.1.0"

__all__ = [
    "concurrent_read",
    "contentcache",
    "dirhandle",
    "flags",
    "format",
    "job",
    "percentile",
    "read_full_file",
    "read_within_file",
    "stat_files",
    "write_locally",
    "write_to_gcs",
]