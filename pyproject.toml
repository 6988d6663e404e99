[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bucketfs"
version = "0.1.0"
description = "Mount flag parsing, a local content cache, directory handles and file system benchmarks for a bucket-backed file system"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "filesystem",
    "object-storage",
    "benchmark",
    "cache",
    "flags",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Benchmark",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
bucketfs-read-full-file = "bucketfs.read_full_file:main"
bucketfs-read-within-file = "bucketfs.read_within_file:main"
bucketfs-stat-files = "bucketfs.stat_files:main"
bucketfs-write-locally = "bucketfs.write_locally:main"
bucketfs-write-to-gcs = "bucketfs.write_to_gcs:main"

[tool.hatch.build.targets.wheel]
packages = ["bucketfs"]

[tool.hatch.build.targets.sdist]
include = ["bucketfs", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
