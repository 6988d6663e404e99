# bucketfs

Building blocks and measuring tools for a file system that is backed by an
object storage bucket: mount flag parsing, a local content cache, directory
handles, and a set of small benchmarks to run against a mounted file system.

The package has no third-party dependencies.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Benchmarks

Each benchmark is a command. Those that take `--dir` create their temporary
files in that directory, typically one on the mounted file system, and
remove them when the run ends. Durations are given in seconds. On a bad
setting or an I/O error the command prints the error to standard error and
exits with status 1.

Write a file of random bytes, then read it from start to end over and over
for `--duration` seconds (at least once), printing the 50th, 90th and 98th
percentiles of whole-file read times and of single read calls, with the
bandwidth each implies:

```
bucketfs-read-full-file --dir /mnt/bucket
bucketfs-read-full-file --dir /mnt/bucket --duration 5 --file_size 1048576 --read_size 4096
```

Read an existing file in chunks of `--read_size` bytes, sequentially
(rewinding at end of file) or at random offsets:

```
bucketfs-read-within-file --file /mnt/bucket/large.bin
bucketfs-read-within-file --file /mnt/bucket/large.bin --random
```

Create `--num_files` anonymous files in parallel and stat them round-robin,
reporting the rate:

```
bucketfs-stat-files --dir /mnt/bucket --num_files 16
```

Extend a file to `--file_size` bytes and overwrite it with zeroes again and
again without closing it, measuring the efficiency of the file system
itself:

```
bucketfs-write-locally --dir /mnt/bucket
```

Write `--file_size` zero bytes to a file and close it, timing the writes and
the close separately; on a bucket-backed mount the close is when the data is
uploaded:

```
bucketfs-write-to-gcs --dir /mnt/bucket
```

Pass `--help` to any of them to see all options and their defaults. Each
command is also a `run(...)` function in its module (`bucketfs.read_full_file`,
`bucketfs.read_within_file`, `bucketfs.stat_files`, `bucketfs.write_locally`,
`bucketfs.write_to_gcs`) that prints the same report and returns the
measurements; `bucketfs.read_within_file` also offers `read_random` and
`read_sequential` for an already open file, and `bucketfs.stat_files` offers
`create_files`.

## Formatting helpers

`bucketfs.format` and `bucketfs.percentile` hold the helpers the benchmarks
share:

```python
from bucketfs.format import format_bytes, format_duration, format_hertz
from bucketfs.percentile import duration_percentile

format_bytes(3 * 1024 * 1024)        # '3.00 MiB'
format_hertz(2500)                   # '2.50 KHz'
format_duration(77_000_000_000)      # '1m17s'
duration_percentile([100, 200], 50)  # 150
```

`duration_percentile` takes sorted, non-empty values and a percentile from 0
to 100, and interpolates linearly between the two closest observations.

## Concurrent reads

`bucketfs.job` and `bucketfs.concurrent_read` compare reader configurations
over a list of objects from one bucket.

- `Job(protocol, connections, implementation)` describes one configuration;
  `implementation` must be `"vendor"` or `"google"`. `Job.run(client,
  object_names)` reads every object concurrently (up to `connections`
  threads) through `client.new_reader(name)`, which must return a readable,
  closable binary stream, and returns `Stats`. Objects whose reader cannot be
  opened are skipped; a failure while reading raises `ReadError`.
- `Stats` holds total bytes, total files, per-10-second MB/s samples and the
  duration in seconds; `throughput()` gives MB/s, `report()` logs and
  returns a summary, and `query(column)` returns one summary column as text.
- `default_jobs()` returns the four configurations compared by default.
- `parse_object_names(lines)` turns lines of the form `gs://bucket/object`
  into the bucket name and the object names; it raises `ValueError` if a
  line has no object name or the lines name more than one bucket.
- `run_jobs(jobs, client_factory, object_names)` runs each job with the
  client that `client_factory(job)` returns, leaving out jobs whose client
  cannot be created, and `format_summary(stats_list)` renders the results as
  a table.

## Mount flags

`bucketfs.flags.populate_flags(argv)` parses the options accepted when
mounting a bucket into a `FlagStorage` record, with the positional
`[bucket] mountpoint` arguments in `args`. Flags may be written with one or
two dashes, as `--name value` or `--name=value`; boolean flags also accept
`--name`, `--name=true` and `--name=false`. Parsing stops at the first
operand.

```python
from bucketfs.flags import populate_flags

flags = populate_flags(["--dir-mode=711", "--stat-cache-ttl", "1m17s",
                        "-o", "rw,user=alice", "my-bucket", "/mnt/bucket"])
flags.dir_mode        # 0o711
flags.stat_cache_ttl  # 77_000_000_000 (nanoseconds)
flags.mount_options   # {'rw': '', 'user': 'alice'}
flags.args            # ['my-bucket', '/mnt/bucket']
```

Permission bits are parsed as octal (`parse_octal`), time spans in the
`1m17s` / `19ns` style into nanoseconds (`parse_duration`), and the endpoint
into a `urllib.parse.SplitResult`. Repeated `-o` options are merged into
`mount_options`. A bad command line raises `FlagError`. `new_parser()`
returns the underlying `argparse` parser, whose `--help` lists every flag
and default.

## Content cache

`bucketfs.contentcache.ContentCache(temp_dir)` keeps object contents in
files named `gcsfusecache<number>` in `temp_dir` (the system temporary
directory if empty). Next to each it writes a JSON metadata checkpoint,
`<cache file>.json`, recording the bucket, object name, generation and
metageneration.

- `add_or_replace(key, generation, meta_generation, reader)` copies
  `reader` (or nothing, if `None`) into a new cache file, replacing and
  deleting any earlier entry for the same `CacheObjectKey`, and returns the
  `CacheObject`.
- `get(key)` returns the entry or `None`; `remove(key)` deletes its files
  and forgets it; `size()` and `len()` give the number of entries.
- `recover_cache()` reloads entries from metadata files left in the
  directory (`/tmp` if none was given), skipping unreadable or corrupt ones
  and those whose cache file is gone.
- `CacheObject.validate_generation(generation, meta_generation)` reports
  whether the cached contents match an object's current generations.

All methods except `recover_cache` are safe to call from several threads.

## Directory handles

`bucketfs.dirhandle.DirHandle(directory, implicit_dirs)` serves listings of
a directory object that has a `name`, a `lock` and a
`read_entries(token)` method returning a batch of `Dirent`s and the token
for the next batch (`""` when done). `read_dir(offset)` returns the entries
from `offset` on; offset 0 reads the listing afresh, and an offset past the
end raises `OSError` with `EINVAL`. `read_all_entries(directory)` sorts the
entries by name, resolves a file and a directory of the same name with
`fix_conflicting_names` (the file's name gets a trailing newline) and
numbers the entries from 1.

## What this package does not do

It does not mount anything: there is no file system server, no kernel
interface and no mount command, and the flags are only parsed. It has no
bucket client and makes no network requests; the concurrent-read jobs read
through whatever client you supply.