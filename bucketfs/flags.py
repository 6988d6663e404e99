"""Command-line flags for mounting a bucket."""

from __future__ import annotations

import argparse
import re
import sys
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from urllib.parse import SplitResult, urlsplit

APP_NAME = "bucketfs"
USAGE = "%(prog)s [global options] [bucket] mountpoint"
DESCRIPTION = "Mount a specified GCS bucket or all accessible buckets locally"

_NANOSECOND = 1
_MICROSECOND = 1_000
_MILLISECOND = 1_000_000
_SECOND = 1_000_000_000
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE

_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_DURATION_UNITS = {
    "ns": _NANOSECOND,
    "us": _MICROSECOND,
    "µs": _MICROSECOND,
    "μs": _MICROSECOND,
    "ms": _MILLISECOND,
    "s": _SECOND,
    "m": _MINUTE,
    "h": _HOUR,
}
_DURATION_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_OCTAL = re.compile(r"[+-]?[0-7]+")
_LEADING_ZERO_OCTAL = re.compile(r"[+-]?0[0-7_]+")

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class FlagError(ValueError):
    """The command line could not be parsed."""


def parse_octal(value: str) -> int:
    """Parse ``value`` as a signed 32-bit integer written in octal."""
    if not _OCTAL.fullmatch(value):
        raise ValueError(f"Parsing as octal: invalid syntax: {value!r}")
    number = int(value, 8)
    if not _INT32_MIN <= number <= _INT32_MAX:
        raise ValueError(f"Parsing as octal: value out of range: {value!r}")
    return number


def parse_duration(text: str) -> int:
    """Parse a duration such as ``1m17s`` or ``1.5ms`` into nanoseconds."""
    rest = text
    negative = False
    if rest[:1] in ("-", "+") and rest:
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return 0
    if not rest:
        raise ValueError(f"time: invalid duration {text!r}")

    total = 0
    pos = 0
    while pos < len(rest):
        match = _DURATION_COMPONENT.match(rest, pos)
        if match is None:
            raise ValueError(f"time: invalid duration {text!r}")
        try:
            amount = Decimal(match.group(1))
        except InvalidOperation as exc:
            raise ValueError(f"time: invalid duration {text!r}") from exc
        total += int(amount * _DURATION_UNITS[match.group(2)])
        if total > _INT64_MAX:
            raise ValueError(f"time: invalid duration {text!r}")
        pos = match.end()

    return -total if negative else total


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"invalid boolean value {text!r}")


def _parse_int(text: str) -> int:
    if text != text.strip() or not text:
        raise ValueError(f"invalid integer value {text!r}")
    if _LEADING_ZERO_OCTAL.fullmatch(text):
        number = int(text.replace("_", ""), 8)
    else:
        number = int(text, 0)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise ValueError(f"integer value out of range {text!r}")
    return number


def _parse_float(text: str) -> float:
    if text != text.strip() or not text:
        raise ValueError(f"invalid float value {text!r}")
    return float(text)


@dataclass(frozen=True)
class _Flag:
    name: str
    kind: str
    default: object
    help: str


_FLAGS = (
    _Flag("app-name", "string", "", "The application name of this mount."),
    _Flag("foreground", "bool", False, "Stay in the foreground after mounting."),
    # File system
    _Flag("o", "strings", None, "Additional system-specific mount options. Be careful!"),
    _Flag("dir-mode", "octal", 0o755, "Permissions bits for directories, in octal."),
    _Flag("file-mode", "octal", 0o644, "Permission bits for files, in octal."),
    _Flag("uid", "int", -1, "UID owner of all inodes."),
    _Flag("gid", "int", -1, "GID owner of all inodes."),
    _Flag(
        "implicit-dirs",
        "bool",
        False,
        "Implicitly define directories based on content. See docs/semantics.md",
    ),
    _Flag(
        "only-dir",
        "string",
        "",
        "Mount only the given directory, relative to the bucket root.",
    ),
    _Flag(
        "rename-dir-limit",
        "int",
        0,
        "Allow rename a directory containing fewer descendants than this limit.",
    ),
    # GCS
    _Flag(
        "endpoint",
        "string",
        "https://storage.googleapis.com:443",
        "The endpoint to connect to.",
    ),
    _Flag(
        "billing-project",
        "string",
        "",
        "Project to use for billing when accessing requester pays buckets. "
        "(default: none)",
    ),
    _Flag(
        "key-file",
        "string",
        "",
        "Absolute path to JSON key file for use with GCS. "
        "(default: none, application default credentials used)",
    ),
    _Flag(
        "token-url",
        "string",
        "",
        "An url for getting an access token when key-file is absent.",
    ),
    _Flag(
        "limit-bytes-per-sec",
        "float",
        -1.0,
        "Bandwidth limit for reading data, measured over a 30-second window. "
        "(use -1 for no limit)",
    ),
    _Flag(
        "limit-ops-per-sec",
        "float",
        -1.0,
        "Operations per second limit, measured over a 30-second window "
        "(use -1 for no limit)",
    ),
    # Tuning
    _Flag(
        "max-retry-sleep",
        "duration",
        _MINUTE,
        "The maximum duration allowed to sleep in a retry loop with exponential "
        "backoff for failed requests to GCS backend. Once the backoff duration "
        "exceeds this limit, the retry stops. The default is 1 minute. A value "
        "of 0 disables retries.",
    ),
    _Flag(
        "stat-cache-capacity",
        "int",
        4096,
        "How many entries can the stat cache hold (impacts memory consumption)",
    ),
    _Flag(
        "stat-cache-ttl",
        "duration",
        _MINUTE,
        "How long to cache StatObject results and inode attributes.",
    ),
    _Flag(
        "type-cache-ttl",
        "duration",
        _MINUTE,
        "How long to cache name -> file/dir mappings in directory inodes.",
    ),
    _Flag(
        "local-file-cache",
        "bool",
        False,
        "Experimental: Cache GCS files on local disk for reads.",
    ),
    _Flag(
        "temp-dir",
        "string",
        "",
        "Absolute path to temporary directory for local GCS object copies. "
        "(default: system default, likely /tmp)",
    ),
    _Flag(
        "disable-http2",
        "bool",
        False,
        "Once set, the protocol used for communicating with GCS backend would "
        "be HTTP/1.1, instead of the default HTTP/2.",
    ),
    _Flag(
        "max-conns-per-host",
        "int",
        10,
        "The max number of TCP connections allowed per server. This is "
        "effective when --disable-http2 is set.",
    ),
    # Monitoring & logging
    _Flag(
        "stackdriver-export-interval",
        "duration",
        0,
        "Experimental: Export metrics to stackdriver with this interval. The "
        "default value 0 indicates no exporting.",
    ),
    _Flag(
        "opentelemetry-collector-address",
        "string",
        "",
        "Experimental: Export metrics to the OpenTelemetry collector at this address.",
    ),
    _Flag(
        "log-file",
        "string",
        "",
        "The file for storing logs that can be parsed by fluentd. When not "
        "provided, plain text logs are printed to stdout.",
    ),
    _Flag("log-format", "string", "json", "The format of the log file: 'text' or 'json'."),
    # Debugging
    _Flag("debug_fuse", "bool", False, "Enable fuse-related debugging output."),
    _Flag("debug_fs", "bool", False, "Enable file system debugging output."),
    _Flag("debug_gcs", "bool", False, "Print GCS request and timing information."),
    _Flag("debug_http", "bool", False, "Dump HTTP requests and responses to/from GCS."),
    _Flag("debug_invariants", "bool", False, "Panic when internal invariants are violated."),
    _Flag("debug_mutex", "bool", False, "Print debug messages when a mutex is held too long."),
)

_FLAGS_BY_NAME = {flag.name: flag for flag in _FLAGS}


@dataclass
class FlagStorage:
    """Parsed flag values; durations are in nanoseconds."""

    app_name: str
    foreground: bool

    # File system
    dir_mode: int
    file_mode: int
    uid: int
    gid: int
    implicit_dirs: bool
    only_dir: str
    rename_dir_limit: int

    # GCS
    endpoint: SplitResult
    billing_project: str
    key_file: str
    token_url: str
    egress_bandwidth_limit_bytes_per_second: float
    op_rate_limit_hz: float

    # Tuning
    max_retry_sleep: int
    stat_cache_capacity: int
    stat_cache_ttl: int
    type_cache_ttl: int
    local_file_cache: bool
    temp_dir: str
    disable_http2: bool
    max_conns_per_host: int

    # Monitoring & logging
    stackdriver_export_interval: int
    otel_collector_address: str
    log_file: str
    log_format: str

    # Debugging
    debug_fuse: bool
    debug_fs: bool
    debug_gcs: bool
    debug_http: bool
    debug_invariants: bool
    debug_mutex: bool

    mount_options: dict[str, str] = field(default_factory=dict)
    args: list[str] = field(default_factory=list)


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise FlagError(message)


def new_parser() -> argparse.ArgumentParser:
    """Build the parser for the mount command's flags and positional arguments."""
    parser = _Parser(
        prog=APP_NAME,
        usage=USAGE,
        description=DESCRIPTION,
        allow_abbrev=False,
    )
    converters = {
        "string": str,
        "int": _parse_int,
        "float": _parse_float,
        "duration": parse_duration,
        "octal": parse_octal,
    }
    for flag in _FLAGS:
        option = "--" + flag.name
        if flag.kind == "bool":
            parser.add_argument(
                option,
                type=_parse_bool,
                nargs="?",
                const=True,
                default=False,
                metavar="BOOL",
                help=flag.help,
            )
        elif flag.kind == "strings":
            parser.add_argument(option, action="append", default=None, help=flag.help)
        elif flag.kind == "octal":
            parser.add_argument(
                option,
                type=parse_octal,
                default=flag.default,
                help=f"{flag.help} (default: {flag.default:o})",
            )
        else:
            parser.add_argument(
                option,
                type=converters[flag.kind],
                default=flag.default,
                help=flag.help,
            )
    parser.add_argument("args", nargs="*", metavar="[bucket] mountpoint")
    return parser


def _normalize(argv: list[str]) -> list[str]:
    """Rewrite flags into ``--name=value`` form; flag parsing stops at the first operand."""
    out: list[str] = []
    tokens = iter(argv)
    for token in tokens:
        if token == "--":
            out.append("--")
            out.extend(tokens)
            break
        if token == "-" or not token.startswith("-"):
            out.append("--")
            out.append(token)
            out.extend(tokens)
            break

        body = token[2:] if token.startswith("--") else token[1:]
        name, sep, value = body.partition("=")
        flag = _FLAGS_BY_NAME.get(name)
        if flag is None or not name:
            out.append(token)
            continue

        if flag.kind == "bool":
            out.append(f"--{name}={value if sep else 'true'}")
            continue

        if not sep:
            following = next(tokens, None)
            if following is None:
                out.append(f"--{name}")
                continue
            value = following
        out.append(f"--{name}={value}")
    return out


def _parse_mount_options(options: dict[str, str], text: str) -> None:
    for part in text.split(","):
        name, _, value = part.partition("=")
        options[name] = value


def _parse_endpoint(text: str) -> SplitResult:
    try:
        return urlsplit(text)
    except ValueError as exc:
        raise FlagError("Could not parse endpoint") from exc


def populate_flags(argv: list[str] | None = None) -> FlagStorage:
    """Parse ``argv`` (without the program name) into a FlagStorage."""
    if argv is None:
        argv = sys.argv[1:]
    ns = new_parser().parse_args(_normalize(list(argv)))

    storage = FlagStorage(
        app_name=ns.app_name,
        foreground=ns.foreground,
        dir_mode=ns.dir_mode,
        file_mode=ns.file_mode,
        uid=ns.uid,
        gid=ns.gid,
        implicit_dirs=ns.implicit_dirs,
        only_dir=ns.only_dir,
        rename_dir_limit=ns.rename_dir_limit,
        endpoint=_parse_endpoint(ns.endpoint),
        billing_project=ns.billing_project,
        key_file=ns.key_file,
        token_url=ns.token_url,
        egress_bandwidth_limit_bytes_per_second=ns.limit_bytes_per_sec,
        op_rate_limit_hz=ns.limit_ops_per_sec,
        max_retry_sleep=ns.max_retry_sleep,
        stat_cache_capacity=ns.stat_cache_capacity,
        stat_cache_ttl=ns.stat_cache_ttl,
        type_cache_ttl=ns.type_cache_ttl,
        local_file_cache=ns.local_file_cache,
        temp_dir=ns.temp_dir,
        disable_http2=ns.disable_http2,
        max_conns_per_host=ns.max_conns_per_host,
        stackdriver_export_interval=ns.stackdriver_export_interval,
        otel_collector_address=ns.opentelemetry_collector_address,
        log_file=ns.log_file,
        log_format=ns.log_format,
        debug_fuse=ns.debug_fuse,
        debug_fs=ns.debug_fs,
        debug_gcs=ns.debug_gcs,
        debug_http=ns.debug_http,
        debug_invariants=ns.debug_invariants,
        debug_mutex=ns.debug_mutex,
        args=list(ns.args),
    )

    for option in ns.o or []:
        _parse_mount_options(storage.mount_options, option)

    return storage