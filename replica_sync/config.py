from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigError
from .tree import DEFAULT_HASH, HASH_CHOICES, check_disjoint, is_subpath


@dataclass(frozen=True)
class AppConfig:
    source_dir: Path
    replica_dir: Path
    interval_sec: int
    log_file: Path
    excludes: tuple[str, ...] = ()
    hash_name: str = DEFAULT_HASH
    watch: bool = False
    once: bool = False


def positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {raw!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number of seconds: {value}")
    return value


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="replica-sync",
        description="Periodically mirror a source folder onto a replica folder.",
    )
    p.add_argument("source", type=str, help="Folder to mirror (source).")
    p.add_argument("replica", type=str, help="Folder kept identical to the source (replica).")
    p.add_argument("interval", type=positive_int, help="Seconds to wait between synchronization passes.")
    p.add_argument("log_file", type=str, help="File every action is appended to.")
    p.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="gitignore-style pattern to leave out of the replica (repeatable).",
    )
    p.add_argument("--hash", dest="hash_name", choices=HASH_CHOICES, default=DEFAULT_HASH,
                   help="Digest used to compare file contents.")
    p.add_argument("--watch", action="store_true",
                   help="Also start a pass soon after the source changes.")
    p.add_argument("--once", action="store_true", help="Run a single pass and exit.")
    return p.parse_args(argv)


def validate_paths(source: Path, replica: Path, log_file: Path) -> tuple[Path, Path, Path]:
    source = source.expanduser().resolve()
    replica = replica.expanduser().resolve()

    if not source.exists() or not source.is_dir():
        raise ConfigError(f"Source folder does not exist or is not a folder: {source}")
    check_disjoint(source, replica)
    if replica.exists() and not replica.is_dir():
        raise ConfigError(f"Replica path exists and is not a folder: {replica}")

    log_file = validate_log_file(source, replica, log_file)
    return source, replica, log_file


def validate_log_file(source: Path, replica: Path, log_file: Path) -> Path:
    """Check where the log goes; needs no existing paths, so it can run before logging is set up."""
    log_file = log_file.expanduser().resolve()
    if log_file.is_dir():
        raise ConfigError(f"Log file path is a folder: {log_file}")
    if is_subpath(log_file, replica.expanduser()):
        raise ConfigError("Log file must NOT be inside replica folder (it would be deleted as stale).")
    if is_subpath(log_file, source.expanduser()):
        raise ConfigError("Log file must NOT be inside source folder (it would be copied on every pass).")
    return log_file


def build_config(args: argparse.Namespace) -> AppConfig:
    source, replica, log_file = validate_paths(Path(args.source), Path(args.replica), Path(args.log_file))
    return AppConfig(
        source_dir=source,
        replica_dir=replica,
        interval_sec=args.interval,
        log_file=log_file,
        excludes=tuple(args.exclude),
        hash_name=args.hash_name,
        watch=args.watch,
        once=args.once,
    )
