"""
replica-sync entry point.

Usage
  replica-sync SOURCE REPLICA INTERVAL LOG_FILE
  replica-sync /data/work /backup/work 60 /var/log/replica-sync.log --exclude "*.tmp" --watch
  python -m replica_sync /src /dst 10 sync.log --once

Stops on Ctrl+C, SIGTERM, or "q" + Enter; a pass already running finishes first.
"""

from __future__ import annotations

import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from .config import build_config, parse_args, validate_log_file
from .errors import ConfigError
from .ignore import IgnoreMatcher
from .logs import close_logger, setup_logger
from .reconciler import TreeReconciler
from .scheduler import PassScheduler, start_watcher


def _listen_for_quit(scheduler: PassScheduler) -> None:
    for line in sys.stdin:
        if line.strip().lower() == "q":
            scheduler.stop()
            return


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])

    try:
        log_file = validate_log_file(Path(args.source), Path(args.replica), Path(args.log_file))
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2

    try:
        logger = setup_logger(log_file)
    except OSError as e:
        print(f"Cannot open log file {args.log_file}: {e}", file=sys.stderr)
        return 2

    try:
        try:
            cfg = build_config(args)
        except ConfigError as e:
            logger.error("Config error: %s", e)
            return 2

        logger.info("Source : %s", cfg.source_dir)
        logger.info("Replica: %s", cfg.replica_dir)
        if cfg.excludes:
            logger.info("Exclude: %s", ", ".join(cfg.excludes))

        ignore = IgnoreMatcher(cfg.excludes)
        reconciler = TreeReconciler(cfg.source_dir, cfg.replica_dir, logger, ignore=ignore, hash_name=cfg.hash_name)
        scheduler = PassScheduler(reconciler, cfg.interval_sec, logger)

        if cfg.once:
            return 0 if scheduler.run_once().ok else 1

        return _run_forever(cfg.source_dir, ignore, scheduler, cfg.watch, logger)
    finally:
        close_logger(logger)


def _run_forever(source_dir: Path, ignore: IgnoreMatcher, scheduler: PassScheduler, watch: bool, logger) -> int:
    previous_sigterm = None
    if threading.current_thread() is threading.main_thread():
        previous_sigterm = signal.signal(signal.SIGTERM, lambda signum, frame: scheduler.stop())

    observer = None
    if watch:
        observer = start_watcher(source_dir, ignore, scheduler)
        logger.info("Watching %s for changes", source_dir)

    if sys.stdin is not None and sys.stdin.isatty():
        threading.Thread(target=_listen_for_quit, args=(scheduler,), daemon=True).start()
        logger.info("Starting... (type 'q' + Enter or Ctrl+C to stop)")
    else:
        logger.info("Starting... (Ctrl+C to stop)")

    try:
        scheduler.start()
        while scheduler.is_alive():
            scheduler.join(timeout=0.5)
    except KeyboardInterrupt:
        logger.info("Stopping... (waiting for the current pass)")
        scheduler.stop()
        # a second Ctrl+C here aborts the wait
        while scheduler.is_alive():
            scheduler.join(timeout=0.5)
    finally:
        scheduler.stop()
        if observer is not None:
            observer.stop()
            observer.join(timeout=10)
        if previous_sigterm is not None:
            signal.signal(signal.SIGTERM, previous_sigterm)
        logger.info("Stopped.")
    return 0
