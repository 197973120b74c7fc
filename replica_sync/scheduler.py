"""
Pass scheduling.

- PassScheduler runs one pass at a time on its own thread and waits the
  configured interval after each one (measured from the end of the pass).
- SourceChangeHandler (watchdog) shortens the wait when the source changes;
  the change only wakes the scheduler, so passes still never overlap.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path, PurePosixPath
from typing import Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .ignore import IgnoreMatcher
from .reconciler import PassResult, TreeReconciler

SETTLE_SEC = 1.0

# watchdog reports these without any content change
QUIET_EVENTS = {"opened", "closed_no_write"}


class PassScheduler(threading.Thread):
    def __init__(
        self,
        reconciler: TreeReconciler,
        interval_sec: float,
        logger: logging.Logger,
        stop_event: Optional[threading.Event] = None,
        settle_sec: float = SETTLE_SEC,
    ):
        super().__init__(name="replica-sync-scheduler", daemon=True)
        self.reconciler = reconciler
        self.interval_sec = float(interval_sec)
        self.logger = logger
        self.stop_event = stop_event or threading.Event()
        self.settle_sec = settle_sec
        self._wake = threading.Event()
        self.passes = 0

    def run(self) -> None:
        self.logger.info("SCHEDULER: started (interval=%.0fs)", self.interval_sec)
        while not self.stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                self.logger.exception("Unexpected error during synchronization")
            self._wait()
        self.logger.info("SCHEDULER: stopped")

    def run_once(self) -> PassResult:
        self._wake.clear()
        result = self.reconciler.run_pass()
        self.passes += 1
        if result.ok:
            self.logger.info("Synchronization completed. %s (%.2fs)", result.stats, result.elapsed_sec)
        else:
            self.logger.error("Error during synchronization: %s", result.reason)
        return result

    def notify(self) -> None:
        """Ask for the next pass to start early."""
        self._wake.set()

    def stop(self) -> None:
        self.stop_event.set()
        self._wake.set()

    def _wait(self) -> None:
        if self.stop_event.is_set():
            return
        woke = self._wake.wait(self.interval_sec)
        if woke and not self.stop_event.is_set():
            # let a burst of source events finish before the next pass
            self.stop_event.wait(self.settle_sec)


# -------------------------
# Watchdog trigger
# -------------------------

class SourceChangeHandler(FileSystemEventHandler):
    def __init__(self, source_root: Path, ignore: IgnoreMatcher, scheduler: PassScheduler):
        self.source_root = Path(source_root)
        self.ignore = ignore
        self.scheduler = scheduler

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in QUIET_EVENTS:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if all(self._ignored(p, event.is_directory) for p in paths if p):
            return
        self.scheduler.notify()

    def _ignored(self, raw, is_dir: bool) -> bool:
        if isinstance(raw, bytes):
            raw = raw.decode(errors="surrogateescape")
        try:
            rel = Path(raw).relative_to(self.source_root)
        except ValueError:
            return True
        if not rel.parts:
            return False
        return self.ignore.is_ignored(PurePosixPath(rel.as_posix()), is_dir=is_dir)


def start_watcher(source_root: Path, ignore: IgnoreMatcher, scheduler: PassScheduler) -> Observer:
    handler = SourceChangeHandler(source_root, ignore, scheduler)
    observer = Observer()
    observer.schedule(handler, str(source_root), recursive=True)
    observer.start()
    return observer
