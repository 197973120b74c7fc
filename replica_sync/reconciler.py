"""
One-way reconciliation of a replica tree against a source tree.

A pass runs four phases, always in this order:
  1. sync_files    copy missing files, overwrite files whose digest differs
  2. sync_dirs     create every source directory, empty ones included
  3. remove_files  delete replica files that have no source file
  4. remove_dirs   delete replica directories that have no source directory

Nothing is remembered between passes; every phase lists the live trees again.
Removal runs after copying, so a source tree that vanished mid-pass aborts
the pass before anything in the replica is deleted.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional

from .ignore import IgnoreMatcher
from .logs import log_action
from .tree import DEFAULT_HASH, TreeEntry, check_disjoint, files_equal, iter_tree, map_to


@dataclass
class PassStats:
    dirs_created: int = 0
    files_copied: int = 0
    files_updated: int = 0
    files_deleted: int = 0
    dirs_deleted: int = 0

    @property
    def changes(self) -> int:
        return (
            self.dirs_created
            + self.files_copied
            + self.files_updated
            + self.files_deleted
            + self.dirs_deleted
        )

    def __str__(self) -> str:
        return (
            f"dirs created={self.dirs_created}, copied={self.files_copied}, "
            f"updated={self.files_updated}, files deleted={self.files_deleted}, "
            f"dirs deleted={self.dirs_deleted}"
        )


@dataclass(frozen=True)
class PassResult:
    stats: PassStats
    elapsed_sec: float
    error: Optional[OSError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str:
        if self.error is None:
            return ""
        return str(self.error) or type(self.error).__name__


class TreeReconciler:
    def __init__(
        self,
        source_root: Path,
        replica_root: Path,
        logger: logging.Logger,
        ignore: Optional[IgnoreMatcher] = None,
        hash_name: str = DEFAULT_HASH,
    ):
        self.source_root = Path(source_root)
        self.replica_root = Path(replica_root)
        check_disjoint(self.source_root, self.replica_root)
        self.logger = logger
        self.ignore = ignore if ignore is not None else IgnoreMatcher()
        self.hash_name = hash_name
        self.stats = PassStats()

    def run_pass(self) -> PassResult:
        """Run all four phases; an I/O error stops the pass where it happened."""
        self.stats = PassStats()
        start = time.monotonic()
        try:
            self.ensure_replica_root()
            self.sync_files()
            self.sync_dirs()
            self.remove_files()
            self.remove_dirs()
        except OSError as e:
            return PassResult(self.stats, time.monotonic() - start, error=e)
        return PassResult(self.stats, time.monotonic() - start)

    # -------------------------
    # Phases
    # -------------------------

    def ensure_replica_root(self) -> None:
        if self.replica_root.is_dir():
            return
        self.replica_root.mkdir(parents=True, exist_ok=True)
        self.stats.dirs_created += 1
        log_action(self.logger, "MKDIR", f"Created replica directory: {self.replica_root}")

    def sync_files(self) -> None:
        for entry in self._walk_source():
            if entry.is_dir:
                continue

            dst = map_to(self.replica_root, entry.rel)
            self._make_dirs(entry.rel.parent)
            existed = self._clear_for_file(entry.rel, dst)
            if existed and files_equal(entry.path, dst, self.hash_name):
                continue

            shutil.copyfile(entry.path, dst)
            if existed:
                self.stats.files_updated += 1
                self._log("UPDATE", "Updated file", entry.rel)
            else:
                self.stats.files_copied += 1
                self._log("COPY", "Copied file", entry.rel)

    def sync_dirs(self) -> None:
        for entry in self._walk_source():
            if entry.is_dir:
                self._make_dirs(entry.rel)

    def remove_files(self) -> None:
        source = self._source_index()
        for entry in self._walk_replica():
            if entry.is_dir or source.get(entry.rel) is False:
                continue
            entry.path.unlink()
            self.stats.files_deleted += 1
            self._log("DELETE", "Deleted file", entry.rel)

    def remove_dirs(self) -> None:
        source = self._source_index()
        # listed up front: deleting while scandir is still descending would fail
        for entry in list(self._walk_replica()):
            if not entry.is_dir or not os.path.lexists(entry.path):
                continue
            if source.get(entry.rel) is True:
                continue
            shutil.rmtree(entry.path)
            self.stats.dirs_deleted += 1
            self._log("RMDIR", "Deleted directory", entry.rel)

    # -------------------------
    # Helpers
    # -------------------------

    def _walk_source(self) -> Iterator[TreeEntry]:
        skip = self.ignore.is_ignored if self.ignore else None
        return iter_tree(self.source_root, follow_symlinks=True, skip=skip)

    def _walk_replica(self) -> Iterator[TreeEntry]:
        return iter_tree(self.replica_root, follow_symlinks=False)

    def _source_index(self) -> dict[PurePosixPath, bool]:
        """Relative path -> is_dir for everything the source walk reaches."""
        return {entry.rel: entry.is_dir for entry in self._walk_source()}

    def _make_dirs(self, rel: PurePosixPath) -> None:
        """Create replica_root/rel one level at a time, replacing non-directories in the way."""
        current = self.replica_root
        done = PurePosixPath()
        for part in rel.parts:
            current = current / part
            done = done / part
            if current.is_symlink() or (current.exists() and not current.is_dir()):
                current.unlink()
                self.stats.files_deleted += 1
                self._log("DELETE", "Deleted file", done)
            if not current.is_dir():
                current.mkdir(exist_ok=True)
                self.stats.dirs_created += 1
                self._log("MKDIR", "Created folder", done)

    def _clear_for_file(self, rel: PurePosixPath, dst: Path) -> bool:
        """Make dst writable as a regular file; return True if one is already there."""
        if dst.is_symlink() or (dst.exists() and not dst.is_dir() and not dst.is_file()):
            dst.unlink()
            self.stats.files_deleted += 1
            self._log("DELETE", "Deleted file", rel)
            return False
        if dst.is_dir():
            shutil.rmtree(dst)
            self.stats.dirs_deleted += 1
            self._log("RMDIR", "Deleted directory", rel)
            return False
        return dst.exists()

    def _log(self, action: str, what: str, rel: PurePosixPath) -> None:
        log_action(self.logger, action, f"{what}: {rel.as_posix()}")
