"""
Filesystem helpers shared by every reconciliation phase.

- iter_tree(): recursive listing, parents before children, one open
  directory handle at a time.
- file_digest() / files_equal(): streamed content comparison.
- map_to() / check_disjoint(): relative-path mapping between the two roots.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Iterator, Optional

from .errors import OverlappingRootsError

DEFAULT_HASH = "sha256"
HASH_CHOICES = ("md5", "sha1", "sha256", "sha512", "blake2b")
CHUNK_SIZE = 1024 * 1024

SkipFn = Callable[[PurePosixPath, bool], bool]


@dataclass(frozen=True)
class TreeEntry:
    path: Path
    rel: PurePosixPath
    is_dir: bool


# -------------------------
# Traversal
# -------------------------

def _dir_key(path: Path) -> tuple[int, int]:
    st = os.stat(path)
    return st.st_dev, st.st_ino


def iter_tree(
    root: Path,
    follow_symlinks: bool = True,
    skip: Optional[SkipFn] = None,
) -> Iterator[TreeEntry]:
    """
    Yield every entry below root, a directory always before its contents.

    With follow_symlinks, linked files and directories are reported as what
    they point to; a link back to a directory already on the current path is
    dropped, so cycles terminate. Dangling links and special files are left out.

    Without follow_symlinks, links and special files are reported as plain
    (non-directory) entries and nothing outside root is ever visited.

    skip(rel, is_dir) drops an entry; a skipped directory is not descended.
    """
    root = Path(root)
    stack = [(root, PurePosixPath(), frozenset({_dir_key(root)}))]
    while stack:
        current, rel_dir, ancestors = stack.pop()
        with os.scandir(current) as it:
            entries = sorted(it, key=lambda e: e.name)

        subdirs = []
        for entry in entries:
            rel = rel_dir / entry.name
            is_dir = entry.is_dir(follow_symlinks=follow_symlinks)
            if follow_symlinks and not is_dir and not entry.is_file():
                continue
            if skip is not None and skip(rel, is_dir):
                continue

            path = Path(entry.path)
            if is_dir:
                chain = ancestors
                if follow_symlinks:
                    key = _dir_key(path)
                    if key in ancestors:
                        continue
                    chain = ancestors | {key}
                subdirs.append((path, rel, chain))
            yield TreeEntry(path=path, rel=rel, is_dir=is_dir)

        stack.extend(reversed(subdirs))


# -------------------------
# Content equality
# -------------------------

def file_digest(path: Path, hash_name: str = DEFAULT_HASH, chunk_size: int = CHUNK_SIZE) -> str:
    h = hashlib.new(hash_name)
    with Path(path).open("rb") as f:
        while True:
            b = f.read(chunk_size)
            if not b:
                break
            h.update(b)
    return h.hexdigest()


def files_equal(a: Path, b: Path, hash_name: str = DEFAULT_HASH) -> bool:
    if os.stat(a).st_size != os.stat(b).st_size:
        return False
    return file_digest(a, hash_name) == file_digest(b, hash_name)


# -------------------------
# Root mapping
# -------------------------

def map_to(root: Path, rel: PurePosixPath) -> Path:
    return Path(root).joinpath(*rel.parts)


def is_subpath(child: Path, parent: Path) -> bool:
    try:
        Path(child).resolve().relative_to(Path(parent).resolve())
        return True
    except ValueError:
        return False


def check_disjoint(source: Path, replica: Path) -> None:
    if Path(source).resolve() == Path(replica).resolve():
        raise OverlappingRootsError("Source and replica folders must be different.")
    if is_subpath(replica, source):
        raise OverlappingRootsError("Replica folder must NOT be inside source folder (would cause loops).")
    if is_subpath(source, replica):
        raise OverlappingRootsError("Source folder must NOT be inside replica folder (it would be deleted as stale).")
