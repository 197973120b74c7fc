from __future__ import annotations

from pathlib import PurePosixPath
from typing import Iterable

from pathspec import PathSpec


class IgnoreMatcher:
    """gitignore-style exclusion of relative paths (shared by both roots)."""

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns = [p for p in patterns if p.strip()]
        self.spec = PathSpec.from_lines("gitwildmatch", self.patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def is_ignored(self, rel: PurePosixPath, is_dir: bool = False) -> bool:
        if not self.patterns:
            return False
        rel_posix = rel.as_posix()
        if is_dir and not rel_posix.endswith("/"):
            rel_posix += "/"
        if self.spec.match_file(rel_posix):
            return True
        # anything below an excluded directory is excluded too
        return any(
            self.spec.match_file(parent.as_posix() + "/")
            for parent in rel.parents
            if parent.parts
        )
