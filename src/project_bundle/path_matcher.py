from __future__ import annotations

import re
from functools import lru_cache

from project_bundle.config import ExclusionTables


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a `*` glob into an anchored, case-sensitive regular expression.

    Only `*` is special (zero or more characters); every other character is
    matched literally.

    Args:
        pattern (str): the glob pattern, e.g. `*.min.js`

    Returns:
        re.Pattern[str]: the compiled pattern, to be used with `fullmatch`
    """
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")))


class PathMatcher:
    """Decide whether a file or folder name is excluded by default.

    Folders are excluded when their name equals, or contains, an entry of the
    folder table. Files are excluded when their name equals an entry of the
    file table, ends with a literal entry, or matches a `*` glob entry.
    """

    def __init__(self, tables: ExclusionTables | None = None) -> None:
        self.tables = tables or ExclusionTables()
        self._folders = tuple(self.tables.folders)
        self._file_names = frozenset(p for p in self.tables.files if "*" not in p)
        self._file_suffixes = tuple(p for p in self.tables.files if "*" not in p)
        self._file_globs = tuple(glob_to_regex(p) for p in self.tables.files if "*" in p)

    def is_excluded_by_default(self, name: str, *, is_dir: bool) -> bool:
        """Check a single path segment against the exclusion tables.

        Args:
            name (str): the final path segment
            is_dir (bool): whether the segment names a directory

        Returns:
            bool: True if the name is excluded by default
        """
        if is_dir:
            return any(name == folder or folder in name for folder in self._folders)
        if name in self._file_names:
            return True
        if name.endswith(self._file_suffixes):
            return True
        return any(rx.fullmatch(name) for rx in self._file_globs)


def is_excluded_by_default(name: str, *, is_dir: bool, tables: ExclusionTables | None = None) -> bool:
    """Functional shortcut around `PathMatcher.is_excluded_by_default`."""
    return PathMatcher(tables).is_excluded_by_default(name, is_dir=is_dir)
