"""Replace provisional line counts with real ones once lazy file reads settle."""

from __future__ import annotations

import asyncio
import itertools
from typing import TYPE_CHECKING

from project_bundle.line_counter import count_lines
from project_bundle.logging import logger
from project_bundle.tree_builder import normalize_rel

if TYPE_CHECKING:
    from collections.abc import Iterable

    from project_bundle.config import FileEntry
    from project_bundle.tree import ProjectTree


class BuildGenerations:
    """Hand out build generation ids and remember which one is current.

    Every new project load calls `begin()`; results tagged with an older id are
    stale and must be dropped.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self.current = 0

    def begin(self) -> int:
        """Start a new build and return its generation id."""
        self.current = next(self._counter)
        return self.current

    def is_current(self, generation: int) -> bool:
        """Whether `generation` is still the latest build."""
        return generation == self.current


async def read_entry(entry: FileEntry) -> str:
    """Return the text of a file entry, awaiting its lazy reader if needed.

    Args:
        entry (FileEntry): the entry to read

    Raises:
        ValueError: if the entry carries neither content nor a reader

    Returns:
        str: the file text
    """
    if entry.content is not None:
        return entry.content
    if entry.reader is None:
        msg = f"No content available for {entry.rel}"
        raise ValueError(msg)
    return await entry.reader()


async def read_line_counts(entries: Iterable[FileEntry]) -> dict[str, int]:
    """Read every lazy file entry concurrently and count its lines.

    All reads are awaited together; a failed read is logged and left out of the
    result so the caller keeps whatever value it had before.

    Args:
        entries (Iterable[FileEntry]): the listing; directories, binary files and
            entries with synchronous content are ignored

    Returns:
        dict[str, int]: line counts keyed by normalized relative path
    """
    pending = [e for e in entries if not e.is_dir and not e.is_binary and e.content is None and e.reader is not None]
    if not pending:
        return {}
    results = await asyncio.gather(*(read_entry(e) for e in pending), return_exceptions=True)
    counts: dict[str, int] = {}
    for entry, result in zip(pending, results, strict=True):
        if isinstance(result, BaseException):
            logger.warning("Could not read file for line count", path=entry.rel, error=str(result))
            continue
        counts[normalize_rel(entry.rel)] = count_lines(result)
    return counts


async def hydrate_tree(
    tree: ProjectTree,
    entries: Iterable[FileEntry],
    *,
    generation: int,
    generations: BuildGenerations,
) -> ProjectTree | None:
    """Return `tree` with real line counts for its lazily read files.

    Args:
        tree (ProjectTree): the tree built from `entries`
        entries (Iterable[FileEntry]): the listing the tree was built from
        generation (int): the generation id the build was tagged with
        generations (BuildGenerations): the tracker deciding which build is current

    Returns:
        ProjectTree | None: the hydrated tree, or None when a newer build started
            while the reads were in flight
    """
    counts = await read_line_counts(entries)
    if not generations.is_current(generation):
        logger.info("Dropping stale hydration results", generation=generation, current=generations.current)
        return None
    known = {path: n for path, n in counts.items() if path in tree.index}
    return tree.with_line_counts(known)
