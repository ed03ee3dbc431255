from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from project_bundle.line_counter import count_lines, estimate_line_count
from project_bundle.logging import logger
from project_bundle.path_matcher import PathMatcher
from project_bundle.tree import ProjectTree, TreeNode

if TYPE_CHECKING:
    from collections.abc import Iterable

    from project_bundle.config import FileEntry


@dataclass
class _Draft:
    """Mutable node record used while the flat listing is being folded into a tree."""

    name: str
    path: str
    is_dir: bool
    size: int = 0
    line_count: int = 0
    children: dict[str, _Draft] = field(default_factory=dict)


def normalize_rel(rel: str) -> str:
    """Normalize a relative path to `/` separators without leading `./` or `/`.

    Args:
        rel (str): the raw relative path

    Returns:
        str: the normalized path, or "" if nothing usable remains
    """
    parts = [p for p in rel.replace("\\", "/").split("/") if p and p != "."]
    if any(p == ".." for p in parts):
        return ""
    return "/".join(parts)


def sort_key(node: TreeNode) -> tuple[int, str, str]:
    """Order directories before files, then case-insensitively by name, then by raw name."""
    return (0 if node.is_dir else 1, node.name.lower(), node.name)


def initial_line_count(entry: FileEntry) -> int:
    """Line count known at build time.

    Args:
        entry (FileEntry): the file entry

    Returns:
        int: the exact count when content is available, 0 for binary files,
            otherwise an estimate derived from the byte size
    """
    if entry.is_binary:
        return 0
    if entry.content is not None:
        return count_lines(entry.content)
    if entry.reader is None:
        return 0
    return estimate_line_count(entry.size)


def _insert(top: dict[str, _Draft], entry: FileEntry, rel: str) -> bool:
    parts = rel.split("/")
    level = top
    for i, part in enumerate(parts):
        is_last = i == len(parts) - 1
        is_dir = entry.is_dir if is_last else True
        node = level.get(part)
        if node is None:
            node = _Draft(name=part, path="/".join(parts[: i + 1]), is_dir=is_dir)
            level[part] = node
        elif node.is_dir != is_dir:
            logger.warning("Skipping entry with conflicting path", path=entry.rel, conflict=node.path)
            return False
        if is_last and not is_dir:
            node.size = entry.size
            node.line_count = initial_line_count(entry)
        level = node.children
    return True


def _freeze(draft: _Draft, matcher: PathMatcher, *, parent_excluded: bool) -> TreeNode:
    by_default = matcher.is_excluded_by_default(draft.name, is_dir=draft.is_dir)
    excluded = by_default or parent_excluded
    children = sorted(
        (_freeze(c, matcher, parent_excluded=excluded) for c in draft.children.values()),
        key=sort_key,
    )
    return TreeNode(
        name=draft.name,
        path=draft.path,
        is_dir=draft.is_dir,
        excluded_by_default=by_default,
        excluded=excluded,
        size=draft.size,
        line_count=0 if draft.is_dir else draft.line_count,
        children=tuple(children),
    )


def build_tree(entries: Iterable[FileEntry], matcher: PathMatcher | None = None) -> ProjectTree:
    """Build a sorted project tree from a flat directory listing.

    Intermediate folders are created for every path prefix. Effective exclusion
    is propagated top-down (an excluded folder excludes its whole subtree) and
    children are sorted directories first, then case-insensitively by name.
    Entries with unusable or conflicting paths are skipped with a warning.

    Args:
        entries (Iterable[FileEntry]): the flat listing, in any order
        matcher (PathMatcher | None): exclusion matcher; defaults to the default tables

    Returns:
        ProjectTree: the built tree
    """
    matcher = matcher or PathMatcher()
    top: dict[str, _Draft] = {}
    skipped = 0
    for entry in entries:
        rel = normalize_rel(entry.rel)
        if not rel:
            logger.warning("Skipping entry with unusable path", path=entry.rel)
            skipped += 1
            continue
        if not _insert(top, entry, rel):
            skipped += 1

    roots = sorted((_freeze(d, matcher, parent_excluded=False) for d in top.values()), key=sort_key)
    tree = ProjectTree(roots)
    logger.info("Built project tree", nodes=len(tree.index), skipped=skipped)
    return tree
