from __future__ import annotations

import asyncio
import os
import stat
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from project_bundle.config import MAX_BUNDLE_FILE_BYTES, FileEntry, is_binary_name
from project_bundle.exceptions import (
    EncodingError,
    FileReadError,
    MissingRootPathError,
    NotADirectoryInputError,
    PathOutsideRootError,
    SizeLimitError,
)
from project_bundle.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from project_bundle.selection import SelectionModel
    from project_bundle.tree import TreeNode

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return str(path.relative_to(root)).replace("\\", "/")
    except ValueError:
        return str(path)


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
        return stat.S_ISREG(st.st_mode)
    except OSError:
        return False


def format_file_size(size: int) -> str:
    """Format a byte count for display, e.g. `1.5 KB`.

    Args:
        size (int): the size in bytes

    Returns:
        str: the size with up to two decimals and a B/KB/MB/GB unit
    """
    if size <= 0:
        return "0 B"
    exp = 0
    while size >= 1024 ** (exp + 1) and exp < len(_SIZE_UNITS) - 1:
        exp += 1
    value = round(size / 1024**exp, 2)
    return f"{value:g} {_SIZE_UNITS[exp]}"


def resolve_root(root: str | Path | None) -> Path:
    """Validate a project root given by the caller.

    Args:
        root (str | Path | None): the root path

    Raises:
        MissingRootPathError: if no root was given
        NotADirectoryInputError: if the root is not an existing directory

    Returns:
        Path: the resolved root directory
    """
    if root is None or not str(root).strip():
        raise MissingRootPathError
    path = Path(root).expanduser().resolve()
    if not path.is_dir():
        raise NotADirectoryInputError(folder=path)
    return path


def resolve_within_root(root: Path, file_path: str) -> Path:
    """Resolve a relative (or absolute) file path and make sure it stays under `root`.

    Args:
        root (Path): the resolved project root
        file_path (str): a path relative to `root`, or an absolute path inside it

    Raises:
        PathOutsideRootError: if the path resolves outside of `root`

    Returns:
        Path: the resolved absolute path
    """
    candidate = Path(file_path)
    full = (candidate if candidate.is_absolute() else root / candidate).resolve()
    if not full.is_relative_to(root):
        raise PathOutsideRootError(path=file_path)
    return full


def read_text(path: Path, *, rel: str | None = None, max_bytes: int | None = None) -> str:
    """Read a file as strict UTF-8 text.

    Args:
        path (Path): the file to read
        rel (str | None): the relative path used in error reports
        max_bytes (int | None): refuse files larger than this many bytes

    Raises:
        SizeLimitError: if the file is larger than `max_bytes`
        EncodingError: if the file is binary or not valid UTF-8
        FileReadError: if the file cannot be read

    Returns:
        str: the file text
    """
    shown = rel or str(path)
    try:
        if not is_regular_file(path):
            raise FileReadError(path=shown, message="File not found")  # noqa: TRY301
        size = path.stat().st_size
        if max_bytes is not None and size > max_bytes:
            raise SizeLimitError(path=shown, size=size, limit=max_bytes)  # noqa: TRY301
        if is_binary_name(path.name):
            raise EncodingError(path=shown, message="Binary file")  # noqa: TRY301
        return path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(path=shown) from e
    except OSError as e:
        raise FileReadError(path=shown, message=f"Failed to read file: {e.strerror or e}") from e


async def read_text_async(path: Path, *, rel: str | None = None, max_bytes: int | None = None) -> str:
    """Read a file in a worker thread, see `read_text`."""
    return await asyncio.to_thread(read_text, path, rel=rel, max_bytes=max_bytes)


def walk_entries(root: Path, *, eager: bool = False, max_bytes: int = MAX_BUNDLE_FILE_BYTES) -> list[FileEntry]:
    """Enumerate a directory recursively as a flat listing.

    Nothing is pruned: excluded folders are listed too so that they show up in
    the tree and can be opted back in. Entries that cannot be stat'ed are
    skipped with a warning.

    Args:
        root (Path): the project root
        eager (bool): read file contents now (files over `max_bytes`, binary or
            unreadable files get no content); otherwise attach lazy readers
        max_bytes (int): largest file read eagerly or lazily

    Returns:
        list[FileEntry]: one entry per directory and file, relative to `root`
    """
    entries: list[FileEntry] = []

    def on_error(err: OSError) -> None:
        logger.warning("Skipping unreadable directory", path=str(err.filename), error=err.strerror)

    for current, dirs, files in os.walk(root, onerror=on_error):
        base = Path(current)
        dirs.sort()
        for d in dirs:
            entries.append(FileEntry(rel=relpath(base / d, root), is_dir=True))
        for f in sorted(files):
            p = base / f
            rel = relpath(p, root)
            try:
                st = p.stat()
            except OSError as e:
                logger.warning("Skipping file", path=rel, error=str(e))
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            if eager:
                entries.append(
                    FileEntry(rel=rel, size=st.st_size, content=_read_or_none(p, rel=rel, max_bytes=max_bytes)),
                )
            else:
                reader = partial(read_text_async, p, rel=rel, max_bytes=max_bytes)
                entries.append(FileEntry(rel=rel, size=st.st_size, reader=reader))
    return entries


def _read_or_none(path: Path, *, rel: str, max_bytes: int) -> str | None:
    try:
        return read_text(path, rel=rel, max_bytes=max_bytes)
    except FileReadError as e:
        logger.warning("Skipping file content", path=rel, reason=e.message)
        return None


def make_loader(root: Path, *, max_bytes: int | None = None) -> Callable[[str], str]:
    """Build the content loader used when assembling a bundle from disk.

    Args:
        root (Path): the resolved project root
        max_bytes (int | None): refuse files larger than this many bytes before reading them

    Returns:
        Callable[[str], str]: maps a relative path to its text, raising
            `FileReadError` (or a subclass) on failure
    """

    def load(rel: str) -> str:
        try:
            full = resolve_within_root(root, rel)
        except PathOutsideRootError as e:
            raise FileReadError(path=rel, message=e.message) from e
        return read_text(full, rel=rel, max_bytes=max_bytes)

    return load


def build_tree_lines(
    root_name: str,
    nodes: Sequence[TreeNode],
    selection: SelectionModel | None = None,
) -> list[str]:
    """Build a visual tree representation of project nodes.

    Files are shown with their line count. With a selection, each row gets a
    `[x]`/`[ ]`/`[-]` checkbox (folders use their tri-state) and blocked rows
    are marked `(excluded)`.

    Args:
        root_name (str): the name to use for the root of the tree
        nodes (Sequence[TreeNode]): the top-level nodes, already sorted
        selection (SelectionModel | None): the selection to render, if any

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    lines: list[str] = [root_name]
    marks = {"none": "[ ] ", "partial": "[-] ", "all": "[x] "}

    def label(node: TreeNode) -> str:
        text = node.name + ("/" if node.is_dir else f" ({node.line_count} lines)")
        if selection is None:
            return text + (" (excluded)" if node.excluded else "")
        if selection.is_blocked(node.path):
            return "[ ] " + text + " (excluded)"
        if node.is_dir:
            return marks[selection.folder_state(node.path)] + text
        return ("[x] " if node.path in selection.selected else "[ ] ") + text

    def walk(children: Sequence[TreeNode], prefix: str) -> None:
        for idx, node in enumerate(children):
            last = idx == len(children) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + label(node))
            if node.is_dir:
                ext = "    " if last else "│   "
                walk(node.children, prefix + ext)

    walk(nodes, "")
    return lines
