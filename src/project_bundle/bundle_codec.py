from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, computed_field

from project_bundle.config import MAX_BUNDLE_FILE_BYTES
from project_bundle.exceptions import FileReadError, SizeLimitError
from project_bundle.line_counter import count_lines
from project_bundle.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    ContentLoader = Callable[[str], str]

TITLE = "PROJECT BUNDLE FOR AI ANALYSIS"
SEPARATOR = "=============================="
DESCRIPTION = (
    "This file contains multiple project files separated by file headers.",
    'Each file is prefixed with "##### FILE: [relative_path] #####"',
    'Files are separated by "##### END FILE #####"',
)
FILE_PREFIX = "##### FILE: "
FILE_SUFFIX = " #####"
END_FILE = "##### END FILE #####"

_COMMENT_STYLES = (
    "// {}",
    "//{}",
    "# {}",
    "#{}",
    "<!-- {} -->",
    "<!--{}-->",
)


def totals_line(total_files: int, total_lines: int) -> str:
    """Render the header line carrying the bundle totals."""
    return f"Total files: {total_files}, Total lines: {total_lines}"


def file_header(path: str) -> str:
    """Render the delimiter line opening a file section."""
    return f"{FILE_PREFIX}{path}{FILE_SUFFIX}"


def path_variants(path: str) -> list[str]:
    """Spellings under which a file may refer to itself in a leading comment.

    Args:
        path (str): the relative path of the file, e.g. `proj/src/app.js`

    Returns:
        list[str]: the full path, the path without a leading slash, the path
            without its first segment, and the bare file name
    """
    variants = [path]
    if path.startswith("/"):
        variants.append(path[1:])
    parts = path.split("/")
    if len(parts) > 1:
        variants.append("/".join(parts[1:]))
    variants.append(parts[-1])
    return variants


def path_comment_candidates(path: str) -> set[str]:
    """Every `//`, `#` and `<!-- -->` comment line naming one of the path variants."""
    return {style.format(v) for v in path_variants(path) for style in _COMMENT_STYLES}


def strip_path_comment(content: str, path: str) -> str:
    """Drop a first line that only repeats the file's own path as a comment.

    Files that were bundled before (or that carry a `// src/app.js` banner)
    would otherwise embed their path twice.

    Args:
        content (str): the file text
        path (str): the relative path the file is bundled under

    Returns:
        str: `content` without its first line when that line, trimmed, is one of
            the path comment candidates; `content` unchanged otherwise
    """
    if not content or not path:
        return content
    first, sep, rest = content.partition("\n")
    if first.strip() in path_comment_candidates(path):
        return rest if sep else ""
    return content


class BundleFile(BaseModel):
    """One file embedded in a bundle."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str

    @computed_field
    @property
    def line_count(self) -> int:
        """Lines of the embedded content."""
        return count_lines(self.content)


def encode(pairs: Iterable[tuple[str, str]]) -> str:
    """Serialize `(path, content)` pairs into bundle text.

    The header carries the totals of the given pairs; every file section is the
    FILE delimiter line, the content verbatim, the END FILE line and a blank line.

    Args:
        pairs (Iterable[tuple[str, str]]): the files, in bundle order

    Returns:
        str: the bundle text
    """
    items = list(pairs)
    total_lines = sum(count_lines(content) for _, content in items)
    parts: list[str] = [
        TITLE,
        SEPARATOR,
        *DESCRIPTION,
        totals_line(len(items), total_lines),
        SEPARATOR,
        "",
    ]
    for path, content in items:
        parts.extend((file_header(path), content, END_FILE, ""))
    return "\n".join(parts)


def decode(text: str) -> list[tuple[str, str]]:
    """Split bundle text back into `(path, content)` pairs.

    Everything before the first FILE delimiter is treated as the header. A file
    section ends at the first END FILE line following its delimiter.

    Args:
        text (str): bundle text produced by `encode`

    Returns:
        list[tuple[str, str]]: the embedded files, in bundle order
    """
    pairs: list[tuple[str, str]] = []
    current: str | None = None
    buf: list[str] = []
    for line in text.split("\n"):
        if current is None:
            if line.startswith(FILE_PREFIX) and line.endswith(FILE_SUFFIX):
                current = line[len(FILE_PREFIX) : -len(FILE_SUFFIX)]
                buf = []
            continue
        if line == END_FILE:
            pairs.append((current, "\n".join(buf)))
            current = None
            continue
        buf.append(line)
    if current is not None:
        logger.warning("Bundle ends inside a file section", path=current)
    return pairs


class Bundle(BaseModel):
    """An ordered set of files plus the counters reported for it."""

    model_config = ConfigDict(frozen=True)

    files: tuple[BundleFile, ...] = ()

    @computed_field
    @property
    def total_files(self) -> int:
        """Number of embedded files."""
        return len(self.files)

    @computed_field
    @property
    def total_lines(self) -> int:
        """Sum of the embedded files' line counts."""
        return sum(f.line_count for f in self.files)

    @cached_property
    def text(self) -> str:
        """The serialized bundle, encoded once per instance."""
        return encode((f.path, f.content) for f in self.files)

    @computed_field
    @property
    def bundle_size(self) -> int:
        """Size of the serialized bundle in UTF-8 bytes."""
        return len(self.text.encode("utf-8"))


def assemble_bundle(
    paths: Sequence[str],
    load: ContentLoader,
    *,
    max_bytes: int = MAX_BUNDLE_FILE_BYTES,
    strip_comments: bool = True,
) -> Bundle:
    """Load the selected files and build a bundle from the readable ones.

    Files that are missing, unreadable, not UTF-8 or larger than `max_bytes`
    are logged and skipped; they are left out of the totals.

    Args:
        paths (Sequence[str]): relative paths in bundle order
        load (ContentLoader): returns a file's text or raises `FileReadError`
        max_bytes (int): maximum UTF-8 size of a file's content
        strip_comments (bool): drop leading self-referential path comments

    Returns:
        Bundle: the assembled bundle
    """
    files: list[BundleFile] = []
    for path in paths:
        try:
            content = load(path)
            size = len(content.encode("utf-8"))
            if size > max_bytes:
                raise SizeLimitError(path=path, size=size, limit=max_bytes)
        except FileReadError as e:
            logger.warning("Skipping file", path=path, reason=e.message)
            continue
        if strip_comments:
            content = strip_path_comment(content, path)
        files.append(BundleFile(path=path, content=content))
    logger.info("Assembled bundle", requested=len(paths), included=len(files))
    return Bundle(files=tuple(files))
