"""Line counting shared by the tree display and the bundle totals."""

from __future__ import annotations

ESTIMATED_BYTES_PER_LINE = 40


def normalize_newlines(text: str) -> str:
    """Convert `\\r\\n` and lone `\\r` line endings to `\\n`.

    Args:
        text (str): the text to normalize

    Returns:
        str: the text with only `\\n` line endings
    """
    return text.replace("\r\n", "\n").replace("\r", "\n")


def count_lines(text: str) -> int:
    """Count logical lines the way the bundle totals report them.

    An empty string has 0 lines, anything else has one more line than it has
    newlines, so a trailing newline opens a final empty line.

    Args:
        text (str): the text to count

    Returns:
        int: the number of lines
    """
    if not text:
        return 0
    return normalize_newlines(text).count("\n") + 1


def estimate_line_count(size: int) -> int:
    """Provisional line count for a file whose content is not read yet."""
    if size <= 0:
        return 0
    return max(1, size // ESTIMATED_BYTES_PER_LINE)
