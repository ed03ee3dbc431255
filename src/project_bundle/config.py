from __future__ import annotations

from collections.abc import Awaitable, Callable  # noqa: TC003
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator

from project_bundle.exceptions import InvalidConfigError

ContentReader = Callable[[], Awaitable[str]]

MAX_BUNDLE_FILE_BYTES = 1024 * 1024

DEFAULT_EXCLUDED_FOLDERS: tuple[str, ...] = (
    ".git",
    ".vscode",
    "node_modules",
    "__pycache__",
    "target",
    "dist",
    "build",
    ".next",
    ".nuxt",
    "out",
)

DEFAULT_EXCLUDED_FILES: tuple[str, ...] = (
    # exact names
    ".gitignore",
    ".env",
    "package-lock.json",
    "yarn.lock",
    ".DS_Store",
    "Thumbs.db",
    # suffixes
    ".log",
    ".tmp",
    # globs
    "*.min.js",
    "*.min.css",
    "*.map",
    "*.tar",
    "*.gz",
    "*.zip",
    "*.pdf",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.ico",
    "*.svg",
    "*.woff",
    "*.woff2",
    "*.ttf",
    "*.eot",
    "*.bin",
)

BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".bmp",
        ".ico",
        ".svg",
        ".pdf",
        ".zip",
        ".tar",
        ".gz",
        ".7z",
        ".rar",
        ".exe",
        ".dll",
        ".so",
        ".dylib",
        ".mp3",
        ".mp4",
        ".avi",
        ".mov",
        ".wav",
        ".doc",
        ".docx",
        ".xls",
        ".xlsx",
        ".ppt",
        ".pptx",
        ".woff",
        ".woff2",
        ".ttf",
        ".eot",
        ".bin",
    },
)


def is_binary_name(name: str) -> bool:
    """Check if a file name has a well-known binary extension."""
    return Path(name).suffix.lower() in BINARY_EXTENSIONS


class ExclusionTables(BaseModel):
    """Default-exclusion pattern tables consulted by the path matcher.

    Attributes:
        folders: folder names excluded on exact or substring match.
        files: file names excluded on exact match, literal suffix, or `*` glob.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    folders: tuple[str, ...] = Field(default=DEFAULT_EXCLUDED_FOLDERS, description="Excluded folder names")
    files: tuple[str, ...] = Field(default=DEFAULT_EXCLUDED_FILES, description="Excluded file patterns")

    @field_validator("folders", "files", mode="before")
    @classmethod
    def _drop_blank(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, (list, tuple)):
            return tuple(str(v).strip() for v in value if str(v).strip())
        return value

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ExclusionTables:
        """Create tables from a plain mapping.

        The mapping may hold `folders` and `files` lists. When `extend` is true
        the lists are appended to the defaults instead of replacing them.

        Args:
            data (dict[str, Any]): the raw mapping, usually parsed from YAML

        Returns:
            ExclusionTables: the resulting tables
        """
        extend = bool(data.get("extend", False))
        folders = list(data.get("folders") or [])
        files = list(data.get("files") or [])
        if extend:
            folders = [*DEFAULT_EXCLUDED_FOLDERS, *folders]
            files = [*DEFAULT_EXCLUDED_FILES, *files]
        else:
            folders = folders if "folders" in data else list(DEFAULT_EXCLUDED_FOLDERS)
            files = files if "files" in data else list(DEFAULT_EXCLUDED_FILES)
        return cls(folders=tuple(folders), files=tuple(files))

    @classmethod
    def from_yaml(cls, path: Path) -> ExclusionTables:
        """Load exclusion tables from a YAML file.

        Args:
            path (Path): the YAML file to read

        Raises:
            InvalidConfigError: if the file cannot be read, is not valid YAML, or
                does not hold a mapping of string lists

        Returns:
            ExclusionTables: the loaded tables (defaults when the file is empty)
        """
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise InvalidConfigError(message=f"Invalid exclusions file {path}: {e}") from e
        if not isinstance(data, dict):
            raise InvalidConfigError(message=f"{path} must contain a mapping with 'folders' and/or 'files'")
        try:
            return cls.from_mapping(data)
        except (TypeError, ValidationError) as e:
            raise InvalidConfigError(message=f"Invalid exclusions file {path}: {e}") from e


class FileEntry(BaseModel):
    """One item of a flat directory listing.

    Attributes:
        rel: Path relative to the project root, with POSIX separators.
        is_dir: Whether the entry is a directory.
        size: Size in bytes (files only).
        content: File text when it is available synchronously.
        reader: Coroutine factory returning the file text when it must be read lazily.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    rel: str = Field(..., description="Relative path with '/' separators")
    is_dir: bool = Field(default=False, description="Directory flag")
    size: int = Field(default=0, ge=0, description="Size in bytes")
    content: str | None = Field(default=None, description="Synchronously available text")
    reader: ContentReader | None = Field(default=None, description="Lazy text accessor")

    @computed_field
    @property
    def name(self) -> str:
        """Final segment of the relative path."""
        return self.rel.rstrip("/").rsplit("/", 1)[-1]

    @computed_field
    @property
    def is_binary(self) -> bool:
        """Heuristic check if the file is binary based on its extension."""
        return not self.is_dir and is_binary_name(self.name)
