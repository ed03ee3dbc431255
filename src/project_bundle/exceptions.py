from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar


@dataclass(frozen=True)
class ProjectBundleError(Exception):
    """Base exception for errors in the project_bundle package."""

    status: ClassVar[int] = 500
    message: str = "Project bundle operation failed."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class InputError(ProjectBundleError):
    """Raised when the caller supplied missing or invalid input, before any I/O."""

    status: ClassVar[int] = 400
    message: str = "Invalid input."


@dataclass(frozen=True)
class MissingRootPathError(InputError):
    """Raised when no project root was given."""

    message: str = "Root path is required"


@dataclass(frozen=True)
class NotADirectoryInputError(InputError):
    """Raised when the project root does not point to a directory."""

    folder: Path = Path()
    message: str = "Root path is not a directory"


@dataclass(frozen=True)
class EmptySelectionError(InputError):
    """Raised when a bundle is requested without any selected file."""

    message: str = "No files selected"


@dataclass(frozen=True)
class PathOutsideRootError(InputError):
    """Raised when a requested file resolves outside of the project root."""

    path: str = ""
    message: str = "File path escapes the project root"


@dataclass(frozen=True)
class FileReadError(ProjectBundleError):
    """Raised when a file cannot be read (missing, permission denied, I/O failure)."""

    path: str = ""
    message: str = "Failed to read file"


@dataclass(frozen=True)
class SizeLimitError(FileReadError):
    """Raised when a file is larger than the configured bundle limit."""

    size: int = 0
    limit: int = 0
    message: str = "File exceeds the maximum bundle size"


@dataclass(frozen=True)
class EncodingError(FileReadError):
    """Raised when a file is not valid UTF-8 text (binary content)."""

    message: str = "File is not UTF-8 text"


@dataclass(frozen=True)
class InvalidConfigError(InputError):
    """Raised when settings or the exclusion file cannot be parsed or validated."""

    message: str = "Invalid configuration"
