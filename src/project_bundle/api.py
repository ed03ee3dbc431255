"""Request/response surface: scan a project, fetch a file, generate a bundle.

Every endpoint returns either its success payload or an `ApiError` carrying an
HTTP-equivalent status (400 for bad input, 500 for I/O failures). Per-file
problems are logged and skipped, never reported individually.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import wraps
from pathlib import Path
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from pydantic import BaseModel, ConfigDict

from project_bundle.bundle_codec import assemble_bundle
from project_bundle.exceptions import EmptySelectionError, InputError, ProjectBundleError
from project_bundle.file_manipulation import (
    make_loader,
    read_text,
    resolve_root,
    resolve_within_root,
    walk_entries,
)
from project_bundle.hydration import BuildGenerations, hydrate_tree
from project_bundle.line_counter import count_lines
from project_bundle.logging import logger
from project_bundle.path_matcher import PathMatcher
from project_bundle.selection import SelectionModel, SelectionSummary
from project_bundle.settings import Settings
from project_bundle.tree import TreeNode  # noqa: TC001
from project_bundle.tree_builder import build_tree

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from project_bundle.config import FileEntry
    from project_bundle.tree import ProjectTree

P = ParamSpec("P")
R = TypeVar("R")


class ApiError(BaseModel):
    """Structured failure of an endpoint."""

    model_config = ConfigDict(frozen=True)

    status: int
    error: str


class ScanPayload(BaseModel):
    """Result of scanning a project root."""

    model_config = ConfigDict(frozen=True)

    root_path: str
    tree: list[TreeNode]
    selected: list[str]
    summary: SelectionSummary


class FileContentPayload(BaseModel):
    """Raw content of one project file."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    line_count: int


class BundlePayload(BaseModel):
    """A generated bundle and its counters."""

    model_config = ConfigDict(frozen=True)

    bundle: str
    total_files: int
    total_lines: int
    bundle_size: int


def api_endpoint(failure: str) -> Callable[[Callable[P, R]], Callable[P, R | ApiError]]:
    """Decorator turning raised errors into `ApiError` results.

    Args:
        failure (str): the aggregate message reported for I/O failures

    Returns:
        Callable[[Callable[P, R]], Callable[P, R | ApiError]]: the decorator
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R | ApiError]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | ApiError:
            try:
                return func(*args, **kwargs)
            except InputError as e:
                logger.info("Rejected request", endpoint=func.__name__, reason=e.message)
                return ApiError(status=e.status, error=e.message)
            except (ProjectBundleError, OSError):
                logger.exception("Request failed", endpoint=func.__name__)
                return ApiError(status=500, error=failure)

        return wrapper

    return decorator


@dataclass(frozen=True)
class Project:
    """A loaded project: its listing, its tree and the initial selection."""

    root: Path
    entries: tuple[FileEntry, ...]
    tree: ProjectTree
    selection: SelectionModel


class ProjectLoader:
    """Load projects, dropping results of loads superseded by a newer one."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.generations = BuildGenerations()

    async def load(self, root: str | Path | None) -> Project | None:
        """Scan `root`, build its tree and wait for every line count to settle.

        Args:
            root (str | Path | None): the project root

        Returns:
            Project | None: the loaded project, or None if another load started
                before this one finished
        """
        path = resolve_root(root)
        generation = self.generations.begin()
        entries = tuple(await asyncio.to_thread(walk_entries, path, max_bytes=self.settings.max_bytes))
        tree = build_tree(entries, PathMatcher(self.settings.exclusion_tables()))
        hydrated = await hydrate_tree(tree, entries, generation=generation, generations=self.generations)
        if hydrated is None:
            return None
        logger.info("Loaded project", root=str(path), generation=generation, entries=len(entries))
        return Project(root=path, entries=entries, tree=hydrated, selection=SelectionModel.initial(hydrated))


def load_project(root: str | Path | None, settings: Settings | None = None) -> Project:
    """Synchronously load a project with a dedicated loader.

    Args:
        root (str | Path | None): the project root
        settings (Settings | None): settings providing exclusion tables and limits

    Raises:
        ProjectBundleError: if the load was superseded (cannot happen with a
            dedicated loader)

    Returns:
        Project: the loaded project
    """
    project = asyncio.run(ProjectLoader(settings).load(root))
    if project is None:
        raise ProjectBundleError(message="Project load was superseded")
    return project


@api_endpoint("Failed to scan directory")
def scan(root_path: str | None, settings: Settings | None = None) -> ScanPayload:
    """Scan a project root into a tree with its default selection."""
    project = load_project(root_path, settings)
    return ScanPayload(
        root_path=str(project.root),
        tree=list(project.tree.roots),
        selected=project.selection.bundle_paths(),
        summary=project.selection.summary(),
    )


@api_endpoint("Failed to read file")
def file_content(root_path: str | None, file_path: str | None) -> FileContentPayload:
    """Return the raw text of one file of the project.

    Args:
        root_path (str | None): the project root
        file_path (str | None): the file, relative to the root

    Returns:
        FileContentPayload: the file text and its line count
    """
    root = resolve_root(root_path)
    if not file_path or not file_path.strip():
        raise InputError(message="File path is required")
    full = resolve_within_root(root, file_path)
    content = read_text(full, rel=file_path)
    return FileContentPayload(path=file_path, content=content, line_count=count_lines(content))


def selection_rel(root: Path, file_path: str) -> str:
    """Spell a selected path relative to `root` without following symlinks.

    Absolute paths under `root`, as given or with only their parent directory
    resolved, become relative; `.` and empty segments are dropped. Paths that
    point elsewhere are returned as given so the loader can skip them.

    Args:
        root (Path): the resolved project root
        file_path (str): a selected path, relative or absolute

    Returns:
        str: the relative path with `/` separators, "" for a blank path
    """
    if not file_path.strip():
        return ""
    candidate = Path(file_path)
    if candidate.is_absolute():
        for base in (candidate, candidate.parent.resolve() / candidate.name):
            if base.is_relative_to(root):
                candidate = base.relative_to(root)
                break
        else:
            return file_path
    return "/".join(p for p in candidate.as_posix().split("/") if p and p != ".")


def normalize_selection(root: Path, files: Sequence[str]) -> list[str]:
    """Turn selected paths (relative, or absolute under `root`) into relative paths.

    Normalization is lexical: a symlink keeps its own path. Whether a path
    really stays under `root` is checked per file when it is loaded. Blank
    entries and duplicates are dropped, first occurrence wins.
    """
    seen: dict[str, None] = {}
    for f in files:
        rel = selection_rel(root, f)
        if rel:
            seen.setdefault(rel, None)
    return list(seen)


@api_endpoint("Failed to generate bundle")
def generate_bundle(
    project_root: str | None,
    files: Sequence[str] | None,
    settings: Settings | None = None,
) -> BundlePayload:
    """Bundle the given files of a project.

    Args:
        project_root (str | None): the project root
        files (Sequence[str] | None): selected file paths, in bundle order
        settings (Settings | None): size limit and comment stripping options

    Returns:
        BundlePayload: the bundle text and its counters
    """
    settings = settings or Settings()
    if not files:
        raise EmptySelectionError
    root = resolve_root(project_root)
    paths = normalize_selection(root, files)
    if not paths:
        raise EmptySelectionError
    bundle = assemble_bundle(
        paths,
        make_loader(root, max_bytes=settings.max_bytes),
        max_bytes=settings.max_bytes,
        strip_comments=settings.strip_comments,
    )
    return BundlePayload(
        bundle=bundle.text,
        total_files=bundle.total_files,
        total_lines=bundle.total_lines,
        bundle_size=bundle.bundle_size,
    )
