"""Selection state over a project tree, updated by pure reducer functions.

The model never mutates tree nodes; it keeps two path sets next to the tree:

- `selected`: file paths chosen for bundling. It may hold paths that are
  currently blocked; those are simply ignored when counting or bundling.
- `forced`: paths the user opted back in despite an inherited exclusion.

A node is blocked when it is effectively excluded and its own path is not
forced. Interacting with a blocked node only forces it; a second interaction is
needed to change the selection.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum, auto
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from project_bundle.tree import ancestor_paths

if TYPE_CHECKING:
    from collections.abc import Iterable

    from project_bundle.tree import ProjectTree, TreeNode


class FolderState(StrEnum):
    """Tri-state summary of a folder's selection."""

    NONE = auto()
    PARTIAL = auto()
    ALL = auto()


class ForceNode(BaseModel):
    """Opt a blocked node back in."""

    model_config = ConfigDict(frozen=True)

    path: str


class ToggleFile(BaseModel):
    """Flip the selection of one file (forces it instead when blocked)."""

    model_config = ConfigDict(frozen=True)

    path: str


class ToggleFolder(BaseModel):
    """Select or clear every unblocked file of a folder (forces it instead when blocked)."""

    model_config = ConfigDict(frozen=True)

    path: str


class SelectAll(BaseModel):
    """Select every unblocked file of the tree."""

    model_config = ConfigDict(frozen=True)


class ClearSelection(BaseModel):
    """Deselect everything."""

    model_config = ConfigDict(frozen=True)


Action = ForceNode | ToggleFile | ToggleFolder | SelectAll | ClearSelection


class SelectionSummary(BaseModel):
    """Aggregate counters shown next to the tree."""

    model_config = ConfigDict(frozen=True)

    total_files: int
    total_lines: int
    selected_files: int
    selected_lines: int


def default_selection(tree: ProjectTree) -> frozenset[str]:
    """Every file path that is not effectively excluded."""
    return frozenset(n.path for n in tree.iter_files() if not n.excluded)


def toggle_file_action(path: str, *, currently_blocked: bool) -> ForceNode | ToggleFile:
    """Map a click on a file to the action it triggers.

    Args:
        path (str): the file path
        currently_blocked (bool): whether the file is blocked right now

    Returns:
        ForceNode | ToggleFile: forcing for a blocked file, a selection toggle otherwise
    """
    if currently_blocked:
        return ForceNode(path=path)
    return ToggleFile(path=path)


@dataclass(frozen=True)
class SelectionModel:
    """Immutable selection value bound to one project tree."""

    tree: ProjectTree
    selected: frozenset[str] = frozenset()
    forced: frozenset[str] = frozenset()

    @classmethod
    def initial(cls, tree: ProjectTree) -> SelectionModel:
        """Fresh model for a newly loaded tree: nothing forced, non-excluded files selected."""
        return cls(tree=tree, selected=default_selection(tree))

    def _node(self, path: str) -> TreeNode:
        return self.tree.node(path)

    def is_blocked(self, path: str) -> bool:
        """Whether the node at `path` is excluded and not forced.

        Args:
            path (str): the node path

        Returns:
            bool: True if interactions with the node must force it first
        """
        return self._node(path).excluded and path not in self.forced

    def unblocked_files(self, path: str) -> list[str]:
        """Unblocked file paths under the folder at `path`, in display order."""
        return [n.path for n in self._node(path).iter_files() if not self.is_blocked(n.path)]

    def folder_state(self, path: str) -> FolderState:
        """Tri-state selection of a folder computed over its unblocked files.

        Args:
            path (str): the folder path

        Returns:
            FolderState: NONE when no (or no selectable) file is selected, ALL when
                every unblocked file is selected, PARTIAL otherwise
        """
        files = self.unblocked_files(path)
        chosen = sum(1 for p in files if p in self.selected)
        if not files or chosen == 0:
            return FolderState.NONE
        if chosen == len(files):
            return FolderState.ALL
        return FolderState.PARTIAL

    def folder_line_count(self, path: str) -> int:
        """Sum of line counts of the selected, unblocked files under `path`."""
        return sum(
            n.line_count
            for n in self._node(path).iter_files()
            if n.path in self.selected and not self.is_blocked(n.path)
        )

    def force(self, path: str) -> SelectionModel:
        """Opt a node back in.

        The node, all its ancestors and, for a folder, all of its current
        descendants are added to the forced set. Descendants are a snapshot:
        nothing added to a later tree is forced retroactively.

        Args:
            path (str): the node to force

        Returns:
            SelectionModel: the updated model; the selection is unchanged
        """
        node = self._node(path)
        forced = set(self.forced)
        forced.add(path)
        forced.update(ancestor_paths(path))
        if node.is_dir:
            forced.update(n.path for n in node.iter_nodes())
        return replace(self, forced=frozenset(forced))

    def toggle_file(self, path: str) -> SelectionModel:
        """Force a blocked file, or flip the selection of an unblocked one.

        A folder path is handled as `toggle_folder`, so only file paths ever
        enter the selection.
        """
        if self._node(path).is_dir:
            return self.toggle_folder(path)
        if self.is_blocked(path):
            return self.force(path)
        return replace(self, selected=self.selected ^ {path})

    def toggle_folder(self, path: str) -> SelectionModel:
        """Force a blocked folder, or select/clear all of its unblocked files.

        A folder whose state is NONE gets all its unblocked files selected; a
        PARTIAL or ALL folder gets them all deselected.

        Args:
            path (str): the folder path

        Returns:
            SelectionModel: the updated model
        """
        if self.is_blocked(path):
            return self.force(path)
        files = self.unblocked_files(path)
        if self.folder_state(path) is FolderState.NONE:
            return replace(self, selected=self.selected | set(files))
        return replace(self, selected=self.selected - set(files))

    def select_all(self) -> SelectionModel:
        """Select every unblocked file of the tree."""
        files = {n.path for n in self.tree.iter_files() if not self.is_blocked(n.path)}
        return replace(self, selected=self.selected | files)

    def clear(self) -> SelectionModel:
        """Deselect everything, keeping forced paths."""
        return replace(self, selected=frozenset())

    def bundle_paths(self) -> list[str]:
        """Selected, unblocked file paths in display order, ready for bundling."""
        return [n.path for n in self.tree.iter_files() if n.path in self.selected and not self.is_blocked(n.path)]

    def summary(self) -> SelectionSummary:
        """Counters over unblocked files and the current selection."""
        total_files = total_lines = selected_files = selected_lines = 0
        for n in self.tree.iter_files():
            if self.is_blocked(n.path):
                continue
            total_files += 1
            total_lines += n.line_count
            if n.path in self.selected:
                selected_files += 1
                selected_lines += n.line_count
        return SelectionSummary(
            total_files=total_files,
            total_lines=total_lines,
            selected_files=selected_files,
            selected_lines=selected_lines,
        )

    def with_tree(self, tree: ProjectTree) -> SelectionModel:
        """Swap in a hydrated tree of the same shape, keeping both path sets."""
        return replace(self, tree=tree)


def reduce(model: SelectionModel, action: Action) -> SelectionModel:
    """Apply one user action to a selection model.

    Args:
        model (SelectionModel): the current model
        action (Action): the action to apply

    Returns:
        SelectionModel: the new model; `model` itself is left untouched
    """
    match action:
        case ForceNode(path=path):
            return model.force(path)
        case ToggleFile(path=path):
            return model.toggle_file(path)
        case ToggleFolder(path=path):
            return model.toggle_folder(path)
        case SelectAll():
            return model.select_all()
        case ClearSelection():
            return model.clear()
    msg = f"Unsupported selection action: {action!r}"
    raise TypeError(msg)


def reduce_all(model: SelectionModel, actions: Iterable[Action]) -> SelectionModel:
    """Apply a sequence of actions in order."""
    for action in actions:
        model = reduce(model, action)
    return model
