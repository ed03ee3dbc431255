"""Tree node datatypes and path-indexed lookups over a built project tree."""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence


class TreeNode(BaseModel):
    """One file or directory of the project tree.

    Attributes:
        name: Final path segment.
        path: Slash-joined path relative to the project root, unique in a tree.
        is_dir: Directory flag.
        excluded_by_default: Result of the path matcher for this node alone.
        excluded: Effective exclusion, inherited from any excluded ancestor.
        size: Size in bytes (files only).
        line_count: Number of lines (files only, 0 for binary or unreadable files).
        children: Sorted child nodes (directories only).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    is_dir: bool
    excluded_by_default: bool = False
    excluded: bool = False
    size: int = Field(default=0, ge=0)
    line_count: int = Field(default=0, ge=0)
    children: tuple[TreeNode, ...] = ()

    def iter_nodes(self) -> Iterator[TreeNode]:
        """Yield this node and all its descendants, depth first, in display order."""
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    def iter_files(self) -> Iterator[TreeNode]:
        """Yield the file nodes of this subtree in display order."""
        return (n for n in self.iter_nodes() if not n.is_dir)


def parent_path(path: str) -> str | None:
    """Return the parent prefix of a relative path, or None for a top-level path."""
    if "/" not in path:
        return None
    return path.rsplit("/", 1)[0]


def ancestor_paths(path: str) -> list[str]:
    """Return every proper prefix of `path`, nearest parent last.

    Args:
        path (str): a slash separated relative path, e.g. `src/build/x.js`

    Returns:
        list[str]: the ancestor paths, e.g. `["src", "src/build"]`
    """
    parts = path.split("/")
    return ["/".join(parts[:i]) for i in range(1, len(parts))]


class ProjectTree:
    """The roots of a built tree plus lookups by path.

    Nodes hold no back references; parents and ancestors are resolved through
    the path index.
    """

    def __init__(self, roots: Sequence[TreeNode]) -> None:
        self.roots: tuple[TreeNode, ...] = tuple(roots)

    def __repr__(self) -> str:
        return f"ProjectTree(roots={len(self.roots)}, nodes={len(self.index)})"

    @cached_property
    def index(self) -> dict[str, TreeNode]:
        """Mapping of every node path to its node."""
        return {node.path: node for node in self.iter_nodes()}

    def iter_nodes(self) -> Iterator[TreeNode]:
        """Yield every node in display order."""
        for root in self.roots:
            yield from root.iter_nodes()

    def iter_files(self) -> Iterator[TreeNode]:
        """Yield every file node in display order."""
        return (n for n in self.iter_nodes() if not n.is_dir)

    def get(self, path: str) -> TreeNode | None:
        """Look up a node by path."""
        return self.index.get(path)

    def node(self, path: str) -> TreeNode:
        """Look up a node by path.

        Args:
            path (str): the relative path of the node

        Raises:
            KeyError: if no node has this path

        Returns:
            TreeNode: the node
        """
        try:
            return self.index[path]
        except KeyError:
            msg = f"No node at path {path!r}"
            raise KeyError(msg) from None

    def parent(self, path: str) -> TreeNode | None:
        """Return the parent node of `path`, or None for roots."""
        pp = parent_path(path)
        return None if pp is None else self.index.get(pp)

    def ancestors(self, path: str) -> list[TreeNode]:
        """Return the existing ancestor nodes of `path`, outermost first."""
        return [self.index[p] for p in ancestor_paths(path) if p in self.index]

    def with_line_counts(self, counts: Mapping[str, int]) -> ProjectTree:
        """Return a copy of the tree with new line counts for the given file paths.

        Shape, ordering and every other field are left untouched.

        Args:
            counts (Mapping[str, int]): new line counts keyed by file path

        Returns:
            ProjectTree: the updated tree (self when `counts` is empty)
        """
        if not counts:
            return self

        def update(node: TreeNode) -> TreeNode:
            if node.is_dir:
                return node.model_copy(update={"children": tuple(update(c) for c in node.children)})
            if node.path in counts:
                return node.model_copy(update={"line_count": max(0, counts[node.path])})
            return node

        return ProjectTree([update(root) for root in self.roots])


def filter_tree(tree: ProjectTree, term: str, blocked: set[str] | None = None) -> tuple[list[TreeNode], int]:
    """Filter the tree by a case-insensitive name search.

    A file is kept when its name contains `term`. A directory is kept when its
    own name matches or when any descendant is kept; its children are filtered
    the same way either way.

    Args:
        tree (ProjectTree): the tree to search
        term (str): the search text; blank text returns the tree unchanged
        blocked (set[str] | None): paths currently blocked; matching blocked files
            are kept but not counted

    Returns:
        tuple[list[TreeNode], int]: the filtered roots and the number of matching
            unblocked files
    """
    needle = term.strip().lower()
    if not needle:
        return list(tree.roots), 0
    skip = blocked or set()
    matches = 0

    def walk(nodes: Sequence[TreeNode]) -> list[TreeNode]:
        nonlocal matches
        kept: list[TreeNode] = []
        for node in nodes:
            hit = needle in node.name.lower()
            if node.is_dir:
                children = walk(node.children)
                if hit or children:
                    kept.append(node.model_copy(update={"children": tuple(children)}))
            elif hit:
                if node.path not in skip:
                    matches += 1
                kept.append(node)
        return kept

    return walk(tree.roots), matches
