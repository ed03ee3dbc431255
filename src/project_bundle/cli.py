"""
project-bundle: select files of a project and concatenate them for an LLM.

Overview
--------
The project tree is scanned with build and vendor folders (``node_modules``,
``dist``, ``.git`` ...) excluded by default. Every non-excluded file starts
selected; excluded files can be opted back in with ``--force``. The selected
files are concatenated into one bundle delimited by
``##### FILE: <path> #####`` / ``##### END FILE #####`` markers.

Usage
-----
Run ``python -m project_bundle --help`` for full options. Common examples:
    - Show the tree with the default selection:
        project-bundle scan path/to/project

    - Bundle the default selection into a file:
        project-bundle bundle path/to/project --output bundle.txt

    - Opt an excluded folder back in and drop one file:
        project-bundle bundle . --force build/generated --deselect src/big.js

    - Bundle an explicit list of files:
        project-bundle bundle . --select README.md --select src/app.py
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import TYPE_CHECKING

from project_bundle import __version__
from project_bundle.api import (
    ApiError,
    file_content,
    generate_bundle,
    load_project,
    scan,
)
from project_bundle.exceptions import InputError, ProjectBundleError
from project_bundle.file_manipulation import build_tree_lines, format_file_size
from project_bundle.logging import logger, redirect_to_file
from project_bundle.selection import (
    ClearSelection,
    FolderState,
    ForceNode,
    ToggleFile,
    ToggleFolder,
    reduce,
    reduce_all,
)
from project_bundle.settings import Settings
from project_bundle.tree import filter_tree

if TYPE_CHECKING:
    from collections.abc import Sequence

    from project_bundle.selection import Action, SelectionModel
    from project_bundle.tree import TreeNode

EXIT_OK = 0
EXIT_IO_ERROR = 1
EXIT_INPUT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its `scan`, `file` and `bundle` subcommands.

    Returns:
        argparse.ArgumentParser: the parser
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--log-file", type=str, default="", help="Log file path.")
    common.add_argument("--exclusions", type=str, default=None, help="YAML file overriding exclusion tables.")
    common.add_argument("--max-bytes", type=int, default=None, help="Skip files above this size when bundling.")
    common.add_argument(
        "--no-strip-comments",
        action="store_true",
        help="Keep a leading comment that only repeats the file path.",
    )
    common.add_argument("--json", action="store_true", help="Print JSON payloads.")

    p = argparse.ArgumentParser(
        prog="project-bundle",
        description="Bundle the files of a project into one document for an LLM.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    scan_p = sub.add_parser("scan", parents=[common], help="Show the project tree and default selection.")
    scan_p.add_argument("root", type=str, help="Project root.")
    scan_p.add_argument("--filter", type=str, default="", help="Only show names containing this text.")

    file_p = sub.add_parser("file", parents=[common], help="Print one file of the project.")
    file_p.add_argument("root", type=str, help="Project root.")
    file_p.add_argument("path", type=str, help="File path relative to the root.")

    bundle_p = sub.add_parser("bundle", parents=[common], help="Generate a bundle.")
    bundle_p.add_argument("root", type=str, help="Project root.")
    bundle_p.add_argument("--output", type=str, default=None, help="Output file (stdout when omitted).")
    bundle_p.add_argument(
        "--select",
        action="append",
        default=[],
        help="Bundle exactly these files (repeatable); skips the tree selection.",
    )
    bundle_p.add_argument(
        "--force",
        action="append",
        default=[],
        help="Opt an excluded file or folder back in and select it (repeatable).",
    )
    bundle_p.add_argument(
        "--deselect",
        action="append",
        default=[],
        help="Toggle a file or folder off the default selection (repeatable).",
    )
    bundle_p.add_argument("--none", action="store_true", help="Start from an empty selection.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> tuple[argparse.Namespace, Settings]:
    """Parse CLI arguments into the raw namespace and the resulting settings.

    Args:
        argv (Sequence[str] | None): the arguments, `sys.argv[1:]` when None

    Raises:
        InvalidConfigError: if the environment or options hold an invalid value

    Returns:
        tuple[argparse.Namespace, Settings]: the parsed arguments and settings
    """
    args = build_parser().parse_args(argv)
    settings = Settings.from_env(
        root=args.root,
        output=getattr(args, "output", None),
        log_file=args.log_file or None,
        exclusions=args.exclusions,
        max_bytes=args.max_bytes,
        strip_comments=False if args.no_strip_comments else None,
        as_json=True if args.json else None,
    )
    return args, settings


def _lookup(model: SelectionModel, path: str) -> TreeNode:
    node = model.tree.get(path.strip("/"))
    if node is None:
        raise InputError(message=f"Unknown path: {path}")
    return node


def apply_cli_selection(model: SelectionModel, args: argparse.Namespace) -> SelectionModel:
    """Apply `--none`, `--force` and `--deselect` to the default selection.

    Forcing a path also selects it: a blocked node needs a force and then a
    toggle, exactly like two clicks in a tree view.

    Args:
        model (SelectionModel): the initial model
        args (argparse.Namespace): the parsed `bundle` arguments

    Raises:
        InputError: if a path does not exist in the tree

    Returns:
        SelectionModel: the resulting model
    """
    if args.none:
        model = reduce(model, ClearSelection())
    for path in args.force:
        node = _lookup(model, path)
        model = reduce(model, ForceNode(path=node.path))
        actions: list[Action] = [ToggleFile(path=f.path) for f in node.iter_files() if f.path not in model.selected]
        model = reduce_all(model, actions)
    for path in args.deselect:
        node = _lookup(model, path)
        if node.is_dir:
            if model.folder_state(node.path) is not FolderState.NONE:
                model = reduce(model, ToggleFolder(path=node.path))
        elif node.path in model.selected and not model.is_blocked(node.path):
            model = reduce(model, ToggleFile(path=node.path))
    return model


def emit(text: str) -> None:
    """Write text to stdout, followed by a newline unless it already ends with one."""
    sys.stdout.write(text if text.endswith("\n") else text + "\n")


def fail(error: ApiError) -> int:
    """Report an endpoint error and return the matching exit code."""
    sys.stderr.write(f"error: {error.error}\n")
    return EXIT_INPUT_ERROR if error.status == 400 else EXIT_IO_ERROR  # noqa: PLR2004


def run_scan(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the `scan` subcommand."""
    if settings.as_json:
        result = scan(args.root, settings)
        if isinstance(result, ApiError):
            return fail(result)
        emit(result.model_dump_json(indent=2))
        return EXIT_OK

    project = load_project(args.root, settings)
    model = project.selection
    blocked = {n.path for n in model.tree.iter_nodes() if model.is_blocked(n.path)}
    nodes, matches = filter_tree(model.tree, args.filter, blocked)
    emit("\n".join(build_tree_lines(project.root.name, nodes, model)))
    summary = model.summary()
    emit(
        f"selected {summary.selected_files}/{summary.total_files} files, "
        f"{summary.selected_lines}/{summary.total_lines} lines",
    )
    if args.filter.strip():
        emit(f"{matches} matching files")
    return EXIT_OK


def run_file(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the `file` subcommand."""
    result = file_content(args.root, args.path)
    if isinstance(result, ApiError):
        return fail(result)
    emit(result.model_dump_json(indent=2) if settings.as_json else result.content)
    return EXIT_OK


def run_bundle(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the `bundle` subcommand."""
    if args.select:
        paths = list(args.select)
    else:
        project = load_project(args.root, settings)
        model = apply_cli_selection(project.selection, args)
        paths = model.bundle_paths()

    result = generate_bundle(args.root, paths, settings)
    if isinstance(result, ApiError):
        return fail(result)

    if settings.output is not None:
        settings.output.parent.mkdir(parents=True, exist_ok=True)
        settings.output.write_text(result.bundle, encoding="utf-8")
        logger.info("Bundle written", output=str(settings.output), files=result.total_files)
        summary = (
            f"{result.total_files} files, {result.total_lines} lines, "
            f"{format_file_size(result.bundle_size)} -> {settings.output}"
        )
        sys.stderr.write(summary + "\n")
    if settings.as_json:
        emit(json.dumps(result.model_dump(exclude={"bundle"} if settings.output else None), indent=2))
    elif settings.output is None:
        sys.stdout.write(result.bundle)
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the `project-bundle` command.

    Args:
        argv (Sequence[str] | None): the arguments, `sys.argv[1:]` when None

    Returns:
        int: 0 on success, 2 for invalid input, 1 for I/O failures
    """
    try:
        args, settings = parse_args(argv)
    except InputError as e:
        sys.stderr.write(f"error: {e.message}\n")
        return EXIT_INPUT_ERROR
    if settings.log_file:
        redirect_to_file(settings.log_file)

    handlers = {"scan": run_scan, "file": run_file, "bundle": run_bundle}
    try:
        return handlers[args.command](args, settings)
    except InputError as e:
        sys.stderr.write(f"error: {e.message}\n")
        return EXIT_INPUT_ERROR
    except (ProjectBundleError, OSError) as e:
        logger.exception("Command failed", command=args.command)
        sys.stderr.write(f"error: {e}\n")
        return EXIT_IO_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
