from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from project_bundle import api, cli
from project_bundle.api import ProjectLoader
from project_bundle.bundle_codec import assemble_bundle, decode
from project_bundle.config import ContentReader, FileEntry
from project_bundle.selection import ForceNode, ToggleFile, ToggleFolder, reduce_all


def _reader(text: str) -> ContentReader:
    async def read() -> str:
        return text

    return read


@pytest.fixture
def listing() -> list[FileEntry]:
    return [
        FileEntry(rel="src", is_dir=True),
        FileEntry(rel="src/index.js", size=15, reader=_reader("// index.js\nconsole.log(1)\n")),
        FileEntry(rel="src/util.js", size=2, content="x"),
        FileEntry(rel="node_modules", is_dir=True),
        FileEntry(rel="node_modules/lib", is_dir=True),
        FileEntry(rel="node_modules/lib/a.js", size=3, reader=_reader("a\nb")),
        FileEntry(rel="README.md", size=5, content="# Hi\n"),
    ]


@pytest.mark.integration
def test_loader_selection_and_bundle_from_listing(
    tmp_path: Path,
    listing: list[FileEntry],
    mocker: MockerFixture,
) -> None:
    mocker.patch.object(api, "walk_entries", return_value=listing)
    project = asyncio.run(ProjectLoader().load(tmp_path))
    assert project is not None

    assert project.tree.node("src/index.js").line_count == 3
    assert project.tree.node("node_modules/lib/a.js").excluded

    model = reduce_all(
        project.selection,
        [
            ToggleFolder(path="node_modules"),
            ToggleFile(path="node_modules/lib/a.js"),
            ToggleFile(path="src/util.js"),
        ],
    )
    paths = model.bundle_paths()
    assert paths == ["node_modules/lib/a.js", "src/index.js", "README.md"]

    contents = {
        "src/index.js": "// index.js\nconsole.log(1)\n",
        "node_modules/lib/a.js": "a\nb",
        "README.md": "# Hi\n",
    }
    bundle = assemble_bundle(paths, contents.__getitem__, max_bytes=1024)

    assert bundle.total_files == 3
    assert bundle.total_lines == 2 + 2 + 2
    assert decode(bundle.text)[1] == ("src/index.js", "console.log(1)\n")


@pytest.mark.integration
def test_second_load_supersedes_the_first(tmp_path: Path, listing: list[FileEntry], mocker: MockerFixture) -> None:
    mocker.patch.object(api, "walk_entries", return_value=listing)
    loader = ProjectLoader()

    async def both() -> tuple[object, object]:
        first = asyncio.create_task(loader.load(tmp_path))
        await asyncio.sleep(0)
        second = asyncio.create_task(loader.load(tmp_path))
        return await first, await second

    first, second = asyncio.run(both())

    assert first is None
    assert second is not None


@pytest.mark.integration
def test_forced_folder_selection_reaches_the_cli_bundle(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "build" / "gen").mkdir(parents=True)
    (tmp_path / "build" / "gen" / "api.py").write_text("x = 1\n", encoding="utf-8")
    (tmp_path / "main.py").write_text("print(1)\n", encoding="utf-8")

    args = cli.build_parser().parse_args(["bundle", str(tmp_path), "--force", "build/gen"])
    project = api.load_project(tmp_path)
    model = cli.apply_cli_selection(project.selection, args)

    assert model.bundle_paths() == ["build/gen/api.py", "main.py"]
    assert "build" in model.forced
    assert model.is_blocked("build") is False

    assert cli.main(["bundle", str(tmp_path), "--force", "build/gen"]) == 0
    assert "##### FILE: build/gen/api.py #####" in capsys.readouterr().out


@pytest.mark.integration
def test_force_then_toggle_uses_separate_actions(tmp_path: Path, listing: list[FileEntry], mocker: MockerFixture) -> None:
    mocker.patch.object(api, "walk_entries", return_value=listing)
    project = asyncio.run(ProjectLoader().load(tmp_path))
    assert project is not None

    forced = reduce_all(project.selection, [ForceNode(path="node_modules/lib/a.js")])

    assert "node_modules/lib/a.js" not in forced.bundle_paths()
    assert forced.folder_state("node_modules") == "none"
