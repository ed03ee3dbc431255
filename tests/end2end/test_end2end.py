from pathlib import Path

import pytest

from project_bundle import cli
from project_bundle.bundle_codec import decode


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "src" / "index.js").write_text("console.log(1)\n", encoding="utf-8")
    (root / "README.md").write_text("# Hi\n", encoding="utf-8")
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "node_modules" / "lib" / "a.js").write_text("module.exports = 1\n", encoding="utf-8")
    (root / ".gitignore").write_text("node_modules\n", encoding="utf-8")
    return root


@pytest.mark.end2end
def test_end_to_end_default_bundle(project: Path, tmp_path: Path) -> None:
    output = tmp_path / "bundle.txt"

    exit_code = cli.main(["bundle", str(project), "--output", str(output)])

    assert exit_code == 0
    text = output.read_text(encoding="utf-8")
    assert "Total files: 2, Total lines: 4" in text
    files = decode(text)
    assert [path for path, _ in files] == ["src/index.js", "README.md"]
    assert files[0][1] == "console.log(1)\n"
    assert "node_modules" not in text
    assert ".gitignore" not in text


@pytest.mark.end2end
def test_end_to_end_force_excluded_folder(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["bundle", str(project), "--force", "node_modules", "--deselect", "src"])

    assert exit_code == 0
    files = decode(capsys.readouterr().out)
    assert [path for path, _ in files] == ["node_modules/lib/a.js", "README.md"]


@pytest.mark.end2end
def test_end_to_end_scan_json(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["scan", str(project), "--json"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert '"selected": [\n    "src/index.js",\n    "README.md"\n  ]' in out


@pytest.mark.end2end
def test_end_to_end_missing_root(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["bundle", str(tmp_path / "nope")])

    assert exit_code == cli.EXIT_INPUT_ERROR
    assert "error:" in capsys.readouterr().err
