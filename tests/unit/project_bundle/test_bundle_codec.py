from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from project_bundle import bundle_codec
from project_bundle.bundle_codec import (
    Bundle,
    BundleFile,
    assemble_bundle,
    decode,
    encode,
    path_variants,
    strip_path_comment,
)
from project_bundle.exceptions import FileReadError

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

HEADER = (
    "PROJECT BUNDLE FOR AI ANALYSIS\n"
    "==============================\n"
    "This file contains multiple project files separated by file headers.\n"
    'Each file is prefixed with "##### FILE: [relative_path] #####"\n'
    'Files are separated by "##### END FILE #####"\n'
)


def _loader(files: dict[str, str]):  # noqa: ANN202
    def load(path: str) -> str:
        if path not in files:
            raise FileReadError(path=path, message="File not found")
        return files[path]

    return load


@pytest.mark.unit
def test_encode_is_bit_exact() -> None:
    text = encode([("README.md", "# Hi\n"), ("src/index.js", "console.log(1)\n")])

    assert text == (
        HEADER
        + "Total files: 2, Total lines: 4\n"
        "==============================\n"
        "\n"
        "##### FILE: README.md #####\n"
        "# Hi\n"
        "\n"
        "##### END FILE #####\n"
        "\n"
        "##### FILE: src/index.js #####\n"
        "console.log(1)\n"
        "\n"
        "##### END FILE #####\n"
    )


@pytest.mark.unit
def test_encode_totals_for_single_line_files() -> None:
    text = encode([("README.md", "# Hi"), ("src/index.js", "console.log(1)")])

    assert "Total files: 2, Total lines: 2\n" in text


@pytest.mark.unit
def test_encode_without_files_has_only_the_header() -> None:
    assert encode([]) == HEADER + "Total files: 0, Total lines: 0\n==============================\n"


@pytest.mark.unit
def test_encode_is_idempotent() -> None:
    pairs = [("a.py", "print(1)\n"), ("b/c.md", "# title")]

    assert encode(pairs) == encode(list(pairs))


@pytest.mark.unit
def test_decode_recovers_paths_and_contents() -> None:
    pairs = [
        ("a.py", "print(1)\n"),
        ("empty.txt", ""),
        ("win.txt", "a\r\nb"),
        ("docs/notes.md", "trailing\n\n"),
        ("x.txt", "##### FILE: fake #####"),
    ]

    assert decode(encode(pairs)) == pairs


@pytest.mark.unit
def test_decode_ignores_unterminated_section() -> None:
    text = encode([("a.py", "1")]) + "##### FILE: b.py #####\npartial"

    assert decode(text) == [("a.py", "1")]


@pytest.mark.unit
def test_path_variants() -> None:
    assert path_variants("proj/src/app.js") == ["proj/src/app.js", "src/app.js", "app.js"]
    assert path_variants("/abs/x.js") == ["/abs/x.js", "abs/x.js", "abs/x.js", "x.js"]
    assert path_variants("a.py") == ["a.py", "a.py"]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("content", "path", "expected"),
    [
        ("// src/app.js\nconsole.log(1)", "src/app.js", "console.log(1)"),
        ("//src/app.js\nx", "src/app.js", "x"),
        ("#app.py\nx", "pkg/app.py", "x"),
        ("# pkg/app.py\nx", "pkg/app.py", "x"),
        ("<!-- index.html -->\n<html>", "proj/web/index.html", "<html>"),
        ("<!--web/index.html-->\n<html>", "proj/web/index.html", "<html>"),
        ("// abs/x.js\n1", "/abs/x.js", "1"),
        ("  // app.js  \nx", "src/app.js", "x"),
        ("// app.js\r\nx", "src/app.js", "x"),
        ("# app.py", "app.py", ""),
    ],
)
def test_strip_path_comment_removes_self_referential_header(content: str, path: str, expected: str) -> None:
    assert strip_path_comment(content, path) == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    ("content", "path"),
    [
        ("// other.js\nx", "src/app.js"),
        ("x\n// src/app.js", "src/app.js"),
        ("/* src/app.js */\nx", "src/app.js"),
        ("", "src/app.js"),
    ],
)
def test_strip_path_comment_keeps_other_content(content: str, path: str) -> None:
    assert strip_path_comment(content, path) == content


@pytest.mark.unit
def test_assemble_bundle_skips_unreadable_and_oversized_files() -> None:
    files = {"a.py": "// a.py\nx\ny", "big.txt": "x" * 20, "c.py": "z"}

    bundle = assemble_bundle(["a.py", "missing.py", "big.txt", "c.py"], _loader(files), max_bytes=15)

    assert [f.path for f in bundle.files] == ["a.py", "c.py"]
    assert bundle.files[0].content == "x\ny"
    assert bundle.total_files == 2
    assert bundle.total_lines == 3
    assert "Total files: 2, Total lines: 3" in bundle.text
    assert bundle.bundle_size == len(bundle.text.encode("utf-8"))


@pytest.mark.unit
def test_assemble_bundle_can_keep_path_comments() -> None:
    bundle = assemble_bundle(["a.py"], _loader({"a.py": "# a.py\nx"}), strip_comments=False)

    assert bundle.files[0].content == "# a.py\nx"
    assert bundle.total_lines == 2


@pytest.mark.unit
def test_bundle_counters() -> None:
    bundle = Bundle(files=(BundleFile(path="a", content="1\n2"), BundleFile(path="b", content="")))

    assert bundle.total_files == 2
    assert bundle.total_lines == 2
    assert bundle.files[1].line_count == 0


@pytest.mark.unit
def test_bundle_text_is_encoded_once(mocker: MockerFixture) -> None:
    spy = mocker.spy(bundle_codec, "encode")
    bundle = Bundle(files=(BundleFile(path="a.py", content="x = 1\n"),))

    text = bundle.text

    assert bundle.text is text
    assert bundle.bundle_size == len(text.encode("utf-8"))
    assert spy.call_count == 1
