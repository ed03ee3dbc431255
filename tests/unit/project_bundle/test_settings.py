from pathlib import Path

import pytest

from project_bundle.config import DEFAULT_EXCLUDED_FILES, DEFAULT_EXCLUDED_FOLDERS, ExclusionTables
from project_bundle.exceptions import InvalidConfigError
from project_bundle.settings import Settings


@pytest.mark.unit
def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.root.resolve() == Path.cwd().resolve()
    assert settings.output is None
    assert settings.max_bytes == 1024 * 1024
    assert settings.strip_comments is True
    assert settings.as_json is False


@pytest.mark.unit
def test_from_env_reads_prefixed_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROJECT_BUNDLE_MAX_BYTES", "2048")
    monkeypatch.setenv("PROJECT_BUNDLE_STRIP_COMMENTS", "false")

    settings = Settings.from_env()

    assert settings.max_bytes == 2048
    assert settings.strip_comments is False


@pytest.mark.unit
def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROJECT_BUNDLE_MAX_BYTES", "2048")

    settings = Settings.from_env(max_bytes=10, output=None)

    assert settings.max_bytes == 10
    assert settings.output is None


@pytest.mark.unit
def test_exclusion_tables_default_to_builtin_tables() -> None:
    tables = Settings().exclusion_tables()

    assert tables.folders == DEFAULT_EXCLUDED_FOLDERS
    assert tables.files == DEFAULT_EXCLUDED_FILES


@pytest.mark.unit
def test_exclusion_tables_from_yaml_extend(tmp_path: Path) -> None:
    path = tmp_path / "exclusions.yaml"
    path.write_text("extend: true\nfolders:\n  - vendor\nfiles:\n  - '*.lock'\n", encoding="utf-8")

    tables = Settings(exclusions=path).exclusion_tables()

    assert tables.folders == (*DEFAULT_EXCLUDED_FOLDERS, "vendor")
    assert tables.files[-1] == "*.lock"


@pytest.mark.unit
def test_exclusion_tables_from_yaml_replace(tmp_path: Path) -> None:
    path = tmp_path / "exclusions.yaml"
    path.write_text("folders: [vendor, ' ']\n", encoding="utf-8")

    tables = ExclusionTables.from_yaml(path)

    assert tables.folders == ("vendor",)
    assert tables.files == DEFAULT_EXCLUDED_FILES


@pytest.mark.unit
def test_exclusion_tables_reject_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "exclusions.yaml"
    path.write_text("- vendor\n", encoding="utf-8")

    with pytest.raises(InvalidConfigError, match="must contain a mapping") as exc_info:
        ExclusionTables.from_yaml(path)

    assert exc_info.value.status == 400


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    ["folders: [vendor\n", "folders: 3\n"],
)
def test_exclusion_tables_reject_malformed_yaml(tmp_path: Path, content: str) -> None:
    path = tmp_path / "exclusions.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(InvalidConfigError, match="Invalid exclusions file"):
        ExclusionTables.from_yaml(path)


@pytest.mark.unit
def test_exclusion_tables_reject_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigError):
        Settings(exclusions=tmp_path / "nope.yaml").exclusion_tables()


@pytest.mark.unit
def test_from_env_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROJECT_BUNDLE_MAX_BYTES", "abc")

    with pytest.raises(InvalidConfigError, match="max_bytes"):
        Settings.from_env()
