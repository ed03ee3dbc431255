from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from project_bundle.config import MAX_BUNDLE_FILE_BYTES, ExclusionTables
from project_bundle.exceptions import InvalidConfigError

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "PROJECT_BUNDLE_"


class Settings(BaseModel):
    """Configuration settings for the project_bundle package."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    root: Path = Field(default_factory=Path.cwd, description="Project root.")
    output: Path | None = Field(default=None, description="Bundle output file (stdout when unset).")
    log_file: str = Field(default="", description="Log file path.")
    exclusions: Path | None = Field(default=None, description="YAML file overriding the exclusion tables.")
    max_bytes: int = Field(
        default=MAX_BUNDLE_FILE_BYTES,
        gt=0,
        description="Files above are skipped when bundling.",
    )
    strip_comments: bool = Field(
        default=True,
        description="Drop a leading comment that only repeats the file path.",
    )
    as_json: bool = Field(default=False, description="Print JSON payloads instead of text.")

    def exclusion_tables(self) -> ExclusionTables:
        """Exclusion tables from the configured YAML file, or the defaults."""
        if self.exclusions is None:
            return ExclusionTables()
        return ExclusionTables.from_yaml(self.exclusions)

    @classmethod
    def from_env(cls, **overrides: object) -> Settings:
        """Build settings from `PROJECT_BUNDLE_*` variables.

        Values come from the `.env` file found from the working directory, then
        from the process environment, then from `overrides` (highest priority).

        Args:
            overrides: explicit field values

        Raises:
            InvalidConfigError: if a value does not validate

        Returns:
            Settings: the merged settings
        """
        values: dict[str, object] = {}
        env = {**(dotenv_values(ENV_FILE) if ENV_FILE else {}), **os.environ}
        for name in cls.model_fields:
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise InvalidConfigError(message=f"Invalid setting {field}: {first['msg']}") from e
