"""Server configuration from the [tool.pyinteractive] table of pyproject.toml."""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from pyinteractive.exceptions import ConfigurationError
from pyinteractive.options import DEFAULT_IMPORTS

TOOL_TABLE = "pyinteractive"


class InteractiveConfig(BaseModel):
    entry: Path | None = None
    search_paths: list[Path] = Field(default_factory=list)
    imports: list[str] = Field(default_factory=lambda: list(DEFAULT_IMPORTS))
    include_runtime_dir: bool = True
    implicit_modules: list[str] = Field(default_factory=list)
    record_failed_history: bool = True
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {v!r}")
        return level

    def anchored(self, base: Path) -> InteractiveConfig:
        """Copy with relative paths resolved against base."""
        entry = self.entry if self.entry is None or self.entry.is_absolute() else base / self.entry
        paths = [p if p.is_absolute() else base / p for p in self.search_paths]
        return self.model_copy(update={"entry": entry, "search_paths": paths})


def read_pyproject(path: Path) -> dict:
    try:
        return tomllib.loads(path.read_text())
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Cannot read {path}: {e}", cause=e)


def load_config(path: Path | None = None) -> InteractiveConfig:
    """Load configuration from a pyproject.toml.

    A missing file or a file without a [tool.pyinteractive] table yields the
    defaults. Relative paths are anchored to the file's directory.

    Raises:
        ConfigurationError: The file cannot be parsed or holds invalid values.
    """
    if path is None or not path.exists():
        return InteractiveConfig()
    data = read_pyproject(path)
    table = data.get("tool", {}).get(TOOL_TABLE, {})
    try:
        config = InteractiveConfig.model_validate(table)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid [tool.{TOOL_TABLE}] in {path}: {e}", cause=e)
    return config.anchored(path.parent)
