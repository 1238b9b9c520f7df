"""Configuration management for hdltb."""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE_NAMES = ("hdltb.yml", "hdltb.yaml")


class SettingsLoadError(RuntimeError):
    """Raised when a configuration file cannot be read or validated."""


class BenchSettings(BaseSettings):
    """Runtime configuration sourced from environment variables, .env and hdltb.yml."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="HDLTB_",
    )

    input_directory: Path = Field(default_factory=Path.cwd)
    build_directory: Path | None = Field(default=None)
    report_directory: Path | None = Field(default=None)
    file_pattern: str = Field(default="**/*.v")
    test_bench_pattern: str = Field(default="**/*_tb.v")
    tool_flags: tuple[str, ...] = Field(default=("-Wall",))
    compiler: str | None = Field(default=None)
    runtime: str | None = Field(default=None)
    watch: bool = Field(default=False)
    debounce_ms: int = Field(default=100)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "HDLTB_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("tool_flags", mode="before")
    @classmethod
    def _parse_tool_flags(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(shlex.split(value))
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        raise TypeError("HDLTB_TOOL_FLAGS must be a list of strings or a shell-style string")

    @field_validator("file_pattern", "test_bench_pattern")
    @classmethod
    def _validate_pattern(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("glob patterns must not be empty")
        return normalized

    @field_validator("debounce_ms")
    @classmethod
    def _validate_debounce(cls, value: int) -> int:
        if value < 1:
            raise ValueError("HDLTB_DEBOUNCE_MS must be >= 1")
        return value

    @model_validator(mode="after")
    def _resolve_directories(self) -> "BenchSettings":
        self.input_directory = self.input_directory.expanduser().resolve()
        self.build_directory = self._under_input(self.build_directory, Path("build") / "out")
        self.report_directory = self._under_input(self.report_directory, Path("build") / "report")
        return self

    def _under_input(self, value: Path | None, default: Path) -> Path:
        path = Path(value).expanduser() if value is not None else default
        if not path.is_absolute():
            path = self.input_directory / path
        return path.resolve()

    @property
    def quiet_period(self) -> float:
        """Debounce interval in seconds."""

        return self.debounce_ms / 1000.0


def find_config_file(directory: Path) -> Path | None:
    """Return the first hdltb config file present in ``directory``."""

    for name in CONFIG_FILE_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a YAML config file into a mapping of setting names to values."""

    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SettingsLoadError(f"Unable to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SettingsLoadError(f"Failed to parse YAML in {path}: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise SettingsLoadError(f"Config file {path} must contain a mapping")
    return {str(key).replace("-", "_"): value for key, value in document.items()}


def load_settings(config_path: Path | None = None, **overrides: Any) -> BenchSettings:
    """Build settings from defaults, environment, an optional YAML file and overrides.

    ``overrides`` whose value is ``None`` are ignored so argparse namespaces can
    be forwarded as is. When ``config_path`` is not given, ``hdltb.yml`` is
    looked up in the effective input directory.
    """

    explicit = {key: value for key, value in overrides.items() if value is not None}

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.is_file():
            raise SettingsLoadError(f"Config file not found: {config_path}")
    else:
        input_directory = explicit.get("input_directory") or os.environ.get("HDLTB_INPUT_DIRECTORY")
        search_dir = Path(input_directory) if input_directory else Path.cwd()
        config_path = find_config_file(search_dir.expanduser())

    values: dict[str, Any] = {}
    if config_path is not None:
        values.update(read_config_file(config_path))
    values.update(explicit)

    try:
        return BenchSettings(**values)
    except ValidationError as exc:
        source = f" (config file {config_path})" if config_path else ""
        raise SettingsLoadError(f"Invalid settings{source}: {exc}") from exc


__all__ = [
    "BenchSettings",
    "CONFIG_FILE_NAMES",
    "SettingsLoadError",
    "find_config_file",
    "load_settings",
    "read_config_file",
]
