"""Project-level settings read from ``bundleplan.yaml``."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

SETTINGS_FILENAME = "bundleplan.yaml"


def _clean_relative(value: str) -> str:
    v = (value or "").strip().replace("\\", "/")
    if not v:
        raise ValueError("must not be empty")
    if PurePosixPath(v).is_absolute() or (len(v) > 1 and v[1] == ":"):
        raise ValueError(f"must be relative to the project root, got {value!r}")
    return v.rstrip("/") or "."


class ProjectSettings(BaseModel):
    """Layout of an application project, relative to its root."""

    src_dir: str = Field(default="src")
    public_dir: str = Field(default="public")
    build_dir: str = Field(default="build")
    html_template: str = Field(default="index.html")
    entry: str = Field(default="index")
    service_worker: str = Field(default="service-worker")

    @field_validator("src_dir", "public_dir", "build_dir", "html_template", "entry", "service_worker")
    @classmethod
    def _relative_path(cls, v: str) -> str:
        return _clean_relative(v)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ProjectSettings":
        try:
            return cls(**(data or {}))
        except ValidationError as e:
            raise ConfigError(f"Invalid {SETTINGS_FILENAME}: {e}") from e

    @classmethod
    def from_yaml(cls, path: Path) -> "ProjectSettings":
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid {SETTINGS_FILENAME}: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
        return cls.from_dict(data)


def load_settings(project_root: str | Path) -> ProjectSettings:
    """Load ``bundleplan.yaml`` from *project_root*, or defaults when absent."""
    path = Path(project_root) / SETTINGS_FILENAME
    if not path.exists():
        return ProjectSettings()
    return ProjectSettings.from_yaml(path)
