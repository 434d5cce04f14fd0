"""Environment resolution: raw process state -> one immutable flag snapshot.

Every other component receives an :class:`EnvironmentFlags` value and never
reads ``os.environ`` itself.  Parsing problems in individual values are
absorbed here (logged and replaced by the documented default).
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

from dotenv import dotenv_values

from .errors import ConfigError, ConfigParseError
from .helpers import frozen_mapping

if TYPE_CHECKING:
    from .paths import AppPaths

_logger = logging.getLogger("bundleplan.env")

DEFAULT_IMAGE_INLINE_SIZE_LIMIT = 10000
PROFILE_SWITCH = "--profile"
CLIENT_ENV_RE = re.compile(r"^REACT_APP_", re.IGNORECASE)


class BuildMode(str, Enum):
    """The single mode an assembly runs in."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, value: "str | BuildMode") -> "BuildMode":
        if isinstance(value, BuildMode):
            return value
        key = (value or "").strip().lower()
        for mode in cls:
            if mode.value == key:
                return mode
        raise ConfigError(f"Unknown build mode {value!r} (expected 'development' or 'production')")


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------

def _enabled_unless_false(raw: Mapping[str, str], key: str) -> bool:
    """Default-true switch: only the exact string ``"false"`` turns it off."""
    return raw.get(key) != "false"


def _disabled_unless_true(raw: Mapping[str, str], key: str) -> bool:
    """Default-false switch: only the exact string ``"true"`` turns it on."""
    return raw.get(key) == "true"


def parse_size_limit(key: str, value: Optional[str], default: int) -> int:
    """Parse a non-negative byte count, raising ConfigParseError otherwise."""
    if value is None or str(value).strip() == "":
        return default
    text = str(value).strip()
    try:
        parsed = int(text)
    except ValueError:
        raise ConfigParseError(key, value, default, "not an integer") from None
    if parsed < 0:
        raise ConfigParseError(key, value, default, "must not be negative")
    return parsed


# ---------------------------------------------------------------------------
# Flag snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EnvironmentFlags:
    """Typed switches for one assembly call."""

    mode: BuildMode
    source_maps: bool = True
    inline_runtime_chunk: bool = True
    image_inline_size_limit: int = DEFAULT_IMAGE_INLINE_SIZE_LIMIT
    use_typescript: bool = False
    has_automatic_jsx_runtime: bool = False
    fast_refresh_enabled: bool = True
    profiling_enabled: bool = False
    lint_on_build: bool = True
    pnp_enabled: bool = False
    use_service_worker: bool = False
    public_url_or_path: str = "/"

    @property
    def is_development(self) -> bool:
        return self.mode is BuildMode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.mode is BuildMode.PRODUCTION

    @property
    def style_source_maps(self) -> bool:
        """Source-map flag shared by the style chains."""
        return self.source_maps if self.is_production else True

    def to_raw_env(self) -> dict[str, str]:
        """Render the env-derived switches back into raw key/value form."""
        return {
            "GENERATE_SOURCEMAP": "true" if self.source_maps else "false",
            "INLINE_RUNTIME_CHUNK": "true" if self.inline_runtime_chunk else "false",
            "IMAGE_INLINE_SIZE_LIMIT": str(self.image_inline_size_limit),
            "FAST_REFRESH": "true" if self.fast_refresh_enabled else "false",
            "DISABLE_NEW_JSX_TRANSFORM": "false" if self.has_automatic_jsx_runtime else "true",
            "DISABLE_ESLINT_PLUGIN": "false" if self.lint_on_build else "true",
        }


def jsx_runtime_resolvable(paths: "AppPaths") -> bool:
    """Whether the automatic JSX runtime module is installed.

    Like node module resolution, every ``node_modules`` from the project root
    up to the filesystem root is searched, so hoisted workspace installs count.
    """
    for directory in (paths.app_path, *paths.app_path.parents):
        if (directory / "node_modules" / "react" / "jsx-runtime.js").is_file():
            return True
    return False


def resolve_environment(
    mode: "str | BuildMode",
    raw_env: Optional[Mapping[str, str]] = None,
    *,
    paths: "AppPaths",
    argv: Sequence[str] = (),
    jsx_runtime_available: Optional[bool] = None,
) -> EnvironmentFlags:
    """Build the :class:`EnvironmentFlags` snapshot for one assembly.

    Args:
        mode: ``"development"`` / ``"production"`` or a BuildMode.
        raw_env: Raw key/value pairs; defaults to ``os.environ``.
        paths: Discovered project paths (used for existence checks only).
        argv: Command-line arguments; ``--profile`` enables profiling in production.
        jsx_runtime_available: Override for the JSX runtime probe.
    """
    build_mode = BuildMode.parse(mode)
    raw: Mapping[str, str] = os.environ if raw_env is None else raw_env

    try:
        size_limit = parse_size_limit(
            "IMAGE_INLINE_SIZE_LIMIT", raw.get("IMAGE_INLINE_SIZE_LIMIT"), DEFAULT_IMAGE_INLINE_SIZE_LIMIT
        )
    except ConfigParseError as e:
        _logger.warning("[env] %s", e)
        size_limit = e.default

    if jsx_runtime_available is None:
        jsx_runtime_available = jsx_runtime_resolvable(paths)

    flags = EnvironmentFlags(
        mode=build_mode,
        source_maps=_enabled_unless_false(raw, "GENERATE_SOURCEMAP"),
        inline_runtime_chunk=_enabled_unless_false(raw, "INLINE_RUNTIME_CHUNK"),
        image_inline_size_limit=size_limit,
        use_typescript=paths.app_tsconfig.exists(),
        has_automatic_jsx_runtime=bool(jsx_runtime_available)
        and not _disabled_unless_true(raw, "DISABLE_NEW_JSX_TRANSFORM"),
        fast_refresh_enabled=_enabled_unless_false(raw, "FAST_REFRESH"),
        profiling_enabled=build_mode is BuildMode.PRODUCTION and PROFILE_SWITCH in argv,
        lint_on_build=not _disabled_unless_true(raw, "DISABLE_ESLINT_PLUGIN"),
        pnp_enabled=paths.pnp_manifest is not None,
        use_service_worker=paths.sw_src.exists(),
        public_url_or_path=paths.public_url_or_path,
    )
    _logger.debug("[env] Resolved flags: %s", flags)
    return flags


# ---------------------------------------------------------------------------
# .env files
# ---------------------------------------------------------------------------

def dotenv_files(app_path: Path, mode: BuildMode) -> list[Path]:
    """Candidate .env files, highest priority first."""
    return [
        app_path / f".env.{mode.value}.local",
        app_path / ".env.local",
        app_path / f".env.{mode.value}",
        app_path / ".env",
    ]


def load_env_files(
    app_path: str | Path,
    mode: "str | BuildMode",
    base_env: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Merge the project's .env files under *base_env*.

    Keys already in *base_env* are never overridden, and a file earlier in
    :func:`dotenv_files` wins over a later one.
    """
    build_mode = BuildMode.parse(mode)
    merged: dict[str, str] = dict(os.environ if base_env is None else base_env)
    for path in dotenv_files(Path(app_path), build_mode):
        if not path.is_file():
            continue
        _logger.debug("[env] Loading %s", path)
        for key, value in dotenv_values(path, interpolate=True).items():
            if value is None or key in merged:
                continue
            merged[key] = value
    return merged


def node_path_entries(app_path: Path, raw_env: Mapping[str, str]) -> list[Path]:
    """Relative ``NODE_PATH`` entries resolved against the project root."""
    entries: list[Path] = []
    for item in (raw_env.get("NODE_PATH") or "").split(os.pathsep):
        item = item.strip()
        if not item:
            continue
        if os.path.isabs(item):
            _logger.warning("[env] Ignoring absolute NODE_PATH entry %s", item)
            continue
        entries.append((app_path / item).resolve())
    return entries


# ---------------------------------------------------------------------------
# Client environment (values embedded into the application bundle)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClientEnvironment:
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def stringified(self) -> dict[str, dict[str, str]]:
        return {
            "process.env": {
                key: ("undefined" if value is None else json.dumps(value))
                for key, value in self.raw.items()
            }
        }


def get_client_environment(flags: EnvironmentFlags, raw_env: Mapping[str, str]) -> ClientEnvironment:
    values: dict[str, Any] = {
        key: raw_env[key] for key in sorted(raw_env) if CLIENT_ENV_RE.match(key)
    }
    values.update(
        {
            "NODE_ENV": flags.mode.value,
            "PUBLIC_URL": flags.public_url_or_path[:-1],
            "WDS_SOCKET_HOST": raw_env.get("WDS_SOCKET_HOST"),
            "WDS_SOCKET_PATH": raw_env.get("WDS_SOCKET_PATH"),
            "WDS_SOCKET_PORT": raw_env.get("WDS_SOCKET_PORT"),
            "FAST_REFRESH": flags.fast_refresh_enabled,
        }
    )
    return ClientEnvironment(raw=frozen_mapping(values))
