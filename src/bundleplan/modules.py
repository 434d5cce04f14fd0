"""Module search paths and aliases derived from jsconfig.json / tsconfig.json."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import InvalidModuleConfig
from .helpers import frozen_mapping
from .paths import AppPaths

_logger = logging.getLogger("bundleplan.modules")

# Strings are matched first so comment markers inside them survive.
_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def load_jsonc(path: Path) -> dict[str, Any]:
    """Parse a JSON file that may contain comments and trailing commas."""
    text = path.read_text()
    text = _COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    try:
        data = json.loads(text or "{}")
    except ValueError as e:
        raise InvalidModuleConfig(f"{path.name} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidModuleConfig(f"{path.name} must contain an object")
    return data


@dataclass(frozen=True)
class ModuleConfig:
    additional_module_paths: tuple[Path, ...] = ()
    aliases: Mapping[str, str] = field(default_factory=frozen_mapping)


def _same_path(a: Path, b: Path) -> bool:
    return os.path.normcase(os.path.normpath(a)) == os.path.normcase(os.path.normpath(b))


def _read_base_url(paths: AppPaths, use_typescript: bool) -> Optional[str]:
    has_ts = paths.app_tsconfig.exists()
    has_js = paths.app_jsconfig.exists()
    if has_ts and has_js:
        raise InvalidModuleConfig(
            "You have both a tsconfig.json and a jsconfig.json. "
            "If you are using TypeScript please remove your jsconfig.json file."
        )

    config: dict[str, Any] = {}
    if use_typescript and has_ts:
        config = load_jsonc(paths.app_tsconfig)
    elif has_js:
        config = load_jsonc(paths.app_jsconfig)

    options = config.get("compilerOptions") or {}
    base_url = options.get("baseUrl") if isinstance(options, dict) else None
    return str(base_url) if base_url else None


def resolve_module_config(paths: AppPaths, use_typescript: bool) -> ModuleConfig:
    """Only ``src``, ``node_modules`` or the project root may be a baseUrl."""
    base_url = _read_base_url(paths, use_typescript)
    if not base_url:
        return ModuleConfig()

    resolved = Path(os.path.normpath(paths.app_path / base_url))
    _logger.debug("[modules] baseUrl %s -> %s", base_url, resolved)

    if _same_path(resolved, paths.app_node_modules):
        return ModuleConfig()
    if _same_path(resolved, paths.app_src):
        return ModuleConfig(additional_module_paths=(paths.app_src,))
    if _same_path(resolved, paths.app_path):
        return ModuleConfig(aliases=frozen_mapping({"src": str(paths.app_src)}))

    raise InvalidModuleConfig(
        f"Your project's baseUrl can only be set to src or node_modules, got {base_url!r}."
    )
