"""Transformation rule assembler.

Rules are tested in order and the first one whose matcher holds owns the
file.  Later rules therefore never see files claimed by earlier ones; the
fallback (``test is None``) is always last.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any, Optional, Sequence

from .env import EnvironmentFlags
from .helpers import to_plain
from .steps import ProcessorId, TransformStep, step
from .styles import CSS_MODULE_IDENT, StyleOptions, build_style_chain

_logger = logging.getLogger("bundleplan.rules")

MEDIA_NAME = "static/media/[name].[hash:8].[ext]"

AVIF_RE = re.compile(r"\.avif$")
IMAGE_RES = (re.compile(r"\.bmp$"), re.compile(r"\.gif$"), re.compile(r"\.jpe?g$"), re.compile(r"\.png$"))
APP_SCRIPT_RE = re.compile(r"\.(js|mjs|jsx|ts|tsx)$")
DEP_SCRIPT_RE = re.compile(r"\.(js|mjs)$")
BABEL_RUNTIME_RE = re.compile(r"@babel(?:/|\\{1,2})runtime")
CSS_RE = re.compile(r"\.css$")
CSS_MODULE_RE = re.compile(r"\.module\.css$")
SASS_RE = re.compile(r"\.(scss|sass)$")
SASS_MODULE_RE = re.compile(r"\.module\.(scss|sass)$")
HTML_RE = re.compile(r"\.html$")
JSON_RE = re.compile(r"\.json$")

SVG_COMPONENT_LOADER = "@svgr/webpack?-svgo,+titleProp,+ref![path]"


def _as_posix(path: "str | PurePath") -> str:
    return os.path.normpath(str(path)).replace("\\", "/")


@dataclass(frozen=True)
class FileMatcher:
    """Regex alternatives, optionally restricted to one directory tree."""

    patterns: tuple[re.Pattern, ...]
    include: Optional[Path] = None

    @classmethod
    def of(cls, *patterns: "str | re.Pattern", include: Optional[Path] = None) -> "FileMatcher":
        compiled = tuple(p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns)
        return cls(patterns=compiled, include=include)

    def __call__(self, path: "str | PurePath") -> bool:
        posix = _as_posix(path)
        if self.include is not None:
            root = _as_posix(self.include)
            if posix != root and not posix.startswith(root.rstrip("/") + "/"):
                return False
        return any(p.search(posix) for p in self.patterns)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"test": [p.pattern for p in self.patterns]}
        if self.include is not None:
            data["include"] = str(self.include)
        return data


@dataclass(frozen=True)
class TransformationRule:
    name: str
    test: Optional[FileMatcher]
    steps: tuple[TransformStep, ...]
    exclude: Optional[FileMatcher] = None
    side_effects: bool = False

    @property
    def is_fallback(self) -> bool:
        return self.test is None

    def applies_to(self, path: "str | PurePath") -> bool:
        if self.exclude is not None and self.exclude(path):
            return False
        return self.test is None or self.test(path)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.test is not None:
            data.update(self.test.to_dict())
        if self.exclude is not None:
            data["exclude"] = self.exclude.to_dict()["test"]
        data["use"] = [to_plain(s) for s in self.steps]
        if self.side_effects:
            data["sideEffects"] = True
        return data


def select_rule(
    rules: Sequence[TransformationRule],
    path: "str | PurePath",
    *,
    root: "str | PurePath | None" = None,
) -> Optional[TransformationRule]:
    """First rule that applies to *path*.

    Rules match absolute paths. A relative *path* is joined onto *root*
    (the project directory) when one is given and matched as-is otherwise.

    ``None`` means the fallback deliberately leaves the file to the engine's
    built-in handling (scripts outside the source tree, HTML, JSON).
    """
    if root is not None and not os.path.isabs(path):
        path = PurePath(root) / path
    for rule in rules:
        if rule.applies_to(path):
            return rule
    return None


# ---------------------------------------------------------------------------
# Script transpilation options
# ---------------------------------------------------------------------------

def app_script_options(flags: EnvironmentFlags) -> dict[str, Any]:
    plugins: list[Any] = [
        [
            "babel-plugin-named-asset-import",
            {"loaderMap": {"svg": {"ReactComponent": SVG_COMPONENT_LOADER}}},
        ]
    ]
    if flags.is_development and flags.fast_refresh_enabled:
        plugins.append("react-refresh/babel")

    return {
        "customize": "babel-preset-react-app/webpack-overrides",
        "presets": [
            ["babel-preset-react-app", {"runtime": "automatic" if flags.has_automatic_jsx_runtime else "classic"}]
        ],
        "plugins": plugins,
        "cacheDirectory": True,
        "cacheCompression": False,
        "compact": flags.is_production,
    }


def dependency_script_options(flags: EnvironmentFlags) -> dict[str, Any]:
    return {
        "babelrc": False,
        "configFile": False,
        "compact": False,
        "presets": [["babel-preset-react-app/dependencies", {"helpers": True}]],
        "cacheDirectory": True,
        "cacheCompression": False,
        "sourceMaps": flags.source_maps,
        "inputSourceMap": flags.source_maps,
    }


def build_module_rules(flags: EnvironmentFlags, *, app_src: Path) -> tuple[TransformationRule, ...]:
    """Assemble the ordered, first-match-wins rule list."""
    style_sm = flags.style_source_maps

    def styles(import_loaders: int, modules: bool, preprocessor: Optional[str] = None) -> tuple[TransformStep, ...]:
        opts = StyleOptions(
            import_loaders=import_loaders,
            source_map=style_sm,
            local_ident=CSS_MODULE_IDENT if modules else None,
        )
        return tuple(build_style_chain(opts, preprocessor, flags=flags, app_src=app_src))

    rules = (
        TransformationRule(
            name="avif",
            test=FileMatcher.of(AVIF_RE),
            steps=(
                step(
                    ProcessorId.URL,
                    {"limit": flags.image_inline_size_limit, "mimetype": "image/avif", "name": MEDIA_NAME},
                ),
            ),
        ),
        TransformationRule(
            name="images",
            test=FileMatcher.of(*IMAGE_RES),
            steps=(step(ProcessorId.URL, {"limit": flags.image_inline_size_limit, "name": MEDIA_NAME}),),
        ),
        TransformationRule(
            name="app-scripts",
            test=FileMatcher.of(APP_SCRIPT_RE, include=app_src),
            steps=(step(ProcessorId.BABEL, app_script_options(flags)),),
        ),
        TransformationRule(
            name="dependency-scripts",
            test=FileMatcher.of(DEP_SCRIPT_RE),
            exclude=FileMatcher.of(BABEL_RUNTIME_RE),
            steps=(step(ProcessorId.BABEL, dependency_script_options(flags)),),
        ),
        TransformationRule(
            name="css",
            test=FileMatcher.of(CSS_RE),
            exclude=FileMatcher.of(CSS_MODULE_RE),
            steps=styles(1, modules=False),
            side_effects=True,
        ),
        TransformationRule(
            name="css-modules",
            test=FileMatcher.of(CSS_MODULE_RE),
            steps=styles(1, modules=True),
        ),
        TransformationRule(
            name="sass",
            test=FileMatcher.of(SASS_RE),
            exclude=FileMatcher.of(SASS_MODULE_RE),
            steps=styles(3, modules=False, preprocessor="sass"),
            side_effects=True,
        ),
        TransformationRule(
            name="sass-modules",
            test=FileMatcher.of(SASS_MODULE_RE),
            steps=styles(3, modules=True, preprocessor="sass"),
        ),
        TransformationRule(
            name="fallback",
            test=None,
            exclude=FileMatcher.of(APP_SCRIPT_RE, HTML_RE, JSON_RE),
            steps=(step(ProcessorId.FILE, {"name": MEDIA_NAME}),),
        ),
    )
    _logger.debug("[rules] %d rules: %s", len(rules), [r.name for r in rules])
    return rules
