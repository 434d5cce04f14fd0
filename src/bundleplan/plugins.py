"""Plugin activation matrix.

Each plugin has one predicate over the resolved flags and static project
facts.  The enabled subset is always emitted in :class:`PluginId`
declaration order, which is the order the engine must apply them in: later
plugins consume artifacts of earlier ones (the manifest sees the extracted
CSS, the service worker sees the manifest).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Sequence

from .env import ClientEnvironment, EnvironmentFlags
from .helpers import freeze, frozen_mapping, to_plain
from .optimization import IsolateRuntimeChunk, OptimizationStage, SplitChunksStage
from .paths import AppPaths
from .rules import TransformationRule
from .steps import ProcessorId

_logger = logging.getLogger("bundleplan.plugins")

DEV_CLIENT_ENTRY = "react-dev-utils/webpackHotDevClient"
REFRESH_OVERLAY_ENTRY = "react-dev-utils/refreshOverlayInterop"
PNP_TS_MODULE = "bundleplan/pnpTs.js"
ASSET_MANIFEST_FILE = "asset-manifest.json"
LINT_EXTENSIONS = ("js", "mjs", "jsx", "ts", "tsx")

HTML_MINIFY_OPTIONS: dict[str, bool] = {
    "removeComments": True,
    "collapseWhitespace": True,
    "removeRedundantAttributes": True,
    "useShortDoctype": True,
    "removeEmptyAttributes": True,
    "removeStyleLinkTypeAttributes": True,
    "keepClosingSlash": True,
    "minifyJS": True,
    "minifyCSS": True,
    "minifyURLs": True,
}

TYPE_CHECK_REPORT_FILES = (
    "../**/src/**/*.{ts,tsx}",
    "**/src/**/*.{ts,tsx}",
    "!**/src/**/__tests__/**",
    "!**/src/**/?(*.)(spec|test).*",
    "!**/src/setupProxy.*",
    "!**/src/setupTests.*",
)


class PluginId(str, Enum):
    """Cross-cutting plugins, declared in their fixed priority order."""

    HTML = "html"
    INLINE_RUNTIME_CHUNK = "inline-runtime-chunk"
    INTERPOLATE_HTML = "interpolate-html"
    MODULE_NOT_FOUND = "module-not-found"
    DEFINE = "define"
    HOT_MODULE_REPLACEMENT = "hot-module-replacement"
    FAST_REFRESH = "fast-refresh"
    CASE_SENSITIVE_PATHS = "case-sensitive-paths"
    WATCH_MISSING_MODULES = "watch-missing-node-modules"
    CSS_EXTRACT = "css-extract"
    ASSET_MANIFEST = "asset-manifest"
    IGNORE_LOCALES = "ignore-moment-locales"
    SERVICE_WORKER = "service-worker"
    TYPE_CHECK = "type-check"
    LINT = "lint"

    @property
    def priority(self) -> int:
        return list(PluginId).index(self)


@dataclass(frozen=True)
class PluginDescriptor:
    id: PluginId
    enabled: bool
    config: Mapping[str, Any] = field(default_factory=frozen_mapping)

    def __post_init__(self) -> None:
        object.__setattr__(self, "config", freeze(dict(self.config)))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id.value, "config": to_plain(self.config)}


@dataclass(frozen=True)
class PluginContext:
    """Everything a predicate or config factory may look at."""

    flags: EnvironmentFlags
    paths: AppPaths
    client_env: ClientEnvironment
    rules: Sequence[TransformationRule] = ()
    stages: Sequence[OptimizationStage] = ()

    def runtime_chunk_pattern(self) -> str:
        runtime = next(
            (s.runtime_chunk for s in self.stages if isinstance(s, SplitChunksStage)),
            IsolateRuntimeChunk(),
        )
        prefix = runtime.naming.split("{", 1)[0]
        return f"{prefix}.+[.]js"


Predicate = Callable[[PluginContext], bool]
ConfigFactory = Callable[[PluginContext], Mapping[str, Any]]


@dataclass(frozen=True)
class Activation:
    plugin: PluginId
    predicate: Predicate
    config: ConfigFactory


def _always(ctx: PluginContext) -> bool:
    return True


def _development(ctx: PluginContext) -> bool:
    return ctx.flags.is_development


def _production(ctx: PluginContext) -> bool:
    return ctx.flags.is_production


def _no_config(ctx: PluginContext) -> Mapping[str, Any]:
    return {}


# ---------------------------------------------------------------------------
# Per-plugin configuration
# ---------------------------------------------------------------------------

def _html_config(ctx: PluginContext) -> Mapping[str, Any]:
    config: dict[str, Any] = {"inject": True, "template": str(ctx.paths.app_html)}
    if ctx.flags.is_production:
        config["minify"] = dict(HTML_MINIFY_OPTIONS)
    return config


def _inline_chunk_config(ctx: PluginContext) -> Mapping[str, Any]:
    return {"tests": [ctx.runtime_chunk_pattern()]}


def _fast_refresh_config(ctx: PluginContext) -> Mapping[str, Any]:
    return {
        "overlay": {
            "entry": DEV_CLIENT_ENTRY,
            "module": REFRESH_OVERLAY_ENTRY,
            "sockIntegration": False,
        }
    }


def _css_extract_config(ctx: PluginContext) -> Mapping[str, Any]:
    return {
        "filename": "static/css/[name].[contenthash:8].css",
        "chunkFilename": "static/css/[name].[contenthash:8].chunk.css",
    }


def _manifest_config(ctx: PluginContext) -> Mapping[str, Any]:
    return {
        "fileName": ASSET_MANIFEST_FILE,
        "publicPath": ctx.flags.public_url_or_path,
        "generate": "files-and-entrypoints",
    }


def _service_worker_config(ctx: PluginContext) -> Mapping[str, Any]:
    return {
        "swSrc": str(ctx.paths.sw_src),
        "dontCacheBustURLsMatching": r"\.[0-9a-f]{8}\.",
        "exclude": [r"\.map$", r"asset-manifest\.json$", "LICENSE"],
    }


def _type_check_config(ctx: PluginContext) -> Mapping[str, Any]:
    pnp_module = PNP_TS_MODULE if ctx.flags.pnp_enabled else None
    return {
        "typescript": str(ctx.paths.app_node_modules / "typescript"),
        "async": ctx.flags.is_development,
        "checkSyntacticErrors": True,
        "resolveModuleNameModule": pnp_module,
        "resolveTypeReferenceDirectiveModule": pnp_module,
        "tsconfig": str(ctx.paths.app_tsconfig),
        "reportFiles": list(TYPE_CHECK_REPORT_FILES),
        "silent": True,
        "formatter": "typescript" if ctx.flags.is_production else None,
    }


def _lint_config(ctx: PluginContext) -> Mapping[str, Any]:
    rules: dict[str, str] = {}
    if not ctx.flags.has_automatic_jsx_runtime:
        rules["react/react-in-jsx-scope"] = "error"
    return {
        "extensions": list(LINT_EXTENSIONS),
        "formatter": "react-dev-utils/eslintFormatter",
        "eslintPath": "eslint",
        "context": str(ctx.paths.app_src),
        "cwd": str(ctx.paths.app_path),
        "baseConfig": {"extends": ["eslint-config-react-app/base"], "rules": rules},
    }


ACTIVATION_MATRIX: tuple[Activation, ...] = (
    Activation(PluginId.HTML, _always, _html_config),
    Activation(
        PluginId.INLINE_RUNTIME_CHUNK,
        lambda ctx: ctx.flags.is_production and ctx.flags.inline_runtime_chunk,
        _inline_chunk_config,
    ),
    Activation(PluginId.INTERPOLATE_HTML, _always, lambda ctx: {"replacements": dict(ctx.client_env.raw)}),
    Activation(PluginId.MODULE_NOT_FOUND, _always, lambda ctx: {"appPath": str(ctx.paths.app_path)}),
    Activation(PluginId.DEFINE, _always, lambda ctx: {"definitions": ctx.client_env.stringified}),
    Activation(PluginId.HOT_MODULE_REPLACEMENT, _development, _no_config),
    Activation(
        PluginId.FAST_REFRESH,
        lambda ctx: ctx.flags.is_development and ctx.flags.fast_refresh_enabled,
        _fast_refresh_config,
    ),
    Activation(PluginId.CASE_SENSITIVE_PATHS, _development, _no_config),
    Activation(
        PluginId.WATCH_MISSING_MODULES,
        _development,
        lambda ctx: {"nodeModulesPath": str(ctx.paths.app_node_modules)},
    ),
    Activation(PluginId.CSS_EXTRACT, _production, _css_extract_config),
    Activation(PluginId.ASSET_MANIFEST, _always, _manifest_config),
    Activation(
        PluginId.IGNORE_LOCALES,
        _always,
        lambda ctx: {"resourceRegExp": r"^\./locale$", "contextRegExp": r"moment$"},
    ),
    Activation(
        PluginId.SERVICE_WORKER,
        lambda ctx: ctx.flags.is_production and ctx.flags.use_service_worker,
        _service_worker_config,
    ),
    Activation(PluginId.TYPE_CHECK, lambda ctx: ctx.flags.use_typescript, _type_check_config),
    Activation(PluginId.LINT, lambda ctx: ctx.flags.lint_on_build, _lint_config),
)


def evaluate_activation_matrix(ctx: PluginContext) -> list[PluginDescriptor]:
    """Every plugin with its enablement; config is only built for enabled ones."""
    descriptors: list[PluginDescriptor] = []
    for activation in sorted(ACTIVATION_MATRIX, key=lambda a: a.plugin.priority):
        enabled = bool(activation.predicate(ctx))
        config = activation.config(ctx) if enabled else {}
        descriptors.append(PluginDescriptor(activation.plugin, enabled, config))
    return descriptors


def build_plugins(
    flags: EnvironmentFlags,
    rules: Sequence[TransformationRule],
    stages: Sequence[OptimizationStage],
    *,
    paths: AppPaths,
    client_env: ClientEnvironment,
) -> tuple[PluginDescriptor, ...]:
    """Return the enabled plugins in fixed priority order."""
    ctx = PluginContext(flags=flags, paths=paths, client_env=client_env, rules=rules, stages=stages)
    enabled = tuple(d for d in evaluate_activation_matrix(ctx) if d.enabled)
    _logger.debug("[plugins] enabled: %s", [d.id.value for d in enabled])
    return enabled


def uses_css_extraction(rules: Iterable[TransformationRule]) -> bool:
    return any(s.processor is ProcessorId.CSS_EXTRACT for r in rules for s in r.steps)


# ---------------------------------------------------------------------------
# Asset manifest
# ---------------------------------------------------------------------------

def generate_asset_manifest(
    seed: Mapping[str, str],
    files: Iterable[tuple[str, str]],
    entrypoint_files: Iterable[str],
) -> dict[str, Any]:
    """Build the ``asset-manifest.json`` payload.

    *files* are ``(name, public path)`` pairs; source maps are left out of
    the entrypoint list.
    """
    manifest_files = dict(seed)
    for name, path in files:
        manifest_files[name] = path
    return {
        "files": manifest_files,
        "entrypoints": [f for f in entrypoint_files if not f.endswith(".map")],
    }
