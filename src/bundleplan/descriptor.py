"""Descriptor aggregation: one immutable value describing the whole build."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from .env import (
    BuildMode,
    ClientEnvironment,
    EnvironmentFlags,
    get_client_environment,
    load_env_files,
    node_path_entries,
    resolve_environment,
)
from .errors import InconsistentActivation, MissingRequiredArtifact
from .helpers import freeze, frozen_mapping, to_plain
from .modules import ModuleConfig, resolve_module_config
from .optimization import MinifyStage, MinifyTarget, OptimizationStage, build_optimization_stages
from .paths import MODULE_FILE_EXTENSIONS, AppPaths
from .plugins import (
    DEV_CLIENT_ENTRY,
    REFRESH_OVERLAY_ENTRY,
    PluginDescriptor,
    PluginId,
    build_plugins,
    uses_css_extraction,
)
from .rules import TransformationRule, build_module_rules
from .settings import ProjectSettings, load_settings

_logger = logging.getLogger("bundleplan.descriptor")

NODE_POLYFILLS: dict[str, str] = {
    "module": "empty",
    "dgram": "empty",
    "dns": "mock",
    "fs": "empty",
    "http2": "empty",
    "net": "empty",
    "tls": "empty",
    "child_process": "empty",
}


@dataclass(frozen=True)
class OutputPolicy:
    path: Optional[Path]
    pathinfo: bool
    filename: str
    chunk_filename: str
    public_path: str
    module_filename_template: str  # relative-to-src | absolute
    jsonp_function: str
    global_object: str = "this"
    future_emit_assets: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path) if self.path else None,
            "pathinfo": self.pathinfo,
            "filename": self.filename,
            "chunkFilename": self.chunk_filename,
            "publicPath": self.public_path,
            "devtoolModuleFilenameTemplate": self.module_filename_template,
            "jsonpFunction": self.jsonp_function,
            "globalObject": self.global_object,
            "futureEmitAssets": self.future_emit_assets,
        }


@dataclass(frozen=True)
class ResolvePolicy:
    modules: tuple[str, ...]
    extensions: tuple[str, ...]
    alias: Mapping[str, str] = field(default_factory=frozen_mapping)
    plugins: tuple[Mapping[str, Any], ...] = ()
    loader_plugins: tuple[Mapping[str, Any], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "modules": list(self.modules),
            "extensions": list(self.extensions),
            "alias": dict(self.alias),
            "plugins": to_plain(self.plugins),
            "resolveLoaderPlugins": to_plain(self.loader_plugins),
        }


@dataclass(frozen=True)
class NodePolyfillPolicy:
    modules: Mapping[str, str] = field(default_factory=lambda: frozen_mapping(NODE_POLYFILLS))

    def to_dict(self) -> dict[str, str]:
        return dict(self.modules)


@dataclass(frozen=True)
class BuildDescriptor:
    """Complete pipeline description handed to the bundler engine."""

    mode: BuildMode
    entry_points: tuple[str, ...]
    output: OutputPolicy
    module_rules: tuple[TransformationRule, ...]
    optimization_stages: tuple[OptimizationStage, ...]
    plugins: tuple[PluginDescriptor, ...]
    resolve: ResolvePolicy
    node: NodePolyfillPolicy = field(default_factory=NodePolyfillPolicy)
    bail: bool = False
    devtool: Optional[str] = None
    minimize: bool = False
    strict_export_presence: bool = True
    require_ensure: bool = False
    performance_hints: bool = False

    def plugin(self, plugin_id: PluginId) -> Optional[PluginDescriptor]:
        return next((p for p in self.plugins if p.id is plugin_id), None)

    def plugin_ids(self) -> list[PluginId]:
        return [p.id for p in self.plugins]

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "bail": self.bail,
            "devtool": self.devtool if self.devtool else False,
            "entry": list(self.entry_points),
            "output": self.output.to_dict(),
            "optimization": {
                "minimize": self.minimize,
                "stages": to_plain(self.optimization_stages),
            },
            "resolve": self.resolve.to_dict(),
            "module": {
                "strictExportPresence": self.strict_export_presence,
                "parser": {"requireEnsure": self.require_ensure},
                "rules": to_plain(self.module_rules),
            },
            "plugins": to_plain(self.plugins),
            "node": self.node.to_dict(),
            "performance": self.performance_hints,
        }


# ---------------------------------------------------------------------------
# Static policies
# ---------------------------------------------------------------------------

def build_entry_points(flags: EnvironmentFlags, paths: AppPaths) -> tuple[str, ...]:
    # Without fast refresh the development client provides hot reloading.
    if flags.is_development and not flags.fast_refresh_enabled:
        return (DEV_CLIENT_ENTRY, str(paths.app_index_js))
    return (str(paths.app_index_js),)


def build_devtool(flags: EnvironmentFlags) -> Optional[str]:
    if flags.is_production:
        return "source-map" if flags.source_maps else None
    return "cheap-module-source-map"


def build_output_policy(flags: EnvironmentFlags, paths: AppPaths) -> OutputPolicy:
    prod = flags.is_production
    return OutputPolicy(
        path=paths.app_build if prod else None,
        pathinfo=flags.is_development,
        filename="static/js/[name].[contenthash:8].js" if prod else "static/js/bundle.js",
        chunk_filename="static/js/[name].[contenthash:8].chunk.js" if prod else "static/js/[name].chunk.js",
        public_path=flags.public_url_or_path,
        module_filename_template="relative-to-src" if prod else "absolute",
        jsonp_function=f"webpackJsonp{paths.app_name}",
    )


def build_resolve_policy(
    flags: EnvironmentFlags,
    paths: AppPaths,
    module_config: ModuleConfig,
    extra_module_paths: Sequence[Path] = (),
) -> ResolvePolicy:
    modules = ["node_modules", str(paths.app_node_modules)]
    modules.extend(str(p) for p in module_config.additional_module_paths)
    modules.extend(str(p) for p in extra_module_paths)

    extensions = tuple(
        f".{ext}" for ext in MODULE_FILE_EXTENSIONS if flags.use_typescript or "ts" not in ext
    )

    alias: dict[str, str] = {"react-native": "react-native-web"}
    if flags.profiling_enabled:
        alias["react-dom$"] = "react-dom/profiling"
        alias["scheduler/tracing"] = "scheduler/tracing-profiling"
    alias.update(module_config.aliases)

    return ResolvePolicy(
        modules=tuple(modules),
        extensions=extensions,
        alias=frozen_mapping(alias),
        plugins=freeze(
            [
                {"id": "pnp"},
                {
                    "id": "module-scope",
                    "appSrc": str(paths.app_src),
                    "allowedFiles": [str(paths.app_package_json), REFRESH_OVERLAY_ENTRY],
                },
            ]
        ),
        loader_plugins=freeze([{"id": "pnp-loader"}]),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def check_required_files(paths: AppPaths) -> None:
    """Fail before assembly when the HTML template or entry module is missing."""
    for path, what in ((paths.app_html, "HTML template"), (paths.app_index_js, "entry module")):
        if not path.is_file():
            raise MissingRequiredArtifact(path, what)


def validate_descriptor(descriptor: BuildDescriptor) -> None:
    """Raise InconsistentActivation when a structural invariant is broken."""
    prod = descriptor.mode is BuildMode.PRODUCTION

    if not prod and descriptor.optimization_stages:
        raise InconsistentActivation("optimization stages requested in development mode")

    minifiers = {s.target for s in descriptor.optimization_stages if isinstance(s, MinifyStage)}
    if descriptor.minimize and minifiers != {MinifyTarget.SCRIPT, MinifyTarget.STYLE}:
        raise InconsistentActivation("minimization enabled without script and style minifiers")

    rules = descriptor.module_rules
    fallbacks = [i for i, r in enumerate(rules) if r.is_fallback]
    if len(fallbacks) > 1:
        raise InconsistentActivation("more than one fallback rule")
    if fallbacks and fallbacks[0] != len(rules) - 1:
        raise InconsistentActivation("fallback rule is not the last rule")
    for rule in rules:
        if not rule.is_fallback and not rule.steps:
            raise InconsistentActivation(f"rule {rule.name!r} has no steps")

    priorities = [p.id.priority for p in descriptor.plugins]
    if priorities != sorted(priorities) or len(set(priorities)) != len(priorities):
        raise InconsistentActivation("plugins are not in priority order")
    if any(not p.enabled for p in descriptor.plugins):
        raise InconsistentActivation("disabled plugin materialized into the plugin list")

    ids = set(descriptor.plugin_ids())
    if PluginId.INLINE_RUNTIME_CHUNK in ids and not prod:
        raise InconsistentActivation("runtime-chunk inlining outside production")
    if PluginId.FAST_REFRESH in ids and prod:
        raise InconsistentActivation("fast refresh outside development")
    if uses_css_extraction(rules) and PluginId.CSS_EXTRACT not in ids:
        raise InconsistentActivation("CSS extraction step used without the CSS extraction plugin")


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def build_descriptor(
    flags: EnvironmentFlags,
    paths: AppPaths,
    client_env: ClientEnvironment,
    module_config: Optional[ModuleConfig] = None,
    extra_module_paths: Sequence[Path] = (),
) -> BuildDescriptor:
    """Combine every component's output; no filesystem access."""
    rules = build_module_rules(flags, app_src=paths.app_src)
    stages = build_optimization_stages(flags)
    plugins = build_plugins(flags, rules, stages, paths=paths, client_env=client_env)

    descriptor = BuildDescriptor(
        mode=flags.mode,
        entry_points=build_entry_points(flags, paths),
        output=build_output_policy(flags, paths),
        module_rules=rules,
        optimization_stages=stages,
        plugins=plugins,
        resolve=build_resolve_policy(flags, paths, module_config or ModuleConfig(), extra_module_paths),
        bail=flags.is_production,
        devtool=build_devtool(flags),
        minimize=flags.is_production,
    )
    validate_descriptor(descriptor)
    return descriptor


def assemble_build_descriptor(
    mode: "str | BuildMode",
    project_root: "str | Path | None" = None,
    raw_env: Optional[Mapping[str, str]] = None,
    argv: Sequence[str] = (),
    *,
    settings: Optional[ProjectSettings] = None,
    load_dotenv: bool = True,
    jsx_runtime_available: Optional[bool] = None,
) -> BuildDescriptor:
    """Resolve the environment of *project_root* and assemble its descriptor.

    Raises:
        MissingRequiredArtifact: the HTML template or entry module is missing.
        InvalidModuleConfig: jsconfig/tsconfig ``baseUrl`` is unusable.
        InconsistentActivation: the result would break an invariant.
    """
    build_mode = BuildMode.parse(mode)
    root = Path(project_root or os.getcwd()).resolve()
    base_env = dict(os.environ if raw_env is None else raw_env)
    env = load_env_files(root, build_mode, base_env) if load_dotenv else base_env

    paths = AppPaths.discover(root, build_mode, env, settings if settings is not None else load_settings(root))
    check_required_files(paths)

    flags = resolve_environment(
        build_mode, env, paths=paths, argv=argv, jsx_runtime_available=jsx_runtime_available
    )
    descriptor = build_descriptor(
        flags,
        paths,
        get_client_environment(flags, env),
        resolve_module_config(paths, flags.use_typescript),
        node_path_entries(root, env),
    )
    _logger.info(
        "[descriptor] %s build for %s: %d rules, %d stages, %d plugins",
        build_mode.value,
        root,
        len(descriptor.module_rules),
        len(descriptor.optimization_stages),
        len(descriptor.plugins),
    )
    return descriptor
