"""bundleplan – build descriptor assembler for bundled web applications."""

__version__ = "0.1.0"

from .errors import (
    BundlePlanError,
    ConfigError,
    ConfigParseError,
    InconsistentActivation,
    InvalidModuleConfig,
    MissingRequiredArtifact,
)
from .env import (
    BuildMode,
    ClientEnvironment,
    EnvironmentFlags,
    get_client_environment,
    load_env_files,
    resolve_environment,
)
from .paths import AppPaths, get_public_url_or_path
from .settings import ProjectSettings, load_settings
from .steps import PROCESSOR_REGISTRY, ProcessorId, TransformStep, get_processor
from .styles import LocalIdentStrategy, StyleOptions, build_style_chain, css_module_local_ident
from .rules import FileMatcher, TransformationRule, build_module_rules, select_rule
from .optimization import (
    IsolateRuntimeChunk,
    MinifyStage,
    MinifyTarget,
    SplitChunksStage,
    build_optimization_stages,
)
from .plugins import PluginDescriptor, PluginId, build_plugins, generate_asset_manifest
from .modules import ModuleConfig, resolve_module_config
from .descriptor import (
    BuildDescriptor,
    NodePolyfillPolicy,
    OutputPolicy,
    ResolvePolicy,
    assemble_build_descriptor,
    build_descriptor,
    validate_descriptor,
)
from .engine import BundlerEngine, EngineResult, JsonExportEngine

__all__ = [
    # Errors
    "BundlePlanError",
    "ConfigError",
    "ConfigParseError",
    "InconsistentActivation",
    "InvalidModuleConfig",
    "MissingRequiredArtifact",
    # Environment
    "BuildMode",
    "ClientEnvironment",
    "EnvironmentFlags",
    "get_client_environment",
    "load_env_files",
    "resolve_environment",
    # Project layout
    "AppPaths",
    "get_public_url_or_path",
    "ProjectSettings",
    "load_settings",
    "ModuleConfig",
    "resolve_module_config",
    # Steps and rules
    "PROCESSOR_REGISTRY",
    "ProcessorId",
    "TransformStep",
    "get_processor",
    "LocalIdentStrategy",
    "StyleOptions",
    "build_style_chain",
    "css_module_local_ident",
    "FileMatcher",
    "TransformationRule",
    "build_module_rules",
    "select_rule",
    # Optimization
    "IsolateRuntimeChunk",
    "MinifyStage",
    "MinifyTarget",
    "SplitChunksStage",
    "build_optimization_stages",
    # Plugins
    "PluginDescriptor",
    "PluginId",
    "build_plugins",
    "generate_asset_manifest",
    # Descriptor
    "BuildDescriptor",
    "NodePolyfillPolicy",
    "OutputPolicy",
    "ResolvePolicy",
    "assemble_build_descriptor",
    "build_descriptor",
    "validate_descriptor",
    # Engine
    "BundlerEngine",
    "EngineResult",
    "JsonExportEngine",
    "__version__",
]
