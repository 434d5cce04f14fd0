"""Production-only optimization stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Union

from .env import EnvironmentFlags
from .helpers import freeze, frozen_mapping, to_plain

_logger = logging.getLogger("bundleplan.optimization")

RUNTIME_CHUNK_NAMING = "runtime-{entrypoint}"


class MinifyTarget(str, Enum):
    SCRIPT = "script"
    STYLE = "style"


@dataclass(frozen=True)
class MinifyStage:
    target: MinifyTarget
    params: Mapping[str, Any] = field(default_factory=frozen_mapping)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", freeze(dict(self.params)))

    def to_dict(self) -> dict[str, Any]:
        return {"stage": "minify", "target": self.target.value, "params": to_plain(self.params)}


@dataclass(frozen=True)
class IsolateRuntimeChunk:
    """One runtime chunk per entry, named from the entry's name."""

    naming: str = RUNTIME_CHUNK_NAMING

    def chunk_name(self, entrypoint: str) -> str:
        return self.naming.format(entrypoint=entrypoint)

    def to_dict(self) -> dict[str, Any]:
        return {"stage": "runtime-chunk", "naming": self.naming}


@dataclass(frozen=True)
class SplitChunksStage:
    params: Mapping[str, Any] = field(default_factory=frozen_mapping)
    runtime_chunk: IsolateRuntimeChunk = field(default_factory=IsolateRuntimeChunk)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", freeze(dict(self.params)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": "split-chunks",
            "params": to_plain(self.params),
            "runtimeChunk": self.runtime_chunk.to_dict(),
        }


OptimizationStage = Union[MinifyStage, SplitChunksStage]


def script_minify_params(flags: EnvironmentFlags) -> dict[str, Any]:
    # Parse modern syntax but emit ES5; comparisons folding and safari10
    # mangling work around known minifier/browser bugs.
    return {
        "terserOptions": {
            "parse": {"ecma": 8},
            "compress": {"ecma": 5, "warnings": False, "comparisons": False, "inline": 2},
            "mangle": {"safari10": True},
            "keep_classnames": flags.profiling_enabled,
            "keep_fnames": flags.profiling_enabled,
            "output": {"ecma": 5, "comments": False, "ascii_only": True},
        },
        "sourceMap": flags.source_maps,
    }


def style_minify_params(flags: EnvironmentFlags) -> dict[str, Any]:
    return {
        "cssProcessorOptions": {
            "parser": "postcss-safe-parser",
            "map": {"inline": False, "annotation": True} if flags.source_maps else False,
        },
        "cssProcessorPluginOptions": {
            "preset": ["default", {"minifyFontValues": {"removeQuotes": False}}],
        },
    }


def build_optimization_stages(flags: EnvironmentFlags) -> tuple[OptimizationStage, ...]:
    """Minify scripts, minify styles, then split chunks; empty in development."""
    if not flags.is_production:
        return ()

    stages: tuple[OptimizationStage, ...] = (
        MinifyStage(MinifyTarget.SCRIPT, script_minify_params(flags)),
        MinifyStage(MinifyTarget.STYLE, style_minify_params(flags)),
        SplitChunksStage({"chunks": "all", "name": False}, IsolateRuntimeChunk()),
    )
    _logger.debug("[optimization] %d stages (profiling=%s)", len(stages), flags.profiling_enabled)
    return stages
