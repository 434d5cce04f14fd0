"""Transformation steps and the closed set of processors they dispatch to."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import ConfigError
from .helpers import freeze, frozen_mapping, to_plain


class ProcessorId(str, Enum):
    """Every processor a transformation step may name."""

    STYLE_INJECT = "style-inject"
    CSS_EXTRACT = "css-extract"
    CSS = "css"
    POSTCSS = "postcss"
    RESOLVE_URL = "resolve-url"
    SASS = "sass"
    URL = "url"
    FILE = "file"
    BABEL = "babel"


class ProcessorKind(str, Enum):
    STYLE = "style"
    SCRIPT = "script"
    ASSET = "asset"
    PREPROCESSOR = "preprocessor"


@dataclass(frozen=True)
class ProcessorMeta:
    """What the bundler engine has to load for a processor id."""

    id: ProcessorId
    kind: ProcessorKind
    package: str
    description: str = ""


PROCESSOR_REGISTRY: dict[ProcessorId, ProcessorMeta] = {
    ProcessorId.STYLE_INJECT: ProcessorMeta(
        id=ProcessorId.STYLE_INJECT,
        kind=ProcessorKind.STYLE,
        package="style-loader",
        description="Inject compiled CSS into the document at runtime",
    ),
    ProcessorId.CSS_EXTRACT: ProcessorMeta(
        id=ProcessorId.CSS_EXTRACT,
        kind=ProcessorKind.STYLE,
        package="mini-css-extract-plugin/loader",
        description="Extract CSS into standalone files",
    ),
    ProcessorId.CSS: ProcessorMeta(
        id=ProcessorId.CSS,
        kind=ProcessorKind.STYLE,
        package="css-loader",
        description="Resolve @import and url() in CSS",
    ),
    ProcessorId.POSTCSS: ProcessorMeta(
        id=ProcessorId.POSTCSS,
        kind=ProcessorKind.STYLE,
        package="postcss-loader",
        description="Vendor prefixing and normalisation",
    ),
    ProcessorId.RESOLVE_URL: ProcessorMeta(
        id=ProcessorId.RESOLVE_URL,
        kind=ProcessorKind.STYLE,
        package="resolve-url-loader",
        description="Rewrite relative url() after preprocessing",
    ),
    ProcessorId.SASS: ProcessorMeta(
        id=ProcessorId.SASS,
        kind=ProcessorKind.PREPROCESSOR,
        package="sass-loader",
        description="Compile SASS/SCSS to CSS",
    ),
    ProcessorId.URL: ProcessorMeta(
        id=ProcessorId.URL,
        kind=ProcessorKind.ASSET,
        package="url-loader",
        description="Inline small files as data URLs, emit larger ones",
    ),
    ProcessorId.FILE: ProcessorMeta(
        id=ProcessorId.FILE,
        kind=ProcessorKind.ASSET,
        package="file-loader",
        description="Emit the file and return its public URL",
    ),
    ProcessorId.BABEL: ProcessorMeta(
        id=ProcessorId.BABEL,
        kind=ProcessorKind.SCRIPT,
        package="babel-loader",
        description="Transpile JavaScript and TypeScript",
    ),
}


def get_processor(name: "str | ProcessorId") -> ProcessorMeta:
    """Look up a processor by id, enum value or package name."""
    if isinstance(name, ProcessorId):
        return PROCESSOR_REGISTRY[name]
    key = (name or "").strip().lower()
    for meta in PROCESSOR_REGISTRY.values():
        if key in (meta.id.value, meta.package):
            return meta
    raise ConfigError(f"Unknown processor: {name!r}")


def get_preprocessor(name: "str | ProcessorId") -> ProcessorMeta:
    meta = get_processor(name)
    if meta.kind is not ProcessorKind.PREPROCESSOR:
        raise ConfigError(f"{meta.id.value!r} is not a style preprocessor")
    return meta


@dataclass(frozen=True)
class TransformStep:
    """One processor invocation inside a rule's chain."""

    processor: ProcessorId
    options: Mapping[str, Any] = field(default_factory=frozen_mapping)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", freeze(dict(self.options)))

    @property
    def meta(self) -> ProcessorMeta:
        return PROCESSOR_REGISTRY[self.processor]

    def to_dict(self) -> dict[str, Any]:
        return {
            "processor": self.processor.value,
            "loader": self.meta.package,
            "options": to_plain(self.options),
        }


def step(processor: ProcessorId, options: Optional[Mapping[str, Any]] = None) -> TransformStep:
    return TransformStep(processor=processor, options=options or {})
