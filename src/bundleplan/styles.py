"""Style chain builder: the ordered steps for one CSS/SASS dialect."""

from __future__ import annotations

import hashlib
import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .env import EnvironmentFlags
from .steps import ProcessorId, TransformStep, get_preprocessor, step

_logger = logging.getLogger("bundleplan.styles")

_INDEX_MODULE_RE = re.compile(r"index\.module\.(css|scss|sass)$")

# Digit order of the "base64" digest used for class-name hashes.
_HASH_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ-_"

POSTCSS_PLUGINS: tuple[tuple[str, dict[str, Any]], ...] = (
    ("postcss-flexbugs-fixes", {}),
    ("postcss-preset-env", {"autoprefixer": {"flexbox": "no-2009"}, "stage": 3}),
    ("postcss-normalize", {}),
)


def _hash_digest(digest: bytes, length: int) -> str:
    """Little-endian digest rendered in base 64 over ``_HASH_ALPHABET``.

    Only word characters and ``-`` appear, so the result is safe inside a
    CSS class name.
    """
    number = int.from_bytes(digest, "little")
    chars: list[str] = []
    while number > 0:
        number, rem = divmod(number, 64)
        chars.append(_HASH_ALPHABET[rem])
    return "".join(reversed(chars))[:length]


def css_module_local_ident(root_context: str | Path, resource_path: str | Path, local_name: str) -> str:
    """Class name for *local_name* declared in a CSS-module file.

    ``Button.module.css`` + ``primary`` -> ``Button_primary__<hash>``;
    ``index.module.css`` files use their folder name instead.
    """
    resource = Path(resource_path)
    token = resource.parent.name if _INDEX_MODULE_RE.search(resource.name) else resource.stem
    relative = posixpath.relpath(resource.as_posix(), Path(root_context).as_posix())
    digest = hashlib.md5((relative + local_name).encode("utf-8")).digest()
    short_hash = _hash_digest(digest, 5)
    class_name = f"{token}_{local_name}__{short_hash}"
    return class_name.replace(".module_", "_", 1).replace(".", "_")


@dataclass(frozen=True)
class LocalIdentStrategy:
    """Named strategy for generating CSS-module class names."""

    id: str = "css-module"

    def __call__(self, root_context: str | Path, resource_path: str | Path, local_name: str) -> str:
        return css_module_local_ident(root_context, resource_path, local_name)

    def to_dict(self) -> dict[str, str]:
        return {"getLocalIdent": self.id}


CSS_MODULE_IDENT = LocalIdentStrategy()


@dataclass(frozen=True)
class StyleOptions:
    """Options carried verbatim into the CSS resolution step."""

    import_loaders: int
    source_map: bool
    local_ident: Optional[LocalIdentStrategy] = None

    def to_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "importLoaders": self.import_loaders,
            "sourceMap": self.source_map,
        }
        if self.local_ident is not None:
            options["modules"] = self.local_ident.to_dict()
        return options


def build_style_chain(
    options: StyleOptions,
    preprocessor: Optional[str] = None,
    *,
    flags: EnvironmentFlags,
    app_src: Path,
) -> list[TransformStep]:
    """Return the declaration-ordered steps for one style dialect.

    The engine applies them last-to-first: the preprocessor (if any) runs
    first and the injection/extraction step runs last.
    """
    chain: list[TransformStep] = []

    if flags.is_development:
        chain.append(step(ProcessorId.STYLE_INJECT))
    else:
        chain.append(
            step(
                ProcessorId.CSS_EXTRACT,
                {"publicPath": "../../"} if flags.public_url_or_path.startswith(".") else {},
            )
        )

    chain.append(step(ProcessorId.CSS, options.to_options()))
    chain.append(
        step(
            ProcessorId.POSTCSS,
            {
                "ident": "postcss",
                "plugins": [{"name": name, "options": opts} for name, opts in POSTCSS_PLUGINS],
                "sourceMap": flags.style_source_maps,
            },
        )
    )

    if preprocessor:
        meta = get_preprocessor(preprocessor)
        chain.append(step(ProcessorId.RESOLVE_URL, {"sourceMap": True, "root": str(app_src)}))
        chain.append(step(meta.id, {"sourceMap": True}))

    _logger.debug(
        "[styles] %s chain (%s, preprocessor=%s): %s",
        flags.mode.value,
        options.import_loaders,
        preprocessor,
        [s.processor.value for s in chain],
    )
    return chain
