"""Exceptions raised while assembling a build descriptor."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional


class BundlePlanError(Exception):
    """Base class for every bundleplan failure."""


class ConfigError(BundlePlanError):
    """Raised when configuration input is invalid."""


class ConfigParseError(ConfigError):
    """An environment value could not be parsed into its typed flag.

    The resolver absorbs this error and substitutes ``default``.
    """

    def __init__(self, key: str, value: Any, default: Any, reason: str = "") -> None:
        self.key = key
        self.value = value
        self.default = default
        msg = f"Cannot parse {key}={value!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(f"{msg}; using default {default!r}")


class InvalidModuleConfig(ConfigError):
    """jsconfig.json / tsconfig.json cannot be turned into module search paths."""


class MissingRequiredArtifact(BundlePlanError):
    """A file the build cannot start without does not exist."""

    def __init__(self, path: Path, what: Optional[str] = None) -> None:
        self.path = Path(path)
        label = what or "required file"
        super().__init__(f"Could not find a {label}: {self.path}")


class InconsistentActivation(BundlePlanError):
    """The assembled descriptor violates one of its structural invariants."""

    def __init__(self, invariant: str) -> None:
        self.invariant = invariant
        super().__init__(f"Inconsistent build descriptor: {invariant}")
