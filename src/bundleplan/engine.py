"""Interface of the external bundler engine that consumes a descriptor."""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .descriptor import BuildDescriptor

_logger = logging.getLogger("bundleplan.engine")


@dataclass
class EngineResult:
    """Result of handing a descriptor to an engine."""

    success: bool
    engine: str
    output_path: Optional[Path] = None
    message: str = ""
    logs: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0


class BundlerEngine(ABC):
    """Consumes a BuildDescriptor and performs the actual bundling."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the engine identifier."""

    @abstractmethod
    def run(
        self,
        descriptor: BuildDescriptor,
        *,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> EngineResult:
        """Execute the pipeline described by *descriptor*."""

    @staticmethod
    def _log(on_log: Optional[Callable[[str], None]], msg: str) -> None:
        if on_log:
            try:
                on_log(msg)
            except Exception:
                _logger.debug("[engine] on_log callback failed", exc_info=True)


class JsonExportEngine(BundlerEngine):
    """Writes the descriptor as JSON for a Node-side bundler to pick up."""

    def __init__(self, target: str | Path, *, indent: int = 2) -> None:
        self.target = Path(target)
        self.indent = indent

    @property
    def name(self) -> str:
        return "json-export"

    def run(
        self,
        descriptor: BuildDescriptor,
        *,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> EngineResult:
        t0 = time.monotonic()
        logs: list[str] = []

        def _log(msg: str) -> None:
            logs.append(msg)
            self._log(on_log, msg)

        payload = json.dumps(descriptor.to_dict(), indent=self.indent)
        try:
            self.target.parent.mkdir(parents=True, exist_ok=True)
            self.target.write_text(payload + "\n")
        except OSError as e:
            _logger.error("[engine] Could not write %s: %s", self.target, e)
            _log(f"[json-export] Write failed: {e}")
            return EngineResult(
                success=False,
                engine=self.name,
                message=f"Could not write descriptor: {e}",
                logs=logs,
                elapsed_seconds=time.monotonic() - t0,
            )

        _log(f"[json-export] Wrote {descriptor.mode.value} descriptor to {self.target}")
        return EngineResult(
            success=True,
            engine=self.name,
            output_path=self.target,
            message="Descriptor exported",
            logs=logs,
            elapsed_seconds=time.monotonic() - t0,
        )
