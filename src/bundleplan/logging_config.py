"""
Centralized logging configuration for bundleplan.

Library modules only create loggers under the ``bundleplan`` namespace and
never attach handlers.  Entry points call :func:`setup_logging` once:

    from bundleplan.logging_config import setup_logging
    setup_logging("DEBUG")
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_initialized = False

_LOGGER_NAME = "bundleplan"


def setup_logging(level: Optional[str] = None, *, console: Optional[Console] = None) -> None:
    """Attach a rich handler to the ``bundleplan`` logger.

    Args:
        level: Minimum level; defaults to ``BUNDLEPLAN_LOG_LEVEL`` or WARNING.
        console: Console to render to (stderr by default).
    """
    global _initialized

    resolved = (level or os.environ.get("BUNDLEPLAN_LOG_LEVEL") or "WARNING").upper()
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(resolved)

    if _initialized:
        return

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    _initialized = True
