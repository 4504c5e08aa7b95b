"""Logging configuration for cockpit-studio."""

import sys
import warnings
from pathlib import Path
from typing import Any, TextIO

from loguru import logger

# Hook that was in place before warnings were routed to loguru.
_previous_showwarning: Any = None


def _show_warning(
    message: Warning | str,
    category: type[Warning],
    filename: str,
    lineno: int,
    file: TextIO | None = None,
    line: str | None = None,
) -> None:
    logger.opt(depth=2).warning("{}: {}", category.__name__, message)


def route_warnings(enabled: bool) -> None:
    """Send Python warnings to loguru, or give the previous hook back."""
    global _previous_showwarning
    if enabled and warnings.showwarning is not _show_warning:
        _previous_showwarning = warnings.showwarning
        warnings.showwarning = _show_warning
    elif not enabled and warnings.showwarning is _show_warning:
        warnings.showwarning = _previous_showwarning
        _previous_showwarning = None


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None, capture_warnings: bool = True
) -> None:
    """Configure loguru with appropriate level.

    With capture_warnings, Python warnings (such as history fallbacks) go to
    the same sinks; configuring again without it restores the previous hook.
    When log_file is given, a DEBUG-level rotating copy is kept there.
    """
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level, format="{level.icon} {message}")
    if log_file is not None:
        logger.add(log_file, level="DEBUG", rotation="1 MB", retention=3)
    route_warnings(capture_warnings)
