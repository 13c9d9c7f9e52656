"""
Common utilities shared across goreinstall modules.
"""

from __future__ import annotations

import os


def debug_enabled() -> bool:
    """Check whether GOREINSTALL_DEBUG forces verbose logging."""
    return os.environ.get("GOREINSTALL_DEBUG", "0") == "1"


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log verbose message using structured logging.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or debug_enabled():
        from .logging_config import get_logger
        get_logger().info(msg)
