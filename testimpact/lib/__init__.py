"""Core library modules for testimpact."""

from testimpact.lib.config import Settings, get_settings
from testimpact.lib.logging import get_logger

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
]
