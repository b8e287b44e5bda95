"""Utilities for gba."""

from .config_manager import ConfigManager
from .logging_config import configure_logging

__all__ = [
    'ConfigManager',
    'configure_logging',
]
