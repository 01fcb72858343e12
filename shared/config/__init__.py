"""
Configuration package.

Exposes the cached settings instance and logging setup.
"""

from shared.config.settings import Settings, get_settings, settings
from shared.config.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "get_logger",
    "setup_logging",
]
