"""
Configuration module: Settings, logging, constants.
"""

from factory_shared.config.settings import settings, DATABASE_URL
from factory_shared.config.logging import get_logger, setup_logging
from factory_shared.config.constants import (
    Roles,
    Limits,
    GLOBAL_ADMIN_ROLES,
)

__all__ = [
    # settings
    "settings",
    "DATABASE_URL",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "Roles",
    "Limits",
    "GLOBAL_ADMIN_ROLES",
]
