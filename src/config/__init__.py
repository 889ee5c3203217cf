"""
Configuration module for the report export service.

Provides settings, constants, and logging configuration.
"""

from config.settings import get_settings, Settings
from config.logging_config import setup_structured_logging
from config.constants import (
    MAX_MANUAL_EXPORTS_PER_HOUR,
    RATE_LIMIT_WINDOW_SECONDS,
    LOCAL_LOCK_TTL_SECONDS,
    SCHEDULED_DEDUP_WINDOW_SECONDS,
    DEFAULT_ATTEMPT_COLLECTION,
)

__all__ = [
    # Settings
    'get_settings',
    'Settings',
    # Logging
    'setup_structured_logging',
    # Constants
    'MAX_MANUAL_EXPORTS_PER_HOUR',
    'RATE_LIMIT_WINDOW_SECONDS',
    'LOCAL_LOCK_TTL_SECONDS',
    'SCHEDULED_DEDUP_WINDOW_SECONDS',
    'DEFAULT_ATTEMPT_COLLECTION',
]
