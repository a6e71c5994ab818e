"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, env_value
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging, resolve_log_level
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "StorageConfig",
    "configure_logging",
    "env_flag",
    "env_value",
    "get_database_config",
    "get_storage_config",
    "resolve_log_level",
]
