"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_int, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)
from .sync import PersonIdFormat, SyncConfig, get_feed_dir, get_sync_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "PersonIdFormat",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "get_database_config",
    "get_database_uri",
    "get_feed_dir",
    "get_storage_config",
    "get_sync_config",
    "optional_env_int",
    "require_env_vars",
]
