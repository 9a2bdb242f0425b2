"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .scheduling import AssignmentScopeName, SchedulingConfig, get_scheduling_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .store import StoreConfig, get_store_config

__all__ = [
    "AssignmentScopeName",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SchedulingConfig",
    "StorageConfig",
    "StoreConfig",
    "configure_logging",
    "get_database_config",
    "get_scheduling_config",
    "get_storage_config",
    "get_store_config",
    "require_env_var",
    "require_env_vars",
]
