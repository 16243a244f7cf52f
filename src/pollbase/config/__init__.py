"""Application configuration helpers."""

from __future__ import annotations

from .env import (
    optional_bool_env,
    optional_float_env,
    optional_int_env,
    require_env_var,
    require_env_vars,
)
from .errors import ConfigurationError, InvalidConfigurationValue, MissingConfigurationError
from .logging import configure_logging, resolve_log_level
from .pipeline import PipelineConfig, get_pipeline_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidConfigurationValue",
    "MissingConfigurationError",
    "PipelineConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_pipeline_config",
    "get_storage_config",
    "optional_bool_env",
    "optional_float_env",
    "optional_int_env",
    "require_env_var",
    "require_env_vars",
    "resolve_log_level",
]
