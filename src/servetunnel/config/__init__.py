"""servetunnel configuration.

This module provides the public API for loading and validating the
deployment configuration file.

Example:
    >>> from servetunnel.config import load_config
    >>> config = load_config("config/config.toml")
    >>> config.active_model
    'Qwen/Qwen2.5-0.5B-Instruct'
"""

from servetunnel.exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigValidationError,
)

from ._defaults import DEFAULT_CONFIG, DEFAULT_CONFIG_PATH, ENV_PREFIX
from ._load import load_config, merge_sources
from ._loader import deep_merge, parse_env_value, parse_env_vars, read_toml_file
from ._models import (
    Config,
    KeepAliveConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    PathsConfig,
    ReadinessConfig,
    ServingConfig,
    ShutdownConfig,
    TunnelConfig,
)
from ._validation import (
    ValidationIssue,
    format_issues,
    raise_if_validation_errors,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "Config",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigLoadError",
    "ConfigValidationError",
    "KeepAliveConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "PathsConfig",
    "ReadinessConfig",
    "ServingConfig",
    "ShutdownConfig",
    "TunnelConfig",
    "ValidationIssue",
    "deep_merge",
    "format_issues",
    "load_config",
    "merge_sources",
    "parse_env_value",
    "parse_env_vars",
    "raise_if_validation_errors",
    "read_toml_file",
    "validate_config",
]
