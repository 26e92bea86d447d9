"""Configuration management for simrelay.

Configuration loading, validation and feature flags for the relay.
"""

from .config import (
    Config,
    ConfigError,
    ConnectionConfig,
    EventsConfig,
    FeatureFlags,
    IntrospectionConfig,
    LoggingConfig,
    MetricsConfig,
    RelayConfig,
    RenderConfig,
    load_config,
    load_config_from_env,
    load_config_from_file,
    validate_config,
)
from .environment import Environment, get_config_file_path, get_environment

__all__ = [
    "Config",
    "ConfigError",
    "ConnectionConfig",
    "Environment",
    "EventsConfig",
    "FeatureFlags",
    "IntrospectionConfig",
    "LoggingConfig",
    "MetricsConfig",
    "RelayConfig",
    "RenderConfig",
    "get_config_file_path",
    "get_environment",
    "load_config",
    "load_config_from_env",
    "load_config_from_file",
    "validate_config",
]
