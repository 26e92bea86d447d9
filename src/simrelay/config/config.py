"""Core configuration management for simrelay.

This module provides the configuration classes and loading functionality
with environment variable support and feature flags.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .environment import get_config_file_path, get_environment

DEFAULT_COLLECTOR_URL = "http://localhost:1664/webhook"
MAX_RENDER_RADIUS = 6

_TRUE_VALUES = ("true", "1", "yes", "on")


class ConfigError(Exception):
    """Configuration-related errors."""

    pass


@dataclass
class FeatureFlags:
    """Feature flags for enabling/disabling functionality.

    These can be controlled via the SIMRELAY_FEATURES environment variable
    as a comma-separated list (e.g., "metrics,logging,pii").
    """

    # Observability features
    metrics_export: bool = True
    structured_logging: bool = True
    pii_redaction: bool = True
    tracing: bool = False

    @classmethod
    def from_env(cls, env_var: str = "SIMRELAY_FEATURES") -> "FeatureFlags":
        """Load feature flags from environment variable.

        Args:
            env_var: Environment variable name (default: SIMRELAY_FEATURES)

        Returns:
            FeatureFlags instance with features enabled based on env var
        """
        features_str = os.getenv(env_var, "")
        if not features_str:
            return cls()

        enabled_features = {f.strip().lower() for f in features_str.split(",")}

        feature_mapping = {
            "metrics": "metrics_export",
            "logging": "structured_logging",
            "pii": "pii_redaction",
            "tracing": "tracing",
        }

        kwargs = {}
        for feature_name, attr_name in feature_mapping.items():
            kwargs[attr_name] = feature_name in enabled_features

        return cls(**kwargs)

    def to_dict(self) -> dict[str, bool]:
        """Convert to dictionary for metrics export."""
        return {
            "metrics_export": self.metrics_export,
            "structured_logging": self.structured_logging,
            "pii_redaction": self.pii_redaction,
            "tracing": self.tracing,
        }


class ConnectionConfig(BaseModel):
    """Collector endpoint and connection health settings."""

    collector_url: str = DEFAULT_COLLECTOR_URL
    enable_connection_handling: bool = True
    retry_delay_seconds: float = Field(default=30.0, gt=0)
    disable_delay_minutes: float = Field(default=5.0, gt=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    requeue_failed_flush: bool = False


class IntrospectionConfig(BaseModel):
    """Local HTTP introspection surface."""

    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 1464
    snapshot_timeout_seconds: float = Field(default=5.0, gt=0)


class EventsConfig(BaseModel):
    """Optional event sources."""

    push_actor_position_updates: bool = False


class RenderConfig(BaseModel):
    """Snapshot rendering settings."""

    # 0 disables distance filtering
    tile_render_radius: int = Field(default=5, ge=0, le=MAX_RENDER_RADIUS)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"
    enable_pii_redaction: bool = True


class MetricsConfig(BaseModel):
    """Metrics configuration."""

    enabled: bool = True


class RelayConfig(BaseModel):
    """Settings the relay itself consumes."""

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    introspection: IntrospectionConfig = Field(default_factory=IntrospectionConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)


class Config(RelayConfig):
    """Main configuration class for simrelay.

    Combines the relay settings with the ambient sections (logging, metrics,
    feature flags) and the deployment environment.
    """

    # Feature flags
    features: FeatureFlags = Field(default_factory=FeatureFlags)

    # Subsystem configurations
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    # Environment and deployment
    environment: Literal["development", "staging", "production", "testing"] = "development"
    debug: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("features", mode="before")
    @classmethod
    def validate_features(cls, v):
        """Validate feature flags."""
        if isinstance(v, dict):
            return FeatureFlags(**v)
        return v


def load_config_from_file(config_path: Path) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Loaded configuration

    Raises:
        ConfigError: If configuration is invalid or file cannot be read
    """
    try:
        with open(config_path) as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}

        return Config(**config_data)

    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def _env_bool(name: str) -> bool | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in _TRUE_VALUES


def _env_number(name: str, cast: type) -> Any:
    value = os.getenv(name)
    if not value:
        return None
    try:
        return cast(value)
    except ValueError as e:
        raise ConfigError(f"Invalid {name}: {value}") from e


def _collect(section: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        section[key] = value


def load_config_from_env() -> Config:
    """Load configuration from environment variables.

    Environment variables are mapped as follows:
    - SIMRELAY_ENVIRONMENT: Environment name (development/staging/production/testing)
    - SIMRELAY_DEBUG: Enable debug mode (true/false)
    - SIMRELAY_FEATURES: Comma-separated list of enabled features
    - SIMRELAY_COLLECTOR_URL: Collector endpoint
    - SIMRELAY_CONNECTION_HANDLING: Probe and disable on connection loss (true/false)
    - SIMRELAY_RETRY_DELAY_SECONDS: Interval between probes
    - SIMRELAY_DISABLE_DELAY_MINUTES: Probing time before the session is disabled
    - SIMRELAY_REQUEST_TIMEOUT_SECONDS: Collector request timeout
    - SIMRELAY_REQUEUE_FAILED_FLUSH: Keep events whose flush redelivery failed
    - SIMRELAY_INTROSPECTION: Start the introspection server (true/false)
    - SIMRELAY_POLL_HOST / SIMRELAY_POLL_PORT: Introspection server address
    - SIMRELAY_SNAPSHOT_TIMEOUT: Simulation thread wait for snapshots, in seconds
    - SIMRELAY_PUSH_POSITIONS: Emit per-tick actor position updates
    - SIMRELAY_RENDER_RADIUS: Snapshot cell radius (0-6)
    - SIMRELAY_LOG_LEVEL / SIMRELAY_LOG_FORMAT: Logging level and format
    - SIMRELAY_METRICS: Expose Prometheus metrics (true/false)

    Returns:
        Configuration loaded from environment variables
    """
    config_data: dict[str, Any] = {}

    # Environment and debug
    if env_val := os.getenv("SIMRELAY_ENVIRONMENT"):
        config_data["environment"] = env_val.lower()
    _collect(config_data, "debug", _env_bool("SIMRELAY_DEBUG"))

    # Feature flags
    if os.getenv("SIMRELAY_FEATURES"):
        config_data["features"] = FeatureFlags.from_env()

    connection: dict[str, Any] = {}
    if env_val := os.getenv("SIMRELAY_COLLECTOR_URL"):
        connection["collector_url"] = env_val
    _collect(connection, "enable_connection_handling", _env_bool("SIMRELAY_CONNECTION_HANDLING"))
    _collect(connection, "retry_delay_seconds", _env_number("SIMRELAY_RETRY_DELAY_SECONDS", float))
    _collect(
        connection, "disable_delay_minutes", _env_number("SIMRELAY_DISABLE_DELAY_MINUTES", float)
    )
    _collect(
        connection,
        "request_timeout_seconds",
        _env_number("SIMRELAY_REQUEST_TIMEOUT_SECONDS", float),
    )
    _collect(connection, "requeue_failed_flush", _env_bool("SIMRELAY_REQUEUE_FAILED_FLUSH"))
    if connection:
        config_data["connection"] = connection

    introspection: dict[str, Any] = {}
    _collect(introspection, "enabled", _env_bool("SIMRELAY_INTROSPECTION"))
    if env_val := os.getenv("SIMRELAY_POLL_HOST"):
        introspection["host"] = env_val
    _collect(introspection, "port", _env_number("SIMRELAY_POLL_PORT", int))
    _collect(
        introspection, "snapshot_timeout_seconds", _env_number("SIMRELAY_SNAPSHOT_TIMEOUT", float)
    )
    if introspection:
        config_data["introspection"] = introspection

    if (push := _env_bool("SIMRELAY_PUSH_POSITIONS")) is not None:
        config_data["events"] = {"push_actor_position_updates": push}

    if (radius := _env_number("SIMRELAY_RENDER_RADIUS", int)) is not None:
        config_data["render"] = {"tile_render_radius": radius}

    # Logging configuration
    logging_config = {}
    if env_val := os.getenv("SIMRELAY_LOG_LEVEL"):
        logging_config["level"] = env_val.upper()
    if env_val := os.getenv("SIMRELAY_LOG_FORMAT"):
        logging_config["format"] = env_val.lower()
    if logging_config:
        config_data["logging"] = logging_config

    if (metrics := _env_bool("SIMRELAY_METRICS")) is not None:
        config_data["metrics"] = {"enabled": metrics}

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Environment configuration validation failed: {e}") from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _explicit_fields(config: Config) -> dict[str, Any]:
    data = config.model_dump(exclude_unset=True)
    # FeatureFlags is a dataclass, so exclude_unset cannot see into it
    if "features" in config.model_fields_set:
        data["features"] = config.features.to_dict()
    return data


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment variables.

    Configuration is loaded in the following order (later sources override earlier):
    1. Default values
    2. Configuration file (``config_path``, or the one found for the environment)
    3. Environment variables

    When neither source names an environment, the one resolved by
    ``get_environment`` is used.

    Args:
        config_path: Optional path to configuration file

    Returns:
        Merged configuration
    """
    data: dict[str, Any] = {}

    if config_path is None:
        config_path = get_config_file_path()
    if config_path and config_path.exists():
        data = _deep_merge(data, _explicit_fields(load_config_from_file(config_path)))

    data = _deep_merge(data, _explicit_fields(load_config_from_env()))
    data.setdefault("environment", get_environment().value)

    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def validate_config(config: Config) -> None:
    """Validate configuration for consistency and correctness.

    Args:
        config: Configuration to validate

    Raises:
        ConfigError: If configuration is invalid
    """
    if not config.connection.collector_url.startswith(("http://", "https://")):
        raise ConfigError(
            f"connection.collector_url must be an http(s) URL: {config.connection.collector_url}"
        )

    if config.introspection.port <= 0 or config.introspection.port > 65535:
        raise ConfigError("introspection.port must be between 1 and 65535")

    if config.connection.retry_delay_seconds >= config.connection.disable_delay_minutes * 60:
        raise ConfigError(
            "connection.retry_delay_seconds must be shorter than the disable delay"
        )

    # Environment-specific validations
    if config.environment == "production":
        if config.debug:
            raise ConfigError("Debug mode should not be enabled in production")

        if config.logging.level == "DEBUG":
            raise ConfigError("DEBUG logging should not be used in production")

        if not config.features.pii_redaction:
            raise ConfigError("PII redaction should be enabled in production")
