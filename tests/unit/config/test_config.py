"""Unit tests for configuration loading and validation."""

import pytest

from simrelay.config import (
    Config,
    ConfigError,
    FeatureFlags,
    RelayConfig,
    load_config,
    load_config_from_env,
    load_config_from_file,
    validate_config,
)
from simrelay.config.environment import Environment, get_config_file_path, get_environment


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep SIMRELAY_* variables from the outer environment out of the tests."""
    import os

    for name in list(os.environ):
        if name.startswith("SIMRELAY_"):
            monkeypatch.delenv(name)


class TestDefaults:
    """Test default values."""

    def test_relay_defaults(self):
        """Test defaults of the relay sections."""
        config = RelayConfig()

        assert config.connection.collector_url == "http://localhost:1664/webhook"
        assert config.connection.enable_connection_handling is True
        assert config.connection.retry_delay_seconds == 30
        assert config.connection.disable_delay_minutes == 5
        assert config.connection.requeue_failed_flush is False
        assert config.introspection.port == 1464
        assert config.introspection.host == "127.0.0.1"
        assert config.events.push_actor_position_updates is False
        assert config.render.tile_render_radius == 5

    def test_render_radius_range(self):
        """Test the render radius is limited to 0..6."""
        with pytest.raises(ValueError):
            RelayConfig(render={"tile_render_radius": 7})
        with pytest.raises(ValueError):
            RelayConfig(render={"tile_render_radius": -1})
        assert RelayConfig(render={"tile_render_radius": 0}).render.tile_render_radius == 0

    def test_delays_must_be_positive(self):
        """Test non-positive delays are rejected."""
        with pytest.raises(ValueError):
            RelayConfig(connection={"retry_delay_seconds": 0})


class TestFeatureFlags:
    """Test feature flag parsing."""

    def test_default_flags(self):
        """Test observability features are on by default."""
        flags = FeatureFlags()
        assert flags.structured_logging and flags.metrics_export and flags.pii_redaction
        assert flags.tracing is False

    def test_from_env(self, monkeypatch):
        """Test comma-separated feature list."""
        monkeypatch.setenv("SIMRELAY_FEATURES", "metrics, tracing")

        flags = FeatureFlags.from_env()

        assert flags.metrics_export is True
        assert flags.tracing is True
        assert flags.pii_redaction is False


class TestLoading:
    """Test file and environment loading."""

    def test_load_from_env(self, monkeypatch):
        """Test SIMRELAY_* variables map onto config sections."""
        monkeypatch.setenv("SIMRELAY_COLLECTOR_URL", "http://collector:9000/events")
        monkeypatch.setenv("SIMRELAY_CONNECTION_HANDLING", "false")
        monkeypatch.setenv("SIMRELAY_RETRY_DELAY_SECONDS", "15")
        monkeypatch.setenv("SIMRELAY_POLL_PORT", "8080")
        monkeypatch.setenv("SIMRELAY_PUSH_POSITIONS", "yes")
        monkeypatch.setenv("SIMRELAY_RENDER_RADIUS", "3")
        monkeypatch.setenv("SIMRELAY_LOG_LEVEL", "debug")

        config = load_config_from_env()

        assert config.connection.collector_url == "http://collector:9000/events"
        assert config.connection.enable_connection_handling is False
        assert config.connection.retry_delay_seconds == 15.0
        assert config.introspection.port == 8080
        assert config.events.push_actor_position_updates is True
        assert config.render.tile_render_radius == 3
        assert config.logging.level == "DEBUG"

    def test_invalid_number_in_env(self, monkeypatch):
        """Test malformed numbers raise ConfigError."""
        monkeypatch.setenv("SIMRELAY_POLL_PORT", "not-a-port")

        with pytest.raises(ConfigError, match="SIMRELAY_POLL_PORT"):
            load_config_from_env()

    def test_out_of_range_env(self, monkeypatch):
        """Test validation failures from the environment raise ConfigError."""
        monkeypatch.setenv("SIMRELAY_RENDER_RADIUS", "9")

        with pytest.raises(ConfigError):
            load_config_from_env()

    def test_load_from_file(self, tmp_path):
        """Test YAML file loading."""
        path = tmp_path / "simrelay.yaml"
        path.write_text(
            "connection:\n"
            "  collector_url: http://example.test/hook\n"
            "  requeue_failed_flush: true\n"
            "render:\n"
            "  tile_render_radius: 2\n"
        )

        config = load_config_from_file(path)

        assert config.connection.collector_url == "http://example.test/hook"
        assert config.connection.requeue_failed_flush is True
        assert config.render.tile_render_radius == 2

    def test_empty_file(self, tmp_path):
        """Test an empty file yields defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config_from_file(path) == Config()

    def test_missing_file(self, tmp_path):
        """Test missing file raises ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            load_config_from_file(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises ConfigError."""
        path = tmp_path / "bad.yaml"
        path.write_text("connection: [unclosed")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config_from_file(path)

    def test_env_overrides_file_per_key(self, tmp_path, monkeypatch):
        """Test environment overrides single keys without resetting file values."""
        path = tmp_path / "simrelay.yaml"
        path.write_text(
            "connection:\n"
            "  collector_url: http://file.test/hook\n"
            "  retry_delay_seconds: 12\n"
        )
        monkeypatch.setenv("SIMRELAY_RETRY_DELAY_SECONDS", "20")

        config = load_config(path)

        assert config.connection.collector_url == "http://file.test/hook"
        assert config.connection.retry_delay_seconds == 20.0

    def test_load_config_without_file(self, monkeypatch, tmp_path):
        """Test defaults when neither file nor environment is set."""
        monkeypatch.chdir(tmp_path)
        assert load_config(None) == Config()

    def test_marker_file_sets_environment(self, monkeypatch, tmp_path):
        """Test a .env.production marker reaches the loaded config and its checks."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env.production").write_text("")
        monkeypatch.setenv("SIMRELAY_DEBUG", "true")

        config = load_config()

        assert config.environment == "production"
        with pytest.raises(ConfigError, match="Debug"):
            validate_config(config)

    def test_environment_variable_beats_marker_file(self, monkeypatch, tmp_path):
        """Test SIMRELAY_ENVIRONMENT wins over a marker file."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env.production").write_text("")
        monkeypatch.setenv("SIMRELAY_ENVIRONMENT", "staging")

        assert load_config().environment == "staging"

    def test_default_file_follows_environment(self, monkeypatch, tmp_path):
        """Test the file for the resolved environment is loaded when no path is given."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env.staging").write_text("")
        (tmp_path / "simrelay.yaml").write_text(
            "connection:\n  collector_url: http://shared.test/hook\n"
        )
        (tmp_path / "simrelay.staging.yaml").write_text(
            "connection:\n  collector_url: http://staging.test/hook\n"
        )

        config = load_config()

        assert config.environment == "staging"
        assert config.connection.collector_url == "http://staging.test/hook"


class TestValidation:
    """Test consistency validation."""

    def test_defaults_are_valid(self):
        """Test the default configuration validates."""
        validate_config(Config())

    def test_collector_url_scheme(self):
        """Test the collector must be an HTTP endpoint."""
        config = Config(connection={"collector_url": "ftp://collector"})
        with pytest.raises(ConfigError, match="collector_url"):
            validate_config(config)

    def test_port_range(self):
        """Test the introspection port range."""
        with pytest.raises(ConfigError, match="port"):
            validate_config(Config(introspection={"port": 70000}))

    def test_retry_shorter_than_disable_delay(self):
        """Test probing must get at least one retry before disablement."""
        config = Config(connection={"retry_delay_seconds": 600, "disable_delay_minutes": 5})
        with pytest.raises(ConfigError, match="retry_delay_seconds"):
            validate_config(config)

    def test_production_rules(self):
        """Test production-specific checks."""
        with pytest.raises(ConfigError, match="Debug"):
            validate_config(Config(environment="production", debug=True))
        with pytest.raises(ConfigError, match="PII"):
            validate_config(
                Config(environment="production", features={"pii_redaction": False})
            )


class TestEnvironment:
    """Test environment detection."""

    def test_environment_from_variable(self, monkeypatch):
        """Test SIMRELAY_ENVIRONMENT wins."""
        monkeypatch.setenv("SIMRELAY_ENVIRONMENT", "staging")
        assert get_environment() is Environment.STAGING

    def test_default_environment(self, monkeypatch, tmp_path):
        """Test development is the fallback."""
        monkeypatch.chdir(tmp_path)
        assert get_environment() is Environment.DEVELOPMENT

    def test_unknown_variable_falls_back_to_marker(self, monkeypatch, tmp_path):
        """Test an unknown SIMRELAY_ENVIRONMENT does not hide a marker file."""
        monkeypatch.setenv("SIMRELAY_ENVIRONMENT", "moon")
        (tmp_path / ".env.testing").write_text("")
        assert get_environment(tmp_path) is Environment.TESTING

    def test_config_file_lookup(self, monkeypatch, tmp_path):
        """Test config file discovery order."""
        monkeypatch.chdir(tmp_path)
        assert get_config_file_path(Environment.TESTING) is None

        (tmp_path / "simrelay.yaml").write_text("")
        (tmp_path / "simrelay.testing.yaml").write_text("")

        assert str(get_config_file_path(Environment.TESTING)) == "simrelay.testing.yaml"
