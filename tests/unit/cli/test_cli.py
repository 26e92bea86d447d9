"""Tests for the simrelay command line interface."""

import json
import os

import pytest
import yaml
from click.testing import CliRunner

from simrelay.cli import main
from simrelay.schemas.registry import default_registry


@pytest.fixture
def runner(monkeypatch, tmp_path):
    for name in list(os.environ):
        if name.startswith("SIMRELAY_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return CliRunner()


class TestTopLevelCommands:
    """Test version and schema commands."""

    def test_version(self, runner):
        result = runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert "simrelay 0.1.0" in result.output

    def test_schemas_lists_every_event_type(self, runner):
        result = runner.invoke(main, ["schemas"])

        assert result.exit_code == 0
        listed = result.output.split()
        assert listed == list(default_registry().event_types())
        assert "CHAT_MESSAGE" in listed

    def test_schema_for_one_type(self, runner):
        result = runner.invoke(main, ["schemas", "CHAT_MESSAGE"])

        assert result.exit_code == 0
        assert json.loads(result.output) == dict(default_registry().get("CHAT_MESSAGE"))

    def test_unknown_schema(self, runner):
        """Unknown event types fail with a non-zero exit code."""
        result = runner.invoke(main, ["schemas", "NOT_AN_EVENT"])

        assert result.exit_code == 1
        assert "NOT_AN_EVENT" in result.output

    def test_probe_unreachable_collector(self, runner):
        result = runner.invoke(main, ["probe", "http://127.0.0.1:1/", "--timeout", "1"])

        assert result.exit_code == 1
        assert "Collector unreachable" in result.output


class TestConfigCommands:
    """Test the config command group."""

    def test_validate_file(self, runner, tmp_path):
        path = tmp_path / "relay.yaml"
        path.write_text("render:\n  tile_render_radius: 3\n")

        result = runner.invoke(main, ["config", "validate", str(path)])

        assert result.exit_code == 0
        assert "✓ Configuration is valid" in result.output

    def test_validate_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["config", "validate", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_validate_inconsistent_environment(self, runner, monkeypatch):
        """Consistency checks apply to environment-only configuration."""
        monkeypatch.setenv("SIMRELAY_COLLECTOR_URL", "ftp://collector")

        result = runner.invoke(main, ["config", "validate"])

        assert result.exit_code == 1
        assert "collector_url" in result.output

    def test_show_json(self, runner, monkeypatch):
        monkeypatch.setenv("SIMRELAY_POLL_PORT", "9090")

        result = runner.invoke(main, ["config", "show", "--format", "json"])

        assert result.exit_code == 0
        shown = json.loads(result.output)
        assert shown["introspection"]["port"] == 9090
        assert shown["render"]["tile_render_radius"] == 5

    def test_init_writes_defaults(self, runner, tmp_path):
        output = tmp_path / "generated.yaml"

        result = runner.invoke(main, ["config", "init", "--output", str(output)])

        assert result.exit_code == 0
        data = yaml.safe_load(output.read_text())
        assert data["connection"]["retry_delay_seconds"] == 30.0

        again = runner.invoke(main, ["config", "init", "--output", str(output)])
        assert again.exit_code == 1
        assert "--force" in again.output

        forced = runner.invoke(main, ["config", "init", "--output", str(output), "--force"])
        assert forced.exit_code == 0

    def test_env_listing(self, runner, monkeypatch):
        monkeypatch.setenv("SIMRELAY_RENDER_RADIUS", "2")

        result = runner.invoke(main, ["config", "env", "--all"])

        assert result.exit_code == 0
        assert "Environment: development" in result.output
        assert "SIMRELAY_RENDER_RADIUS=2" in result.output
        assert "SIMRELAY_POLL_PORT=(not set)" in result.output
