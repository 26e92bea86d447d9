"""Configuration management CLI commands."""

import json
import os
from pathlib import Path

import click
import yaml

from simrelay.config import (
    Config,
    ConfigError,
    load_config,
    load_config_from_env,
    validate_config,
)
from simrelay.config.environment import get_config_file_path, get_environment

ENV_VARS = [
    "SIMRELAY_ENVIRONMENT",
    "SIMRELAY_DEBUG",
    "SIMRELAY_FEATURES",
    "SIMRELAY_COLLECTOR_URL",
    "SIMRELAY_CONNECTION_HANDLING",
    "SIMRELAY_RETRY_DELAY_SECONDS",
    "SIMRELAY_DISABLE_DELAY_MINUTES",
    "SIMRELAY_REQUEST_TIMEOUT_SECONDS",
    "SIMRELAY_REQUEUE_FAILED_FLUSH",
    "SIMRELAY_INTROSPECTION",
    "SIMRELAY_POLL_HOST",
    "SIMRELAY_POLL_PORT",
    "SIMRELAY_SNAPSHOT_TIMEOUT",
    "SIMRELAY_PUSH_POSITIONS",
    "SIMRELAY_RENDER_RADIUS",
    "SIMRELAY_LOG_LEVEL",
    "SIMRELAY_LOG_FORMAT",
    "SIMRELAY_METRICS",
]


def config_to_dict(config: Config) -> dict:
    return config.model_dump(mode="json")


@click.group("config")
def config_group() -> None:
    """Configuration management."""


@config_group.command("validate")
@click.argument("config_path", required=False, type=click.Path(path_type=Path))
def config_validate(config_path: Path | None) -> None:
    """Validate a configuration file or the environment variables."""
    try:
        if config_path:
            click.echo(f"Validating configuration file: {config_path}")
            if not config_path.exists():
                raise click.ClickException(f"Configuration file not found: {config_path}")
            config = load_config(config_path)
        else:
            click.echo("Validating configuration from environment variables")
            config = load_config_from_env()

        validate_config(config)
    except ConfigError as e:
        raise click.ClickException(f"Configuration validation failed: {e}") from e

    click.echo("✓ Configuration is valid")


@config_group.command("show")
@click.argument("config_path", required=False, type=click.Path(path_type=Path))
@click.option(
    "--format",
    "-f",
    "format_type",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    show_default=True,
)
def config_show(config_path: Path | None, format_type: str) -> None:
    """Show the effective configuration (defaults, file, environment)."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(f"Error loading configuration: {e}") from e

    config_dict = config_to_dict(config)
    if format_type == "json":
        click.echo(json.dumps(config_dict, indent=2, default=str))
    else:
        click.echo(yaml.dump(config_dict, default_flow_style=False, sort_keys=True))


@config_group.command("init")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=Path("simrelay.yaml"),
    show_default=True,
)
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
def config_init(output: Path, force: bool) -> None:
    """Write a configuration file with the default values."""
    if output.exists() and not force:
        raise click.ClickException(
            f"Configuration file already exists: {output} (use --force to overwrite)"
        )

    with open(output, "w") as f:
        yaml.dump(config_to_dict(Config()), f, default_flow_style=False, sort_keys=True)

    click.echo(f"✓ Configuration file created: {output}")


@config_group.command("env")
@click.option("--all", "-a", "show_all", is_flag=True, help="Include unset variables")
def config_env(show_all: bool) -> None:
    """Show the detected environment and SIMRELAY_* variables."""
    click.echo(f"Environment: {get_environment().value}")
    config_file = get_config_file_path()
    click.echo(f"Config file: {config_file or 'none'}")
    click.echo("")
    for name in ENV_VARS:
        value = os.getenv(name)
        if value is not None:
            click.echo(f"{name}={value}")
        elif show_all:
            click.echo(f"{name}=(not set)")
