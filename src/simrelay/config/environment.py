"""Deployment environment resolution.

The environment selects the YAML file ``load_config`` reads when no path is
given and the extra checks ``validate_config`` applies in production. It comes
from ``SIMRELAY_ENVIRONMENT`` or, failing that, from a marker file such as
``.env.production`` in the working directory.
"""

import os
from enum import Enum
from pathlib import Path

ENVIRONMENT_VAR = "SIMRELAY_ENVIRONMENT"

_YAML_SUFFIXES = (".yaml", ".yml")


class Environment(Enum):
    """Deployment environments understood by the configuration layer."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


# First marker present wins
_MARKER_FILES: tuple[tuple[str, Environment], ...] = (
    (".env.production", Environment.PRODUCTION),
    (".env.staging", Environment.STAGING),
    (".env.testing", Environment.TESTING),
)


def _named_environment() -> Environment | None:
    name = os.getenv(ENVIRONMENT_VAR, "").strip().lower()
    for environment in Environment:
        if environment.value == name:
            return environment
    return None


def get_environment(base_dir: Path | None = None) -> Environment:
    """Resolve the active deployment environment.

    A ``SIMRELAY_ENVIRONMENT`` naming a known environment wins; unknown names
    are left for config validation to report. Otherwise the first marker file
    found in ``base_dir`` (the working directory by default) decides, and
    development is assumed when there is none.

    Args:
        base_dir: Directory searched for marker files

    Returns:
        Resolved environment
    """
    named = _named_environment()
    if named is not None:
        return named

    root = base_dir if base_dir is not None else Path.cwd()
    for marker, environment in _MARKER_FILES:
        if (root / marker).is_file():
            return environment
    return Environment.DEVELOPMENT


def config_file_candidates(environment: Environment) -> list[Path]:
    """Configuration file locations for an environment, most specific first."""
    name = environment.value
    candidates: list[Path] = []
    for stem in (Path("config") / name, Path(f"simrelay.{name}")):
        candidates.extend(stem.with_name(stem.name + suffix) for suffix in _YAML_SUFFIXES)
    for stem in (Path("config") / "simrelay", Path("simrelay")):
        candidates.extend(stem.with_name(stem.name + suffix) for suffix in _YAML_SUFFIXES)
    return candidates


def get_config_file_path(environment: Environment | None = None) -> Path | None:
    """Find the configuration file to load, relative to the working directory.

    Args:
        environment: Environment to look up (defaults to the resolved one)

    Returns:
        First existing candidate, or None
    """
    if environment is None:
        environment = get_environment()
    return next((path for path in config_file_candidates(environment) if path.is_file()), None)
