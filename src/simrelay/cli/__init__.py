"""Command-line interface for simrelay."""

from simrelay.cli.__main__ import main

__all__ = ["main"]
