"""Command line interface for mediavault."""

from mediavault.cli.main import app

__all__ = ["app"]
