"""Shared Rich Console instances for the mediavault CLI.

Machine readable output goes to stdout through ``click.echo``; these consoles
are for human facing tables and status lines.
"""

from __future__ import annotations

from rich.console import Console

_console: Console | None = None
_stderr_console: Console | None = None


def get_console() -> Console:
    """Get the shared stdout Console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_stderr_console() -> Console:
    """Get the shared stderr Console instance."""
    global _stderr_console
    if _stderr_console is None:
        _stderr_console = Console(stderr=True)
    return _stderr_console
