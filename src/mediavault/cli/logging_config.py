"""Logging configuration for the mediavault CLI.

Everything is routed through loguru: mediavault's own messages plus the
standard-library loggers of the libraries it drives (Pillow, asyncio).
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from click import Context
from loguru import logger

from mediavault import __version__

# Third-party loggers to intercept and route to loguru
INTERCEPTED_LOGGERS = [
    "PIL",
    "PIL.Image",
    "PIL.PngImagePlugin",
    "asyncio",
    "concurrent.futures",
]

LOG_DIR_ENV_VAR = "MEDIAVAULT_LOG_DIR"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and forward to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Use record's built-in location info instead of frame tracing
        logger.bind(
            name=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        ).opt(exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    verbose: bool,
    log_dir: str | None = None,
    log_level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
    quiet: bool = False,
) -> tuple[int | None, Path | None]:
    """Configure loguru sinks.

    Args:
        verbose: Show DEBUG messages on the console.
        log_dir: Directory for log files. Supports ~ expansion.
                 Can be overridden by MEDIAVAULT_LOG_DIR env var.
        log_level: Log level for file output.
        rotation: Log file rotation size.
        retention: Log file retention period.
        quiet: Disable console logging entirely. File logging still applies.

    Returns:
        Tuple of (console_handler_id, log_file_path).
    """
    logger.remove()

    console_handler_id: int | None = None
    if not quiet:
        console_handler_id = logger.add(
            sys.stderr,
            level="DEBUG" if verbose else "INFO",
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
            filter=lambda record: _should_show_log(record, verbose),
        )

    env_log_dir = os.environ.get(LOG_DIR_ENV_VAR)
    if env_log_dir:
        log_dir = env_log_dir

    log_file_path: Path | None = None
    if log_dir:
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        log_file_path = log_path / f"mediavault_{timestamp}.log"
        logger.add(
            log_file_path,
            level=log_level,
            rotation=rotation,
            retention=retention,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <5} | {module}:{line: <3} | {message}",
        )

    _setup_log_interception()

    return console_handler_id, log_file_path


def _setup_log_interception() -> None:
    """Route intercepted stdlib loggers to loguru, WARNING and above only."""
    intercept_handler = InterceptHandler()

    for logger_name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(logger_name)
        stdlib_logger.handlers.clear()
        stdlib_logger.addHandler(intercept_handler)
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING)


def _is_third_party_log(name: str) -> bool:
    """Check if a log record came from an intercepted library.

    Examples:
        >>> _is_third_party_log("PIL.TiffImagePlugin")
        True
        >>> _is_third_party_log("compiler")
        False
    """
    name_lower = name.lower()
    for intercepted in INTERCEPTED_LOGGERS:
        intercepted_lower = intercepted.lower()
        if name_lower == intercepted_lower or name_lower.startswith(
            f"{intercepted_lower}."
        ):
            return True
    return False


def _should_show_log(record: Any, verbose: bool) -> bool:
    """Console filter: third-party INFO is hidden, DEBUG only when verbose."""
    level = record["level"].name

    if level in ("WARNING", "ERROR", "CRITICAL"):
        return True
    if level == "DEBUG":
        return verbose

    name = record.get("extra", {}).get("name", "")
    return not _is_third_party_log(name)


def print_version(ctx: Context, param: Any, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    from mediavault.cli.console import get_console

    get_console().print(f"mediavault {__version__}")
    ctx.exit(0)
