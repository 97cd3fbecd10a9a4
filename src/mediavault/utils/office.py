"""LibreOffice detection utilities.

The PDF converter needs a headless LibreOffice binary. Its location is
normally injected through configuration; this module provides the
cross-platform fallback lookup.
"""

from __future__ import annotations

import os
import platform
import shutil
from functools import lru_cache
from pathlib import Path

from loguru import logger


@lru_cache(maxsize=1)
def find_libreoffice() -> str | None:
    """Find LibreOffice soffice executable (cached).

    Searches PATH first, then common installation paths.

    Returns:
        Path to soffice executable, or None if not found.
    """
    for cmd in ("soffice", "libreoffice"):
        path = shutil.which(cmd)
        if path:
            logger.debug(f"LibreOffice found in PATH: {path}")
            return path

    common_paths: list[str] = []

    if platform.system() == "Windows":
        prog_dirs = [
            os.environ.get("PROGRAMFILES", r"C:\Program Files"),
            os.environ.get("PROGRAMFILES(X86)", r"C:\Program Files (x86)"),
        ]
        for prog_dir in prog_dirs:
            common_paths.append(
                os.path.join(prog_dir, "LibreOffice", "program", "soffice.exe")
            )
    elif platform.system() == "Darwin":
        common_paths.append("/Applications/LibreOffice.app/Contents/MacOS/soffice")

    common_paths.extend(
        [
            "/usr/bin/soffice",
            "/usr/local/bin/soffice",
            "/opt/libreoffice/program/soffice",
        ]
    )

    for path in common_paths:
        if Path(path).exists():
            logger.debug(f"LibreOffice found at: {path}")
            return path

    logger.debug("LibreOffice not found")
    return None


def profile_url(profile_dir: Path) -> str:
    """Build the ``-env:UserInstallation`` URL for a profile directory."""
    return profile_dir.resolve().as_uri()
