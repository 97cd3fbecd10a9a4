"""Path utilities for upload directory management.

This module provides helper functions for creating category directories
and translating between public URL paths and on-disk locations.
"""

from __future__ import annotations

import posixpath
import re
from pathlib import Path

from mediavault.constants import PUBLIC_URL_PREFIX

_HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The same path (for chaining)
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_http_url(value: str | None) -> bool:
    """Check whether a media reference is an absolute http(s) URL.

    Examples:
        >>> is_http_url("HTTPS://cdn.example.com/a.png")
        True
        >>> is_http_url("/uploads/temp/a.png")
        False
    """
    if not value:
        return False
    return bool(_HTTP_URL_RE.match(value.strip()))


def public_path(category: str, filename: str) -> str:
    """Build the root-relative public URL for a stored file.

    Examples:
        >>> public_path("companies", "1-a.png")
        '/uploads/companies/1-a.png'
    """
    return posixpath.join(PUBLIC_URL_PREFIX, category, filename)


def split_public_path(value: str) -> list[str]:
    """Split a public or relative media path into its segments.

    Backslashes are treated as separators and empty or ``.`` segments are
    dropped, but ``..`` segments are kept so callers can reject them.

    Examples:
        >>> split_public_path("/uploads//temp/./a.png")
        ['uploads', 'temp', 'a.png']
        >>> split_public_path("uploads\\\\temp\\\\..\\\\x")
        ['uploads', 'temp', '..', 'x']
    """
    normalized = value.strip().replace("\\", "/")
    return [part for part in normalized.split("/") if part not in ("", ".")]
