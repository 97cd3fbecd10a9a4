"""MIME type utilities.

This module provides helper functions for MIME type operations,
using the centralized mappings defined in constants.py.
"""

from __future__ import annotations

from mediavault.constants import (
    DOCUMENT_MIME_TYPES,
    IMAGE_MIME_TYPES,
    MIME_ALIASES,
    MIME_TO_EXTENSION,
    VIDEO_MIME_TYPES,
)


def normalize_mime(mime_type: str | None) -> str:
    """Normalize a declared MIME type for table lookups.

    Drops parameters, folds case and maps known aliases onto their
    canonical type.

    Examples:
        >>> normalize_mime("Image/JPG; charset=binary")
        'image/jpeg'
        >>> normalize_mime(None)
        ''
    """
    if not mime_type:
        return ""
    clean = mime_type.split(";")[0].strip().lower()
    return MIME_ALIASES.get(clean, clean)


def normalize_format(fmt: str) -> str:
    """Normalize a caller-supplied format token such as ``".JPEG"``.

    Examples:
        >>> normalize_format(".JPEG")
        'jpg'
        >>> normalize_format("png")
        'png'
    """
    fmt = fmt.strip().lower().lstrip(".")
    if fmt == "jpeg":
        return "jpg"
    return fmt


def get_extension_from_mime(mime_type: str, default: str | None = None) -> str | None:
    """Get file extension from MIME type.

    Args:
        mime_type: MIME type string, e.g. "image/jpeg"
        default: Value returned if the MIME type is not recognized

    Returns:
        File extension with leading dot, e.g. ".jpg"
    """
    return MIME_TO_EXTENSION.get(normalize_mime(mime_type), default)


def mime_family(mime_type: str) -> str | None:
    """Return ``"image"``, ``"video"`` or ``"document"`` for an allowed MIME type."""
    mime = normalize_mime(mime_type)
    if mime in IMAGE_MIME_TYPES:
        return "image"
    if mime in VIDEO_MIME_TYPES:
        return "video"
    if mime in DOCUMENT_MIME_TYPES:
        return "document"
    return None
