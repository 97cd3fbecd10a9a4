"""Centralized constants for mediavault.

This module contains all hardcoded constants used throughout the codebase.
Grouping them here makes it easier to:
- Find and modify default values
- Keep the filesystem contract in one place
- Maintain consistency across modules
"""

from __future__ import annotations

# =============================================================================
# Filesystem Layout
# =============================================================================

DEFAULT_PUBLIC_ROOT = "./public"
UPLOADS_DIRNAME = "uploads"
TEMP_CATEGORY = "temp"
TEMPLATES_CATEGORY = "templates"
PUBLIC_URL_PREFIX = "/uploads"

# =============================================================================
# Upload Limits
# =============================================================================

MAX_TEMP_UPLOAD_SIZE = 10 * 1024 * 1024  # 10 MB - generic temp uploads
MAX_BLOG_UPLOAD_SIZE = 5 * 1024 * 1024  # 5 MB - blog images
MAX_DOCUMENT_UPLOAD_SIZE = 25 * 1024 * 1024  # 25 MB - document uploads

ACTOR_SEGMENT_LENGTH = 12
ANONYMOUS_ACTOR_SEGMENT = "anon"

# =============================================================================
# Image Transcoding
# =============================================================================

DEFAULT_IMAGE_QUALITY = 50
MIN_IMAGE_QUALITY = 25
MAX_IMAGE_QUALITY = 100
DEFAULT_TO_WEBP = True

# =============================================================================
# PDF Conversion
# =============================================================================

DEFAULT_CONVERSION_TIMEOUT = 120  # seconds
DEFAULT_DOCUMENT_BASENAME = "document"
WORKSPACE_PREFIX = "docx-to-pdf-"
PROFILE_DIRNAME = "lo-profile"
CONVERTER_KILL_GRACE = 5  # seconds to reap a killed converter

# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "~/.mediavault/logs"
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"

# =============================================================================
# Config Files
# =============================================================================

CONFIG_FILENAME = "mediavault.json"
CONFIG_ENV_VAR = "MEDIAVAULT_CONFIG"

# =============================================================================
# MIME Type Mappings
# =============================================================================

IMAGE_MIME_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
        "image/bmp",
        "image/tiff",
        "image/avif",
    }
)

VIDEO_MIME_TYPES: frozenset[str] = frozenset(
    {
        "video/mp4",
        "video/quicktime",
        "video/x-msvideo",
        "video/x-matroska",
        "video/webm",
    }
)

DOCUMENT_MIME_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "application/rtf",
    }
)

# Aliases seen in the wild that map onto a canonical MIME type
MIME_ALIASES: dict[str, str] = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-png": "image/png",
}

# MIME type to extension mapping (for naming staged files)
MIME_TO_EXTENSION: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
    "image/avif": ".avif",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/x-msvideo": ".avi",
    "video/x-matroska": ".mkv",
    "video/webm": ".webm",
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/vnd.ms-powerpoint": ".ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "text/plain": ".txt",
    "application/rtf": ".rtf",
}

DEFAULT_EXTENSION = ".bin"

# Raster formats Pillow re-encodes; anything else passes through untouched
TRANSCODABLE_MIME_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/bmp",
        "image/tiff",
        "image/gif",
    }
)
