"""Custom exceptions for mediavault.

Every error that crosses the library boundary derives from
:class:`MediavaultError` and carries a human readable message plus an
HTTP-like status for the web layer. Messages never contain absolute
filesystem paths or tracebacks.
"""

from __future__ import annotations

from typing import Any


class MediavaultError(Exception):
    """Base exception class for mediavault."""

    status: int = 500
    code: str = "mediavault_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for a JSON response body."""
        return {"error": self.code, "message": self.message}


class MissingFile(MediavaultError):
    """No upload payload was supplied."""

    status = 400
    code = "missing_file"

    def __init__(self, message: str = "File is required") -> None:
        super().__init__(message)


class InvalidFormat(MediavaultError):
    """Declared MIME type is not allowed for this upload."""

    status = 400
    code = "invalid_format"

    def __init__(self, mime_type: str, message: str | None = None) -> None:
        self.mime_type = mime_type
        super().__init__(message or f"Unsupported file type: {mime_type or 'unknown'}")


class UploadTooLarge(InvalidFormat):
    """Upload payload exceeds the size limit of its profile."""

    code = "upload_too_large"

    def __init__(self, mime_type: str, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        limit_mb = limit // (1024 * 1024)
        super().__init__(
            mime_type,
            f"File size must be less than or equal to {limit_mb} MB",
        )


class InvalidPath(MediavaultError):
    """A media path escapes its root or contains traversal segments."""

    status = 400
    code = "invalid_path"

    def __init__(self, path: str, reason: str = "path is not allowed") -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid media path {path!r}: {reason}")


class PromotionFailed(MediavaultError):
    """A staged file could not be moved into permanent storage."""

    status = 400
    code = "promotion_failed"

    def __init__(
        self, entry: str, message: str, cause: Exception | None = None
    ) -> None:
        self.entry = entry
        self.cause = cause
        super().__init__(f"Failed to promote {entry!r}: {message}")


class ConversionFailed(MediavaultError):
    """The external converter did not produce a PDF."""

    status = 500
    code = "conversion_failed"

    def __init__(
        self, base_name: str, message: str, cause: Exception | None = None
    ) -> None:
        self.base_name = base_name
        self.cause = cause
        super().__init__(f"PDF conversion failed for {base_name}: {message}")


class TemplateNotFound(MediavaultError):
    """A document template could not be located in storage."""

    status = 404
    code = "template_not_found"

    def __init__(self, template: str) -> None:
        self.template = template
        super().__init__(f"Template not found: {template}")


class ConfigurationError(MediavaultError):
    """Configuration error."""

    code = "configuration_error"
