"""Upload format validation.

Decides whether a declared MIME type may be accepted and which extension a
staged file gets. The client filename is only consulted for its extension,
and only when that extension is plainly safe.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from mediavault.constants import DEFAULT_EXTENSION
from mediavault.exceptions import InvalidFormat, UploadTooLarge
from mediavault.security import is_safe_extension
from mediavault.utils.mime import (
    get_extension_from_mime,
    mime_family,
    normalize_format,
    normalize_mime,
)


@dataclass(frozen=True)
class FormatPolicy:
    """Which MIME families an endpoint accepts, and how large a payload may be."""

    allow_images: bool = True
    allow_videos: bool = True
    allow_documents: bool = True
    max_bytes: int | None = None

    def allows(self, family: str | None) -> bool:
        if family == "image":
            return self.allow_images
        if family == "video":
            return self.allow_videos
        if family == "document":
            return self.allow_documents
        return False


@dataclass(frozen=True)
class FormatValidator:
    """Allow-list validator for declared upload formats."""

    policy: FormatPolicy = field(default_factory=FormatPolicy)

    def validate(
        self,
        declared_mime: str,
        declared_name: str | None = None,
        allowed_formats: Iterable[str] | None = None,
    ) -> str:
        """Validate a declared upload and resolve its extension.

        Args:
            declared_mime: MIME type reported by the client
            declared_name: Original filename reported by the client
            allowed_formats: Optional caller subset such as ``{"jpg", "docx"}``

        Returns:
            Extension with leading dot, e.g. ``".png"``

        Raises:
            InvalidFormat: If the MIME type is not allowed
        """
        mime = normalize_mime(declared_mime)
        family = mime_family(mime)
        if not self.policy.allows(family):
            logger.debug(f"Rejected upload MIME type: {declared_mime!r}")
            raise InvalidFormat(
                declared_mime, "File must be an image, video, or document"
            )

        if allowed_formats is not None:
            wanted = {normalize_format(fmt) for fmt in allowed_formats if fmt.strip()}
            mapped = get_extension_from_mime(mime)
            if wanted and (mapped is None or normalize_format(mapped) not in wanted):
                allowed = ", ".join(sorted(wanted))
                raise InvalidFormat(
                    declared_mime, f"File format must be one of: {allowed}"
                )

        return self.resolve_extension(mime, declared_name)

    def check_size(self, mime_type: str, size: int) -> None:
        """Reject payloads larger than the policy allows."""
        limit = self.policy.max_bytes
        if limit is not None and size > limit:
            raise UploadTooLarge(mime_type, size, limit)

    @staticmethod
    def resolve_extension(mime_type: str, declared_name: str | None) -> str:
        """Pick the staged file extension.

        Order: safe extension of the declared filename, then the MIME table,
        then the generic binary extension.
        """
        original_ext = posixpath.splitext(
            (declared_name or "").replace("\\", "/")
        )[1].lower()
        if is_safe_extension(original_ext):
            return original_ext
        return get_extension_from_mime(mime_type) or DEFAULT_EXTENSION
