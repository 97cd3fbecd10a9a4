"""Upload staging.

Validated (and optionally transcoded) uploads are written into the temp
category, ``<public-root>/uploads/temp``, and described to the caller with an
:class:`UploadDescriptor`. A later promotion moves them to their permanent
category.
"""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from mediavault.config import MediavaultConfig, UploadProfile
from mediavault.constants import (
    DEFAULT_IMAGE_QUALITY,
    DEFAULT_TO_WEBP,
    TEMP_CATEGORY,
    UPLOADS_DIRNAME,
)
from mediavault.exceptions import ConfigurationError, MissingFile
from mediavault.formats import FormatPolicy, FormatValidator
from mediavault.image import ImageTranscoder, clamp_quality
from mediavault.security import atomic_write_bytes, sanitize_actor_segment
from mediavault.utils.paths import ensure_dir, public_path

# Leading integer of a query value, e.g. "60abc" and "60.5" both read as 60
_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True)
class UploadDescriptor:
    """Describes a staged upload. Never persisted by this package."""

    path: str
    original_name: str
    size_bytes: int
    mime_type: str
    # True when image transcoding failed and the original bytes were stored
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        """JSON shape returned to HTTP clients."""
        return {
            "path": self.path,
            "original_name": self.original_name,
            "size": self.size_bytes,
            "mime_type": self.mime_type,
        }


@dataclass(frozen=True)
class UploadOptions:
    """Per-request staging options."""

    quality: int = DEFAULT_IMAGE_QUALITY
    to_webp: bool = DEFAULT_TO_WEBP
    allowed_formats: frozenset[str] | None = None

    @classmethod
    def from_query(
        cls,
        quality: str | None = None,
        webp: str | None = None,
        formats: str | None = None,
    ) -> UploadOptions:
        """Build options from raw query-string values.

        ``quality`` is read from its leading digits and falls back to the
        default when it has none. ``webp`` is only disabled by the literal
        ``"false"``, and ``formats`` is a comma separated list.
        """
        parsed_quality = DEFAULT_IMAGE_QUALITY
        if quality:
            match = _LEADING_INT_RE.match(quality)
            if match:
                parsed_quality = clamp_quality(int(match.group(1)))
            else:
                logger.debug(f"Ignoring non-numeric quality {quality!r}")

        allowed: frozenset[str] | None = None
        if formats:
            tokens = [token.strip() for token in formats.split(",") if token.strip()]
            allowed = frozenset(tokens) or None

        return cls(
            quality=parsed_quality,
            to_webp=webp != "false",
            allowed_formats=allowed,
        )


def build_filename(actor_id: str | int | None, extension: str) -> str:
    """Build ``<timestamp_ms>-<actor>-<uuid4><ext>`` for a staged file."""
    actor = sanitize_actor_segment(actor_id)
    return f"{int(time.time() * 1000)}-{actor}-{uuid.uuid4()}{extension}"


class UploadStaging:
    """Validates, transcodes and writes uploads into the temp category."""

    def __init__(
        self,
        public_root: Path | str,
        validator: FormatValidator | None = None,
        transcoder: ImageTranscoder | None = None,
    ) -> None:
        self.public_root = Path(public_root)
        self.temp_root = self.public_root / UPLOADS_DIRNAME / TEMP_CATEGORY
        self.validator = validator or FormatValidator()
        self.transcoder = transcoder or ImageTranscoder()

    @classmethod
    def from_config(
        cls, config: MediavaultConfig, profile: str = TEMP_CATEGORY
    ) -> UploadStaging:
        """Create a staging service for one of the configured upload profiles."""
        profile_config: UploadProfile | None = config.upload.profiles.get(profile)
        if profile_config is None:
            raise ConfigurationError(f"Unknown upload profile: {profile}")
        policy = FormatPolicy(
            allow_images=profile_config.allow_images,
            allow_videos=profile_config.allow_videos,
            allow_documents=profile_config.allow_documents,
            max_bytes=profile_config.max_bytes,
        )
        return cls(
            config.storage.get_public_root(),
            validator=FormatValidator(policy),
            transcoder=ImageTranscoder(config.upload.quality, config.upload.webp),
        )

    def stage(
        self,
        actor_id: str | int | None,
        data: bytes | None,
        declared_mime: str,
        declared_name: str | None = None,
        options: UploadOptions | None = None,
    ) -> UploadDescriptor:
        """Stage an uploaded file.

        Args:
            actor_id: Identifier of the uploading user (used in the filename only)
            data: Raw upload bytes
            declared_mime: MIME type reported by the client
            declared_name: Original filename reported by the client
            options: Quality, WebP and format restrictions

        Returns:
            UploadDescriptor for the staged file

        Raises:
            MissingFile: If no bytes were supplied
            InvalidFormat: If the declared format is not allowed
        """
        if not data:
            raise MissingFile()
        options = options or UploadOptions(
            quality=self.transcoder.quality, to_webp=self.transcoder.to_webp
        )

        extension = self.validator.validate(
            declared_mime, declared_name, options.allowed_formats
        )
        self.validator.check_size(declared_mime, len(data))

        result = self.transcoder.transcode(
            data, declared_mime, quality=options.quality, to_webp=options.to_webp
        )
        if result.transcoded and result.extension:
            extension = result.extension

        filename = build_filename(actor_id, extension)
        ensure_dir(self.temp_root)
        atomic_write_bytes(self.temp_root / filename, result.data)

        descriptor = UploadDescriptor(
            path=public_path(TEMP_CATEGORY, filename),
            original_name=declared_name or filename,
            size_bytes=len(result.data),
            mime_type=result.mime_type,
            degraded=result.degraded,
        )
        logger.info(
            f"Staged upload {descriptor.path} ({descriptor.mime_type}, "
            f"{descriptor.size_bytes} bytes)"
        )
        return descriptor
