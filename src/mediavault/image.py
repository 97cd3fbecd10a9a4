"""Image transcoding for staged uploads."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any

from loguru import logger
from PIL import Image

from mediavault.constants import (
    DEFAULT_IMAGE_QUALITY,
    DEFAULT_TO_WEBP,
    MAX_IMAGE_QUALITY,
    MIN_IMAGE_QUALITY,
    TRANSCODABLE_MIME_TYPES,
)
from mediavault.utils.mime import get_extension_from_mime, normalize_mime

WEBP_MIME = "image/webp"
WEBP_EXTENSION = ".webp"


def clamp_quality(quality: int | None) -> int:
    """Clamp an encoder quality into the supported range.

    Examples:
        >>> clamp_quality(10)
        25
        >>> clamp_quality(None)
        50
    """
    if quality is None:
        return DEFAULT_IMAGE_QUALITY
    return max(MIN_IMAGE_QUALITY, min(MAX_IMAGE_QUALITY, int(quality)))


@dataclass(frozen=True)
class TranscodeResult:
    """Result of transcoding a single upload.

    ``transcoded`` is set when the bytes were re-encoded. ``degraded`` is set
    when re-encoding was attempted and failed, in which case the original
    bytes and MIME type are returned unchanged.
    """

    data: bytes
    mime_type: str
    extension: str | None
    transcoded: bool = False
    degraded: bool = False


def _encode_webp(image_data: bytes, quality: int) -> bytes:
    """Re-encode raster bytes as WebP with Pillow."""
    with io.BytesIO(image_data) as buffer:
        img = Image.open(buffer)
        img.load()

        if img.mode == "P":
            img = img.convert("RGBA" if "transparency" in img.info else "RGB")
        elif img.mode in ("LA", "PA"):
            img = img.convert("RGBA")
        elif img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGB")

        out_buffer = io.BytesIO()
        save_kwargs: dict[str, Any] = {"format": "WEBP", "quality": quality}
        img.save(out_buffer, **save_kwargs)
        return out_buffer.getvalue()


def _is_animated(image_data: bytes) -> bool:
    with io.BytesIO(image_data) as buffer, Image.open(buffer) as img:
        return bool(getattr(img, "is_animated", False))


class ImageTranscoder:
    """Re-encodes raster uploads, WebP by default.

    Transcoding never fails an upload: if Pillow cannot decode or encode the
    payload the original bytes are kept and a warning is logged.
    """

    def __init__(
        self,
        quality: int = DEFAULT_IMAGE_QUALITY,
        to_webp: bool = DEFAULT_TO_WEBP,
    ) -> None:
        self.quality = clamp_quality(quality)
        self.to_webp = to_webp

    def transcode(
        self,
        data: bytes,
        mime_type: str,
        quality: int | None = None,
        to_webp: bool | None = None,
    ) -> TranscodeResult:
        """Transcode an upload payload.

        Args:
            data: Raw upload bytes
            mime_type: Declared MIME type
            quality: Encoder quality, clamped to [25, 100]
            to_webp: Convert to WebP; when False the bytes pass through

        Returns:
            TranscodeResult with the final bytes, MIME type and extension
        """
        mime = normalize_mime(mime_type)
        quality = self.quality if quality is None else clamp_quality(quality)
        to_webp = self.to_webp if to_webp is None else to_webp

        if mime not in TRANSCODABLE_MIME_TYPES or not to_webp:
            return TranscodeResult(data, mime_type, get_extension_from_mime(mime))

        try:
            if mime == "image/gif" and _is_animated(data):
                logger.debug("Animated GIF kept in original format")
                return TranscodeResult(data, mime_type, get_extension_from_mime(mime))
            encoded = _encode_webp(data, quality)
        except Exception as e:
            logger.warning(f"Image transcoding failed, keeping original bytes: {e}")
            return TranscodeResult(
                data, mime_type, get_extension_from_mime(mime), degraded=True
            )

        logger.debug(
            f"Transcoded {mime} to WebP: {len(data)} -> {len(encoded)} bytes "
            f"(quality {quality})"
        )
        return TranscodeResult(encoded, WEBP_MIME, WEBP_EXTENSION, transcoded=True)
