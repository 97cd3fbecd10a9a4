"""Unit tests for upload format validation and MIME helpers."""

from __future__ import annotations

import pytest

from mediavault.exceptions import InvalidFormat, UploadTooLarge
from mediavault.formats import FormatPolicy, FormatValidator
from mediavault.utils.mime import (
    get_extension_from_mime,
    mime_family,
    normalize_format,
    normalize_mime,
)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class TestMimeHelpers:
    """Tests for MIME normalization helpers."""

    def test_normalize_mime_aliases(self) -> None:
        assert normalize_mime("image/jpg") == "image/jpeg"
        assert normalize_mime(" IMAGE/PNG ; q=1") == "image/png"

    def test_normalize_format(self) -> None:
        assert normalize_format("JPEG") == "jpg"
        assert normalize_format(".docx") == "docx"

    def test_extension_lookup(self) -> None:
        assert get_extension_from_mime("image/jpeg") == ".jpg"
        assert get_extension_from_mime(DOCX_MIME) == ".docx"
        assert get_extension_from_mime("application/x-unknown") is None
        assert get_extension_from_mime("application/x-unknown", ".bin") == ".bin"

    @pytest.mark.parametrize(
        ("mime", "family"),
        [
            ("image/png", "image"),
            ("video/mp4", "video"),
            ("application/pdf", "document"),
            ("application/x-msdownload", None),
            ("text/html", None),
            ("", None),
        ],
    )
    def test_mime_family(self, mime: str, family: str | None) -> None:
        assert mime_family(mime) == family


class TestFormatValidator:
    """Tests for FormatValidator.validate."""

    @pytest.fixture
    def validator(self) -> FormatValidator:
        return FormatValidator()

    def test_accepts_image(self, validator: FormatValidator) -> None:
        assert validator.validate("image/png", "photo.png") == ".png"

    def test_rejects_executable(self, validator: FormatValidator) -> None:
        with pytest.raises(InvalidFormat) as exc_info:
            validator.validate("application/x-msdownload", "setup.exe")

        assert exc_info.value.status == 400
        assert "image, video, or document" in exc_info.value.message

    def test_rejects_html(self, validator: FormatValidator) -> None:
        with pytest.raises(InvalidFormat):
            validator.validate("text/html", "page.html")

    def test_declared_name_extension_used_when_safe(
        self, validator: FormatValidator
    ) -> None:
        assert validator.validate("image/jpeg", "IMG_0001.JPEG") == ".jpeg"

    def test_unsafe_name_extension_ignored(self, validator: FormatValidator) -> None:
        assert validator.validate("image/png", "x.php%00.png ") == ".png"
        assert validator.validate("image/png", "no-extension") == ".png"
        assert validator.validate("image/png", "a.verylongext") == ".png"

    def test_path_in_declared_name_only_contributes_extension(
        self, validator: FormatValidator
    ) -> None:
        assert validator.validate("image/png", "..\\..\\evil.png") == ".png"

    def test_unknown_mapping_falls_back_to_bin(self) -> None:
        assert FormatValidator.resolve_extension("application/x-unknown", None) == ".bin"

    def test_allowed_formats_subset(self, validator: FormatValidator) -> None:
        assert validator.validate("image/jpeg", "a.jpg", {"jpeg", "png"}) == ".jpg"

    def test_allowed_formats_rejects_other_family(
        self, validator: FormatValidator
    ) -> None:
        with pytest.raises(InvalidFormat, match="File format must be one of: jpg, png"):
            validator.validate(DOCX_MIME, "a.docx", ["jpg", "png"])

    def test_empty_allowed_formats_means_no_restriction(
        self, validator: FormatValidator
    ) -> None:
        assert validator.validate("video/mp4", "a.mp4", [" "]) == ".mp4"

    def test_policy_without_videos(self) -> None:
        validator = FormatValidator(FormatPolicy(allow_videos=False))

        with pytest.raises(InvalidFormat):
            validator.validate("video/mp4", "clip.mp4")


class TestCheckSize:
    """Tests for FormatValidator.check_size."""

    def test_within_limit(self) -> None:
        FormatValidator(FormatPolicy(max_bytes=10)).check_size("image/png", 10)

    def test_over_limit(self) -> None:
        validator = FormatValidator(FormatPolicy(max_bytes=5 * 1024 * 1024))

        with pytest.raises(UploadTooLarge) as exc_info:
            validator.check_size("image/png", 5 * 1024 * 1024 + 1)

        assert isinstance(exc_info.value, InvalidFormat)
        assert exc_info.value.message == "File size must be less than or equal to 5 MB"

    def test_no_limit(self) -> None:
        FormatValidator().check_size("video/mp4", 10**12)
