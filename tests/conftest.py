"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import os
import stat
import sys
from pathlib import Path

import pytest
from PIL import Image

# =============================================================================
# Environment
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep config lookup and log files inside the test's temp dir."""
    monkeypatch.delenv("MEDIAVAULT_CONFIG", raising=False)
    monkeypatch.setenv("MEDIAVAULT_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.chdir(tmp_path)


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def public_root(tmp_path: Path) -> Path:
    """Return an empty public root directory."""
    root = tmp_path / "public"
    root.mkdir()
    return root


@pytest.fixture
def temp_uploads(public_root: Path) -> Path:
    """Return the temp upload directory, created."""
    temp = public_root / "uploads" / "temp"
    temp.mkdir(parents=True)
    return temp


# =============================================================================
# Sample Content Fixtures
# =============================================================================


def _image_bytes(fmt: str, size: tuple[int, int] = (32, 24)) -> bytes:
    img = Image.new("RGB", size, color="red")
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """Return a small RGB PNG."""
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    """Return a small JPEG."""
    return _image_bytes("JPEG")


@pytest.fixture
def rgba_png_bytes() -> bytes:
    """Return a PNG with an alpha channel."""
    img = Image.new("RGBA", (16, 16), (0, 128, 255, 100))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def animated_gif_bytes() -> bytes:
    """Return a two-frame animated GIF."""
    frames = [Image.new("RGB", (8, 8), color) for color in ("red", "blue")]
    buffer = io.BytesIO()
    frames[0].save(
        buffer, format="GIF", save_all=True, append_images=frames[1:], duration=100
    )
    return buffer.getvalue()


@pytest.fixture
def docx_bytes() -> bytes:
    """Return placeholder DOCX bytes (the fake converter never parses them)."""
    return b"PK\x03\x04 fake docx payload"


# =============================================================================
# Fake Converter
# =============================================================================

FAKE_SOFFICE_OK = """#!/bin/sh
# Writes <outdir>/<stem>.pdf for the last argument, like soffice does.
outdir=""
input=""
prev=""
for arg in "$@"; do
    if [ "$prev" = "--outdir" ]; then
        outdir="$arg"
    fi
    prev="$arg"
    input="$arg"
done
stem=$(basename "$input" .docx)
printf '%%PDF-1.4 fake\\n' > "$outdir/$stem.pdf"
exit 0
"""

FAKE_SOFFICE_SLEEP = """#!/bin/sh
exec sleep 30
"""

FAKE_SOFFICE_FAIL = """#!/bin/sh
echo "Error: source file could not be loaded from /home/alice/secret/doc.docx" >&2
exit 77
"""

FAKE_SOFFICE_NO_OUTPUT = """#!/bin/sh
exit 0
"""

FAKE_SOFFICE_EMPTY = """#!/bin/sh
outdir=""
input=""
prev=""
for arg in "$@"; do
    if [ "$prev" = "--outdir" ]; then
        outdir="$arg"
    fi
    prev="$arg"
    input="$arg"
done
stem=$(basename "$input" .docx)
: > "$outdir/$stem.pdf"
exit 0
"""


def _write_script(path: Path, body: str) -> Path:
    path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_soffice(tmp_path: Path):
    """Factory creating fake converter scripts by behaviour name."""
    if sys.platform == "win32" or not os.access("/bin/sh", os.X_OK):
        pytest.skip("fake converter scripts need a POSIX shell")

    bodies = {
        "ok": FAKE_SOFFICE_OK,
        "sleep": FAKE_SOFFICE_SLEEP,
        "fail": FAKE_SOFFICE_FAIL,
        "no-output": FAKE_SOFFICE_NO_OUTPUT,
        "empty": FAKE_SOFFICE_EMPTY,
    }
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def factory(kind: str = "ok") -> Path:
        return _write_script(bin_dir / f"soffice-{kind}", bodies[kind])

    return factory


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """Return a parent directory for converter workspaces."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return root
