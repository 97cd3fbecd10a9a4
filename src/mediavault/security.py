"""Security utilities for mediavault.

Everything here handles values that originate from clients: declared
filenames, actor identifiers, document titles and media paths.
"""

from __future__ import annotations

import os
import re
import sys
import tempfile
import time
from pathlib import Path

from mediavault.constants import (
    ACTOR_SEGMENT_LENGTH,
    ANONYMOUS_ACTOR_SEGMENT,
    DEFAULT_DOCUMENT_BASENAME,
)

# Windows-specific retry settings for file operations
_WINDOWS_RETRY_COUNT = 5
_WINDOWS_RETRY_DELAY = 0.05  # 50ms

_SAFE_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,8}$", re.IGNORECASE)
_RESERVED_CHARS_RE = re.compile(r'[<>:"/\\|?*]+')
_SEPARATOR_RUN_RE = re.compile(r"[\s-]+")
_UNSAFE_RUN_RE = re.compile(r"[^a-zA-Z0-9_]+")
_UNDERSCORE_RUN_RE = re.compile(r"_{2,}")
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")


def _replace_with_retry(src: str, dst: Path) -> None:
    """Replace file with retry logic for Windows file locking.

    On Windows, os.replace() can fail with PermissionError when the target
    file is briefly locked by another process (e.g., antivirus, indexer).

    Args:
        src: Source file path (temp file)
        dst: Destination file path
    """
    if sys.platform != "win32":
        os.replace(src, dst)
        return

    last_error: OSError | None = None
    for attempt in range(_WINDOWS_RETRY_COUNT):
        try:
            os.replace(src, dst)
            return
        except PermissionError as e:
            last_error = e
            if attempt < _WINDOWS_RETRY_COUNT - 1:
                time.sleep(_WINDOWS_RETRY_DELAY * (attempt + 1))

    if last_error:
        raise last_error


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to file atomically using temp file + rename.

    A reader never observes a partially written file, even if the process
    is interrupted during the write.

    Args:
        path: Target file path
        data: Bytes to write
    """
    path = Path(path)
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    fd, tmp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=f".{path.name}.",
        dir=parent,
    )
    fd_closed = False
    try:
        with os.fdopen(fd, "wb") as f:
            fd_closed = True  # fdopen takes ownership of fd
            f.write(data)
        _replace_with_retry(tmp_path, path)
    except Exception:
        if not fd_closed:
            try:
                os.close(fd)
            except OSError:
                pass
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def is_safe_extension(extension: str) -> bool:
    """Check that an extension is a dot followed by 1-8 alphanumerics.

    Examples:
        >>> is_safe_extension(".PNG")
        True
        >>> is_safe_extension(".tar.gz")
        False
        >>> is_safe_extension(".ph p")
        False
    """
    return bool(extension) and bool(_SAFE_EXTENSION_RE.match(extension))


def sanitize_actor_segment(actor_id: str | int | None) -> str:
    """Reduce an actor identifier to a short filename fragment.

    The fragment only aids debugging; it is never used for access control.

    Examples:
        >>> sanitize_actor_segment("c1f0-4b2e-9a77-0123456789ab")
        '0123456789ab'
        >>> sanitize_actor_segment("../")
        'anon'
    """
    raw = "" if actor_id is None else str(actor_id)
    segment = _NON_ALNUM_RE.sub("", raw)[-ACTOR_SEGMENT_LENGTH:]
    return segment or ANONYMOUS_ACTOR_SEGMENT


def sanitize_base_name(name: str | None) -> str:
    """Turn a user-entered document title into a safe file stem.

    The result only contains ``[A-Za-z0-9_]`` and is safe to interpolate
    into filesystem paths and converter command lines.

    Examples:
        >>> sanitize_base_name("My Report #1")
        'My_Report_1'
        >>> sanitize_base_name("../../etc/passwd")
        'etcpasswd'
        >>> sanitize_base_name("   ")
        'document'
    """
    if not name:
        return DEFAULT_DOCUMENT_BASENAME
    safe = _RESERVED_CHARS_RE.sub("", name)
    safe = _SEPARATOR_RUN_RE.sub("_", safe)
    safe = _UNSAFE_RUN_RE.sub("_", safe)
    safe = _UNDERSCORE_RUN_RE.sub("_", safe)
    safe = safe.strip("_ ")
    return safe or DEFAULT_DOCUMENT_BASENAME


def validate_path_within_base(path: Path, base_dir: Path) -> Path:
    """Validate that a path is within the base directory.

    Args:
        path: Path to validate
        base_dir: Base directory that path must be within

    Returns:
        Resolved absolute path

    Raises:
        ValueError: If path is outside base directory
    """
    resolved = path.resolve()
    base_resolved = base_dir.resolve()

    try:
        resolved.relative_to(base_resolved)
    except ValueError:
        raise ValueError(f"Path traversal detected: {path} is outside {base_dir}")

    return resolved


def sanitize_error_message(error: Exception | str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        error: Exception or raw message to sanitize

    Returns:
        Sanitized error message
    """
    msg = str(error)

    # Usernames first, before the generic path replacement
    msg = re.sub(r"/home/[^/\s]+/", "/home/[USER]/", msg)
    msg = re.sub(r"C:\\Users\\[^\\]+\\", r"C:\\Users\\[USER]\\", msg)

    msg = re.sub(r"/[a-zA-Z0-9_\-./]+", "[PATH]", msg)

    msg = re.sub(r"[A-Za-z]:\\[a-zA-Z0-9_\-\\. ]+", "[PATH]", msg)
    msg = re.sub(r"\\\\[a-zA-Z0-9_\-\\. ]+", "[PATH]", msg)

    return msg.strip()
