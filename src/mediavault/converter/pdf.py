"""DOCX to PDF conversion through a headless LibreOffice process.

Each call gets its own scratch workspace with an isolated LibreOffice user
profile, so several conversions can run side by side without fighting over
the shared profile lock. The workspace is removed whatever the outcome.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
import subprocess
import sys
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from mediavault.config import MediavaultConfig
from mediavault.constants import (
    CONVERTER_KILL_GRACE,
    DEFAULT_CONVERSION_TIMEOUT,
    PROFILE_DIRNAME,
    WORKSPACE_PREFIX,
)
from mediavault.exceptions import ConversionFailed
from mediavault.security import sanitize_base_name, sanitize_error_message
from mediavault.utils.office import find_libreoffice, profile_url

# Keep converter output in error messages short
_MAX_STDERR_CHARS = 500


@contextmanager
def conversion_workspace(root: Path | None = None) -> Iterator[Path]:
    """Allocate an exclusive scratch directory and always remove it.

    Args:
        root: Parent directory for the workspace (system temp dir by default)

    Yields:
        Path to the workspace, which already contains the profile directory
    """
    workspace = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=root))
    try:
        (workspace / PROFILE_DIRNAME).mkdir()
        yield workspace
    finally:
        try:
            shutil.rmtree(workspace)
        except OSError as e:
            logger.warning(f"Failed to remove conversion workspace: {e}")


def _kill(proc: subprocess.Popen[bytes]) -> None:
    """Kill the converter and anything it spawned."""
    if sys.platform != "win32":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except OSError as e:
            logger.debug(f"killpg failed, killing process only: {e}")
    proc.kill()


class PdfConverter:
    """Converts DOCX documents to PDF with an external LibreOffice binary.

    Args:
        binary: Path to ``soffice``; discovered on PATH when not given
        timeout: Wall-clock limit for one conversion, in seconds
        workspace_root: Parent directory for per-call workspaces
    """

    def __init__(
        self,
        binary: str | Path | None = None,
        timeout: float = DEFAULT_CONVERSION_TIMEOUT,
        workspace_root: Path | str | None = None,
    ) -> None:
        self.binary = str(binary) if binary else None
        self.timeout = timeout
        self.workspace_root = Path(workspace_root) if workspace_root else None

    @classmethod
    def from_config(cls, config: MediavaultConfig) -> PdfConverter:
        return cls(binary=config.converter.binary, timeout=config.converter.timeout)

    def resolve_binary(self) -> str | None:
        """Return the configured binary, or the discovered one."""
        return self.binary or find_libreoffice()

    def build_command(self, binary: str, workspace: Path, input_path: Path) -> list[str]:
        return [
            binary,
            "--headless",
            "--norestore",
            "--nolockcheck",
            "--nofirststartwizard",
            f"-env:UserInstallation={profile_url(workspace / PROFILE_DIRNAME)}",
            "--convert-to",
            "pdf",
            "--outdir",
            str(workspace),
            str(input_path),
        ]

    def convert(
        self,
        document: bytes,
        base_name: str | None = None,
        timeout: float | None = None,
    ) -> bytes:
        """Convert DOCX bytes to PDF bytes.

        Args:
            document: DOCX payload
            base_name: Human readable name; sanitized before touching the disk
            timeout: Override of the instance timeout, in seconds

        Returns:
            PDF bytes

        Raises:
            ConversionFailed: If the binary is missing, the process fails or
                times out, or no usable PDF was produced
        """
        safe_name = sanitize_base_name(base_name)
        timeout = self.timeout if timeout is None else timeout

        binary = self.resolve_binary()
        if not binary:
            raise ConversionFailed(safe_name, "LibreOffice not found")

        try:
            pdf = self._convert_in_workspace(document, binary, safe_name, timeout)
        except OSError as e:
            raise ConversionFailed(safe_name, sanitize_error_message(e), e) from e

        logger.info(f"Converted {safe_name}.docx to PDF ({len(pdf)} bytes)")
        return pdf

    def _convert_in_workspace(
        self, document: bytes, binary: str, safe_name: str, timeout: float
    ) -> bytes:
        with conversion_workspace(self.workspace_root) as workspace:
            input_path = workspace / f"{safe_name}.docx"
            input_path.write_bytes(document)
            output_path = workspace / f"{safe_name}.pdf"

            cmd = self.build_command(binary, workspace, input_path)
            logger.debug(f"Running LibreOffice: {' '.join(cmd)}")
            self._run(cmd, safe_name, timeout)

            if not output_path.is_file():
                raise ConversionFailed(safe_name, "converter produced no PDF")
            pdf = output_path.read_bytes()
            if not pdf:
                raise ConversionFailed(safe_name, "converter produced an empty PDF")
        return pdf

    async def convert_async(
        self,
        document: bytes,
        base_name: str | None = None,
        timeout: float | None = None,
    ) -> bytes:
        """Async wrapper around :meth:`convert`, run in a worker thread."""
        return await asyncio.to_thread(self.convert, document, base_name, timeout)

    def _run(self, cmd: list[str], safe_name: str, timeout: float) -> None:
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=sys.platform != "win32",
            )
        except OSError as e:
            raise ConversionFailed(
                safe_name, f"could not start converter: {sanitize_error_message(e)}", e
            ) from e

        try:
            _, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            _kill(proc)
            try:
                proc.communicate(timeout=CONVERTER_KILL_GRACE)
            except subprocess.TimeoutExpired:
                logger.warning(f"Converter pid {proc.pid} did not exit after kill")
            logger.warning(f"LibreOffice timed out after {timeout}s for {safe_name}")
            raise ConversionFailed(safe_name, f"timed out after {timeout}s", e) from e

        if proc.returncode != 0:
            detail = sanitize_error_message(
                stderr.decode("utf-8", errors="replace")[-_MAX_STDERR_CHARS:]
            )
            logger.warning(
                f"LibreOffice exited with {proc.returncode} for {safe_name}: {detail}"
            )
            message = f"converter exited with code {proc.returncode}"
            raise ConversionFailed(
                safe_name, f"{message}: {detail}" if detail else message
            )
