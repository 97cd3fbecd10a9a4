"""Configuration management for mediavault."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from mediavault.constants import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    DEFAULT_CONVERSION_TIMEOUT,
    DEFAULT_IMAGE_QUALITY,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_PUBLIC_ROOT,
    DEFAULT_TO_WEBP,
    MAX_BLOG_UPLOAD_SIZE,
    MAX_DOCUMENT_UPLOAD_SIZE,
    MAX_IMAGE_QUALITY,
    MAX_TEMP_UPLOAD_SIZE,
    MIN_IMAGE_QUALITY,
    UPLOADS_DIRNAME,
)


class EnvVarNotFoundError(ValueError):
    """Raised when an environment variable referenced by env: syntax is not found."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name
        super().__init__(f"Environment variable not found: {var_name}")


def resolve_env_value(value: str, strict: bool = True) -> str | None:
    """Resolve env:VAR_NAME syntax to actual environment variable value.

    Args:
        value: The value to resolve. If starts with "env:", looks up environment variable.
        strict: If True, raises EnvVarNotFoundError when variable not found.
                If False, returns None when variable not found.

    Returns:
        The resolved value, or None if env var not found and strict=False.
    """
    if isinstance(value, str) and value.startswith("env:"):
        env_var = value[4:]
        env_value = os.environ.get(env_var)
        if env_value is None:
            if strict:
                raise EnvVarNotFoundError(env_var)
            return None
        return env_value
    return value


class StorageConfig(BaseModel):
    """Public storage layout."""

    public_root: str = DEFAULT_PUBLIC_ROOT

    def get_public_root(self) -> Path:
        resolved = resolve_env_value(self.public_root) or DEFAULT_PUBLIC_ROOT
        return Path(resolved).expanduser()

    def get_uploads_root(self) -> Path:
        return self.get_public_root() / UPLOADS_DIRNAME


class UploadProfile(BaseModel):
    """Limits for one upload endpoint."""

    max_bytes: int = Field(default=MAX_TEMP_UPLOAD_SIZE, ge=1)
    allow_images: bool = True
    allow_videos: bool = True
    allow_documents: bool = True


def _default_profiles() -> dict[str, UploadProfile]:
    return {
        "temp": UploadProfile(max_bytes=MAX_TEMP_UPLOAD_SIZE),
        "blog": UploadProfile(max_bytes=MAX_BLOG_UPLOAD_SIZE),
        "document": UploadProfile(
            max_bytes=MAX_DOCUMENT_UPLOAD_SIZE, allow_videos=False
        ),
    }


class UploadConfig(BaseModel):
    """Upload staging configuration."""

    quality: int = Field(
        default=DEFAULT_IMAGE_QUALITY, ge=MIN_IMAGE_QUALITY, le=MAX_IMAGE_QUALITY
    )
    webp: bool = DEFAULT_TO_WEBP
    profiles: dict[str, UploadProfile] = Field(default_factory=_default_profiles)


class ConverterConfig(BaseModel):
    """External document converter configuration."""

    binary: str | None = None  # None: discover soffice/libreoffice
    timeout: float = Field(default=DEFAULT_CONVERSION_TIMEOUT, gt=0)

    @field_validator("binary")
    @classmethod
    def _resolve_binary(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return resolve_env_value(value, strict=False) or None


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class MediavaultConfig(BaseModel):
    """Main configuration model."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    converter: ConverterConfig = Field(default_factory=ConverterConfig)
    log: LogConfig = Field(default_factory=LogConfig)


class ConfigManager:
    """Configuration manager for loading configs."""

    CONFIG_FILENAME = CONFIG_FILENAME
    DEFAULT_USER_CONFIG_DIR = Path.home() / ".mediavault"

    def __init__(self) -> None:
        self._config: MediavaultConfig | None = None
        self._config_path: Path | None = None

    @property
    def config(self) -> MediavaultConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def config_path(self) -> Path | None:
        """Get the path of the loaded configuration file."""
        return self._config_path

    def load(
        self,
        config_path: Path | str | None = None,
        env_override: bool = True,
    ) -> MediavaultConfig:
        """
        Load configuration from file with fallback chain.

        Priority (highest to lowest):
        1. Explicit config_path parameter
        2. MEDIAVAULT_CONFIG environment variable
        3. ./mediavault.json (current directory)
        4. ~/.mediavault/config.json (user directory)
        5. Default values
        """
        config_data: dict[str, Any] = {}

        resolved_path = self._resolve_config_path(config_path, env_override)

        if resolved_path and resolved_path.exists():
            config_data = self._load_json(resolved_path)
            self._config_path = resolved_path

        self._config = MediavaultConfig.model_validate(config_data)
        return self._config

    def _resolve_config_path(
        self,
        config_path: Path | str | None,
        env_override: bool,
    ) -> Path | None:
        """Resolve configuration file path based on priority."""
        if config_path:
            return Path(config_path)

        if env_override:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            if env_path:
                return Path(env_path)

        cwd_config = Path.cwd() / self.CONFIG_FILENAME
        if cwd_config.exists():
            return cwd_config

        user_config = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        if user_config.exists():
            return user_config

        return None

    def _load_json(self, path: Path) -> dict[str, Any]:
        """Load JSON configuration file."""
        with open(path, encoding="utf-8") as f:
            return json.load(f)
