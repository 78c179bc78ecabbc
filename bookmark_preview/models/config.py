"""Application configuration model using pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DeploymentMode = Literal["auto", "persistent", "ephemeral"]
ScreenshotBackendName = Literal["auto", "remote", "playwright", "none"]


class Settings(BaseSettings):
    """Preview pipeline configuration loaded from PREVIEW_* variables and .env."""

    model_config = SettingsConfigDict(
        env_prefix="PREVIEW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "INFO"

    # Deployment / local tier
    deployment_mode: DeploymentMode = "auto"
    cache_dir: Path = Path("data/previews")
    public_base_path: str = ""
    cache_ttl_seconds: int = 7 * 24 * 60 * 60

    # Object store tier
    object_store_bucket: str | None = None
    object_store_region: str = "us-east-1"
    object_store_endpoint_url: str | None = None
    object_store_access_key: str | None = None
    object_store_secret_key: str | None = None
    object_store_public_domain: str | None = None
    object_store_namespace: str = "previews"
    upload_namespace: str = "uploads"

    # Network
    fetch_timeout: float = 10.0
    image_timeout: float = 15.0
    title_fetch_timeout: float = 5.0
    screenshot_timeout: float = 30.0
    resolve_timeout: float = 45.0
    verify_tls: bool = True
    max_html_bytes: int = 10 * 1024 * 1024
    max_image_bytes: int = 10 * 1024 * 1024
    max_upload_bytes: int = 5 * 1024 * 1024
    fetch_retry_attempts: int = 2
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    # Images
    max_image_dimension: int = 1600
    jpeg_quality: int = 85

    # Screenshots
    screenshot_backend: ScreenshotBackendName = "auto"
    screenshot_api_url: str | None = None
    screenshot_width: int = 1200
    screenshot_height: int = 630

    # Per-domain overrides
    overrides_file: Path | None = None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Log level must be a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            msg = f"log_level must be one of {', '.join(sorted(valid_levels))}"
            raise ValueError(msg)
        return upper_value

    @field_validator(
        "fetch_timeout",
        "image_timeout",
        "title_fetch_timeout",
        "screenshot_timeout",
        "resolve_timeout",
    )
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Timeouts must be positive and at most ten minutes."""
        if value <= 0 or value > 600:
            msg = "timeouts must be greater than 0 and at most 600 seconds"
            raise ValueError(msg)
        return value

    @field_validator("cache_ttl_seconds", "max_html_bytes", "max_image_bytes", "max_upload_bytes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Sizes and TTLs must be positive."""
        if value <= 0:
            msg = "value must be greater than 0"
            raise ValueError(msg)
        return value

    @field_validator("fetch_retry_attempts")
    @classmethod
    def validate_fetch_retry_attempts(cls, value: int) -> int:
        """Fetch attempts must be between 1 and 5."""
        if value < 1 or value > 5:
            msg = "fetch_retry_attempts must be between 1 and 5"
            raise ValueError(msg)
        return value

    @field_validator("jpeg_quality")
    @classmethod
    def validate_jpeg_quality(cls, value: int) -> int:
        """JPEG quality must be in Pillow's 1-95 range."""
        if value < 1 or value > 95:
            msg = "jpeg_quality must be between 1 and 95"
            raise ValueError(msg)
        return value

    @field_validator("public_base_path")
    @classmethod
    def validate_public_base_path(cls, value: str) -> str:
        """Base path or URL local files are served under, without trailing slash."""
        return value.strip().rstrip("/")

    @field_validator("object_store_namespace", "upload_namespace")
    @classmethod
    def validate_namespace(cls, value: str) -> str:
        """Namespaces are bare path segments."""
        value = value.strip().strip("/")
        if not value:
            msg = "namespace must not be empty"
            raise ValueError(msg)
        return value

    @property
    def object_store_configured(self) -> bool:
        """True when a bucket is set; credentials may come from the AWS chain."""
        return bool(self.object_store_bucket)
