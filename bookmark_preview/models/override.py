"""Per-domain override record."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class DomainOverride(BaseModel):
    """Fixed title and/or image for a hostname, applied after generic extraction."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    title: str | None = None
    image_url: str | None = None
    match_subdomains: bool = True

    @field_validator("hostname")
    @classmethod
    def validate_hostname(cls, value: str) -> str:
        """Hostnames are stored lowercase without a leading www."""
        value = value.strip().lower().rstrip(".")
        if value.startswith("www."):
            value = value[4:]
        if not value or "/" in value:
            msg = "hostname must be a bare host name"
            raise ValueError(msg)
        return value

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, value: str | None) -> str | None:
        """Override images must be absolute http(s) URLs."""
        if value is None:
            return None
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            msg = "image_url must be an absolute http(s) URL"
            raise ValueError(msg)
        return value
