"""
Configuration and settings for the eQSL backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="")
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # S3-compatible storage (Tencent COS)
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    # Public address of the bucket; presigned URLs are used when unset, and
    # those get no thumbnail transform.
    public_base_url: Optional[str] = Field(default=None)
    presign_expires_in: int = Field(default=7 * 24 * 3600)

    # Card catalog
    storage_folder: str = Field(default="TW-eQSL")
    list_max_results: int = Field(default=500, ge=1)
    list_cache_ttl_seconds: float = Field(default=30.0, ge=0)
    # S3 caps user metadata at 2 KB per object.
    max_context_length: int = Field(default=2000, ge=1)
    thumbnail_width: int = Field(default=400, ge=1)

    # Browser UI assets, served when the directory exists.
    static_dir: Optional[str] = Field(default="public")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
