"""
Configuration and settings for the prompt manager service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Public origin of this service; OAuth redirects come back here.
    site_url: str = Field(default="http://localhost:8000")

    # Hosted backend (Supabase): auth, table and file storage
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    storage_bucket: str = Field(default="prompt-images")
    prompts_table: str = Field(default="prompts")

    # Direct database access to the prompts table (Postgres expected)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage for prompt images
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    s3_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "PROMPTDESK_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )
    log_level: str = Field(default="INFO")

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def secure_cookies(self) -> bool:
        return self.site_url.startswith("https://")

    @property
    def oauth_redirect_url(self) -> str:
        return f"{self.site_url.rstrip('/')}/auth/callback"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
