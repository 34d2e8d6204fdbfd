"""
config.py — Centralized Application Configuration Loader

Purpose:
- Define a single source of truth for application settings.
- Load and validate environment variables from `.env` or OS environment.

Backends are optional:
- No SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY → the local JSON file is the
  system of record and uploads land on local disk.
- Supabase configured → the Supabase tables are authoritative for reads, the
  local file becomes an offline mirror, and blobs go to the storage bucket.
- No AUTH_JWT_SECRET → bearer tokens are not verified (development posture).

This module does NOT:
- Open any connections.
- Touch the filesystem (directories are created by the app factory).
"""

from pathlib import Path
from typing import Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: backend/campuspay/core/config.py
# .env should be at: backend/.env
_CONFIG_DIR = Path(__file__).parent
_BACKEND_DIR = _CONFIG_DIR.parent.parent
_ENV_FILE = _BACKEND_DIR / ".env"

if _ENV_FILE.exists():
    _ENV_FILE_PATH = str(_ENV_FILE.resolve())
else:
    # Fallback: use relative path (pydantic will look in CWD)
    _ENV_FILE_PATH = ".env"


class Settings(BaseSettings):
    """
    Runtime configuration for the CampusPay backend.
    """

    # Local document store
    LOCAL_STORE_PATH: str = Field(
        str(_BACKEND_DIR / "data.json"),
        description="Path of the local JSON document store (payments, events, organizations, ...)",
    )

    # Local blob fallback
    UPLOADS_DIR: str = Field(
        str(_BACKEND_DIR / "uploads"),
        description="Directory for proof images and QR codes when no bucket is configured",
    )
    UPLOADS_URL_PREFIX: str = Field(
        "/uploads",
        description="Same-origin path under which UPLOADS_DIR is served",
    )
    MAX_UPLOAD_BYTES: int = Field(
        20 * 1024 * 1024,
        description="Largest accepted upload (bytes)",
    )

    # Supabase (cloud document store + object storage)
    SUPABASE_URL: str = Field(
        "",
        description="Supabase project URL",
    )
    SUPABASE_SERVICE_ROLE_KEY: str = Field(
        "",
        description="Supabase service role key for server-side access",
    )
    SUPABASE_BUCKET: str = Field(
        "public",
        description="Storage bucket name (case-sensitive)",
    )
    SUPABASE_TABLE_PREFIX: str = Field(
        "",
        description="Optional prefix prepended to every document table name",
    )
    SIGNED_URL_TTL_SECONDS: int = Field(
        3600,
        description="Lifetime of signed URLs minted for private objects (seconds)",
    )

    # Identity provider
    AUTH_JWT_SECRET: str = Field(
        "",
        description="Shared secret used by the identity provider to sign access tokens",
    )
    AUTH_JWT_AUDIENCE: str = Field(
        "authenticated",
        description="Expected `aud` claim of access tokens (empty disables the check)",
    )
    AUTH_JWT_ALGORITHMS: List[str] = Field(
        default_factory=lambda: ["HS256"],
        description="Accepted signing algorithms",
    )

    # Intake policy
    REJECT_DUPLICATE_SUBMISSIONS: bool = Field(
        False,
        description="Refuse a submission matching an open one (same submitter, event and amount)",
    )

    # HTTP
    CORS_ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware",
    )

    LOG_LEVEL: str = Field(
        "INFO",
        description="Root log level",
    )

    @field_validator("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "AUTH_JWT_SECRET", mode="before")
    @classmethod
    def strip_secret(cls, v: Any) -> str:
        """Strip whitespace from URLs and keys."""
        if isinstance(v, str):
            return v.strip()
        return v or ""

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)

    @property
    def auth_enabled(self) -> bool:
        return bool(self.AUTH_JWT_SECRET)

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Shared instance: every importer sees the same settings object.
settings = Settings()
