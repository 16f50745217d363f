"""
Centralized settings for the waste reporting backend.

Provides a lightweight wrapper around environment variables (with `.env`
support for local development) so the rest of the codebase can import a single
`get_settings()` helper when configuration is needed. Explicit environment
variables always win over values from the `.env` file.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
import os

from dotenv import dotenv_values


ENV_PATH = Path(__file__).resolve().parents[2] / ".env"


@dataclass(frozen=True)
class Settings:
    """Immutable view of application configuration."""

    # General
    environment: str
    allowed_hosts: tuple[str, ...]

    # Database (SQLModel/alembic)
    database_url: str

    # Identity provider tokens
    jwt_secret: Optional[str]
    jwt_algorithm: str
    jwt_access_minutes: int

    # Blob storage
    storage_provider: str
    local_storage_dir: Path
    public_storage_url: str
    s3_bucket: str
    s3_region: str
    s3_endpoint: Optional[str]
    s3_use_ssl: bool
    s3_access_key_id: Optional[str]
    s3_secret_access_key: Optional[str]
    s3_public_base_url: Optional[str]
    max_upload_bytes: int

    # Reverse geocoding
    geocoder_url: str
    geocoder_api_key: Optional[str]
    geocoder_timeout_seconds: float

    # Observability
    sentry_dsn: Optional[str]


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_lookup(key: str, env: dict[str, str], default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key) or env.get(key) or default


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""

    env_file = dotenv_values(str(ENV_PATH)) if ENV_PATH.exists() else {}

    storage_dir = _env_lookup(
        "LOCAL_STORAGE_DIR", env_file, str(Path(__file__).resolve().parents[1] / "storage")
    )
    hosts = _env_lookup("ALLOWED_HOSTS", env_file, "*")

    return Settings(
        environment=_env_lookup("APP_ENV", env_file, "development"),
        allowed_hosts=tuple(h.strip() for h in hosts.split(",") if h.strip()),
        database_url=_env_lookup("DATABASE_URL", env_file, "sqlite+aiosqlite:///./waste_reports.db"),
        jwt_secret=_env_lookup("JWT_SECRET", env_file),
        jwt_algorithm="HS256",
        jwt_access_minutes=int(_env_lookup("JWT_ACCESS_MINUTES", env_file, "60")),
        storage_provider=_env_lookup("STORAGE_PROVIDER", env_file, "local").lower(),
        local_storage_dir=Path(storage_dir),
        public_storage_url=_env_lookup("PUBLIC_STORAGE_URL", env_file, "/storage").rstrip("/"),
        s3_bucket=_env_lookup("S3_BUCKET", env_file, "waste-report-images"),
        s3_region=_env_lookup("S3_REGION", env_file, "us-east-1"),
        s3_endpoint=_env_lookup("S3_ENDPOINT", env_file) or _env_lookup("S3_ENDPOINT_URL", env_file),
        s3_use_ssl=_as_bool(_env_lookup("S3_USE_SSL", env_file, "true"), True),
        s3_access_key_id=_env_lookup("S3_ACCESS_KEY_ID", env_file) or _env_lookup("S3_ACCESS_KEY", env_file),
        s3_secret_access_key=_env_lookup("S3_SECRET_ACCESS_KEY", env_file) or _env_lookup("S3_SECRET_KEY", env_file),
        s3_public_base_url=_env_lookup("S3_PUBLIC_BASE_URL", env_file),
        max_upload_bytes=int(_env_lookup("MAX_UPLOAD_BYTES", env_file, str(5 * 1024 * 1024))),
        geocoder_url=_env_lookup("GEOCODER_URL", env_file, "https://us1.locationiq.com/v1/reverse.php"),
        geocoder_api_key=_env_lookup("GEOCODER_API_KEY", env_file),
        geocoder_timeout_seconds=float(_env_lookup("GEOCODER_TIMEOUT_SECONDS", env_file, "5")),
        sentry_dsn=_env_lookup("SENTRY_DSN", env_file),
    )


__all__ = ["Settings", "get_settings"]
