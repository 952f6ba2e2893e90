"""Storage configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings with
.env support. Credentials are not validated here: missing credentials make
the Backend Selector fall back to memory storage instead of failing start-up.
"""

from functools import lru_cache

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Storage settings loaded from environment and .env.

    Every field is optional. Which ones are required depends on
    storage_provider; see filestore.infrastructure.external.storage.selector.
    """

    debug: bool = False

    # Provider: memory | local | sftp | minio (s3 is an alias of minio)
    storage_provider: str = "memory"

    # Local filesystem
    storage_root: str | None = None

    # S3-compatible object storage (MinIO, AWS S3)
    s3_endpoint: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: SecretStr | None = None
    s3_bucket: str = "filestore-uploads"
    s3_use_ssl: bool = True
    s3_region: str = "us-east-1"

    # SFTP: password, private key content or private key path
    sftp_host: str | None = None
    sftp_port: int = 22
    sftp_username: str | None = None
    sftp_password: SecretStr | None = None
    sftp_private_key: SecretStr | None = None
    sftp_private_key_path: str | None = None
    sftp_base_path: str = "/uploads"
    sftp_timeout_seconds: float = 30.0
    sftp_verify_on_startup: bool = False

    # Memory
    memory_max_file_size: int = 100 * 1024 * 1024  # 100MB

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("storage_provider", mode="before")
    @classmethod
    def normalize_provider(cls, value: object) -> str:
        """Lower-case and trim the provider name; empty means memory."""
        text = str(value or "").strip().lower()
        return text or "memory"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (single instance per process).

    In tests, call get_settings.cache_clear() before overriding env vars so
    the next get_settings() uses the new values.

    Returns:
        Loaded Settings instance.
    """
    return Settings()
