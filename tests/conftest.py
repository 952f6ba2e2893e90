"""Pytest configuration and fixtures for filestore.

Settings are built directly (never from the process environment or .env)
so tests do not depend on the machine they run on.
"""

import pytest

from filestore.core.config import Settings, get_settings
from filestore.infrastructure.external.storage.memory_storage import MemoryStore


@pytest.fixture
def make_settings():
    """Factory for Settings with every credential unset unless overridden."""

    def _make(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)

    return _make


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _isolate_storage_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop storage env vars so Settings() in tests sees defaults only."""
    for name in (
        "STORAGE_PROVIDER",
        "STORAGE_ROOT",
        "S3_ENDPOINT",
        "S3_ACCESS_KEY",
        "S3_SECRET_KEY",
        "S3_BUCKET",
        "SFTP_HOST",
        "SFTP_USERNAME",
        "SFTP_PASSWORD",
        "SFTP_PRIVATE_KEY",
        "SFTP_PRIVATE_KEY_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()
