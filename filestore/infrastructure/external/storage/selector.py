"""Backend Selector: picks the write backend from settings, falling back to memory.

State machine: UNSELECTED -> VALIDATING -> ACTIVE, or FALLBACK when the
configured provider is unknown, lacks credentials, or fails to activate.
Selection runs once per selector, behind an asyncio.Lock, so only one
activation sequence (e.g. bucket bootstrap) runs per process.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pydantic import SecretStr

from filestore.core.config import Settings, get_settings
from filestore.domain.enums import SelectorState, StorageProvider
from filestore.domain.exceptions import FilestoreException
from filestore.infrastructure.exceptions import StorageConfigurationError
from filestore.infrastructure.external.storage.memory_storage import (
    MemoryStorageBackend,
    MemoryStore,
)
from filestore.infrastructure.external.storage.protocol import StorageBackend

logger = logging.getLogger(__name__)

SFTP_CREDENTIAL = "sftp_credential"

REQUIRED_FIELDS: dict[StorageProvider, tuple[str, ...]] = {
    StorageProvider.MEMORY: (),
    StorageProvider.LOCAL: ("storage_root",),
    StorageProvider.MINIO: ("s3_endpoint", "s3_access_key", "s3_secret_key"),
    StorageProvider.SFTP: ("sftp_host", "sftp_username", SFTP_CREDENTIAL),
}


def is_set(value: object) -> bool:
    """True for a non-blank string or SecretStr; False for None and blanks."""
    if value is None:
        return False
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _secret(value: SecretStr | None) -> str | None:
    return value.get_secret_value() if value is not None else None


def missing_credentials(provider: StorageProvider, settings: Settings) -> list[str]:
    """Return the required settings fields that are absent for provider."""
    missing: list[str] = []
    for field in REQUIRED_FIELDS[provider]:
        if field == SFTP_CREDENTIAL:
            present = any(
                is_set(v)
                for v in (
                    settings.sftp_password,
                    settings.sftp_private_key,
                    settings.sftp_private_key_path,
                )
            )
        else:
            present = is_set(getattr(settings, field))
        if not present:
            missing.append(field)
    return missing


@dataclass(frozen=True)
class SelectionWarning:
    """Why the selector fell back to memory storage."""

    provider: str
    message: str
    missing_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class BackendSelection:
    """Outcome of backend selection. Immutable for the process lifetime."""

    requested: str
    active: StorageBackend
    state: SelectorState
    warnings: tuple[SelectionWarning, ...] = ()

    @property
    def fell_back(self) -> bool:
        return self.state is SelectorState.FALLBACK


class BackendSelector:
    """Builds storage backends from settings and chooses the active one.

    Owns the single MemoryStore for the process; every memory backend it
    builds (explicit or fallback) shares that store.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        memory_store: MemoryStore | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.memory_store = memory_store if memory_store is not None else MemoryStore()
        self.state = SelectorState.UNSELECTED
        self._selection: BackendSelection | None = None
        self._lock = asyncio.Lock()

    @property
    def selection(self) -> BackendSelection | None:
        return self._selection

    def build_backend(self, provider: StorageProvider) -> StorageBackend:
        """Construct (not activate) the backend for provider.

        Raises:
            StorageConfigurationError: Required credentials are absent.
        """
        missing = missing_credentials(provider, self.settings)
        if missing:
            raise StorageConfigurationError(provider.value, missing)
        s = self.settings

        if provider is StorageProvider.MEMORY:
            return MemoryStorageBackend(self.memory_store, max_file_size=s.memory_max_file_size)
        if provider is StorageProvider.LOCAL:
            from filestore.infrastructure.external.storage.local_storage import (
                LocalStorageBackend,
            )

            return LocalStorageBackend(storage_root=s.storage_root or "")
        if provider is StorageProvider.SFTP:
            from filestore.infrastructure.external.storage.sftp_storage import (
                SftpStorageBackend,
            )

            return SftpStorageBackend(
                host=s.sftp_host or "",
                username=s.sftp_username or "",
                password=_secret(s.sftp_password),
                private_key=_secret(s.sftp_private_key),
                private_key_path=s.sftp_private_key_path,
                port=s.sftp_port,
                base_path=s.sftp_base_path,
                timeout=s.sftp_timeout_seconds,
                verify_on_startup=s.sftp_verify_on_startup,
            )
        from filestore.infrastructure.external.storage.s3_storage import (
            S3StorageBackend,
        )

        return S3StorageBackend(
            bucket=s.s3_bucket,
            access_key=s.s3_access_key,
            secret_key=_secret(s.s3_secret_key),
            endpoint=s.s3_endpoint,
            use_ssl=s.s3_use_ssl,
            region=s.s3_region,
        )

    async def select(self) -> BackendSelection:
        """Run selection once; later calls return the same BackendSelection."""
        if self._selection is not None:
            return self._selection
        async with self._lock:
            if self._selection is None:
                self._selection = await self._run_selection()
        return self._selection

    async def _run_selection(self) -> BackendSelection:
        requested = self.settings.storage_provider
        self.state = SelectorState.VALIDATING

        try:
            provider = StorageProvider.from_tag(requested)
        except ValueError:
            return await self._fallback(
                requested,
                SelectionWarning(
                    provider=requested,
                    message=(
                        f"Unknown storage provider '{requested}'. "
                        "Falling back to in-memory storage."
                    ),
                    missing_fields=("storage_provider",),
                ),
            )

        missing = missing_credentials(provider, self.settings)
        if missing:
            return await self._fallback(
                requested,
                SelectionWarning(
                    provider=provider.value,
                    message=(
                        f"Storage provider '{provider.value}' selected but "
                        f"{', '.join(missing)} not set. Falling back to in-memory storage."
                    ),
                    missing_fields=tuple(missing),
                ),
            )

        backend: StorageBackend | None = None
        try:
            backend = self.build_backend(provider)
            await backend.activate()
        except (FilestoreException, ValueError, OSError) as e:
            reason = e.message if isinstance(e, FilestoreException) else str(e)
            if backend is not None:
                await backend.close()
            return await self._fallback(
                requested,
                SelectionWarning(
                    provider=provider.value,
                    message=(
                        f"Storage provider '{provider.value}' could not be activated: "
                        f"{reason}. Falling back to in-memory storage."
                    ),
                ),
            )

        self.state = SelectorState.ACTIVE
        logger.info("Using %s storage backend", provider.value)
        return BackendSelection(requested=requested, active=backend, state=self.state)

    async def _fallback(self, requested: str, warning: SelectionWarning) -> BackendSelection:
        logger.warning(warning.message)
        backend = MemoryStorageBackend(
            self.memory_store, max_file_size=self.settings.memory_max_file_size
        )
        await backend.activate()
        self.state = SelectorState.FALLBACK
        return BackendSelection(
            requested=requested,
            active=backend,
            state=self.state,
            warnings=(warning,),
        )
