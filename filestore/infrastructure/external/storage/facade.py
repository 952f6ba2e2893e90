"""Storage Facade: single entry point for storing and reading files.

Writes go to the backend chosen by the Backend Selector. Reads, deletes and
existence checks are routed by the locator's provider tag, so a locator
issued under one configuration stays readable after the active backend
changes (for example after a fallback to memory).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from filestore.core.config import Settings
from filestore.domain.enums import StorageProvider
from filestore.domain.exceptions import FilestoreException
from filestore.domain.value_objects import StorageLocator, StoredObject
from filestore.infrastructure.exceptions import (
    StorageDeleteError,
    StorageDownloadError,
    StorageFailure,
    StorageUploadError,
)
from filestore.infrastructure.external.storage.memory_storage import MemoryStore
from filestore.infrastructure.external.storage.protocol import StorageBackend
from filestore.infrastructure.external.storage.selector import (
    BackendSelection,
    BackendSelector,
)
from filestore.shared.utils.content_types import resolve_content_type
from filestore.shared.utils.keys import original_name_from_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageFacade:
    """Routes storage calls to the right backend.

    Backends other than the active one are built on first use and cached
    for the lifetime of the facade.
    """

    def __init__(self, selector: BackendSelector) -> None:
        self.selector = selector
        self._selection: BackendSelection | None = None
        self._backends: dict[StorageProvider, StorageBackend] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        memory_store: MemoryStore | None = None,
    ) -> StorageFacade:
        return cls(BackendSelector(settings, memory_store))

    @property
    def selection(self) -> BackendSelection | None:
        return self._selection

    @property
    def active_provider(self) -> StorageProvider:
        """Provider new files are written to.

        Raises:
            RuntimeError: initialize() has not run yet.
        """
        if self._selection is None:
            raise RuntimeError("Storage facade is not initialized")
        return self._selection.active.provider

    async def initialize(self) -> BackendSelection:
        """Select and activate the write backend. Safe to call repeatedly."""
        selection = await self.selector.select()
        if self._selection is None:
            self._selection = selection
            self._backends.setdefault(selection.active.provider, selection.active)
        return selection

    @staticmethod
    def provider_of(locator: StorageLocator | str) -> StorageProvider:
        return StorageLocator.coerce(locator).provider

    async def _backend_for(self, provider: StorageProvider) -> StorageBackend:
        await self.initialize()
        backend = self._backends.get(provider)
        if backend is not None:
            return backend
        async with self._lock:
            backend = self._backends.get(provider)
            if backend is None:
                backend = self.selector.build_backend(provider)
                await backend.activate()
                self._backends[provider] = backend
                logger.info("Attached %s storage backend for locator access", provider.value)
        return backend

    @staticmethod
    async def _guard(
        call: Awaitable[T],
        provider: StorageProvider,
        key: str | None,
        failure: type[StorageFailure],
    ) -> T:
        try:
            return await call
        except FilestoreException:
            raise
        except Exception as e:
            logger.exception("Unexpected %s storage error for %s", provider.value, key)
            raise failure(provider.value, key, str(e)) from e

    async def store(self, file_name: str, content: bytes) -> StorageLocator:
        """Persist content on the active backend and return its locator."""
        await self.initialize()
        backend = self._selection.active
        return await self._guard(
            backend.store(file_name, content), backend.provider, None, StorageUploadError
        )

    async def retrieve(self, locator: StorageLocator | str) -> bytes:
        parsed = StorageLocator.coerce(locator)
        backend = await self._backend_for(parsed.provider)
        return await self._guard(
            backend.retrieve(parsed), parsed.provider, parsed.key, StorageDownloadError
        )

    async def retrieve_object(self, locator: StorageLocator | str) -> StoredObject:
        """Retrieve content together with its content type and original file name."""
        parsed = StorageLocator.coerce(locator)
        content = await self.retrieve(parsed)
        file_name = original_name_from_key(parsed.key)
        return StoredObject(
            content=content,
            content_type=resolve_content_type(file_name),
            file_name=file_name,
        )

    async def delete(self, locator: StorageLocator | str) -> None:
        parsed = StorageLocator.coerce(locator)
        backend = await self._backend_for(parsed.provider)
        await self._guard(
            backend.delete(parsed), parsed.provider, parsed.key, StorageDeleteError
        )

    async def exists(self, locator: StorageLocator | str) -> bool:
        parsed = StorageLocator.coerce(locator)
        backend = await self._backend_for(parsed.provider)
        return await self._guard(
            backend.exists(parsed), parsed.provider, parsed.key, StorageDownloadError
        )

    async def close(self) -> None:
        """Close every backend this facade built."""
        backends = list(self._backends.values())
        self._backends.clear()
        for backend in backends:
            await backend.close()
        logger.info("Storage facade closed (%d backend(s))", len(backends))
