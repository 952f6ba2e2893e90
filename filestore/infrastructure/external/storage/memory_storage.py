"""In-process memory storage: explicit option and automatic fallback target."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from filestore.domain.enums import StorageProvider
from filestore.domain.value_objects import StorageLocator
from filestore.infrastructure.exceptions import (
    StorageNotFoundError,
    StorageQuotaExceededError,
)
from filestore.infrastructure.external.storage.protocol import require_locator
from filestore.shared.utils.content_types import resolve_content_type
from filestore.shared.utils.keys import generate_storage_key

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB


@dataclass(frozen=True)
class MemoryEntry:
    """Bytes held by the memory store plus their content type."""

    content: bytes
    content_type: str


class MemoryStore:
    """Process-wide map of key -> MemoryEntry.

    Created once by the Backend Selector and handed to the Facade; lives for
    the process lifetime and is discarded on shutdown. Writes are serialized
    by a lock; reads never take it, so a read never waits on a write to
    another key.
    """

    def __init__(self) -> None:
        self._entries: dict[str, MemoryEntry] = {}
        self._write_lock = threading.Lock()

    def get(self, key: str) -> MemoryEntry | None:
        return self._entries.get(key)

    def put(self, key: str, entry: MemoryEntry) -> None:
        with self._write_lock:
            self._entries[key] = entry

    def pop(self, key: str) -> MemoryEntry | None:
        with self._write_lock:
            return self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def statistics(self) -> tuple[int, int]:
        """Return (file_count, total_size_bytes)."""
        entries = list(self._entries.values())
        return len(entries), sum(len(e.content) for e in entries)

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        with self._write_lock:
            count = len(self._entries)
            self._entries.clear()
        return count


class MemoryStorageBackend:
    """Storage backend over a shared MemoryStore. No I/O; only "not found" can fail."""

    provider = StorageProvider.MEMORY

    def __init__(
        self,
        store: MemoryStore | None = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        key_factory: Callable[[str], str] = generate_storage_key,
    ) -> None:
        self.memory = store if store is not None else MemoryStore()
        self.max_file_size = max_file_size
        self._key_factory = key_factory

    async def activate(self) -> None:
        logger.info(
            "Memory storage ready (max file size: %d bytes)", self.max_file_size
        )

    async def store(self, file_name: str, content: bytes) -> StorageLocator:
        key = self._key_factory(file_name)
        if len(content) > self.max_file_size:
            raise StorageQuotaExceededError(
                self.provider.value, key, len(content), self.max_file_size
            )
        self.memory.put(
            key,
            MemoryEntry(content=bytes(content), content_type=resolve_content_type(file_name)),
        )
        locator = StorageLocator(self.provider, key)
        logger.info("File saved in memory: %s (%d bytes)", locator, len(content))
        return locator

    async def retrieve(self, locator: StorageLocator | str) -> bytes:
        parsed = require_locator(locator, self.provider)
        entry = self.memory.get(parsed.key)
        if entry is None:
            raise StorageNotFoundError(self.provider.value, parsed.key)
        return entry.content

    async def delete(self, locator: StorageLocator | str) -> None:
        parsed = require_locator(locator, self.provider)
        removed = self.memory.pop(parsed.key)
        if removed is not None:
            logger.info("File deleted from memory: %s", parsed)
        else:
            logger.debug("Delete of absent memory file ignored: %s", parsed)

    async def exists(self, locator: StorageLocator | str) -> bool:
        parsed = require_locator(locator, self.provider)
        return parsed.key in self.memory

    def content_type_of(self, locator: StorageLocator | str) -> str | None:
        """Content type recorded at store time, or None if absent."""
        parsed = require_locator(locator, self.provider)
        entry = self.memory.get(parsed.key)
        return entry.content_type if entry else None

    async def close(self) -> None:
        """Nothing to release; the shared store outlives the backend."""
