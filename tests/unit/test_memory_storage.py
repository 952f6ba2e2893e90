"""Tests for the in-memory storage backend."""

import asyncio

import pytest

from filestore.domain.exceptions import LocatorParseError
from filestore.infrastructure.exceptions import (
    StorageNotFoundError,
    StorageQuotaExceededError,
)
from filestore.infrastructure.external.storage.memory_storage import (
    MemoryStorageBackend,
    MemoryStore,
)


@pytest.fixture
def backend(memory_store: MemoryStore) -> MemoryStorageBackend:
    return MemoryStorageBackend(memory_store)


@pytest.mark.asyncio
async def test_store_and_retrieve(backend: MemoryStorageBackend) -> None:
    locator = await backend.store("report.csv", b"a,b\n1,2\n")
    assert str(locator).startswith("memory://")
    assert locator.key.endswith("_report.csv")
    assert await backend.retrieve(locator) == b"a,b\n1,2\n"
    assert await backend.retrieve(str(locator)) == b"a,b\n1,2\n"
    assert backend.content_type_of(locator) == "text/csv"


@pytest.mark.asyncio
async def test_empty_content_allowed(backend: MemoryStorageBackend) -> None:
    locator = await backend.store("empty.txt", b"")
    assert await backend.retrieve(locator) == b""


@pytest.mark.asyncio
async def test_delete_then_retrieve_not_found(backend: MemoryStorageBackend) -> None:
    locator = await backend.store("x.txt", b"x")
    await backend.delete(locator)
    assert not await backend.exists(locator)
    with pytest.raises(StorageNotFoundError):
        await backend.retrieve(locator)


@pytest.mark.asyncio
async def test_delete_is_idempotent(backend: MemoryStorageBackend) -> None:
    locator = await backend.store("x.txt", b"x")
    await backend.delete(locator)
    await backend.delete(locator)
    await backend.delete("memory://2024/01/01/never_stored.txt")


@pytest.mark.asyncio
async def test_rejects_locator_of_other_provider(backend: MemoryStorageBackend) -> None:
    with pytest.raises(LocatorParseError):
        await backend.retrieve("local://2024/01/01/abc_x.txt")


@pytest.mark.asyncio
async def test_size_limit(memory_store: MemoryStore) -> None:
    backend = MemoryStorageBackend(memory_store, max_file_size=4)
    with pytest.raises(StorageQuotaExceededError):
        await backend.store("big.bin", b"12345")
    assert memory_store.statistics() == (0, 0)


@pytest.mark.asyncio
async def test_backends_share_store(memory_store: MemoryStore) -> None:
    first = MemoryStorageBackend(memory_store)
    second = MemoryStorageBackend(memory_store)
    locator = await first.store("shared.txt", b"shared")
    assert await second.retrieve(locator) == b"shared"


@pytest.mark.asyncio
async def test_concurrent_stores_get_distinct_locators(backend: MemoryStorageBackend) -> None:
    locators = await asyncio.gather(
        *(backend.store("same.csv", f"row{i}".encode()) for i in range(50))
    )
    assert len({str(loc) for loc in locators}) == 50
    contents = await asyncio.gather(*(backend.retrieve(loc) for loc in locators))
    assert contents == [f"row{i}".encode() for i in range(50)]


@pytest.mark.asyncio
async def test_statistics_and_clear(backend: MemoryStorageBackend, memory_store: MemoryStore) -> None:
    await backend.store("a.txt", b"abc")
    await backend.store("b.txt", b"de")
    assert memory_store.statistics() == (2, 5)
    assert memory_store.clear() == 2
    assert memory_store.statistics() == (0, 0)
