"""Tests for StorageFacade routing, lazy backends and error wrapping."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from filestore.domain.enums import StorageProvider
from filestore.domain.exceptions import LocatorParseError
from filestore.infrastructure.exceptions import (
    StorageConfigurationError,
    StorageDownloadError,
    StorageNotFoundError,
)
from filestore.infrastructure.external.storage.facade import StorageFacade


@pytest.fixture
async def facade(make_settings):
    storage = StorageFacade.create(make_settings())
    await storage.initialize()
    yield storage
    await storage.close()


@pytest.mark.asyncio
async def test_round_trip(facade: StorageFacade) -> None:
    locator = await facade.store("report.csv", b"a,b\n")
    assert facade.provider_of(locator) is StorageProvider.MEMORY
    assert await facade.exists(locator)
    assert await facade.retrieve(str(locator)) == b"a,b\n"

    obj = await facade.retrieve_object(locator)
    assert obj.content == b"a,b\n"
    assert obj.content_type == "text/csv"
    assert obj.file_name == "report.csv"
    assert obj.size == 4


@pytest.mark.asyncio
async def test_delete_then_not_found(facade: StorageFacade) -> None:
    locator = await facade.store("x.txt", b"x")
    await facade.delete(locator)
    await facade.delete(locator)
    assert not await facade.exists(locator)
    with pytest.raises(StorageNotFoundError):
        await facade.retrieve(locator)


@pytest.mark.asyncio
async def test_operations_initialize_lazily(make_settings) -> None:
    storage = StorageFacade.create(make_settings())
    with pytest.raises(RuntimeError):
        _ = storage.active_provider
    locator = await storage.store("x.txt", b"x")
    assert storage.active_provider is StorageProvider.MEMORY
    assert await storage.retrieve(locator) == b"x"


@pytest.mark.asyncio
async def test_malformed_locator(facade: StorageFacade) -> None:
    with pytest.raises(LocatorParseError):
        await facade.retrieve("not-a-locator")


@pytest.mark.asyncio
async def test_fallback_store_goes_to_memory(make_settings) -> None:
    storage = StorageFacade.create(make_settings(storage_provider="minio"))
    selection = await storage.initialize()
    assert selection.fell_back
    locator = await storage.store("x.csv", b"1")
    assert str(locator).startswith("memory://")
    assert await storage.retrieve(locator) == b"1"


@pytest.mark.asyncio
async def test_local_locator_readable_after_switch_to_memory(make_settings, tmp_path: Path) -> None:
    root = str(tmp_path / "uploads")
    before = StorageFacade.create(make_settings(storage_provider="local", storage_root=root))
    locator = await before.store("report.csv", b"kept")
    await before.close()

    after = StorageFacade.create(make_settings(storage_provider="memory", storage_root=root))
    await after.initialize()
    assert after.active_provider is StorageProvider.MEMORY
    assert await after.retrieve(locator) == b"kept"
    new_locator = await after.store("new.csv", b"new")
    assert new_locator.provider is StorageProvider.MEMORY
    await after.close()


@pytest.mark.asyncio
async def test_unconfigured_provider_fails_fast(facade: StorageFacade) -> None:
    with pytest.raises(StorageConfigurationError) as exc_info:
        await facade.retrieve("minio://2024/01/01/abc_x.csv")
    assert exc_info.value.details["provider"] == "minio"

    with pytest.raises(StorageConfigurationError):
        await facade.exists("local://2024/01/01/abc_x.csv")


@pytest.mark.asyncio
async def test_lazy_backend_built_once(
    make_settings, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    storage = StorageFacade.create(make_settings(storage_root=str(tmp_path)))
    await storage.initialize()
    built: list[StorageProvider] = []
    original = storage.selector.build_backend

    def counting(provider: StorageProvider):
        built.append(provider)
        return original(provider)

    monkeypatch.setattr(storage.selector, "build_backend", counting)
    locator = "local://2024/01/01/abc_missing.csv"
    results = await asyncio.gather(*(storage.exists(locator) for _ in range(5)))
    assert results == [False] * 5
    assert built == [StorageProvider.LOCAL]


@pytest.mark.asyncio
async def test_foreign_exception_wrapped(facade: StorageFacade, monkeypatch: pytest.MonkeyPatch) -> None:
    active = facade.selection.active
    monkeypatch.setattr(active, "retrieve", AsyncMock(side_effect=RuntimeError("boom")))
    with pytest.raises(StorageDownloadError) as exc_info:
        await facade.retrieve("memory://2024/01/01/abc_x.txt")
    assert exc_info.value.details["reason"] == "boom"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_close_closes_every_backend(make_settings, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    storage = StorageFacade.create(make_settings(storage_root=str(tmp_path)))
    await storage.initialize()
    await storage.exists("local://2024/01/01/abc_x.csv")
    closers = []
    for backend in list(storage._backends.values()):
        closer = AsyncMock()
        monkeypatch.setattr(backend, "close", closer)
        closers.append(closer)
    await storage.close()
    assert len(closers) == 2
    for closer in closers:
        closer.assert_awaited_once()
