"""Tests for the local filesystem storage backend."""

import errno
import os
from pathlib import Path

import pytest

from filestore.domain.exceptions import LocatorParseError
from filestore.domain.value_objects import StorageLocator
from filestore.domain.enums import StorageProvider
from filestore.infrastructure.exceptions import (
    StorageBootstrapError,
    StorageNotFoundError,
    StoragePermissionError,
    StorageUploadError,
)
from filestore.infrastructure.external.storage import local_storage
from filestore.infrastructure.external.storage.local_storage import LocalStorageBackend
from filestore.shared.utils.content_types import resolve_content_type
from filestore.shared.utils.keys import original_name_from_key


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def backend(root: Path) -> LocalStorageBackend:
    return LocalStorageBackend(str(root))


@pytest.mark.asyncio
async def test_root_created_lazily(backend: LocalStorageBackend, root: Path) -> None:
    assert not root.exists()
    await backend.activate()
    assert root.is_dir()


@pytest.mark.asyncio
async def test_store_writes_under_date_directories(backend: LocalStorageBackend, root: Path) -> None:
    locator = await backend.store("report.csv", b"a,b\n")
    assert locator.provider is StorageProvider.LOCAL
    path = root / locator.key
    assert path.read_bytes() == b"a,b\n"
    assert len(Path(locator.key).parts) == 4
    assert await backend.retrieve(locator) == b"a,b\n"


@pytest.mark.asyncio
async def test_no_temp_files_left(backend: LocalStorageBackend, root: Path) -> None:
    locator = await backend.store("report.csv", b"data")
    leftovers = [p for p in (root / locator.key).parent.iterdir() if p.name.startswith(".tmp_")]
    assert leftovers == []


@pytest.mark.asyncio
async def test_exists_and_delete(backend: LocalStorageBackend, root: Path) -> None:
    locator = await backend.store("x.txt", b"x")
    assert await backend.exists(locator)
    await backend.delete(locator)
    assert not await backend.exists(locator)
    with pytest.raises(StorageNotFoundError):
        await backend.retrieve(locator)
    # Empty date directories are pruned; the root stays.
    assert root.is_dir()
    assert list(root.iterdir()) == []


@pytest.mark.asyncio
async def test_delete_is_idempotent(backend: LocalStorageBackend) -> None:
    locator = await backend.store("x.txt", b"x")
    await backend.delete(locator)
    await backend.delete(locator)


@pytest.mark.asyncio
async def test_delete_keeps_sibling_files(backend: LocalStorageBackend, root: Path) -> None:
    first = await backend.store("a.txt", b"a")
    second = await backend.store("b.txt", b"b")
    await backend.delete(first)
    assert (root / second.key).is_file()


@pytest.mark.asyncio
async def test_path_traversal_rejected(backend: LocalStorageBackend, root: Path) -> None:
    root.mkdir(parents=True)
    (root / "link").symlink_to(root.parent)
    with pytest.raises(StoragePermissionError):
        await backend.retrieve(StorageLocator(StorageProvider.LOCAL, "link/outside.txt"))


@pytest.mark.asyncio
async def test_dotdot_locator_rejected_before_io(backend: LocalStorageBackend) -> None:
    with pytest.raises(LocatorParseError):
        await backend.retrieve("local://2024/../../etc/passwd")


@pytest.mark.asyncio
async def test_bootstrap_error_when_root_unusable(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    backend = LocalStorageBackend(str(blocker / "uploads"))
    with pytest.raises(StorageBootstrapError):
        await backend.activate()


@pytest.mark.asyncio
async def test_stored_file_permissions(backend: LocalStorageBackend, root: Path) -> None:
    locator = await backend.store("x.txt", b"x")
    mode = os.stat(root / locator.key).st_mode & 0o777
    assert mode == 0o640


def fixed_key(file_name: str) -> str:
    return f"2024/01/02/fixed_{file_name}"


@pytest.fixture
def fixed_backend(root: Path) -> LocalStorageBackend:
    return LocalStorageBackend(str(root), key_factory=fixed_key)


@pytest.mark.asyncio
async def test_directory_key_is_absent(fixed_backend: LocalStorageBackend, root: Path) -> None:
    stored = await fixed_backend.store("a.csv", b"a")
    for locator in ("local://2024/01/02", "local://2024/01/02/fixed_a.csv/inner"):
        assert not await fixed_backend.exists(locator)
        with pytest.raises(StorageNotFoundError):
            await fixed_backend.retrieve(locator)
        await fixed_backend.delete(locator)
    assert await fixed_backend.retrieve(stored) == b"a"


@pytest.mark.asyncio
async def test_long_file_name_round_trip(backend: LocalStorageBackend, root: Path) -> None:
    name = "a" * 240 + ".csv"
    locator = await backend.store(name, b"long")
    leaf = Path(locator.key).name
    assert len(leaf.encode("utf-8")) <= 255
    assert original_name_from_key(locator.key).endswith(".csv")
    assert resolve_content_type(original_name_from_key(locator.key)) == "text/csv"
    assert await backend.retrieve(locator) == b"long"


@pytest.mark.asyncio
async def test_disk_full_during_write(
    fixed_backend: LocalStorageBackend, root: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def no_space(src, dst):
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(local_storage.os, "replace", no_space)
    with pytest.raises(StorageUploadError) as exc_info:
        await fixed_backend.store("a.csv", b"data")
    assert "No space left" in exc_info.value.details["reason"]
    assert list((root / "2024/01/02").iterdir()) == []


@pytest.mark.asyncio
async def test_permission_denied_during_write(
    fixed_backend: LocalStorageBackend, root: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def denied(fd):
        raise PermissionError(errno.EACCES, "Permission denied")

    monkeypatch.setattr(local_storage.os, "fsync", denied)
    with pytest.raises(StoragePermissionError):
        await fixed_backend.store("a.csv", b"data")
    assert list((root / "2024/01/02").iterdir()) == []


@pytest.mark.asyncio
async def test_parent_directory_synced_after_rename(
    fixed_backend: LocalStorageBackend, root: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    synced: list[Path] = []
    original = local_storage._fsync_directory

    def record(path: Path) -> None:
        synced.append(path)
        original(path)

    monkeypatch.setattr(local_storage, "_fsync_directory", record)
    locator = await fixed_backend.store("a.csv", b"data")
    assert synced == [(root / locator.key).resolve().parent]
