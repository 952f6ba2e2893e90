"""Local filesystem storage with path validation and durable atomic writes."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path

import aiofiles
import aiofiles.os

from filestore.domain.enums import StorageProvider
from filestore.domain.value_objects import StorageLocator
from filestore.infrastructure.exceptions import (
    StorageBootstrapError,
    StorageDeleteError,
    StorageDownloadError,
    StorageFailure,
    StorageNotFoundError,
    StoragePermissionError,
    StorageUploadError,
)
from filestore.infrastructure.external.storage.protocol import require_locator
from filestore.shared.utils.keys import generate_storage_key

logger = logging.getLogger(__name__)

# A key naming a directory, or a path through a file, is an absent object.
_ABSENT_ERRORS = (FileNotFoundError, IsADirectoryError, NotADirectoryError)


def _fsync_directory(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class LocalStorageBackend:
    """Local filesystem storage under a configured root directory.

    Keys map to paths under storage_root; date-partition directories are
    created on demand. Writes go to a temp file in the target directory,
    are flushed and fsynced, then renamed into place, so a returned locator
    always names a complete file on disk.
    """

    provider = StorageProvider.LOCAL

    def __init__(
        self,
        storage_root: str,
        key_factory: Callable[[str], str] = generate_storage_key,
    ) -> None:
        """Initialize local storage.

        The root directory is created lazily, on activation or first store.

        Args:
            storage_root: Base directory for all files.
            key_factory: Builds a storage key from an original file name.
        """
        self.storage_root = Path(storage_root).expanduser().resolve()
        self._key_factory = key_factory

    def _get_full_path(self, key: str) -> Path:
        """Resolve and validate path under storage_root. Raises StoragePermissionError if traversal."""
        full_path = (self.storage_root / key).resolve()
        try:
            full_path.relative_to(self.storage_root)
        except ValueError as e:
            raise StoragePermissionError(self.provider.value, key, "path_validation") from e
        return full_path

    def _ensure_root(self) -> None:
        self.storage_root.mkdir(parents=True, exist_ok=True, mode=0o750)

    def _translate(
        self,
        error: OSError,
        key: str | None,
        failure: type[StorageFailure],
        operation: str,
    ) -> StorageFailure:
        if isinstance(error, PermissionError):
            return StoragePermissionError(self.provider.value, key, operation)
        return failure(self.provider.value, key, str(error))

    async def activate(self) -> None:
        """Create the root directory if it does not exist yet."""
        try:
            self._ensure_root()
        except OSError as e:
            raise StorageBootstrapError(self.provider.value, None, str(e)) from e
        logger.info("Local storage ready at %s", self.storage_root)

    async def store(self, file_name: str, content: bytes) -> StorageLocator:
        key = self._key_factory(file_name)
        target_path = self._get_full_path(key)
        temp_path: str | None = None
        try:
            self._ensure_root()
            target_path.parent.mkdir(parents=True, exist_ok=True, mode=0o750)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=target_path.parent,
                prefix=".tmp_",
                suffix=target_path.suffix,
            )
            os.close(temp_fd)
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(content)
                await f.flush()
                await asyncio.to_thread(os.fsync, f.fileno())
            os.chmod(temp_path, 0o640)
            os.replace(temp_path, target_path)
            temp_path = None
            await asyncio.to_thread(_fsync_directory, target_path.parent)
        except OSError as e:
            logger.error("Failed to save local file %s: %s", key, e)
            raise self._translate(e, key, StorageUploadError, "upload") from e
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)

        locator = StorageLocator(self.provider, key)
        logger.info("File saved locally: %s (%d bytes)", locator, len(content))
        return locator

    async def retrieve(self, locator: StorageLocator | str) -> bytes:
        parsed = require_locator(locator, self.provider)
        file_path = self._get_full_path(parsed.key)
        try:
            async with aiofiles.open(file_path, "rb") as f:
                return await f.read()
        except _ABSENT_ERRORS as e:
            raise StorageNotFoundError(self.provider.value, parsed.key) from e
        except OSError as e:
            logger.error("Failed to read local file %s: %s", parsed.key, e)
            raise self._translate(e, parsed.key, StorageDownloadError, "download") from e

    async def delete(self, locator: StorageLocator | str) -> None:
        """Delete file if present and prune empty date directories."""
        parsed = require_locator(locator, self.provider)
        file_path = self._get_full_path(parsed.key)
        if file_path.is_dir():
            logger.debug("Delete of directory key ignored: %s", parsed)
            return
        try:
            await aiofiles.os.remove(file_path)
        except _ABSENT_ERRORS:
            logger.debug("Delete of absent local file ignored: %s", parsed)
            return
        except OSError as e:
            logger.error("Failed to delete local file %s: %s", parsed.key, e)
            raise self._translate(e, parsed.key, StorageDeleteError, "delete") from e

        parent = file_path.parent
        while parent != self.storage_root:
            try:
                if any(parent.iterdir()):
                    break
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent
        logger.info("File deleted locally: %s", parsed)

    async def exists(self, locator: StorageLocator | str) -> bool:
        parsed = require_locator(locator, self.provider)
        return self._get_full_path(parsed.key).is_file()

    async def close(self) -> None:
        """Nothing to release."""
