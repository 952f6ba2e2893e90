"""Storage backend protocol (DIP). Implementations: memory, local, SFTP, S3-compatible."""

from typing import Protocol

from filestore.domain.enums import StorageProvider
from filestore.domain.exceptions import LocatorParseError
from filestore.domain.value_objects import StorageLocator


class StorageBackend(Protocol):
    """Capability contract shared by every storage backend.

    The Selector and Facade depend only on this protocol. Locators passed in
    may be strings or parsed StorageLocator instances.
    """

    provider: StorageProvider

    async def activate(self) -> None:
        """One-time readiness work (bucket bootstrap, root creation, probe)."""
        ...

    async def store(self, file_name: str, content: bytes) -> StorageLocator:
        """Persist content under a new key. Raises StorageFailure; no locator on failure."""
        ...

    async def retrieve(self, locator: StorageLocator | str) -> bytes:
        """Return full content. Raises StorageNotFoundError or StorageFailure."""
        ...

    async def delete(self, locator: StorageLocator | str) -> None:
        """Delete content. Idempotent: a missing key is not an error."""
        ...

    async def exists(self, locator: StorageLocator | str) -> bool:
        """Return True if content exists. Raises only on transport failures."""
        ...

    async def close(self) -> None:
        """Release clients held by the backend."""
        ...


def require_locator(locator: StorageLocator | str, provider: StorageProvider) -> StorageLocator:
    """Parse locator and check it belongs to provider.

    Raises:
        LocatorParseError: Malformed locator or one tagged for another backend.
    """
    parsed = StorageLocator.coerce(locator)
    if parsed.provider is not provider:
        raise LocatorParseError(
            str(parsed),
            f"locator belongs to '{parsed.provider.value}', not '{provider.value}'",
        )
    return parsed
