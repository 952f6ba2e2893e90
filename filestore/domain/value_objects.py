"""Domain value objects for the storage subsystem.

Value objects are immutable types that represent domain concepts with
self-validation. They have no identity, only value.
"""

from __future__ import annotations

from dataclasses import dataclass

from filestore.domain.enums import StorageProvider
from filestore.domain.exceptions import LocatorParseError

LOCATOR_SEPARATOR = "://"


def _validate_key(key: str, locator: str) -> None:
    """Reject keys that could escape a backend's root or are empty."""
    if not key:
        raise LocatorParseError(locator, "empty key")
    if key.startswith("/"):
        raise LocatorParseError(locator, "key must be relative")
    if "\x00" in key:
        raise LocatorParseError(locator, "key contains NUL byte")
    if any(part == ".." for part in key.split("/")):
        raise LocatorParseError(locator, "key contains '..' segment")


@dataclass(frozen=True)
class StorageLocator:
    """Self-describing reference to stored content: <provider-tag>://<key>.

    The provider tag alone decides which backend serves the locator; no
    configuration is consulted. Bucket names, hosts and root directories are
    never part of the locator.
    """

    provider: StorageProvider
    key: str

    def __post_init__(self) -> None:
        _validate_key(self.key, f"{self.provider.value}{LOCATOR_SEPARATOR}{self.key}")

    def __str__(self) -> str:
        return f"{self.provider.value}{LOCATOR_SEPARATOR}{self.key}"

    @classmethod
    def parse(cls, text: str) -> StorageLocator:
        """Parse a locator string.

        Raises:
            LocatorParseError: Empty text, missing separator, unknown tag or
                invalid key.
        """
        if not isinstance(text, str) or not text.strip():
            raise LocatorParseError(str(text), "empty locator")
        tag, sep, key = text.partition(LOCATOR_SEPARATOR)
        if not sep:
            raise LocatorParseError(text, "missing '://' separator")
        try:
            provider = StorageProvider.from_tag(tag)
        except ValueError as e:
            raise LocatorParseError(text, f"unknown provider tag {tag!r}") from e
        _validate_key(key, text)
        return cls(provider=provider, key=key)

    @classmethod
    def coerce(cls, value: StorageLocator | str) -> StorageLocator:
        """Return value as a StorageLocator, parsing strings."""
        if isinstance(value, StorageLocator):
            return value
        return cls.parse(value)


@dataclass(frozen=True)
class StoredObject:
    """Retrieved payload with its resolved content type and original name.

    Transient: lives only for the duration of the caller's data transfer.
    """

    content: bytes
    content_type: str
    file_name: str

    @property
    def size(self) -> int:
        return len(self.content)
