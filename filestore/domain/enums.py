"""Domain enumerations for the storage subsystem."""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class StorageProvider(_ValuesMixin, str, Enum):
    """Storage backend kind. The value doubles as the locator tag."""

    MEMORY = "memory"
    LOCAL = "local"
    SFTP = "sftp"
    MINIO = "minio"

    @classmethod
    def from_tag(cls, tag: str) -> "StorageProvider":
        """Parse a provider tag or configured name (case-insensitive).

        "s3" is accepted as an alias of "minio".

        Raises:
            ValueError: Unknown tag.
        """
        value = (tag or "").strip().lower()
        if value == "s3":
            return cls.MINIO
        return cls(value)


class SelectorState(_ValuesMixin, str, Enum):
    """Backend Selector lifecycle."""

    UNSELECTED = "unselected"
    VALIDATING = "validating"
    ACTIVE = "active"
    FALLBACK = "fallback"
