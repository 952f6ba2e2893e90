"""Domain exceptions for the filestore package.

Every error raised by the package derives from FilestoreException so callers
can handle them uniformly by message, error_code and details.
"""

from typing import Any


class FilestoreException(Exception):
    """Base exception for all filestore errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. provider, key, reason).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class LocatorParseError(FilestoreException):
    """Storage locator string is malformed.

    Locators are persisted verbatim by callers, so a malformed one points at
    corrupted reference data. Always fatal to the calling operation.
    """

    def __init__(self, locator: str, reason: str) -> None:
        super().__init__(
            f"Invalid storage locator: {locator!r} ({reason})",
            "STORAGE_LOCATOR_INVALID",
            {"locator": locator, "reason": reason},
        )
