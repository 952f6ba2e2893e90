"""Infrastructure exceptions for storage operations.

Callers see four kinds only: StorageConfigurationError, StorageNotFoundError,
StorageFailure (with the subclasses below) and LocatorParseError. Backend
library exceptions (botocore, paramiko, OSError) never escape a backend.
"""

from typing import Any

from filestore.domain.exceptions import FilestoreException, LocatorParseError


class StorageException(FilestoreException):
    """Base exception for storage operations."""


class StorageConfigurationError(StorageException):
    """Required credentials for a provider are missing or invalid."""

    def __init__(self, provider: str, missing_fields: list[str], reason: str | None = None) -> None:
        fields = ", ".join(missing_fields)
        message = f"Storage provider '{provider}' is not configured"
        if fields:
            message += f": missing {fields}"
        if reason:
            message += f" ({reason})"
        super().__init__(
            message,
            "STORAGE_CONFIGURATION_ERROR",
            {"provider": provider, "missing_fields": list(missing_fields), "reason": reason},
        )


class StorageNotFoundError(StorageException):
    """Key does not exist in the backend named by the locator."""

    def __init__(self, provider: str, key: str) -> None:
        super().__init__(
            f"File not found: {provider}://{key}",
            "STORAGE_NOT_FOUND",
            {"provider": provider, "key": key},
        )


class StorageFailure(StorageException):
    """I/O, network, permission or provisioning failure in a backend."""

    default_code = "STORAGE_FAILURE"
    action = "access"

    def __init__(
        self,
        provider: str,
        key: str | None,
        reason: str,
        extra: dict[str, Any] | None = None,
    ) -> None:
        target = f"{provider}://{key}" if key else provider
        details: dict[str, Any] = {"provider": provider, "key": key, "reason": reason}
        if extra:
            details.update(extra)
        super().__init__(
            f"Failed to {self.action} {target}: {reason}",
            self.default_code,
            details,
        )


class StorageUploadError(StorageFailure):
    """File upload failed."""

    default_code = "STORAGE_UPLOAD_ERROR"
    action = "upload"


class StorageDownloadError(StorageFailure):
    """File download failed."""

    default_code = "STORAGE_DOWNLOAD_ERROR"
    action = "download"


class StorageDeleteError(StorageFailure):
    """File deletion failed."""

    default_code = "STORAGE_DELETE_ERROR"
    action = "delete"


class StorageBootstrapError(StorageFailure):
    """Backend could not be activated (e.g. bucket check or creation failed)."""

    default_code = "STORAGE_BOOTSTRAP_ERROR"
    action = "activate"


class StorageConnectionError(StorageFailure):
    """Could not open a session with a remote backend.

    details["kind"] is "authentication", "timeout" or "network" so operators
    can tell rejected credentials from an unreachable host.
    """

    default_code = "STORAGE_CONNECTION_ERROR"
    action = "connect to"

    def __init__(self, provider: str, key: str | None, reason: str, kind: str) -> None:
        super().__init__(provider, key, reason, {"kind": kind})
        self.kind = kind


class StoragePermissionError(StorageFailure):
    """Insufficient permissions for storage operation."""

    default_code = "STORAGE_PERMISSION_ERROR"

    def __init__(self, provider: str, key: str | None, operation: str) -> None:
        self.action = operation
        super().__init__(provider, key, "permission denied", {"operation": operation})


class StorageQuotaExceededError(StorageFailure):
    """Payload exceeds the backend's size limit."""

    default_code = "STORAGE_QUOTA_EXCEEDED"
    action = "store"

    def __init__(self, provider: str, key: str | None, size: int, limit: int) -> None:
        super().__init__(
            provider,
            key,
            f"size {size} bytes exceeds limit of {limit} bytes",
            {"size": size, "limit": limit},
        )


__all__ = [
    "LocatorParseError",
    "StorageBootstrapError",
    "StorageConfigurationError",
    "StorageConnectionError",
    "StorageDeleteError",
    "StorageDownloadError",
    "StorageException",
    "StorageFailure",
    "StorageNotFoundError",
    "StoragePermissionError",
    "StorageQuotaExceededError",
    "StorageUploadError",
]
