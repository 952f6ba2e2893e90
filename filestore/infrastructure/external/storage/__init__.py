"""Storage: memory, local filesystem, SFTP and S3-compatible backends.

The Backend Selector picks the write backend from filestore.core.config and
falls back to memory when credentials are missing or activation fails. The
Facade is the entry point for callers. SFTP and S3 implementations are
imported lazily by the selector, so paramiko and boto3 load only when used.
"""

from filestore.infrastructure.external.storage.diagnostics import (
    StorageDiagnostics,
    StorageProbeResult,
    diagnose,
    probe,
)
from filestore.infrastructure.external.storage.facade import StorageFacade
from filestore.infrastructure.external.storage.memory_storage import (
    MemoryStorageBackend,
    MemoryStore,
)
from filestore.infrastructure.external.storage.protocol import StorageBackend
from filestore.infrastructure.external.storage.selector import (
    BackendSelection,
    BackendSelector,
    SelectionWarning,
    missing_credentials,
)

__all__ = [
    "BackendSelection",
    "BackendSelector",
    "MemoryStorageBackend",
    "MemoryStore",
    "SelectionWarning",
    "StorageBackend",
    "StorageDiagnostics",
    "StorageFacade",
    "StorageProbeResult",
    "diagnose",
    "missing_credentials",
    "probe",
]
