"""Storage configuration report and end-to-end round-trip probe."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from filestore.core.config import Settings
from filestore.domain.exceptions import FilestoreException
from filestore.infrastructure.external.storage.selector import BackendSelection, is_set
from filestore.shared.utils.datetime import utc_now

if TYPE_CHECKING:
    from filestore.infrastructure.external.storage.facade import StorageFacade

logger = logging.getLogger(__name__)

SET = "SET"
NOT_SET = "NOT SET"
SUCCESS = "SUCCESS"
FAILED = "FAILED"

CREDENTIAL_FIELDS = (
    "storage_root",
    "s3_endpoint",
    "s3_access_key",
    "s3_secret_key",
    "s3_bucket",
    "sftp_host",
    "sftp_username",
    "sftp_password",
    "sftp_private_key",
    "sftp_private_key_path",
)

PROBE_FILE_NAME = "storage-probe.txt"


@dataclass(frozen=True)
class StorageDiagnostics:
    requested_provider: str
    active_provider: str
    state: str
    fell_back: bool
    warnings: list[str] = field(default_factory=list)
    configuration: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class StorageProbeResult:
    status: str
    locator: str | None = None
    exists: bool = False
    content_match: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS


def diagnose(settings: Settings, selection: BackendSelection) -> StorageDiagnostics:
    """Summarize selection and which credentials are present. Values are never included."""
    configuration = {
        name: SET if is_set(getattr(settings, name)) else NOT_SET
        for name in CREDENTIAL_FIELDS
    }
    return StorageDiagnostics(
        requested_provider=selection.requested,
        active_provider=selection.active.provider.value,
        state=selection.state.value,
        fell_back=selection.fell_back,
        warnings=[w.message for w in selection.warnings],
        configuration=configuration,
    )


async def probe(facade: StorageFacade) -> StorageProbeResult:
    """Store, check, read back and delete a small file on the active backend.

    Storage errors are reported in the result, not raised.
    """
    payload = f"storage probe {utc_now().isoformat()}".encode()
    locator = None
    try:
        locator = await facade.store(PROBE_FILE_NAME, payload)
        found = await facade.exists(locator)
        content = await facade.retrieve(locator)
        await facade.delete(locator)
    except FilestoreException as e:
        logger.warning("Storage probe failed: %s", e.message)
        return StorageProbeResult(
            status=FAILED,
            locator=str(locator) if locator else None,
            error=e.message,
        )
    match = content == payload
    error = None
    if not found:
        error = "probe object not found"
    elif not match:
        error = "probe content mismatch"
    return StorageProbeResult(
        status=FAILED if error else SUCCESS,
        locator=str(locator),
        exists=found,
        content_match=match,
        error=error,
    )
