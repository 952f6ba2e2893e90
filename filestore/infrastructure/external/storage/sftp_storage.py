"""SFTP storage over paramiko, one SSH session per operation."""

from __future__ import annotations

import asyncio
import contextlib
import io
import logging
import posixpath
from collections.abc import Callable, Iterator
from typing import Any

import paramiko

from filestore.domain.enums import StorageProvider
from filestore.domain.value_objects import StorageLocator
from filestore.infrastructure.exceptions import (
    StorageBootstrapError,
    StorageConfigurationError,
    StorageConnectionError,
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

_KEY_TYPES: tuple[type[paramiko.PKey], ...] = (
    paramiko.RSAKey,
    paramiko.ECDSAKey,
    paramiko.Ed25519Key,
)


def load_private_key(content: str) -> paramiko.PKey:
    """Parse private key text (RSA, ECDSA or Ed25519).

    Raises:
        StorageConfigurationError: Key text is not a supported private key.
    """
    for key_type in _KEY_TYPES:
        try:
            return key_type.from_private_key(io.StringIO(content))
        except (paramiko.SSHException, ValueError):
            continue
    raise StorageConfigurationError(
        StorageProvider.SFTP.value, [], "private key could not be parsed"
    )


class SftpStorageBackend:
    """SFTP storage under a remote base path.

    No connection pool: each operation opens an SSH session, does its work
    and closes it. Blocking paramiko calls run in a worker thread.
    """

    provider = StorageProvider.SFTP

    def __init__(
        self,
        host: str,
        username: str,
        password: str | None = None,
        private_key: str | None = None,
        private_key_path: str | None = None,
        port: int = 22,
        base_path: str = "/uploads",
        timeout: float = 30.0,
        verify_on_startup: bool = False,
        key_factory: Callable[[str], str] = generate_storage_key,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
    ) -> None:
        """Initialize SFTP storage.

        Args:
            host: SFTP server host name.
            username: Login user.
            password: Password; used when no private key is given.
            private_key: Private key content (PEM/OpenSSH text).
            private_key_path: Path to a private key file.
            port: SSH port.
            base_path: Remote directory under which keys are stored.
            timeout: Connect, banner and auth timeout in seconds.
            verify_on_startup: Open one session during activate().
            key_factory: Builds a storage key from an original file name.
            client_factory: Creates the SSH client (injectable for tests).

        Raises:
            StorageConfigurationError: No credential given or key unparsable.
        """
        if not (password or private_key or private_key_path):
            raise StorageConfigurationError(self.provider.value, ["sftp_credential"])
        self.host = host
        self.port = port
        self.username = username
        self.base_path = base_path.rstrip("/")
        self.timeout = timeout
        self.verify_on_startup = verify_on_startup
        self._password = password
        self._pkey = load_private_key(private_key) if private_key else None
        self._key_filename = private_key_path if not private_key else None
        self._key_factory = key_factory
        self._client_factory = client_factory

    def _remote_path(self, key: str) -> str:
        return f"{self.base_path}/{key}"

    def _connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "hostname": self.host,
            "port": self.port,
            "username": self.username,
            "timeout": self.timeout,
            "banner_timeout": self.timeout,
            "auth_timeout": self.timeout,
            "look_for_keys": False,
            "allow_agent": False,
        }
        if self._pkey is not None:
            kwargs["pkey"] = self._pkey
        elif self._key_filename:
            kwargs["key_filename"] = self._key_filename
        else:
            kwargs["password"] = self._password
        return kwargs

    @contextlib.contextmanager
    def _session(self, key: str | None) -> Iterator[paramiko.SFTPClient]:
        """Open SSH + SFTP; always closes both. Connection errors become StorageConnectionError."""
        ssh = self._client_factory()
        ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            try:
                ssh.connect(**self._connect_kwargs())
            except paramiko.AuthenticationException as e:
                raise StorageConnectionError(
                    self.provider.value, key, f"authentication rejected by {self.host}", "authentication"
                ) from e
            except TimeoutError as e:
                raise StorageConnectionError(
                    self.provider.value, key, f"timed out connecting to {self.host}:{self.port}", "timeout"
                ) from e
            except (paramiko.SSHException, OSError) as e:
                raise StorageConnectionError(
                    self.provider.value, key, f"cannot reach {self.host}:{self.port}: {e}", "network"
                ) from e
            sftp = ssh.open_sftp()
            try:
                yield sftp
            finally:
                sftp.close()
        finally:
            ssh.close()

    @staticmethod
    def _makedirs(sftp: paramiko.SFTPClient, remote_dir: str) -> None:
        """Create remote_dir one segment at a time; tolerate a concurrent creator."""
        current = "/" if remote_dir.startswith("/") else ""
        for part in remote_dir.split("/"):
            if not part:
                continue
            current = posixpath.join(current, part) if current else part
            try:
                sftp.stat(current)
            except FileNotFoundError:
                try:
                    sftp.mkdir(current)
                except OSError:
                    sftp.stat(current)

    def _translate(
        self,
        error: Exception,
        key: str,
        failure: type[StorageFailure],
        operation: str,
    ) -> StorageFailure:
        if isinstance(error, PermissionError):
            return StoragePermissionError(self.provider.value, key, operation)
        return failure(self.provider.value, key, str(error))

    async def activate(self) -> None:
        """Check connectivity once when verify_on_startup is set."""
        if self.verify_on_startup:
            def _probe() -> None:
                with self._session(None) as sftp:
                    sftp.normalize(".")

            try:
                await asyncio.to_thread(_probe)
            except StorageConnectionError:
                raise
            except (paramiko.SSHException, OSError) as e:
                raise StorageBootstrapError(self.provider.value, None, str(e)) from e
        logger.info(
            "SFTP storage ready: %s@%s:%d%s", self.username, self.host, self.port, self.base_path
        )

    async def store(self, file_name: str, content: bytes) -> StorageLocator:
        key = self._key_factory(file_name)
        remote_path = self._remote_path(key)

        def _upload() -> None:
            with self._session(key) as sftp:
                remote_dir = posixpath.dirname(remote_path)
                self._makedirs(sftp, remote_dir)
                temp_path = posixpath.join(remote_dir, f".tmp_{posixpath.basename(remote_path)}")
                try:
                    sftp.putfo(io.BytesIO(content), temp_path, file_size=len(content), confirm=True)
                    sftp.rename(temp_path, remote_path)
                except (paramiko.SSHException, OSError):
                    with contextlib.suppress(paramiko.SSHException, OSError):
                        sftp.remove(temp_path)
                    raise

        try:
            await asyncio.to_thread(_upload)
        except StorageFailure as e:
            logger.error("Error uploading file to SFTP %s: %s", remote_path, e.message)
            raise
        except (paramiko.SSHException, OSError) as e:
            logger.error("Error uploading file to SFTP %s: %s", remote_path, e)
            raise self._translate(e, key, StorageUploadError, "upload") from e

        locator = StorageLocator(self.provider, key)
        logger.info("File uploaded to SFTP: %s (%d bytes)", locator, len(content))
        return locator

    async def retrieve(self, locator: StorageLocator | str) -> bytes:
        parsed = require_locator(locator, self.provider)
        remote_path = self._remote_path(parsed.key)

        def _download() -> bytes:
            buffer = io.BytesIO()
            with self._session(parsed.key) as sftp:
                sftp.getfo(remote_path, buffer)
            return buffer.getvalue()

        try:
            return await asyncio.to_thread(_download)
        except FileNotFoundError as e:
            raise StorageNotFoundError(self.provider.value, parsed.key) from e
        except StorageFailure as e:
            logger.error("Error downloading file from SFTP %s: %s", remote_path, e.message)
            raise
        except (paramiko.SSHException, OSError) as e:
            logger.error("Error downloading file from SFTP %s: %s", remote_path, e)
            raise self._translate(e, parsed.key, StorageDownloadError, "download") from e

    async def delete(self, locator: StorageLocator | str) -> None:
        parsed = require_locator(locator, self.provider)
        remote_path = self._remote_path(parsed.key)

        def _remove() -> bool:
            with self._session(parsed.key) as sftp:
                try:
                    sftp.remove(remote_path)
                except FileNotFoundError:
                    return False
            return True

        try:
            removed = await asyncio.to_thread(_remove)
        except StorageFailure as e:
            logger.error("Error deleting file from SFTP %s: %s", remote_path, e.message)
            raise
        except (paramiko.SSHException, OSError) as e:
            logger.error("Error deleting file from SFTP %s: %s", remote_path, e)
            raise self._translate(e, parsed.key, StorageDeleteError, "delete") from e
        if removed:
            logger.info("File deleted from SFTP: %s", parsed)

    async def exists(self, locator: StorageLocator | str) -> bool:
        parsed = require_locator(locator, self.provider)
        remote_path = self._remote_path(parsed.key)

        def _stat() -> bool:
            with self._session(parsed.key) as sftp:
                try:
                    sftp.stat(remote_path)
                except FileNotFoundError:
                    return False
            return True

        try:
            return await asyncio.to_thread(_stat)
        except StorageFailure:
            raise
        except (paramiko.SSHException, OSError) as e:
            raise self._translate(e, parsed.key, StorageDownloadError, "stat") from e

    async def close(self) -> None:
        """Sessions are per operation; nothing to release."""
