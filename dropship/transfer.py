"""AsyncSSH-based SFTP upload.

Service class pattern - connection parameters bound at construction,
one connection reused for every artifact of an invocation.
"""

from __future__ import annotations

import asyncio
import contextlib
import posixpath
from dataclasses import dataclass, field
from typing import Protocol

import asyncssh
from loguru import logger

from dropship.artifact import Artifact
from dropship.config import DeploymentConfig
from dropship.errors import TransferError

# Failures surfaced by asyncssh while connecting, authenticating or writing.
_TRANSPORT_ERRORS = (asyncssh.Error, asyncssh.KeyImportError, OSError)

_log = logger.bind(component="sftp")


class Transfer(Protocol):
    async def connect(self) -> None: ...

    async def upload(self, artifact: Artifact, remote_dir: str) -> str: ...

    async def close(self) -> None: ...


def remote_path_for(artifact: Artifact, remote_dir: str) -> str:
    """Normalized destination, e.g. ("./build", "app-1.tgz") -> "build/app-1.tgz"."""
    return posixpath.normpath(posixpath.join(remote_dir, artifact.path))


@dataclass
class SFTPTransfer:
    """Uploads artifacts over SFTP with public-key authentication.

    One connection serves every upload; concurrent first uploads share it.
    A connection that breaks mid-upload is dropped, so the next upload dials
    again.

    Example:
        >>> async with SFTPTransfer("10.0.0.1", "deployer", "~/.ssh/deploy") as t:
        ...     await t.upload(Artifact("app.tgz", data), "./releases")
        'releases/app.tgz'
    """

    host: str
    user: str
    key_path: str
    port: int = 22
    connect_timeout: float = 30.0

    _conn: asyncssh.SSHClientConnection | None = field(default=None, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def connect(self) -> None:
        """Open the SSH connection if not already open.

        Raises:
            TransferError: Refused connection, rejected key or unreadable key file.
        """
        await self._connection()

    async def _connection(self) -> asyncssh.SSHClientConnection:
        async with self._lock:
            if self._conn is not None:
                return self._conn

            _log.debug(
                "Connecting to {host}:{port} ({user})",
                host=self.host, port=self.port, user=self.user,
            )
            try:
                self._conn = await asyncssh.connect(
                    self.host,
                    port=self.port,
                    username=self.user,
                    client_keys=[self.key_path],
                    known_hosts=None,
                    connect_timeout=self.connect_timeout,
                )
            except _TRANSPORT_ERRORS as e:
                raise TransferError(self.host, _describe(e)) from e
            return self._conn

    def _discard(self, conn: asyncssh.SSHClientConnection) -> None:
        if self._conn is conn:
            _log.warning("Dropping broken connection to {host}", host=self.host)
            self._conn = None
        conn.close()

    async def close(self) -> None:
        async with self._lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(conn.wait_closed(), timeout=5.0)

    async def __aenter__(self) -> SFTPTransfer:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def upload(self, artifact: Artifact, remote_dir: str) -> str:
        """Write the artifact under remote_dir and return its remote path.

        Missing parent directories are created. Nothing is cleaned up if the
        write fails halfway.
        """
        conn = await self._connection()

        remote = remote_path_for(artifact, remote_dir)
        parent = posixpath.dirname(remote)
        try:
            async with conn.start_sftp_client() as sftp:
                if parent and parent != ".":
                    await sftp.makedirs(parent, exist_ok=True)
                async with sftp.open(remote, "wb") as f:
                    await f.write(artifact.content)
        except asyncssh.SFTPError as e:
            raise TransferError(self.host, _describe(e), remote_path=remote) from e
        except _TRANSPORT_ERRORS as e:
            # The session is unusable once the channel or socket fails.
            self._discard(conn)
            raise TransferError(self.host, _describe(e), remote_path=remote) from e

        _log.info(
            "Uploaded {remote} ({size} bytes) to {host}",
            remote=remote, size=len(artifact.content), host=self.host,
        )
        return remote


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


def transfer_for(config: DeploymentConfig) -> Transfer:
    return SFTPTransfer(
        host=config.host,
        user=config.user,
        key_path=config.key_path,
        port=config.sftp_port,
    )
