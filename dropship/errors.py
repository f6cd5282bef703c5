"""Exceptions raised while deploying artifacts.

Only ConfigurationError escapes to the caller synchronously. Everything else
is raised at the point of failure and turned into a Failed outcome by the
stage, so a multi-artifact stream keeps going.
"""

from __future__ import annotations


class DeployError(Exception):
    """Base class for dropship errors."""


class ConfigurationError(DeployError):
    """Invocation options are missing or invalid."""


class RepositoryNotFoundError(DeployError):
    """The project manifest does not point at a GitHub repository."""


class RepositoryParseError(DeployError):
    """Owner or repository name could not be read from the repository URL."""


class NotificationApiError(DeployError):
    """The deployments API rejected the request or could not be reached."""

    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"GitHub deployment failed (HTTP {status}): {body}")


class TransferError(DeployError):
    """SFTP connection, authentication or write failed."""

    def __init__(self, host: str, error: str, remote_path: str | None = None) -> None:
        self.host = host
        self.error = error
        self.remote_path = remote_path
        target = f"{host}:{remote_path}" if remote_path else host
        super().__init__(f"Transfer to {target} failed: {error}")
