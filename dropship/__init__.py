"""dropship - Upload build artifacts over SFTP and record GitHub deployments.

Example:

    from dropship import Artifact, deploy

    stage = deploy({
        "host": "10.0.0.1",
        "user": "deployer",
        "remotePath": "./build",
        "key": "~/.ssh/deploy",
    })

    async for outcome in stage.run([Artifact("package.tar.gz", data)]):
        print(outcome)
"""

from dropship import logging  # noqa: F401  (disables library logging by default)
from dropship.artifact import Artifact, collect
from dropship.config import DeploymentConfig, load_config, resolve_config, resolve_target
from dropship.errors import (
    ConfigurationError,
    DeployError,
    NotificationApiError,
    RepositoryNotFoundError,
    RepositoryParseError,
    TransferError,
)
from dropship.github import DeploymentRequest, GitHubDeployments
from dropship.manifest import Repository, parse_repository, resolve_repository
from dropship.notifier import DeploymentNotifier, DeploymentRecord
from dropship.pipeline import Deployed, DeployStage, Failed, Outcome, deploy
from dropship.rename import tag_artifact, tag_filename
from dropship.transfer import SFTPTransfer

__all__ = [
    # Entry point
    "deploy",
    "DeployStage",
    "Deployed",
    "Failed",
    "Outcome",
    # Data
    "Artifact",
    "collect",
    "DeploymentConfig",
    "DeploymentRecord",
    "Repository",
    "DeploymentRequest",
    # Configuration
    "load_config",
    "resolve_config",
    "resolve_target",
    # Steps
    "DeploymentNotifier",
    "GitHubDeployments",
    "SFTPTransfer",
    "parse_repository",
    "resolve_repository",
    "tag_artifact",
    "tag_filename",
    # Errors
    "DeployError",
    "ConfigurationError",
    "RepositoryNotFoundError",
    "RepositoryParseError",
    "NotificationApiError",
    "TransferError",
]
