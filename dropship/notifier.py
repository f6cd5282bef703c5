"""One-time deployment notification.

The first artifact of an invocation triggers a GitHub deployment when a token
is configured; the returned id tags every artifact that follows. The record
lives with the stage, never at module level, so concurrent invocations do not
share a gate.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from dropship.artifact import Artifact
from dropship.config import DeploymentConfig
from dropship.github import DeploymentClient, DeploymentRequest
from dropship.manifest import resolve_repository

DEFAULT_DEPLOYMENT_ID = "deployment"

type ClientFactory = Callable[[DeploymentConfig], DeploymentClient]


@dataclass(slots=True)
class DeploymentRecord:
    """Deployment id shared by every artifact of one invocation.

    ``notified`` flips to True at most once, on the first successful call.
    """

    id: str = DEFAULT_DEPLOYMENT_ID
    notified: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)


class DeploymentNotifier:
    def __init__(
        self,
        config: DeploymentConfig,
        record: DeploymentRecord,
        client_factory: ClientFactory,
    ) -> None:
        self._config = config
        self._record = record
        self._client_factory = client_factory
        self._log = logger.bind(component="notifier")

    @property
    def record(self) -> DeploymentRecord:
        return self._record

    async def notify(self, artifact: Artifact) -> Artifact:
        """Announce the deployment once, then pass the artifact through.

        The check and the update run under the record's lock, so concurrent
        first artifacts issue a single API call. On failure the record is left
        untouched and the next artifact tries again.

        Raises:
            RepositoryNotFoundError: Manifest has no GitHub repository URL.
            RepositoryParseError: Owner or repository name missing from the URL.
            NotificationApiError: The deployments API call failed.
        """
        if self._record.notified or not self._config.notifies:
            return artifact

        async with self._record.lock:
            if self._record.notified:
                return artifact

            repository = await asyncio.to_thread(
                resolve_repository, self._config.manifest_path,
            )
            client = self._client_factory(self._config)
            try:
                deployment_id = await client.create_deployment(
                    repository, DeploymentRequest.from_config(self._config),
                )
            finally:
                await client.close()

            self._log.info(
                "Deployment {id} created for {repo}",
                id=deployment_id, repo=repository.slug,
            )
            self._record.id = deployment_id
            self._record.notified = True

        return artifact
