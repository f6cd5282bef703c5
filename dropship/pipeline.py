"""The deploy stage: notify -> tag -> upload, one outcome per artifact.

Example:

    from dropship import Artifact, Deployed, Failed, deploy

    stage = deploy({
        "host": "10.0.0.1",
        "user": "deployer",
        "remotePath": "./build",
        "key": "~/.ssh/deploy",
        "githubToken": "ghp_...",
    })

    async for outcome in stage.run([Artifact("app.tar.gz", data)]):
        match outcome:
            case Deployed(remote_path=path):
                print(f"uploaded {path}")
            case Failed(error=err):
                print(f"failed: {err}")
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger

from dropship.artifact import Artifact
from dropship.config import DeploymentConfig, resolve_config
from dropship.errors import DeployError
from dropship.github import github_client_for
from dropship.notifier import ClientFactory, DeploymentNotifier, DeploymentRecord
from dropship.rename import tag_artifact
from dropship.transfer import Transfer, transfer_for

type TransferFactory = Callable[[DeploymentConfig], Transfer]


# =============================================================================
# Outcomes
# =============================================================================


@dataclass(frozen=True, slots=True)
class Deployed:
    """Artifact uploaded.

    ``source`` is the artifact as received, ``artifact`` the tagged copy that
    was written to ``remote_path``.
    """

    artifact: Artifact
    source: Artifact
    remote_path: str
    deployment_id: str


@dataclass(frozen=True, slots=True)
class Failed:
    """Artifact not uploaded; ``error`` says which step stopped it."""

    artifact: Artifact
    error: DeployError


type Outcome = Deployed | Failed


# =============================================================================
# Stage
# =============================================================================


class DeployStage:
    """Sequential deploy stage for one invocation.

    Owns the invocation's DeploymentRecord and a lazily opened transfer
    connection. Errors after construction never raise; they come back as
    Failed outcomes.
    """

    def __init__(
        self,
        config: DeploymentConfig,
        *,
        transfer_factory: TransferFactory = transfer_for,
        client_factory: ClientFactory = github_client_for,
    ) -> None:
        self.config = config
        self.record = DeploymentRecord()
        self._notifier = DeploymentNotifier(config, self.record, client_factory)
        self._transfer_factory = transfer_factory
        self._transfer: Transfer | None = None
        self._log = logger.bind(component="stage")

    def _get_transfer(self) -> Transfer:
        if self._transfer is None:
            self._transfer = self._transfer_factory(self.config)
        return self._transfer

    async def process(self, artifact: Artifact) -> Outcome:
        try:
            source = await self._notifier.notify(artifact)
            tagged = tag_artifact(source, self.record.id)
            remote = await self._get_transfer().upload(tagged, self.config.remote_path)
        except DeployError as e:
            self._log.warning(
                "{path}: {kind}: {error}",
                path=artifact.path, kind=type(e).__name__, error=e,
            )
            return Failed(artifact=artifact, error=e)
        return Deployed(
            artifact=tagged,
            source=source,
            remote_path=remote,
            deployment_id=self.record.id,
        )

    async def run(
        self, artifacts: Iterable[Artifact] | AsyncIterable[Artifact]
    ) -> AsyncIterator[Outcome]:
        """Process artifacts in order, closing the connection when done."""
        try:
            if isinstance(artifacts, AsyncIterable):
                async for artifact in artifacts:
                    yield await self.process(artifact)
            else:
                for artifact in artifacts:
                    yield await self.process(artifact)
        finally:
            await self.close()

    async def close(self) -> None:
        if self._transfer is not None:
            await self._transfer.close()
            self._transfer = None

    async def __aenter__(self) -> DeployStage:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()


def deploy(
    options: Mapping[str, Any] | DeploymentConfig | None,
    *,
    transfer_factory: TransferFactory = transfer_for,
    client_factory: ClientFactory = github_client_for,
) -> DeployStage:
    """Build a deploy stage, validating options up front.

    Raises:
        ConfigurationError: Before any artifact is processed, if a mandatory
            option is missing or invalid.
    """
    config = options if isinstance(options, DeploymentConfig) else resolve_config(options)
    return DeployStage(
        config, transfer_factory=transfer_factory, client_factory=client_factory,
    )
