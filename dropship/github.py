"""GitHub deployments API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from dropship.config import DeploymentConfig
from dropship.errors import NotificationApiError
from dropship.http import HttpClient, HttpError, TokenAuth
from dropship.manifest import Repository

GITHUB_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
    "User-Agent": "dropship",
}


@dataclass(frozen=True, slots=True)
class DeploymentRequest:
    ref: str
    environment: str
    description: str = ""

    def payload(self) -> dict[str, Any]:
        return {
            "task": "deploy",
            "auto_merge": False,
            "required_contexts": [],
            "ref": self.ref,
            "environment": self.environment,
            "description": self.description,
        }

    @classmethod
    def from_config(cls, config: DeploymentConfig) -> DeploymentRequest:
        return cls(
            ref=config.revision,
            environment=config.environment,
            description=config.description,
        )


class DeploymentClient(Protocol):
    async def create_deployment(
        self, repository: Repository, request: DeploymentRequest
    ) -> str: ...

    async def close(self) -> None: ...


class GitHubDeployments:
    """Creates deployments through the GitHub REST API.

    Example:
        >>> gh = GitHubDeployments(token="ghp_...")
        >>> deployment_id = await gh.create_deployment(
        ...     Repository("octo", "app"), DeploymentRequest("main", "production"),
        ... )
        >>> await gh.close()
    """

    def __init__(self, token: str, api_url: str = "https://api.github.com") -> None:
        self._http = HttpClient(
            api_url, TokenAuth(token), default_headers=GITHUB_HEADERS,
        )
        self._log = logger.bind(component="github")

    async def create_deployment(
        self, repository: Repository, request: DeploymentRequest
    ) -> str:
        """Create a deployment and return its id.

        Raises:
            NotificationApiError: On transport errors, non-2xx responses, a
                non-object body, or a response without an ``id``.
        """
        self._log.debug(
            "Creating deployment for {repo} ref={ref} env={env}",
            repo=repository.slug, ref=request.ref, env=request.environment,
        )
        try:
            resp = await self._http.post(
                f"/repos/{repository.owner}/{repository.name}/deployments",
                json=request.payload(),
                response_type=dict,
            )
        except HttpError as e:
            raise NotificationApiError(status=e.status, body=e.body) from e

        data = resp.data or {}
        if data.get("id") is None:
            message = data.get("message", "")
            raise NotificationApiError(
                status=resp.status,
                body=message or "response did not include a deployment id",
            )
        return str(data["id"])

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> GitHubDeployments:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()


def github_client_for(config: DeploymentConfig) -> DeploymentClient:
    if not config.github_token:
        raise ValueError("github_client_for requires a configured token")
    return GitHubDeployments(config.github_token, config.github_api_url)
