from __future__ import annotations

import asyncio
import json
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import asyncssh
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from dropship.artifact import Artifact
from dropship.config import DeploymentConfig
from dropship.errors import NotificationApiError, TransferError
from dropship.github import DeploymentRequest
from dropship.manifest import Repository
from dropship.transfer import remote_path_for

# ─── Keys & manifests ────────────────────────────────────────────────


@pytest.fixture
def deploy_key(tmp_path: Path) -> Path:
    key = asyncssh.generate_private_key("ssh-ed25519")
    path = tmp_path / "deploy_ed25519"
    key.write_private_key(str(path))
    key.write_public_key(f"{path}.pub")
    return path


def write_manifest(directory: Path, url: str | None, name: str = "package.json") -> Path:
    manifest: dict[str, Any] = {"name": "fixture", "version": "1.0.0"}
    if url is not None:
        manifest["repository"] = {"type": "git", "url": url}
    path = directory / name
    path.write_text(json.dumps(manifest))
    return path


@pytest.fixture
def github_manifest(tmp_path: Path) -> Path:
    return write_manifest(tmp_path, "git@github.com:testuser/testrepo.git")


def make_config(**overrides: Any) -> DeploymentConfig:
    values: dict[str, Any] = {
        "host": "127.0.0.1",
        "user": "deployer",
        "remote_path": "./build",
        "key_path": "/nonexistent/deploy_rsa",
        "manifest_path": "/nonexistent/package.json",
    }
    values.update(overrides)
    return DeploymentConfig(**values)


# ─── In-memory collaborators ─────────────────────────────────────────


@dataclass
class FakeTransfer:
    uploads: dict[str, bytes] = field(default_factory=dict)
    fail_on: set[str] = field(default_factory=set)
    connects: int = 0
    closes: int = 0

    async def connect(self) -> None:
        self.connects += 1

    async def upload(self, artifact: Artifact, remote_dir: str) -> str:
        remote = remote_path_for(artifact, remote_dir)
        if artifact.name in self.fail_on:
            raise TransferError("fake", "write failed", remote_path=remote)
        self.uploads[remote] = artifact.content
        return remote

    async def close(self) -> None:
        self.closes += 1


@dataclass
class FakeDeployments:
    """Deployment client returning ids in order; exceptions in ``ids`` are raised."""

    ids: list[str | Exception] = field(default_factory=lambda: ["1234"])
    calls: list[tuple[Repository, DeploymentRequest]] = field(default_factory=list)
    closed: int = 0
    delay: float = 0.0

    async def create_deployment(
        self, repository: Repository, request: DeploymentRequest
    ) -> str:
        self.calls.append((repository, request))
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.ids[min(len(self.calls), len(self.ids)) - 1]
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed += 1


@pytest.fixture
def fake_transfer() -> FakeTransfer:
    return FakeTransfer()


@pytest.fixture
def fake_deployments() -> FakeDeployments:
    return FakeDeployments()


def api_error(status: int = 401) -> NotificationApiError:
    return NotificationApiError(status=status, body="Bad credentials")


# ─── Fake GitHub API ─────────────────────────────────────────────────


@dataclass
class GitHubStub:
    status: int = 201
    body: dict[str, Any] = field(default_factory=lambda: {"id": 1234})
    requests: list[dict[str, Any]] = field(default_factory=list)


def make_github_app(stub: GitHubStub) -> web.Application:
    app = web.Application()

    async def create_deployment(request: web.Request) -> web.Response:
        stub.requests.append({
            "owner": request.match_info["owner"],
            "repo": request.match_info["repo"],
            "authorization": request.headers.get("Authorization", ""),
            "json": await request.json(),
        })
        return web.json_response(stub.body, status=stub.status)

    app.router.add_post("/repos/{owner}/{repo}/deployments", create_deployment)
    return app


@pytest.fixture
def github_stub() -> GitHubStub:
    return GitHubStub()


@pytest.fixture
async def github_api(github_stub: GitHubStub) -> AsyncIterator[str]:
    srv = TestServer(make_github_app(github_stub))
    await srv.start_server()
    yield f"http://{srv.host}:{srv.port}"
    await srv.close()


# ─── In-process SFTP server ──────────────────────────────────────────


@dataclass(frozen=True)
class SFTPServerInfo:
    host: str
    port: int
    root: Path
    key_path: Path


@pytest.fixture
async def sftp_server(tmp_path: Path, deploy_key: Path) -> AsyncIterator[SFTPServerInfo]:
    root = tmp_path / "remote"
    root.mkdir()
    host_key = asyncssh.generate_private_key("ssh-ed25519")

    acceptor = await asyncssh.listen(
        "127.0.0.1",
        0,
        server_host_keys=[host_key],
        authorized_client_keys=f"{deploy_key}.pub",
        sftp_factory=lambda chan: asyncssh.SFTPServer(chan, chroot=os.fsencode(root)),
    )
    try:
        yield SFTPServerInfo("127.0.0.1", acceptor.get_port(), root, deploy_key)
    finally:
        acceptor.close()
        await acceptor.wait_closed()
