"""Full stage against an in-process SFTP server and a stubbed GitHub API."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from dropship.artifact import Artifact
from dropship.errors import NotificationApiError, RepositoryNotFoundError, TransferError
from dropship.pipeline import Deployed, Failed, deploy
from tests.conftest import GitHubStub, SFTPServerInfo, write_manifest

pytestmark = [pytest.mark.e2e, pytest.mark.timeout(60)]

PACKAGE = b"#!/bin/sh\necho 'fixture package'\n"


def options(server: SFTPServerInfo, **extra: Any) -> dict[str, Any]:
    return {
        "remotePath": "./build",
        "host": server.host,
        "port": server.port,
        "key": str(server.key_path),
        "user": "deployer",
        **extra,
    }


async def run(stage, *artifacts: Artifact) -> list:
    return [outcome async for outcome in stage.run(artifacts)]


@pytest.mark.asyncio
async def test_deploy_without_token(sftp_server: SFTPServerInfo):
    [outcome] = await run(deploy(options(sftp_server)), Artifact("package", PACKAGE))

    assert isinstance(outcome, Deployed)
    assert outcome.remote_path == "build/package-deployment"
    assert (sftp_server.root / "build" / "package-deployment").read_bytes() == PACKAGE


@pytest.mark.asyncio
async def test_deploy_with_github(
    sftp_server: SFTPServerInfo,
    github_api: str,
    github_stub: GitHubStub,
    github_manifest: Path,
):
    stage = deploy(options(
        sftp_server,
        githubToken="testToken",
        githubApiUrl=github_api,
        pkgPath=str(github_manifest),
        environment="testEnv",
        revision="testRevision",
        description="testDescription",
    ))
    [outcome] = await run(stage, Artifact("package.tar.gz", PACKAGE))

    assert isinstance(outcome, Deployed)
    assert outcome.deployment_id == "1234"
    assert (sftp_server.root / "build" / "package-1234.tar.gz").read_bytes() == PACKAGE

    [sent] = github_stub.requests
    assert (sent["owner"], sent["repo"]) == ("testuser", "testrepo")
    assert sent["json"] == {
        "task": "deploy",
        "auto_merge": False,
        "required_contexts": [],
        "ref": "testRevision",
        "environment": "testEnv",
        "description": "testDescription",
    }


@pytest.mark.asyncio
async def test_single_notification_for_many_artifacts(
    sftp_server: SFTPServerInfo,
    github_api: str,
    github_stub: GitHubStub,
    github_manifest: Path,
):
    stage = deploy(options(
        sftp_server, githubToken="testToken", githubApiUrl=github_api,
        pkgPath=str(github_manifest),
    ))
    outcomes = await run(
        stage, Artifact("package", b"1"), Artifact("package.zip", b"2"), Artifact("notes.txt", b"3"),
    )

    assert all(isinstance(o, Deployed) for o in outcomes)
    assert len(github_stub.requests) == 1
    assert sorted(p.name for p in (sftp_server.root / "build").iterdir()) == [
        "notes-1234.txt", "package-1234", "package-1234.zip",
    ]


@pytest.mark.asyncio
async def test_github_error_blocks_transfer(
    sftp_server: SFTPServerInfo,
    github_api: str,
    github_stub: GitHubStub,
    github_manifest: Path,
):
    github_stub.status = 401
    github_stub.body = {"message": "Bad credentials"}
    stage = deploy(options(
        sftp_server, githubToken="testToken", githubApiUrl=github_api,
        pkgPath=str(github_manifest),
    ))
    [outcome] = await run(stage, Artifact("package", PACKAGE))

    assert isinstance(outcome, Failed)
    assert isinstance(outcome.error, NotificationApiError)
    assert not (sftp_server.root / "build").exists()


@pytest.mark.asyncio
async def test_repository_not_on_github(
    sftp_server: SFTPServerInfo,
    github_api: str,
    github_stub: GitHubStub,
    tmp_path: Path,
):
    manifest = write_manifest(tmp_path, "git@gitlab.com:testuser/testrepo.git", "gitlab.json")
    stage = deploy(options(
        sftp_server, githubToken="testToken", githubApiUrl=github_api, pkgPath=str(manifest),
    ))
    [outcome] = await run(stage, Artifact("package", PACKAGE))

    assert isinstance(outcome, Failed)
    assert isinstance(outcome.error, RepositoryNotFoundError)
    assert github_stub.requests == []


@pytest.mark.asyncio
async def test_unauthorized_key(sftp_server: SFTPServerInfo, tmp_path: Path):
    stage = deploy(options(sftp_server, key=str(tmp_path / "no-key.key")))
    [outcome] = await run(stage, Artifact("package", PACKAGE))

    assert isinstance(outcome, Failed)
    assert isinstance(outcome.error, TransferError)
