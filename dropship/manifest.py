"""Locate the GitHub repository from the project manifest (package.json)."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dropship.errors import RepositoryNotFoundError, RepositoryParseError


@dataclass(frozen=True, slots=True)
class Repository:
    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"


def read_manifest(path: str | Path) -> dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise RepositoryNotFoundError(f"Project manifest not found: {path}") from None
    except (OSError, ValueError) as e:
        raise RepositoryNotFoundError(f"Cannot read project manifest {path}: {e}") from e
    if not isinstance(data, dict):
        raise RepositoryNotFoundError(f"Project manifest {path} is not a JSON object")
    return data


def repository_url(manifest: dict[str, Any]) -> str | None:
    repository = manifest.get("repository")
    if not isinstance(repository, dict):
        return None
    url = repository.get("url")
    return url if isinstance(url, str) else None


def parse_repository(url: str | None) -> Repository:
    """Parse ``<host>:<owner>/<repo>[.git]`` into a Repository.

    Raises:
        RepositoryNotFoundError: URL absent or not on GitHub.
        RepositoryParseError: Owner or repository name missing.
    """
    if not url or "github" not in url:
        raise RepositoryNotFoundError("Your repository is not on GitHub")

    _, colon, location = url.partition(":")
    segments = location.split("/") if colon else []
    owner = segments[0] if segments else ""
    name = segments[1].split(".")[0] if len(segments) > 1 else ""

    if not owner or not name:
        raise RepositoryParseError(
            f"We can't find GitHub username or repository name in {url!r}"
        )
    return Repository(owner=owner, name=name)


def resolve_repository(manifest_path: str | Path) -> Repository:
    return parse_repository(repository_url(read_manifest(manifest_path)))
