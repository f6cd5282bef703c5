"""Artifacts flowing through the deploy stage."""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from pathlib import Path


@dataclass(frozen=True, slots=True)
class Artifact:
    """A file to deploy.

    Attributes:
        path: POSIX path relative to the upload root, e.g. "dist/app.tar.gz".
        content: File bytes, uploaded unmodified.
    """

    path: str
    content: bytes

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    def with_name(self, name: str) -> Artifact:
        """Copy with the last path component replaced."""
        return replace(self, path=posixpath.join(posixpath.dirname(self.path), name))

    @classmethod
    def from_file(cls, path: str | Path, base: str | Path | None = None) -> Artifact:
        path = Path(path)
        relative = path.relative_to(base) if base is not None else Path(path.name)
        return cls(path=relative.as_posix(), content=path.read_bytes())


def collect(paths: Iterable[str | Path]) -> Iterator[Artifact]:
    """Expand files and directories into artifacts.

    Files keep only their own name; files found under a directory keep their
    path relative to that directory.
    """
    for entry in map(Path, paths):
        if entry.is_dir():
            for child in sorted(p for p in entry.rglob("*") if p.is_file()):
                yield Artifact.from_file(child, base=entry)
        else:
            yield Artifact.from_file(entry)
