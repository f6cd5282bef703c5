"""Tag artifact names with the deployment id."""

from __future__ import annotations

from dropship.artifact import Artifact


def tag_filename(name: str, deployment_id: str) -> str:
    """Insert the deployment id before the first dot of a file name.

    Multi-part extensions stay intact:

        >>> tag_filename("package.tar.gz", "1234")
        'package-1234.tar.gz'
        >>> tag_filename("package", "deployment")
        'package-deployment'
    """
    stem, dot, rest = name.partition(".")
    if not dot:
        return f"{name}-{deployment_id}"
    return f"{stem}-{deployment_id}.{rest}"


def tag_artifact(artifact: Artifact, deployment_id: str) -> Artifact:
    return artifact.with_name(tag_filename(artifact.name, deployment_id))
