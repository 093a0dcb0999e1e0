"""Naming helpers: artifact file names, release tags and URL file names."""

from urllib.parse import unquote, urlparse

from embedded_rabbitmq.constants import ARTIFACT_FILE_PREFIX
from embedded_rabbitmq.core.models import ArtifactType, Version


def artifact_file_name(version: Version, artifact_type: ArtifactType) -> str:
    """
    Derive the published artifact file name for a release.

    Example: (3.8.9, GENERIC_UNIX) -> "rabbitmq-server-generic-unix-3.8.9.tar.xz"

    Args:
        version: Release with a version number.
        artifact_type: Distribution flavour.

    Returns:
        Artifact file name.
    """
    return (
        f"{ARTIFACT_FILE_PREFIX}{artifact_type.classifier}-"
        f"{version.number}.{artifact_type.extension}"
    )


def github_release_tag(version: Version) -> str:
    """
    Derive the GitHub release tag for a release.

    Releases before 3.7 were tagged "rabbitmq_v3_6_5", later ones "v3.7.18".
    """
    if version.is_modern_release:
        return f"v{version.number}"
    return "rabbitmq_v" + version.number.replace(".", "_")


def file_name_from_url(url: str) -> str:
    """Return the last path segment of a URL, or "" when it has none."""
    path = unquote(urlparse(url).path)
    return path.rstrip("/").rsplit("/", 1)[-1]
