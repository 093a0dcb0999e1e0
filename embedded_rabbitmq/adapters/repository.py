"""
Artifact resolution: which URL to download and which folder to expect.

Repositories map a (Version, OperatingSystem) pair to a download URL. The
official ones derive it from the release naming conventions; a single
artifact repository always answers with a fixed URL.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from embedded_rabbitmq.constants import GITHUB_RELEASES_URL, RABBITMQ_RELEASES_URL
from embedded_rabbitmq.core.exceptions import ConfigurationError
from embedded_rabbitmq.core.models import (
    ArtifactType,
    OperatingSystem,
    Version,
    VersionKind,
)
from embedded_rabbitmq.core.naming import (
    artifact_file_name,
    file_name_from_url,
    github_release_tag,
)

logger = logging.getLogger(__name__)


class ArtifactRepository(Protocol):
    def get_url(self, version: Version, os_family: OperatingSystem) -> str:
        ...


class OfficialArtifactRepository(Enum):
    """Official release locations."""

    GITHUB = "github"
    RABBITMQ = "rabbitmq"

    def get_url(self, version: Version, os_family: OperatingSystem) -> str:
        """
        Build the official download URL of a release.

        Raises:
            ConfigurationError: If the version has no number or this location
                never hosted it.
        """
        if version.kind == VersionKind.UNKNOWN:
            raise ConfigurationError(
                f"Cannot derive an official download URL for '{version}'; "
                "use a single artifact URL instead"
            )

        artifact_type = ArtifactType.for_os(os_family, version)
        file_name = artifact_file_name(version, artifact_type)

        if self is OfficialArtifactRepository.GITHUB:
            return GITHUB_RELEASES_URL.format(
                tag=github_release_tag(version), file_name=file_name
            )

        if version.is_modern_release:
            raise ConfigurationError(
                f"Version {version} is not published on rabbitmq.com; use GITHUB"
            )
        return RABBITMQ_RELEASES_URL.format(version=version.number, file_name=file_name)


class SingleArtifactRepository:
    """A repository that always serves one fixed URL."""

    def __init__(self, url: str):
        if not url or not file_name_from_url(url):
            raise ConfigurationError(f"Invalid artifact URL: '{url}'")
        self.url = url

    def get_url(self, version: Version, os_family: OperatingSystem) -> str:
        return self.url

    def __repr__(self) -> str:
        return f"SingleArtifactRepository({self.url!r})"


@dataclass(frozen=True)
class ResolvedArtifact:
    """Where to download an artifact from and what it unpacks into."""

    url: str
    file_name: str
    extraction_folder: str


def resolve_artifact(
    repository: Optional[ArtifactRepository],
    version: Optional[Version],
    os_family: Optional[OperatingSystem],
) -> ResolvedArtifact:
    """
    Resolve the download URL and extraction folder for a release.

    Args:
        repository: Where to download from.
        version: Release to download.
        os_family: Platform the artifact must run on.

    Returns:
        ResolvedArtifact with non-empty url, file_name and extraction_folder.

    Raises:
        ConfigurationError: If any input is missing or cannot be resolved.
    """
    if repository is None:
        raise ConfigurationError("No artifact repository configured")
    if version is None:
        raise ConfigurationError("No broker version configured")
    if os_family is None:
        raise ConfigurationError("Operating system family could not be determined")

    url = repository.get_url(version, os_family)
    file_name = file_name_from_url(url)
    if not file_name:
        raise ConfigurationError(f"Download URL has no file name: '{url}'")

    logger.debug(f"Resolved {version} ({os_family.value}) to {url}")
    return ResolvedArtifact(
        url=url,
        file_name=file_name,
        extraction_folder=version.extraction_folder,
    )
