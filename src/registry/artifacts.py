"""Maven-style artifact coordinates and the default artifact fetcher."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from common import http_client
from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactCoordinate:
    """Location of one artifact file in a Maven layout repository."""
    group: str
    artifact: str
    version: str
    repository: str
    extension: str = "zip"
    classifier: Optional[str] = None

    @property
    def file_name(self) -> str:
        classifier = f"-{self.classifier}" if self.classifier else ""
        return f"{self.artifact}-{self.version}{classifier}.{self.extension}"

    @property
    def relative_path(self) -> str:
        group_path = self.group.replace(".", "/")
        return f"{group_path}/{self.artifact}/{self.version}/{self.file_name}"

    @property
    def url(self) -> str:
        return f"{self.repository.rstrip('/')}/{self.relative_path}"

    def __str__(self) -> str:
        parts = [self.group, self.artifact, self.version]
        if self.classifier:
            parts.append(self.classifier)
        return ":".join(parts) + f"@{self.extension}"


class ArtifactFetcher:
    """Interface of the artifact download collaborator.

    ``fetch`` returns a local path for the coordinate and must be idempotent
    for content-stable coordinates. Failures raise ``ArtifactFetchError``
    (``ArtifactNotFoundError`` when the artifact does not exist).
    """

    def fetch(self, coordinate: ArtifactCoordinate) -> Path:
        raise NotImplementedError


class MavenArtifactFetcher(ArtifactFetcher):
    """Downloads artifacts over HTTP into a local cache directory.

    Files already present in the cache are returned without touching the
    network; the cache is keyed by coordinate only, not by content.
    """

    def __init__(self, cache_directory: Path):
        self.cache_directory = Path(cache_directory) / "artifacts"

    def local_path(self, coordinate: ArtifactCoordinate) -> Path:
        return self.cache_directory / coordinate.relative_path

    def fetch(self, coordinate: ArtifactCoordinate) -> Path:
        target = self.local_path(coordinate)
        if target.is_file():
            if is_debug_enabled(logger):
                logger.debug(
                    "Artifact cache hit",
                    extra=extra_context(
                        event="cache_hit",
                        component="artifacts",
                        action="fetch",
                        target=str(coordinate)
                    )
                )
            return target
        return http_client.download_file(coordinate.url, target, context=coordinate.artifact)
