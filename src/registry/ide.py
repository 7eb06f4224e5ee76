"""Resolution of IDE distributions, from a local installation or a repository."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple, Union

from constants import Constants
from errors import ArtifactFetchError, ExtraDependencyResolutionFailed, InvalidLocalInstallation
from common.archive import collect_jars, extract_zip
from common.logging_utils import extra_context, is_debug_enabled, Timer
from versioning.models import IdeVersion, ProductType, VersionSpec
from versioning.parser import parse_version, try_parse_ide_version
from .artifacts import ArtifactCoordinate, ArtifactFetcher

logger = logging.getLogger(__name__)

# Repository coordinates (group, artifact) of each product's distribution.
PRODUCT_ARTIFACTS: Dict[ProductType, Tuple[str, str]] = {
    ProductType.COMMUNITY: (Constants.IDEA_GROUP, "ideaIC"),
    ProductType.ULTIMATE: (Constants.IDEA_GROUP, "ideaIU"),
    ProductType.JPS: (Constants.IDEA_GROUP, "jps-standalone"),
    ProductType.CLION: ("com.jetbrains.intellij.clion", "clion"),
    ProductType.RIDER: ("com.jetbrains.intellij.rider", "riderRD"),
    ProductType.MPS: ("com.jetbrains.mps", "mps"),
}

_PRODUCTS_WITH_SOURCES = (ProductType.COMMUNITY, ProductType.ULTIMATE)


@dataclass(frozen=True)
class IdeDependency:
    """A resolved IDE distribution shared by every consumer of the build."""
    build_number: str
    version: VersionSpec
    classes_root: Path
    jar_files: Tuple[Path, ...]
    sources_jar: Optional[Path] = None
    extra_dependencies: Mapping[str, FrozenSet[Path]] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        keys = [os.path.normcase(os.path.abspath(p)) for p in self.jar_files]
        if len(keys) != len(set(keys)):
            raise ValueError(f"Duplicate jar files in IDE dependency {self.build_number}")
        object.__setattr__(self, "jar_files", tuple(Path(p) for p in self.jar_files))
        object.__setattr__(
            self,
            "extra_dependencies",
            MappingProxyType({name: frozenset(paths) for name, paths in self.extra_dependencies.items()}),
        )

    @property
    def ide_version(self) -> Optional[IdeVersion]:
        return try_parse_ide_version(self.build_number)

    @property
    def lib_dir(self) -> Path:
        return self.classes_root / "lib"


def _classes_root(path: Path) -> Optional[Path]:
    """Locate the directory holding build.txt, accepting macOS app bundles."""
    for candidate in (path, path / "Contents"):
        if (candidate / Constants.BUILD_TXT).is_file():
            return candidate
    return None


def _read_build_txt(classes_root: Path) -> Optional[str]:
    build_txt = classes_root / Constants.BUILD_TXT
    if not build_txt.is_file():
        return None
    content = build_txt.read_text(encoding="utf-8").strip()
    return content or None


class IdeDependencyResolver:
    """Resolves the IDE distribution a plugin is built against."""

    def __init__(self, fetcher: ArtifactFetcher, cache_directory: Union[str, Path],
                 intellij_repo: str = Constants.DEFAULT_INTELLIJ_REPO):
        self.fetcher = fetcher
        self.cache_directory = Path(cache_directory)
        self.intellij_repo = intellij_repo.rstrip("/")

    def resolve_local(self, path: Union[str, Path], sources_path: Union[str, Path, None] = None) -> IdeDependency:
        """Build the dependency from an IDE installed on disk.

        Raises:
            InvalidLocalInstallation: When the path is not an IDE installation.
        """
        ide_dir = Path(path).expanduser()
        if not ide_dir.exists():
            raise InvalidLocalInstallation(ide_dir, "path does not exist")
        if not ide_dir.is_dir():
            raise InvalidLocalInstallation(ide_dir, "path is not a directory")
        classes_root = _classes_root(ide_dir)
        if classes_root is None:
            raise InvalidLocalInstallation(ide_dir, f"{Constants.BUILD_TXT} not found")

        build_txt = _read_build_txt(classes_root)
        if build_txt is None:
            raise InvalidLocalInstallation(ide_dir, f"{Constants.BUILD_TXT} is empty")
        version = parse_version(build_txt)

        sources_jar = None
        if sources_path is not None:
            candidate = Path(sources_path).expanduser()
            if candidate.is_file():
                sources_jar = candidate
            else:
                logger.warning("IDE sources jar not found at '%s', ignoring", candidate)

        dependency = IdeDependency(
            build_number=version.raw_version,
            version=version,
            classes_root=classes_root,
            jar_files=tuple(collect_jars(classes_root / "lib", exclude=Constants.IDE_JARS_TO_EXCLUDE)),
            sources_jar=sources_jar,
        )
        logger.info("Using local IDE %s at '%s'", dependency.build_number, classes_root)
        return dependency

    def _repository(self, version: VersionSpec) -> str:
        return f"{self.intellij_repo}/{'snapshots' if version.is_snapshot else 'releases'}"

    def unpack_directory(self, product_type: ProductType, version: str) -> Path:
        """Cache location of an unpacked distribution, keyed by type and version."""
        _, artifact = PRODUCT_ARTIFACTS[product_type]
        return self.cache_directory / "ides" / artifact / version

    def _fetch_and_unpack(self, coordinate: ArtifactCoordinate, target: Path) -> Path:
        marker = target / Constants.UNPACKED_MARKER
        if marker.is_file():
            if is_debug_enabled(logger):
                logger.debug(
                    "Unpacked artifact cache hit",
                    extra=extra_context(
                        event="cache_hit",
                        component="ide_resolver",
                        action="unpack",
                        target=str(coordinate)
                    )
                )
            return target
        archive = self.fetcher.fetch(coordinate)
        extract_zip(archive, target)
        marker.write_text(str(coordinate), encoding="utf-8")
        return target

    def resolve_remote(self, version: Union[str, VersionSpec], product_type: ProductType,
                       download_sources: bool = False,
                       extra_dependency_names: Iterable[str] = ()) -> IdeDependency:
        """Fetch (or reuse from cache) an IDE distribution from the repository.

        Failures fetching the distribution propagate unchanged; a missing
        sources jar only produces a warning; a missing extra dependency
        raises ``ExtraDependencyResolutionFailed``.
        """
        spec = version if isinstance(version, VersionSpec) else parse_version(version)
        group, artifact = PRODUCT_ARTIFACTS[product_type]
        repository = self._repository(spec)
        coordinate = ArtifactCoordinate(group, artifact, spec.raw_version, repository)

        logger.info("Resolving IDE %s", coordinate)
        with Timer() as t:
            unpacked = self._fetch_and_unpack(coordinate, self.unpack_directory(product_type, spec.raw_version))
        classes_root = _classes_root(unpacked) or unpacked
        build_number = spec.raw_version
        build_txt = _read_build_txt(classes_root)
        if build_txt is not None:
            build_number = parse_version(build_txt).raw_version

        sources_jar = None
        if download_sources:
            sources_jar = self._resolve_sources(spec, product_type, repository)

        extras = {}
        for name in extra_dependency_names:
            extras[name] = self._resolve_extra(name, spec, repository)

        if is_debug_enabled(logger):
            logger.debug(
                "IDE resolved",
                extra=extra_context(
                    event="resolve",
                    component="ide_resolver",
                    action="resolve_remote",
                    outcome="success",
                    duration_ms=t.duration_ms(),
                    target=str(coordinate)
                )
            )
        return IdeDependency(
            build_number=build_number,
            version=spec,
            classes_root=classes_root,
            jar_files=tuple(collect_jars(classes_root / "lib", exclude=Constants.IDE_JARS_TO_EXCLUDE)),
            sources_jar=sources_jar,
            extra_dependencies=extras,
        )

    def _resolve_sources(self, spec: VersionSpec, product_type: ProductType, repository: str) -> Optional[Path]:
        if product_type not in _PRODUCTS_WITH_SOURCES:
            logger.info("Sources are not published for %s, skipping", product_type.value)
            return None
        coordinate = ArtifactCoordinate(
            Constants.IDEA_GROUP, "ideaIC", spec.raw_version, repository, extension="jar", classifier="sources"
        )
        try:
            return self.fetcher.fetch(coordinate)
        except ArtifactFetchError as exc:
            logger.warning("Cannot download IDE sources %s: %s", coordinate, exc)
            return None

    def _resolve_extra(self, name: str, spec: VersionSpec, repository: str) -> FrozenSet[Path]:
        coordinate = ArtifactCoordinate(Constants.IDEA_GROUP, name, spec.raw_version, repository)
        target = self.cache_directory / "extras" / name / spec.raw_version
        try:
            unpacked = self._fetch_and_unpack(coordinate, target)
        except ArtifactFetchError as exc:
            raise ExtraDependencyResolutionFailed(name, spec.raw_version) from exc
        jars = frozenset(collect_jars(unpacked, recursive=True))
        logger.info("IDE extra dependency '%s' resolved with %d jar(s)", name, len(jars))
        return jars
