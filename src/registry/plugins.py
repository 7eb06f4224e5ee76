"""Plugin dependency resolution: repository artifacts, bundled and in-build plugins."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from packaging import version as pkg_version

from constants import Constants
from errors import ArtifactFetchError, ArtifactNotFoundError, PluginIncompatible, PluginNotFound
from common import http_client
from common.archive import collect_jars, extract_zip, single_child_directory
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from sandbox.layout import SandboxLayout
from versioning.models import IdeVersion
from versioning.parser import parse_plugin_identifier, try_parse_ide_version
from .artifacts import ArtifactCoordinate, ArtifactFetcher
from .descriptor import find_descriptor
from .ide import IdeDependency

logger = logging.getLogger(__name__)

_PLUGIN_EXTENSIONS = ("zip", "jar")


@dataclass(frozen=True)
class ModuleRef:
    """A sibling module of the same build that produces an IDE plugin itself."""
    name: str
    project_dir: Path
    plugin_name: str
    sandbox_directory: Path
    plugin_xml: Optional[Path] = None

    @property
    def plugin_dir(self) -> Path:
        """Where the sibling's own prepareSandbox stages its plugin."""
        return SandboxLayout(self.sandbox_directory, for_test=False).plugins_dir / self.plugin_name


class PluginSpecKind(Enum):
    """Tag of a PluginSpec."""
    STRING = "string"
    COMPOSITE = "composite"


@dataclass(frozen=True)
class PluginSpec:
    """A plugin dependency as declared: an ``id:version:channel`` string or a sibling module."""
    kind: PluginSpecKind
    text: Optional[str] = None
    module: Optional[ModuleRef] = None

    @classmethod
    def from_string(cls, text: str) -> "PluginSpec":
        return cls(kind=PluginSpecKind.STRING, text=text)

    @classmethod
    def from_module(cls, module: ModuleRef) -> "PluginSpec":
        return cls(kind=PluginSpecKind.COMPOSITE, module=module)

    def __str__(self) -> str:
        if self.kind is PluginSpecKind.COMPOSITE:
            return f"module '{self.module.name}'"
        return self.text or ""


@dataclass(frozen=True)
class PluginDependency:
    """A resolved plugin. Equality and hashing use ``id`` only."""
    id: str
    version: Optional[str] = field(default=None, compare=False)
    channel: str = field(default=Constants.DEFAULT_PLUGIN_CHANNEL, compare=False)
    jar_files: Tuple[Path, ...] = field(default=(), compare=False)
    since_build: Optional[str] = field(default=None, compare=False)
    until_build: Optional[str] = field(default=None, compare=False)
    is_composite: bool = field(default=False, compare=False)
    builtin: bool = field(default=False, compare=False)
    plugin_dir: Optional[Path] = field(default=None, compare=False)
    module: Optional[ModuleRef] = field(default=None, compare=False)

    def __post_init__(self):
        if not self.id or not self.id.strip():
            raise ValueError("Plugin dependency id must not be empty")
        object.__setattr__(self, "jar_files", tuple(Path(p) for p in self.jar_files))

    @property
    def notation(self) -> str:
        parts = [self.id]
        if self.version:
            parts.append(self.version)
        if self.channel and self.channel != Constants.DEFAULT_PLUGIN_CHANNEL:
            parts.append(self.channel)
        return ":".join(parts)

    def is_compatible(self, host: IdeVersion) -> bool:
        return is_compatible(self.since_build, self.until_build, host)


def is_compatible(since_build: Optional[str], until_build: Optional[str], host: IdeVersion) -> bool:
    """Check that ``host`` lies within [since_build, until_build].

    Missing bounds are open and ``*`` components are unbounded. Bounds that
    cannot be parsed are ignored with a warning.
    """
    if since_build:
        since = try_parse_ide_version(since_build)
        if since is None:
            logger.warning("Ignoring unparsable since-build '%s'", since_build)
        elif host < since:
            return False
    if until_build:
        until = try_parse_ide_version(until_build)
        if until is None:
            logger.warning("Ignoring unparsable until-build '%s'", until_build)
        elif host > until:
            return False
    return True


def _pick_latest(candidates: List[str]) -> Optional[str]:
    """Pick the highest stable version, falling back to the highest of any kind."""
    parsed = []
    for candidate in candidates:
        try:
            parsed.append((pkg_version.Version(candidate), candidate))
        except pkg_version.InvalidVersion:
            continue  # Skip versions packaging cannot order
    if not parsed:
        return candidates[-1] if candidates else None
    stable = [p for p in parsed if not p[0].is_prerelease and not p[1].endswith("-SNAPSHOT")]
    pool = stable or parsed
    pool.sort(key=lambda p: p[0], reverse=True)
    return pool[0][1]


class PluginDependencyResolver:
    """Resolves plugin dependencies against an IDE and a plugin repository."""

    def __init__(self, fetcher: ArtifactFetcher, cache_directory: Union[str, Path],
                 plugins_repo: str = Constants.DEFAULT_INTELLIJ_PLUGINS_REPO,
                 ide_dependency: Optional[IdeDependency] = None):
        self.fetcher = fetcher
        self.cache_directory = Path(cache_directory)
        self.plugins_repo = plugins_repo.rstrip("/")
        self.ide_dependency = ide_dependency

    @staticmethod
    def parse_identifier(spec: str) -> Tuple[str, Optional[str], Optional[str]]:
        return parse_plugin_identifier(spec)

    @staticmethod
    def _group(channel: Optional[str]) -> str:
        if channel and channel != Constants.DEFAULT_PLUGIN_CHANNEL:
            return f"{channel}.{Constants.PLUGINS_GROUP}"
        return Constants.PLUGINS_GROUP

    def resolve_spec(self, spec: PluginSpec, host_version: Optional[IdeVersion] = None) -> PluginDependency:
        """Resolve a declared plugin dependency of either kind."""
        if spec.kind is PluginSpecKind.COMPOSITE:
            return self.resolve_composite(spec.module)
        plugin_id, plugin_version, channel = self.parse_identifier(spec.text)
        return self.resolve(plugin_id, plugin_version, channel, host_version)

    def resolve_composite(self, module: ModuleRef) -> PluginDependency:
        """Build a dependency on a sibling module's plugin without fetching or checking it."""
        descriptor = None
        if module.plugin_xml is not None and module.plugin_xml.is_file():
            descriptor = find_descriptor(module.plugin_xml)
        plugin_id = descriptor.id if descriptor is not None else module.plugin_name
        logger.info("Using module '%s' as plugin dependency '%s'", module.name, plugin_id)
        return PluginDependency(
            id=plugin_id,
            version=descriptor.version if descriptor is not None else None,
            jar_files=tuple(collect_jars(module.plugin_dir / "lib")),
            since_build=descriptor.since_build if descriptor is not None else None,
            until_build=descriptor.until_build if descriptor is not None else None,
            is_composite=True,
            plugin_dir=module.plugin_dir,
            module=module,
        )

    def resolve(self, plugin_id: str, plugin_version: Optional[str] = None, channel: Optional[str] = None,
                host_version: Optional[IdeVersion] = None) -> PluginDependency:
        """Resolve a plugin by id, bundled in the IDE or from the plugin repository.

        Raises:
            PluginNotFound: No bundled plugin or repository artifact matches.
            PluginIncompatible: The plugin's build range excludes ``host_version``.
        """
        plugin = None
        if plugin_version is None and channel is None:
            plugin = self._find_builtin(plugin_id)
        if plugin is None:
            plugin = self._resolve_external(plugin_id, plugin_version, channel)
        if host_version is not None and not plugin.is_compatible(host_version):
            raise PluginIncompatible(plugin.notation, host_version.as_string(include_product_code=True))
        return plugin

    def _find_builtin(self, plugin_id: str) -> Optional[PluginDependency]:
        if self.ide_dependency is None:
            return None
        plugin_dir = self.ide_dependency.classes_root / "plugins" / plugin_id
        if not plugin_dir.is_dir():
            return None
        descriptor = find_descriptor(plugin_dir)
        logger.info("Using IDE bundled plugin '%s'", plugin_id)
        return PluginDependency(
            id=plugin_id,
            version=self.ide_dependency.build_number,
            jar_files=tuple(collect_jars(plugin_dir / "lib")),
            since_build=descriptor.since_build if descriptor is not None else None,
            until_build=descriptor.until_build if descriptor is not None else None,
            builtin=True,
            plugin_dir=plugin_dir,
        )

    def latest_version(self, plugin_id: str, channel: Optional[str] = None) -> str:
        """Read the newest published version from the repository metadata.

        Raises:
            PluginNotFound: The repository has no metadata or versions for the plugin.
            ArtifactFetchError: The repository could not be reached.
        """
        group_path = self._group(channel).replace(".", "/")
        url = f"{self.plugins_repo}/{group_path}/{plugin_id}/maven-metadata.xml"
        status_code, _, text = http_client.robust_get(url)
        if status_code == 0:
            raise ArtifactFetchError(safe_url(url), text)
        if status_code != 200 or not text:
            raise PluginNotFound(plugin_id, None, channel)

        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise PluginNotFound(plugin_id, None, channel) from exc
        versions = [
            elem.text.strip()
            for elem in root.findall("versioning/versions/version")
            if elem.text and elem.text.strip()
        ]
        if not versions:
            release = root.findtext("versioning/release") or root.findtext("versioning/latest")
            if release and release.strip():
                versions = [release.strip()]
        latest = _pick_latest(versions)
        if latest is None:
            raise PluginNotFound(plugin_id, None, channel)
        if is_debug_enabled(logger):
            logger.debug(
                "Latest plugin version picked",
                extra=extra_context(
                    event="decision",
                    component="plugin_resolver",
                    action="latest_version",
                    target=plugin_id,
                    outcome=latest,
                    count=len(versions)
                )
            )
        return latest

    def _fetch_artifact(self, plugin_id: str, plugin_version: str, channel: Optional[str]) -> Path:
        for extension in _PLUGIN_EXTENSIONS:
            coordinate = ArtifactCoordinate(
                self._group(channel), plugin_id, plugin_version, self.plugins_repo, extension=extension
            )
            try:
                return self.fetcher.fetch(coordinate)
            except ArtifactNotFoundError:
                logger.debug("Plugin artifact %s not found", coordinate)
        raise PluginNotFound(plugin_id, plugin_version, channel)

    def _resolve_external(self, plugin_id: str, plugin_version: Optional[str],
                          channel: Optional[str]) -> PluginDependency:
        resolved_version = plugin_version or self.latest_version(plugin_id, channel)
        resolved_channel = channel or Constants.DEFAULT_PLUGIN_CHANNEL
        logger.info("Resolving plugin %s:%s (channel %s)", plugin_id, resolved_version, resolved_channel)

        artifact = self._fetch_artifact(plugin_id, resolved_version, channel)
        if artifact.suffix == ".zip":
            target = self.cache_directory / "plugins" / resolved_channel / plugin_id / resolved_version
            marker = target / Constants.UNPACKED_MARKER
            if not marker.is_file():
                extract_zip(artifact, target)
                marker.write_text(f"{plugin_id}:{resolved_version}", encoding="utf-8")
            plugin_dir = single_child_directory(target)
            jar_files = tuple(collect_jars(plugin_dir / "lib"))
        else:
            plugin_dir = artifact.parent
            jar_files = (artifact,)

        descriptor = find_descriptor(plugin_dir if artifact.suffix == ".zip" else artifact)
        return PluginDependency(
            id=plugin_id,
            version=resolved_version,
            channel=resolved_channel,
            jar_files=jar_files,
            since_build=descriptor.since_build if descriptor is not None else None,
            until_build=descriptor.until_build if descriptor is not None else None,
            plugin_dir=plugin_dir,
        )
