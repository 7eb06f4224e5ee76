"""Per-project build context holding resolved IDE and plugin dependencies.

One ``BuildContext`` exists per plugin project and is passed explicitly to
everything that needs resolved dependencies. Reading ``ide_dependency`` or
``plugin_dependencies`` triggers resolution the first time; after that the
same objects are returned for the rest of the build.
"""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from errors import (
    ExtraDependencyResolutionFailed,
    IdeDependencyUnresolved,
    NotConfiguredError,
    PluginNotFound,
)
from registry.artifacts import ArtifactFetcher, MavenArtifactFetcher
from registry.ide import IdeDependency, IdeDependencyResolver
from registry.plugins import PluginDependency, PluginDependencyResolver
from sandbox.layout import SandboxLayout
from settings import BuildSettings
from .cache import IDE_KEY, PLUGINS_KEY, LazyResolutionCache

logger = logging.getLogger(__name__)


def _filter(paths, pattern: Optional[str]) -> List[Path]:
    if not pattern:
        return list(paths)
    return [p for p in paths if fnmatch.fnmatch(Path(p).name, pattern)]


class BuildContext:
    """Resolution entry point for one plugin project."""

    def __init__(self, settings: BuildSettings, fetcher: Optional[ArtifactFetcher] = None):
        self.settings = settings
        self.fetcher = fetcher or MavenArtifactFetcher(settings.cache_directory)
        self.cache = LazyResolutionCache()

    # -- resolution -------------------------------------------------------

    def _resolve_ide(self) -> Optional[IdeDependency]:
        settings = self.settings
        resolver = IdeDependencyResolver(self.fetcher, settings.cache_directory, settings.intellij_repo)
        if settings.local_path is not None:
            if settings.version is not None:
                logger.warning("Both `local_path` and `version` specified, second would be ignored")
            logger.info("Using path to locally installed IDE: '%s'", settings.local_path)
            dependency = resolver.resolve_local(settings.local_path, settings.local_sources_path)
        else:
            logger.info("Using IDE from remote repository")
            dependency = resolver.resolve_remote(
                settings.version_spec,
                settings.product_type,
                settings.download_sources,
                settings.extra_dependencies,
            )
        if dependency is not None:
            logger.info("IDE %s is used for building", dependency.build_number)
            if dependency.extra_dependencies:
                logger.info(
                    "Note: IDE %s extra dependencies (%s) should be applied manually",
                    dependency.build_number,
                    ", ".join(sorted(dependency.extra_dependencies)),
                )
        return dependency

    def _resolve_plugins(self) -> Tuple[PluginDependency, ...]:
        ide = self.ide_dependency
        host_version = ide.ide_version
        if host_version is None:
            logger.warning("Cannot parse IDE build number '%s'; skipping compatibility checks", ide.build_number)
        resolver = PluginDependencyResolver(
            self.fetcher, self.settings.cache_directory, self.settings.plugins_repo, ide
        )
        resolved: Dict[str, PluginDependency] = {}
        for spec in self.settings.plugins:
            logger.info("Configuring plugin dependency %s", spec)
            plugin = resolver.resolve_spec(spec, host_version)
            if plugin.id in resolved:
                logger.warning("Plugin '%s' is declared more than once; keeping the first", plugin.id)
                continue
            resolved[plugin.id] = plugin
        return tuple(resolved.values())

    @property
    def ide_dependency(self) -> IdeDependency:
        """The resolved IDE; resolves on first access.

        Raises:
            IdeDependencyUnresolved: Resolution completed without a result.
        """
        dependency = self.cache.get_or_resolve(IDE_KEY, self._resolve_ide)
        if dependency is None:
            raise IdeDependencyUnresolved()
        return dependency

    @property
    def plugin_dependencies(self) -> Tuple[PluginDependency, ...]:
        """The resolved plugin set, unique by id; resolves (IDE first) on first access."""
        return self.cache.get_or_resolve(PLUGINS_KEY, self._resolve_plugins)

    def is_configured(self) -> bool:
        return self.cache.is_configured()

    def configure(self) -> "BuildContext":
        """Resolve the IDE and all plugins now."""
        _ = self.plugin_dependencies
        return self

    # -- dependency accessors ---------------------------------------------

    def _require_configured(self, what: str) -> None:
        if not self.is_configured():
            raise NotConfiguredError(
                f"{what} is not (yet) configured. Resolve dependencies before querying them"
            )

    def intellij(self, pattern: Optional[str] = None) -> List[Path]:
        """IDE jars, optionally filtered by a file name glob."""
        self._require_configured("intellij")
        return _filter(self.ide_dependency.jar_files, pattern)

    def find_plugin(self, plugin_id: str) -> Optional[PluginDependency]:
        return next((p for p in self.plugin_dependencies if p.id == plugin_id), None)

    def intellij_plugin(self, plugin_id: str, pattern: Optional[str] = None) -> List[Path]:
        """Jars of one plugin dependency, optionally filtered by a file name glob."""
        self._require_configured(f"intellij plugin '{plugin_id}'")
        plugin = self.find_plugin(plugin_id)
        if plugin is None or not plugin.jar_files:
            raise PluginNotFound(plugin_id)
        return _filter(plugin.jar_files, pattern)

    def intellij_plugins(self, *plugin_ids: str) -> List[Path]:
        """Jars of several plugin dependencies; every id must resolve."""
        self._require_configured("intellij plugins")
        selected = []
        invalid = []
        for plugin_id in plugin_ids:
            plugin = self.find_plugin(plugin_id)
            if plugin is None or not plugin.jar_files:
                invalid.append(plugin_id)
            else:
                selected.append(plugin)
        if invalid:
            raise PluginNotFound(", ".join(invalid))
        return [jar for plugin in selected for jar in plugin.jar_files]

    def intellij_extra(self, name: str, pattern: Optional[str] = None) -> List[Path]:
        """Jars of an extra IDE artifact, optionally filtered by a file name glob."""
        jars = self.ide_dependency.extra_dependencies.get(name)
        if not jars:
            raise ExtraDependencyResolutionFailed(name)
        return _filter(sorted(jars), pattern)

    def compile_classpath(self) -> List[Path]:
        """Jars added to the compile classpath by default."""
        if not self.settings.configure_default_dependencies:
            logger.info("IDE %s dependencies are applied manually", self.ide_dependency.build_number)
            return []
        jars = list(self.ide_dependency.jar_files)
        for plugin in self.plugin_dependencies:
            jars.extend(j for j in plugin.jar_files if j not in jars)
        return jars

    def sandbox_layout(self, for_test: bool = False) -> SandboxLayout:
        return SandboxLayout(self.settings.sandbox_directory, for_test)
