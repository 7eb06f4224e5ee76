"""Stages main and test sandboxes from resolved dependencies."""
from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Set, Union

from errors import SandboxStagingError
from common.logging_utils import extra_context, is_debug_enabled, Timer
from registry.ide import IdeDependency
from registry.plugins import PluginDependency
from .layout import SandboxLayout

logger = logging.getLogger(__name__)


def _normalized(path: Union[str, Path]) -> str:
    return os.path.normcase(os.path.abspath(os.fspath(path)))


class SandboxStager:
    """Copies the plugin under development and its dependencies into a sandbox.

    Jars that already ship with the IDE are never copied, to avoid loading
    the same classes from two class loaders. Entries left over from an
    earlier dependency set are not removed.
    """

    def stage(self, layout: SandboxLayout, ide: IdeDependency, plugins: Iterable[PluginDependency],
              own_plugin_name: str, own_plugin_jar: Union[str, Path],
              libraries: Iterable[Union[str, Path]] = ()) -> Path:
        """Assemble the sandbox and return the staged plugin directory.

        Raises:
            SandboxStagingError: The plugin jar or a sibling module's staged plugin is missing,
                or two different jars share a file name.
        """
        own_plugin_jar = Path(own_plugin_jar)
        if not own_plugin_jar.is_file():
            raise SandboxStagingError(f"Plugin jar '{own_plugin_jar}' does not exist")

        plugins = list(plugins)
        lib_dir = layout.plugin_dir(own_plugin_name) / "lib"
        with Timer() as t:
            lib_dir.mkdir(parents=True, exist_ok=True)
            ide_jars = {_normalized(p) for p in ide.jar_files}

            candidates: List[Path] = [own_plugin_jar]
            candidates.extend(Path(p) for p in libraries)
            for plugin in plugins:
                if plugin.is_composite or plugin.builtin:
                    continue
                candidates.extend(plugin.jar_files)

            copied = self._copy_jars(candidates, lib_dir, ide_jars)

            for plugin in plugins:
                if plugin.is_composite:
                    self._stage_composite(layout, plugin)

            layout.config_dir.mkdir(parents=True, exist_ok=True)
            layout.system_dir.mkdir(parents=True, exist_ok=True)

        logger.info(
            "Prepared %s sandbox for '%s' with %d jar(s)",
            "test" if layout.for_test else "main",
            own_plugin_name,
            copied,
        )
        if is_debug_enabled(logger):
            logger.debug(
                "Sandbox staged",
                extra=extra_context(
                    event="stage",
                    component="sandbox",
                    action="stage",
                    outcome="success",
                    duration_ms=t.duration_ms(),
                    target=str(layout.root)
                )
            )
        return lib_dir.parent

    @staticmethod
    def _copy_jars(candidates: Iterable[Path], lib_dir: Path, ide_jars: Set[str]) -> int:
        """Copy jars into ``lib_dir``, the first candidate being the plugin's own jar.

        Raises:
            SandboxStagingError: Two different jars would land under the same file name.
        """
        targets: Dict[str, Path] = {}
        copied = 0
        for jar in candidates:
            key = _normalized(jar)
            if key in ide_jars:
                logger.debug("Skipping '%s': bundled with the IDE", jar.name)
                continue
            claimed = targets.get(jar.name)
            if claimed is not None:
                if _normalized(claimed) == key:
                    continue
                raise SandboxStagingError(
                    f"Cannot stage '{jar}': '{claimed}' is already staged as lib/{jar.name}"
                )
            targets[jar.name] = jar
            shutil.copy2(jar, lib_dir / jar.name)
            copied += 1
        return copied

    @staticmethod
    def _stage_composite(layout: SandboxLayout, plugin: PluginDependency) -> None:
        source = plugin.plugin_dir
        if source is None or not source.is_dir():
            raise SandboxStagingError(
                f"Plugin '{plugin.id}' from module "
                f"'{plugin.module.name if plugin.module else plugin.id}' has not been staged at '{source}'"
            )
        target = layout.plugins_dir / source.name
        if _normalized(source) == _normalized(target):
            return
        shutil.copytree(source, target, dirs_exist_ok=True)
        logger.info("Copied module plugin '%s' into sandbox", plugin.id)
