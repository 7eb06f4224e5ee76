"""System properties, JVM arguments and class path used to launch a sandboxed IDE."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from registry.descriptor import find_descriptor
from registry.ide import IdeDependency
from sandbox.layout import SandboxLayout
from settings import BuildSettings

logger = logging.getLogger(__name__)

DEFAULT_XMX = "-Xmx512m"
DEFAULT_XMS = "-Xms256m"


def required_plugin_ids(settings: BuildSettings) -> List[str]:
    """Ids the IDE must load at startup: the plugin under development."""
    if settings.plugin_xml is None or not settings.plugin_xml.is_file():
        logger.warning("plugin.xml not found for '%s'; no required plugin ids", settings.plugin_name)
        return []
    descriptor = find_descriptor(settings.plugin_xml)
    return [descriptor.id] if descriptor is not None else []


def ide_system_properties(layout: SandboxLayout, plugin_ids: Iterable[str]) -> Dict[str, str]:
    properties = {
        "idea.config.path": str(layout.config_dir),
        "idea.system.path": str(layout.system_dir),
        "idea.plugins.path": str(layout.plugins_dir),
    }
    plugin_ids = list(plugin_ids)
    if plugin_ids:
        properties["idea.required.plugins.id"] = ",".join(plugin_ids)
    return properties


def ide_jvm_args(ide: IdeDependency, jvm_args: Optional[Iterable[str]] = None) -> List[str]:
    """Append default heap sizes and the IDE boot class path where missing."""
    args = list(jvm_args or ())
    if not any(a.startswith("-Xmx") for a in args):
        args.append(DEFAULT_XMX)
    if not any(a.startswith("-Xms") for a in args):
        args.append(DEFAULT_XMS)
    boot_jar = ide.lib_dir / "boot.jar"
    if boot_jar.is_file():
        args.append(f"-Xbootclasspath/a:{boot_jar}")
    return args


def ide_test_classpath(ide: IdeDependency) -> List[Path]:
    return [ide.lib_dir / "resources.jar", ide.lib_dir / "idea.jar"]
