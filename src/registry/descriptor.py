"""Reader for plugin.xml descriptors in files, jars and plugin directories."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from constants import Constants
from errors import DescriptorNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginDescriptor:
    """The subset of plugin.xml the build cares about."""
    id: str
    name: Optional[str] = None
    version: Optional[str] = None
    since_build: Optional[str] = None
    until_build: Optional[str] = None
    dependencies: Tuple[str, ...] = ()


def _text(root: ET.Element, tag: str) -> Optional[str]:
    elem = root.find(tag)
    if elem is None or elem.text is None:
        return None
    value = elem.text.strip()
    return value or None


def parse_descriptor(content: Union[str, bytes]) -> Optional[PluginDescriptor]:
    """Parse plugin.xml content; returns None when it has neither id nor name."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        logger.warning("Cannot parse plugin descriptor: %s", exc)
        return None

    name = _text(root, "name")
    plugin_id = _text(root, "id") or name
    if not plugin_id:
        return None

    since_build = until_build = None
    idea_version = root.find("idea-version")
    if idea_version is not None:
        since_build = (idea_version.get("since-build") or "").strip() or None
        until_build = (idea_version.get("until-build") or "").strip() or None

    dependencies = tuple(
        elem.text.strip() for elem in root.findall("depends") if elem.text and elem.text.strip()
    )
    return PluginDescriptor(
        id=plugin_id,
        name=name,
        version=_text(root, "version"),
        since_build=since_build,
        until_build=until_build,
        dependencies=dependencies,
    )


def _from_jar(jar: Path) -> Optional[PluginDescriptor]:
    try:
        with zipfile.ZipFile(jar) as zf:
            if Constants.PLUGIN_XML_ENTRY not in zf.namelist():
                return None
            return parse_descriptor(zf.read(Constants.PLUGIN_XML_ENTRY))
    except zipfile.BadZipFile:
        logger.warning("Skipping unreadable jar '%s'", jar)
        return None


def find_descriptor(path: Union[str, Path]) -> Optional[PluginDescriptor]:
    """Locate and parse the plugin descriptor at ``path``.

    ``path`` may be a plugin.xml file, a jar containing META-INF/plugin.xml,
    or a plugin directory (``META-INF/plugin.xml`` or any ``lib/*.jar``).
    """
    path = Path(path)
    if path.is_file():
        if path.suffix in (".jar", ".zip"):
            return _from_jar(path)
        return parse_descriptor(path.read_bytes())
    if not path.is_dir():
        return None

    direct = path / Constants.PLUGIN_XML_ENTRY
    if direct.is_file():
        return parse_descriptor(direct.read_bytes())
    for jar in sorted((path / "lib").glob("*.jar")):
        descriptor = _from_jar(jar)
        if descriptor is not None:
            return descriptor
    return None


def read_descriptor(path: Union[str, Path]) -> PluginDescriptor:
    """Like ``find_descriptor`` but raises when nothing is found.

    Raises:
        DescriptorNotFound: No readable plugin.xml at the path.
    """
    descriptor = find_descriptor(path)
    if descriptor is None:
        raise DescriptorNotFound(f"No plugin descriptor found at '{path}'")
    return descriptor
