"""Parsing utilities for IDE versions, build numbers and plugin identifiers."""

import logging
from typing import Optional, Tuple, Union

from errors import MalformedPluginSpec
from .models import UNBOUNDED, IdeVersion, ProductType, VersionSpec

logger = logging.getLogger(__name__)

# Checked in order; the first literal match wins.
_VERSION_PREFIXES: Tuple[Tuple[str, ProductType], ...] = (
    ("IU-", ProductType.ULTIMATE),
    ("JPS-", ProductType.JPS),
    ("CL-", ProductType.CLION),
    ("RD-", ProductType.RIDER),
    ("MPS-", ProductType.MPS),
    ("IC-", ProductType.COMMUNITY),
)

_SNAPSHOT_SUFFIX = "-SNAPSHOT"
_PLUGIN_SPEC_DELIMITER = ":"


def _match_prefix(raw: str) -> Optional[Tuple[str, ProductType]]:
    for prefix, product in _VERSION_PREFIXES:
        if raw.startswith(prefix):
            return prefix, product
    return None


def parse_version(raw: Optional[str]) -> VersionSpec:
    """Split a product prefix such as ``IU-`` off a raw version string.

    Parsing is total: unknown or missing prefixes yield a Community
    version with the input left untouched.
    """
    raw = raw or ""
    match = _match_prefix(raw)
    if match is None:
        product, version = ProductType.COMMUNITY, raw
    else:
        prefix, product = match
        version = raw[len(prefix):]
    return VersionSpec(
        product_type=product,
        raw_version=version,
        is_snapshot=version.endswith(_SNAPSHOT_SUFFIX),
    )


def resolve_type(explicit_type: Union[ProductType, str, None], raw: Optional[str]) -> ProductType:
    """Return the effective product type.

    A prefix encoded in the version string wins over the explicit type;
    without either, Community is assumed.
    """
    match = _match_prefix(raw or "")
    if match is not None:
        return match[1]
    if isinstance(explicit_type, ProductType):
        return explicit_type
    if explicit_type:
        product = ProductType.from_code(explicit_type)
        if product is not None:
            return product
        logger.warning("Unknown IDE type '%s', falling back to %s", explicit_type, ProductType.COMMUNITY.value)
    return ProductType.COMMUNITY


def _parse_component(text: str) -> int:
    if text in ("*", "SNAPSHOT"):
        return UNBOUNDED
    if not text.isdigit():
        raise ValueError(f"Invalid build number component '{text}'")
    return int(text)


def parse_ide_version(text: str) -> IdeVersion:
    """Parse a build number such as ``IU-222.4345.14`` or ``223.*``.

    Raises:
        ValueError: When the text is not a build number.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("Empty build number")
    product_code = None
    head, sep, tail = text.partition("-")
    if sep and head.isalpha():
        product_code, text = head.upper(), tail
    components = tuple(_parse_component(part) for part in text.split("."))
    return IdeVersion(components=components, product_code=product_code)


def try_parse_ide_version(text: Optional[str]) -> Optional[IdeVersion]:
    """Like ``parse_ide_version`` but returns None for unparsable input."""
    try:
        return parse_ide_version(text or "")
    except ValueError:
        return None


def parse_plugin_identifier(spec: str) -> Tuple[str, Optional[str], Optional[str]]:
    """Split ``id:version:channel`` into its parts; version and channel are optional.

    Raises:
        MalformedPluginSpec: When the id is empty or there are more than three fields.
    """
    parts = (spec or "").split(_PLUGIN_SPEC_DELIMITER)
    if len(parts) > 3:
        raise MalformedPluginSpec(spec, "expected id[:version[:channel]]")
    plugin_id = parts[0].strip()
    if not plugin_id:
        raise MalformedPluginSpec(spec or "")
    version = parts[1].strip() if len(parts) > 1 else ""
    channel = parts[2].strip() if len(parts) > 2 else ""
    return plugin_id, version or None, channel or None


def since_until_build(build_number: str, same_since_until: bool = False) -> Tuple[str, str]:
    """Compute since/until build values for a plugin built against ``build_number``."""
    ide_version = parse_ide_version(build_number)
    since = f"{ide_version.baseline}.{ide_version.build}"
    if same_since_until:
        return since, f"{since}.*"
    return since, f"{ide_version.baseline}.*"


def compiler_version(build_number: str) -> str:
    """Version of the IDE form compiler matching ``build_number``."""
    ide_version = parse_ide_version(build_number)
    return f"{ide_version.baseline}.{ide_version.build}"
