"""Build settings for an IDE plugin project, loaded from ``idegate.yml``.

Settings mirror what a plugin build declares: which IDE to build against,
which plugins it depends on, where the sandbox lives and where the
plugin's own jar and descriptor are. The file is YAML, validated against a
Draft-07 JSON Schema before use. Relative paths are resolved against the
project directory.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml
from jsonschema import Draft7Validator

from constants import Constants
from errors import ConfigurationError
from registry.plugins import ModuleRef, PluginSpec
from versioning.models import ProductType, VersionSpec
from versioning.parser import parse_version, resolve_type

logger = logging.getLogger(__name__)

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "version": {"type": "string"},
        "type": {"type": "string", "enum": [p.value for p in ProductType]},
        "local_path": {"type": "string"},
        "local_sources_path": {"type": "string"},
        "plugins": {
            "type": "array",
            "items": {
                "oneOf": [
                    {"type": "string", "minLength": 1},
                    {
                        "type": "object",
                        "required": ["module"],
                        "additionalProperties": False,
                        "properties": {"module": {"type": "string", "minLength": 1}},
                    },
                ]
            },
        },
        "plugin_name": {"type": "string", "minLength": 1},
        "sandbox_directory": {"type": "string"},
        "intellij_repo": {"type": "string"},
        "plugins_repo": {"type": "string"},
        "download_sources": {"type": "boolean"},
        "configure_default_dependencies": {"type": "boolean"},
        "extra_dependencies": _STRING_LIST,
        "instrument_code": {"type": "boolean"},
        "update_since_until_build": {"type": "boolean"},
        "same_since_until_build": {"type": "boolean"},
        "cache_directory": {"type": "string"},
        "plugin_jar": {"type": "string"},
        "plugin_xml": {"type": "string"},
        "runtime_libraries": _STRING_LIST,
        "jvm_args": _STRING_LIST,
        "classes_dirs": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
    },
}


def _default_cache_directory() -> Path:
    return Path(os.environ.get(Constants.ENV_CACHE_DIR) or Constants.DEFAULT_CACHE_DIR).expanduser()


@dataclass
class BuildSettings:
    """Configuration of one plugin project."""
    project_dir: Path
    plugin_name: str
    sandbox_directory: Path
    plugins: List[PluginSpec] = field(default_factory=list)
    version: Optional[str] = None
    type: str = Constants.DEFAULT_PRODUCT_TYPE
    local_path: Optional[Path] = None
    local_sources_path: Optional[Path] = None
    intellij_repo: str = Constants.DEFAULT_INTELLIJ_REPO
    plugins_repo: str = Constants.DEFAULT_INTELLIJ_PLUGINS_REPO
    download_sources: bool = True
    configure_default_dependencies: bool = True
    extra_dependencies: List[str] = field(default_factory=list)
    instrument_code: bool = True
    update_since_until_build: bool = True
    same_since_until_build: bool = False
    cache_directory: Path = field(default_factory=_default_cache_directory)
    plugin_jar: Optional[Path] = None
    plugin_xml: Optional[Path] = None
    runtime_libraries: List[Path] = field(default_factory=list)
    jvm_args: List[str] = field(default_factory=list)
    classes_dirs: Dict[str, Path] = field(default_factory=dict)
    # Settings of sibling modules referenced as composite plugin dependencies.
    modules: Dict[str, "BuildSettings"] = field(default_factory=dict)

    @classmethod
    def defaults(cls, project_dir: Union[str, Path]) -> "BuildSettings":
        project_dir = Path(project_dir).resolve()
        build_dir = project_dir / Constants.BUILD_DIR
        return cls(
            project_dir=project_dir,
            plugin_name=project_dir.name,
            sandbox_directory=build_dir / Constants.DEFAULT_SANDBOX,
            download_sources=Constants.ENV_CI not in os.environ,
            plugin_xml=project_dir / Constants.DEFAULT_PLUGIN_XML,
            classes_dirs={
                "main": build_dir / "classes" / "java" / "main",
                "test": build_dir / "classes" / "java" / "test",
            },
        )

    @property
    def version_spec(self) -> VersionSpec:
        return parse_version(self.version or Constants.DEFAULT_IDEA_VERSION)

    @property
    def product_type(self) -> ProductType:
        if self.version is None:
            return ProductType.COMMUNITY
        return resolve_type(self.type, self.version)

    def module_ref(self) -> ModuleRef:
        return ModuleRef(
            name=self.project_dir.name,
            project_dir=self.project_dir,
            plugin_name=self.plugin_name,
            sandbox_directory=self.sandbox_directory,
            plugin_xml=self.plugin_xml,
        )


def validate_config(data: Dict[str, Any]) -> None:
    """Validate raw configuration strictly and raise on the first error.

    Raises:
        ConfigurationError: The data does not match ``CONFIG_SCHEMA``.
    """
    validator = Draft7Validator(CONFIG_SCHEMA)
    errs = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errs:
        first = errs[0]
        path = "/".join([str(p) for p in first.path])
        raise ConfigurationError(f"Invalid configuration at '{path}': {first.message}")


def _read_config(config_path: Path) -> Dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Config file not found: {config_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse config {config_path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {config_path} must contain a mapping")
    return data


def settings_from_dict(data: Dict[str, Any], project_dir: Union[str, Path],
                       _loading: Optional[Set[Path]] = None) -> BuildSettings:
    """Build settings from already-parsed configuration data."""
    validate_config(data)
    settings = BuildSettings.defaults(project_dir)
    base = settings.project_dir
    loading = set(_loading or ()) | {base}

    def _path(value: str) -> Path:
        return (base / Path(value).expanduser()).resolve()

    for key in ("version", "type", "plugin_name", "intellij_repo", "plugins_repo",
                "download_sources", "configure_default_dependencies", "instrument_code",
                "update_since_until_build", "same_since_until_build"):
        if key in data:
            setattr(settings, key, data[key])
    for key in ("local_path", "local_sources_path", "sandbox_directory", "cache_directory",
                "plugin_jar", "plugin_xml"):
        if key in data:
            setattr(settings, key, _path(data[key]))
    settings.extra_dependencies = list(data.get("extra_dependencies", []))
    settings.runtime_libraries = [_path(p) for p in data.get("runtime_libraries", [])]
    settings.jvm_args = list(data.get("jvm_args", []))
    for name, value in data.get("classes_dirs", {}).items():
        settings.classes_dirs[name] = _path(value)

    for entry in data.get("plugins", []):
        if isinstance(entry, str):
            settings.plugins.append(PluginSpec.from_string(entry))
            continue
        module_dir = _path(entry["module"])
        if module_dir in loading:
            raise ConfigurationError(f"Circular module dependency on '{module_dir}'")
        module_settings = load_settings(module_dir, _loading=loading)
        settings.modules[module_settings.project_dir.name] = module_settings
        settings.plugins.append(PluginSpec.from_module(module_settings.module_ref()))
    return settings


def load_settings(project_dir: Union[str, Path], config_file: Union[str, Path, None] = None,
                  _loading: Optional[Set[Path]] = None) -> BuildSettings:
    """Load and validate the settings of the project at ``project_dir``.

    Raises:
        ConfigurationError: The config file is missing, unreadable or invalid.
    """
    project_dir = Path(project_dir).resolve()
    config_path = Path(config_file) if config_file else project_dir / Constants.CONFIG_FILE
    if not config_path.is_absolute():
        config_path = project_dir / config_path
    if not config_path.is_file():
        raise ConfigurationError(
            f"Cannot use '{project_dir}' as an IDE plugin project: {config_path.name} not found"
        )
    data = _read_config(config_path)
    settings = settings_from_dict(data, project_dir, _loading=_loading)
    logger.info("Loaded settings for '%s' from %s", settings.plugin_name, config_path)
    return settings
