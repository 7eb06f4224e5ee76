"""Exception taxonomy for IDE and plugin dependency resolution.

Every error here is terminal: the core never retries, and the CLI turns
them into a logged message and a non-zero exit code.
"""

from __future__ import annotations

from typing import Optional


class IdeGateError(Exception):
    """Base class for all idegate failures."""


class ConfigurationError(IdeGateError):
    """Raised when the build configuration file is missing or invalid."""


class NotConfiguredError(IdeGateError):
    """Raised when dependencies are queried before resolution completed."""


class MalformedPluginSpec(IdeGateError):
    """Raised when a plugin identifier cannot be parsed."""

    def __init__(self, spec: str, reason: str = "plugin id is empty"):
        self.spec = spec
        super().__init__(f"Failed to resolve plugin '{spec}': {reason}")


class PluginNotFound(IdeGateError):
    """Raised when no artifact matches a plugin id/version/channel."""

    def __init__(self, plugin_id: str, version: Optional[str] = None, channel: Optional[str] = None):
        self.plugin_id = plugin_id
        self.version = version
        self.channel = channel
        parts = [plugin_id]
        if version:
            parts.append(version)
        if channel:
            parts.append(channel)
        super().__init__(f"Failed to resolve plugin {':'.join(parts)}")


class PluginIncompatible(IdeGateError):
    """Raised when a plugin's since/until range excludes the host build."""

    def __init__(self, plugin: str, host_version: str):
        self.plugin = plugin
        self.host_version = host_version
        super().__init__(f"Plugin {plugin} is not compatible to {host_version}")


class InvalidLocalInstallation(IdeGateError):
    """Raised when a local path is not a recognizable IDE installation."""

    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Invalid IDE installation at '{path}': {reason}")


class ExtraDependencyResolutionFailed(IdeGateError):
    """Raised when an extra IDE artifact cannot be resolved."""

    def __init__(self, name: str, version: Optional[str] = None):
        self.name = name
        self.version = version
        suffix = f" for version {version}" if version else ""
        super().__init__(f"Cannot resolve IDE extra dependency '{name}'{suffix}")


class IdeDependencyUnresolved(IdeGateError):
    """Raised when the IDE dependency is accessed without a successful resolution."""

    def __init__(self):
        super().__init__("Cannot resolve IDE dependency")


class DescriptorNotFound(IdeGateError):
    """Raised when no plugin.xml can be found at a path."""


class SandboxStagingError(IdeGateError):
    """Raised when a sandbox cannot be assembled from its inputs."""


class ArtifactFetchError(IdeGateError):
    """Raised when an artifact cannot be downloaded."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class ArtifactNotFoundError(ArtifactFetchError):
    """Raised when the repository reports that an artifact does not exist."""
