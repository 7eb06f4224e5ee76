"""Directory layout of an IDE sandbox.

The names below are read by the IDE at launch, so they must match exactly:
``<root>/plugins[-test]``, ``<root>/config[-test]`` and ``<root>/system[-test]``.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union


def _suffixed(name: str, for_test: bool) -> str:
    return f"{name}-test" if for_test else name


def plugins_dir(sandbox_directory: Union[str, Path], for_test: bool) -> Path:
    return Path(sandbox_directory) / _suffixed("plugins", for_test)


def config_dir(sandbox_directory: Union[str, Path], for_test: bool) -> Path:
    return Path(sandbox_directory) / _suffixed("config", for_test)


def system_dir(sandbox_directory: Union[str, Path], for_test: bool) -> Path:
    return Path(sandbox_directory) / _suffixed("system", for_test)


@dataclass(frozen=True)
class SandboxLayout:
    """Main or test sandbox under a common root; the two never share a directory."""
    root: Path
    for_test: bool = False

    def __post_init__(self):
        object.__setattr__(self, "root", Path(self.root))

    @property
    def plugins_dir(self) -> Path:
        return plugins_dir(self.root, self.for_test)

    @property
    def config_dir(self) -> Path:
        return config_dir(self.root, self.for_test)

    @property
    def system_dir(self) -> Path:
        return system_dir(self.root, self.for_test)

    def plugin_dir(self, plugin_name: str) -> Path:
        return self.plugins_dir / plugin_name

    def directories(self):
        return self.plugins_dir, self.config_dir, self.system_dir
