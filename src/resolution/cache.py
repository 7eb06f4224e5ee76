"""Single-assignment cache for values resolved once per build."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, TypeVar

T = TypeVar("T")

IDE_KEY = "ide"
PLUGINS_KEY = "plugins"

logger = logging.getLogger(__name__)


@dataclass
class ResolutionState:
    """Flags recording which resolutions have completed. They never reset."""

    ide_resolved: bool = False
    plugins_resolved: bool = False

    def mark(self, key: str) -> None:
        if key == IDE_KEY:
            self.ide_resolved = True
        elif key == PLUGINS_KEY:
            self.plugins_resolved = True


class LazyResolutionCache:
    """Memoizes each resolution exactly once.

    The first ``get_or_resolve`` for a key runs the resolver and stores its
    result; later calls return that result even if the inputs changed in the
    meantime, so every consumer of a build sees the same dependency set. A
    resolver that raises stores nothing.
    """

    def __init__(self):
        self.state = ResolutionState()
        self._values: Dict[str, Any] = {}

    def get_or_resolve(self, key: str, resolver: Callable[[], T]) -> T:
        if key in self._values:
            return self._values[key]
        logger.debug("Resolving '%s'", key)
        value = resolver()
        self._values[key] = value
        self.state.mark(key)
        return value

    def is_resolved(self, key: str) -> bool:
        return key in self._values

    def is_configured(self) -> bool:
        return self.state.ide_resolved and self.state.plugins_resolved
