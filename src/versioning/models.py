"""Data models for IDE product types and version identifiers."""

from __future__ import annotations

import functools
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

# Component value standing in for "*" and "SNAPSHOT" in build numbers.
UNBOUNDED = sys.maxsize


class ProductType(Enum):
    """IDE products whose distributions can be resolved."""
    COMMUNITY = "IC"
    ULTIMATE = "IU"
    JPS = "JPS"
    CLION = "CL"
    RIDER = "RD"
    MPS = "MPS"

    @classmethod
    def from_code(cls, code: str) -> Optional["ProductType"]:
        """Return the product for a code such as "IU", or None if unknown."""
        normalized = (code or "").strip().upper()
        for member in cls:
            if member.value == normalized:
                return member
        return None


@dataclass(frozen=True)
class VersionSpec:
    """Normalized IDE version with the product prefix removed."""
    product_type: ProductType
    raw_version: str
    is_snapshot: bool


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class IdeVersion:
    """Dot-separated IDE build number, e.g. ``222.4345.14``.

    Ordering compares components left to right, padding the shorter side
    with zeros; the product code never takes part in comparisons.
    """
    components: Tuple[int, ...]
    product_code: Optional[str] = None

    def __post_init__(self):
        if not self.components:
            raise ValueError("IdeVersion requires at least one component")

    @property
    def baseline(self) -> int:
        return self.components[0]

    @property
    def build(self) -> int:
        return self.components[1] if len(self.components) > 1 else 0

    def _padded(self, length: int) -> Tuple[int, ...]:
        return self.components + (0,) * (length - len(self.components))

    def compare(self, other: "IdeVersion") -> int:
        """Return -1, 0 or 1 comparing build components only."""
        length = max(len(self.components), len(other.components))
        mine, theirs = self._padded(length), other._padded(length)
        return (mine > theirs) - (mine < theirs)

    def _key(self) -> Tuple[int, ...]:
        trimmed = list(self.components)
        while len(trimmed) > 1 and trimmed[-1] == 0:
            trimmed.pop()
        return tuple(trimmed)

    def __eq__(self, other) -> bool:
        if not isinstance(other, IdeVersion):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: "IdeVersion") -> bool:
        if not isinstance(other, IdeVersion):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._key())

    def as_string(self, include_product_code: bool = False) -> str:
        rendered = ".".join("*" if c == UNBOUNDED else str(c) for c in self.components)
        if include_product_code and self.product_code:
            return f"{self.product_code}-{rendered}"
        return rendered

    def __str__(self) -> str:
        return self.as_string(include_product_code=True)
