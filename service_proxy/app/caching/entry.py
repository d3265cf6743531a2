"""
Cache records shared by both tiers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class CacheTier(str, Enum):
    """Where a read was answered from."""
    SHARED = "shared"
    LOCAL = "local"
    MISS = "miss"


@dataclass(frozen=True)
class CacheEntry:
    """A cached representation. Replaced wholesale, never mutated."""
    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheLookup:
    """Result of a tiered read."""
    tier: CacheTier
    entry: Optional[CacheEntry] = None

    @property
    def hit(self) -> bool:
        return self.entry is not None


@dataclass
class InvalidationResult:
    """Outcome of a cache clear across both tiers."""
    success: bool
    message: str
    key: Optional[str] = None
    partial: bool = False
    local_removed: int = 0
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "partial": self.partial,
            "message": self.message,
            "local_removed": self.local_removed,
        }
        if self.key is not None:
            result["key"] = self.key
        if self.errors:
            result["errors"] = dict(self.errors)
        return result
