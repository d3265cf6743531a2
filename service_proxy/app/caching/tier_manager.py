"""
Two-tier cache read/populate/invalidate logic.
"""

import json
import time
from typing import Any, Callable, Optional, TYPE_CHECKING

from shared.errors import CacheTierDegraded
from shared.logging import get_logger
from .entry import CacheEntry, CacheLookup, CacheTier, InvalidationResult
from .local_cache import LocalCache
from .shared_cache import SharedCacheClient

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class CacheTierManager:
    """Reads the shared tier first, then the local tier; populates both.

    The shared tier is an optimization, never a dependency: every failure
    talking to it (including an undecodable value) is logged, counted and
    treated as a miss. It may also be absent altogether (``shared=None``).
    """

    def __init__(
        self,
        local: LocalCache,
        shared: Optional[SharedCacheClient] = None,
        *,
        shared_ttl: float = 60,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.local = local
        self.shared = shared
        self.shared_ttl = shared_ttl
        self.metrics = metrics
        self.logger = get_logger("proxy.cache_manager")
        self._clock = clock

    @property
    def shared_enabled(self) -> bool:
        return self.shared is not None

    async def read(self, key: str) -> CacheLookup:
        """Look ``key`` up in the shared tier, then the local tier."""
        entry = await self._read_shared(key)
        if entry is not None:
            self.logger.debug("Cache hit", cache_key=key, tier=CacheTier.SHARED.value)
            return CacheLookup(tier=CacheTier.SHARED, entry=entry)

        entry = self.local.get(key)
        if entry is not None:
            self.logger.debug("Cache hit", cache_key=key, tier=CacheTier.LOCAL.value)
            return CacheLookup(tier=CacheTier.LOCAL, entry=entry)

        self.logger.debug("Cache miss", cache_key=key)
        return CacheLookup(tier=CacheTier.MISS)

    async def populate(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Write ``value`` into both tiers; shared-tier failures are absorbed."""
        shared_ttl = self.shared_ttl if ttl is None else ttl

        if self.shared is not None:
            try:
                encoded = self._encode(value, self._clock() + shared_ttl)
                await self.shared.set(key, encoded, shared_ttl)
            except Exception as exc:
                self._record_degraded("set", exc)

        self.local.set(key, value, ttl)

    async def invalidate(self, key: Optional[str] = None) -> InvalidationResult:
        """Remove ``key`` from both tiers, or everything when ``key`` is None.

        The local tier is always cleared. A shared-tier failure downgrades the
        result to a partial success instead of failing it.
        """
        if key is not None:
            removed = 1 if self.local.delete(key) else 0
            result = InvalidationResult(
                success=True,
                key=key,
                message=f"Cleared cache for {key}",
                local_removed=removed,
            )
            operation = "delete"
        else:
            removed = self.local.clear()
            result = InvalidationResult(
                success=True,
                message="All cache cleared",
                local_removed=removed,
            )
            operation = "clear_all"

        if self.shared is not None:
            try:
                if key is not None:
                    await self.shared.delete(key)
                else:
                    await self.shared.clear_all()
            except Exception as exc:
                self._record_degraded(operation, exc)
                result.partial = True
                result.errors["shared"] = str(exc)
                result.message = f"{result.message} (local tier only; shared tier unavailable)"

        self.logger.info(
            "Cache invalidated",
            cache_key=key,
            scope="key" if key is not None else "all",
            local_removed=removed,
            partial=result.partial,
        )
        return result

    async def _read_shared(self, key: str) -> Optional[CacheEntry]:
        if self.shared is None:
            return None

        try:
            raw = await self.shared.get(key)
        except Exception as exc:
            self._record_degraded("get", exc)
            return None

        if raw is None:
            return None

        entry = self._decode(key, raw)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    @staticmethod
    def _encode(value: Any, expires_at: float) -> bytes:
        return json.dumps({"value": value, "expires_at": expires_at}).encode("utf-8")

    def _decode(self, key: str, raw: bytes) -> Optional[CacheEntry]:
        try:
            data = json.loads(raw)
            return CacheEntry(key=key, value=data["value"], expires_at=float(data["expires_at"]))
        except (ValueError, TypeError, KeyError) as exc:
            self.logger.warning("Discarding undecodable shared cache entry", cache_key=key, error=str(exc))
            return None

    def _record_degraded(self, operation: str, exc: Exception) -> None:
        degraded = CacheTierDegraded(operation, details={"error": str(exc)})
        self.logger.warning(
            degraded.message,
            code=degraded.code,
            operation=operation,
            error=str(exc),
        )
        if self.metrics:
            self.metrics.increment_counter("shared_cache_degraded_total", operation=operation)

    async def shared_status(self) -> str:
        """``disabled``, ``connected`` or ``disconnected``."""
        if self.shared is None:
            return "disabled"
        ping = getattr(self.shared, "ping", None)
        if ping is None:
            return "connected"
        try:
            return "connected" if await ping() else "disconnected"
        except Exception as exc:
            self._record_degraded("ping", exc)
            return "disconnected"
