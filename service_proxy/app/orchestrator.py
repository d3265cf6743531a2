"""
Per-request proxy control flow: tiered read, coalesced fetch, populate.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.errors import ProxyException, TransportError, UpstreamError, UpstreamTimeout
from shared.logging import get_logger, set_cache_key
from shared.metrics import ProxyStats
from .caching import CacheTier, CacheTierManager, InvalidationResult
from .coalescing import RequestCoalescer
from .fetching import FailureKind, FetchFailure, FetchOutcome, ResilientFetcher
from .validation import canonicalize_url


@dataclass(frozen=True)
class ProxyResult:
    """What the routing layer renders for a successful proxy request."""
    key: str
    payload: Any
    status: int
    tier: CacheTier

    @property
    def cached(self) -> bool:
        return self.tier is not CacheTier.MISS


class ProxyOrchestrator:
    """Composes the cache tiers, the coalescer and the fetcher."""

    def __init__(
        self,
        cache: CacheTierManager,
        coalescer: RequestCoalescer,
        fetcher: ResilientFetcher,
        *,
        cache_ttl: float,
        stats: Optional[ProxyStats] = None,
        timer: Callable[[], float] = time.perf_counter,
    ):
        self.cache = cache
        self.coalescer = coalescer
        self.fetcher = fetcher
        self.cache_ttl = cache_ttl
        self.stats = stats or ProxyStats()
        self.logger = get_logger("proxy.orchestrator")
        self._timer = timer

    async def handle(self, identifier: str) -> ProxyResult:
        """Serve ``identifier`` from cache, or fetch it once and cache it.

        Raises :class:`UpstreamTimeout`, :class:`UpstreamError` or
        :class:`TransportError` when the fetch fails; failures are never
        cached.
        """
        key = canonicalize_url(identifier)
        set_cache_key(key)
        started = self._timer()

        lookup = await self.cache.read(key)
        if lookup.hit:
            self.stats.record_hit(lookup.tier.value)
            self.stats.record_latency(self._timer() - started, source=lookup.tier.value)
            return ProxyResult(key=key, payload=lookup.entry.value, status=200, tier=lookup.tier)

        self.stats.record_miss()

        try:
            outcome = await self.coalescer.coalesce(key, lambda: self._fetch_and_populate(key))
        except Exception:
            # Rendered and logged by the service error handler
            self.stats.record_error("internal")
            raise

        if not outcome.ok:
            self.stats.record_error(outcome.kind.value)
            raise self._translate_failure(key, outcome)

        self.stats.record_latency(self._timer() - started, source=CacheTier.MISS.value)
        self.logger.debug(
            "Served from upstream",
            cache_key=key,
            upstream_status=outcome.status,
            attempts=outcome.attempts,
        )
        return ProxyResult(key=key, payload=outcome.payload, status=200, tier=CacheTier.MISS)

    async def _fetch_and_populate(self, key: str) -> FetchOutcome:
        # Runs once per coalesced fetch: every waiter is released only after
        # both tiers hold the result.
        outcome = await self.fetcher.fetch(key)
        if outcome.ok:
            await self.cache.populate(key, outcome.payload, self.cache_ttl)
        return outcome

    @staticmethod
    def _translate_failure(key: str, failure: FetchFailure) -> ProxyException:
        details: Dict[str, Any] = {
            "url": key,
            "attempts": failure.attempts,
            "reason": failure.reason,
            "exhausted_retries": failure.exhausted,
        }
        if failure.kind is FailureKind.TIMEOUT:
            return UpstreamTimeout(details=details)
        if failure.kind is FailureKind.TRANSPORT:
            return TransportError(f"Failed to fetch: {failure.reason}", details=details)
        details["classification"] = failure.kind.value
        return UpstreamError(failure.status, f"Failed to fetch: {failure.reason}", details=details)

    async def clear_cache(self, identifier: Optional[str] = None) -> InvalidationResult:
        """Invalidate one target, or both tiers entirely when ``identifier`` is None."""
        key = canonicalize_url(identifier) if identifier else None
        return await self.cache.invalidate(key)

    def current_stats(self) -> Dict[str, Any]:
        snapshot = self.stats.snapshot()
        snapshot["local_cache"] = self.cache.local.stats()
        snapshot["coalescer"] = self.coalescer.stats()
        snapshot["shared_cache_enabled"] = self.cache.shared_enabled
        return snapshot

    def reset_stats(self) -> None:
        self.stats.reset()
