"""
Caching reverse proxy service package.

The proxy answers ``GET /proxy?url=...`` from a two-tier cache and only
goes upstream on a miss:
- Shared tier: Redis, optional, failures absorbed as misses
- Local tier: bounded in-process LRU with TTL
- Coalescing: one upstream fetch per key no matter how many callers miss
- Resilient fetching: per-attempt timeout and exponential backoff

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.orchestrator: Per-request control flow.
- app.caching: Cache tiers and the tier manager.
- app.coalescing: In-flight fetch registry.
- app.fetching: Upstream HTTP fetcher and its outcome types.
- app.validation: Target URL canonicalization and private-network guard.
"""
