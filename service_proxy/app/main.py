"""
Caching reverse proxy service.
"""

import sys
from typing import Any, Dict, Optional

import httpx
from fastapi import Query
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError as SettingsValidationError
from redis.exceptions import RedisError

from shared.base_service import BaseService
from shared.config import ProxyConfig, get_config
from shared.logging import configure_logging, get_logger
from shared.metrics import ProxyStats
from shared.retry import RetryConfig, RetryError, retry_on_exception
from .caching import CacheTierManager, LocalCache, RedisSharedCache, SharedCacheClient
from .coalescing import RequestCoalescer
from .fetching import ResilientFetcher
from .orchestrator import ProxyOrchestrator, ProxyResult
from .validation import validate_target_url


class ProxyService(BaseService):
    """Caching reverse proxy service implementation."""

    def __init__(
        self,
        config: Optional[ProxyConfig] = None,
        *,
        shared_cache: Optional[SharedCacheClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        config = config or get_config()
        super().__init__(config.service_name, config)

        if shared_cache is None and config.shared_cache_enabled:
            shared_cache = RedisSharedCache(
                config.redis_url,
                key_prefix=config.cache_key_prefix,
                socket_timeout=config.redis_socket_timeout,
            )
        elif shared_cache is None:
            self.logger.info("Shared cache disabled or REDIS_URL not set; using local cache only")
        self.shared_cache = shared_cache

        self.local_cache = LocalCache(config.local_cache_max_entries, config.local_ttl_seconds)
        self.cache_manager = CacheTierManager(
            self.local_cache,
            self.shared_cache,
            shared_ttl=config.cache_ttl_seconds,
            metrics=self.metrics,
        )
        self.coalescer = RequestCoalescer(metrics=self.metrics)
        self.fetcher = ResilientFetcher(
            attempt_timeout=config.fetch_attempt_timeout,
            max_retries=config.max_retries,
            backoff_base=config.retry_backoff_base,
            client=http_client,
            metrics=self.metrics,
        )
        self.stats = ProxyStats(self.metrics)
        self.orchestrator = ProxyOrchestrator(
            self.cache_manager,
            self.coalescer,
            self.fetcher,
            cache_ttl=config.cache_ttl_seconds,
            stats=self.stats,
        )

        self._setup_proxy_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.proxy_service = self

    async def startup(self) -> None:
        """Check the shared tier; the proxy keeps serving from the local tier if it is down."""
        if not isinstance(self.shared_cache, RedisSharedCache):
            return

        ping = retry_on_exception(
            (RedisError, OSError),
            config=RetryConfig(max_retries=2, base_delay=0.2),
        )(self.shared_cache.ping)
        try:
            await ping()
            self.logger.info("Connected to shared cache", redis_url=self.config.redis_url)
        except RetryError as exc:
            self.logger.error(
                "Failed to connect to shared cache; continuing with local cache",
                error=str(exc.last_exception),
            )

    async def shutdown(self) -> None:
        await self.fetcher.close()
        if isinstance(self.shared_cache, RedisSharedCache):
            await self.shared_cache.close()
        self.logger.info("Proxy service stopped")

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"redis": await self.cache_manager.shared_status()}

    def _setup_proxy_routes(self):
        """Set up proxy routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": self.service_name,
                "message": "Caching reverse proxy",
                "version": "1.0.0",
            }

        @self.app.get("/proxy")
        async def proxy(url: Optional[str] = Query(None)):
            """Serve the target URL from cache or upstream."""
            target = validate_target_url(url)
            result = await self.orchestrator.handle(target)
            return self._render(result)

        @self.app.get("/stats")
        async def stats():
            return self.orchestrator.current_stats()

        @self.app.post("/stats/reset")
        async def reset_stats():
            self.orchestrator.reset_stats()
            return {"success": True, "message": "Metrics reset"}

        @self.app.post("/cache/clear")
        async def clear_cache(url: Optional[str] = Query(None)):
            target = validate_target_url(url) if url else None
            result = await self.orchestrator.clear_cache(target)
            return result.to_dict()

    @staticmethod
    def _render(result: ProxyResult) -> Response:
        headers = {"X-Cache": result.tier.value}
        if isinstance(result.payload, str):
            return PlainTextResponse(result.payload, status_code=result.status, headers=headers)
        return JSONResponse(result.payload, status_code=result.status, headers=headers)


def create_app(config: Optional[ProxyConfig] = None, **kwargs: Any):
    """Create the FastAPI application."""
    service = ProxyService(config, **kwargs)
    return service.app


def main() -> None:
    try:
        config = get_config()
    except SettingsValidationError as exc:
        configure_logging("proxy")
        logger = get_logger("proxy.config")
        for error in exc.errors():
            logger.error(
                "Configuration validation failed",
                field=".".join(str(part) for part in error["loc"]),
                error=error["msg"],
            )
        sys.exit(1)

    service = ProxyService(config)
    service.logger.info("Proxy server starting", host=config.host, port=config.port)
    service.run()


if __name__ == "__main__":
    main()
