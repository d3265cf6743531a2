"""
Shared configuration management for the caching proxy.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        populate_by_name=True,
        frozen=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="PROXY_ENV")
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")

    # Shared cache tier
    redis_url: Optional[str] = Field(default=None, validation_alias="REDIS_URL")
    use_redis: bool = Field(default=True, validation_alias="USE_REDIS")
    redis_socket_timeout_ms: int = Field(
        default=1000, gt=0, validation_alias="REDIS_SOCKET_TIMEOUT_MS"
    )
    cache_key_prefix: str = Field(default="proxy:", validation_alias="CACHE_KEY_PREFIX")

    @field_validator("redis_url")
    @classmethod
    def _normalize_redis_url(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        lowered = value.lower()
        if lowered.startswith("redis://") or lowered.startswith("rediss://"):
            return value
        return f"redis://{value}"

    @property
    def shared_cache_enabled(self) -> bool:
        """Whether the shared (Redis) cache tier should be used."""
        return self.use_redis and bool(self.redis_url)


class ProxyConfig(BaseConfig):
    """Configuration for the caching proxy service."""

    service_name: str = "proxy"
    host: str = Field(default="0.0.0.0", validation_alias="PROXY_HOST")
    port: int = Field(default=3000, ge=1, le=65535, validation_alias="PORT")

    # Cache tiers
    cache_ttl_seconds: int = Field(default=60, gt=0, validation_alias="CACHE_TTL_SEC")
    local_cache_ttl_seconds: Optional[int] = Field(
        default=None, gt=0, validation_alias="LOCAL_CACHE_TTL_SEC"
    )
    local_cache_max_entries: int = Field(
        default=500, gt=0, validation_alias="LOCAL_CACHE_MAX_ENTRIES"
    )

    # Upstream fetch
    fetch_attempt_timeout_ms: int = Field(
        default=5000, ge=100, le=300000, validation_alias="FETCH_TIMEOUT_MS"
    )
    max_retries: int = Field(default=2, ge=0, validation_alias="MAX_RETRIES")
    retry_backoff_base_ms: int = Field(
        default=1000, gt=0, validation_alias="RETRY_BACKOFF_MS"
    )

    @property
    def local_ttl_seconds(self) -> int:
        """TTL applied by the local tier; falls back to the shared cache TTL."""
        return self.local_cache_ttl_seconds or self.cache_ttl_seconds

    @property
    def fetch_attempt_timeout(self) -> float:
        """Per-attempt upstream timeout in seconds."""
        return self.fetch_attempt_timeout_ms / 1000.0

    @property
    def retry_backoff_base(self) -> float:
        """Backoff base delay in seconds."""
        return self.retry_backoff_base_ms / 1000.0

    @property
    def redis_socket_timeout(self) -> float:
        """Shared cache socket timeout in seconds."""
        return self.redis_socket_timeout_ms / 1000.0


def get_config(**overrides) -> ProxyConfig:
    """Load the proxy configuration from the environment."""
    return ProxyConfig(**overrides)
