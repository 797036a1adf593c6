import os
from dataclasses import dataclass
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")
    redis_socket_timeout: float = float(os.getenv("REDIS_SOCKET_TIMEOUT", "5.0"))

    # Cache
    cache_backend: str = os.getenv("PROMPT_CACHE_BACKEND", "redis")  # "redis" or "memory"
    cache_key_prefix: str = os.getenv("PROMPT_CACHE_KEY_PREFIX", "prompt_cache")
    affinity_tolerance: int = int(os.getenv("PROMPT_CACHE_AFFINITY_TOLERANCE", "5"))
    ttl_days: int = int(os.getenv("PROMPT_CACHE_TTL_DAYS", "30"))
    extended_ttl_days: int = int(os.getenv("PROMPT_CACHE_EXTENDED_TTL_DAYS", "60"))
    extension_threshold: int = int(os.getenv("PROMPT_CACHE_EXTENSION_THRESHOLD", "10"))

    # Eviction
    cleanup_days_old: int = int(os.getenv("PROMPT_CACHE_CLEANUP_DAYS", "30"))
    cleanup_interval: int = int(os.getenv("PROMPT_CACHE_CLEANUP_INTERVAL", "3600"))  # 0 disables

    # Prompt generator (optional)
    generator_url: str | None = os.getenv("PROMPT_GENERATOR_URL")
    generator_timeout: float = float(os.getenv("PROMPT_GENERATOR_TIMEOUT", "30.0"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def uses_memory_backend(self) -> bool:
        """Check if the in-process store is configured instead of Redis."""
        return self.cache_backend.lower() == "memory"

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.cache_backend.lower() not in ("redis", "memory"):
            raise ValueError(
                f"PROMPT_CACHE_BACKEND must be 'redis' or 'memory', got {self.cache_backend!r}"
            )

        if not 0 <= self.affinity_tolerance <= 100:
            raise ValueError("PROMPT_CACHE_AFFINITY_TOLERANCE must be between 0 and 100")

        if self.ttl_days <= 0 or self.extended_ttl_days < self.ttl_days:
            raise ValueError(
                "PROMPT_CACHE_TTL_DAYS must be positive and not exceed PROMPT_CACHE_EXTENDED_TTL_DAYS"
            )

        if self.cleanup_interval < 0:
            raise ValueError("PROMPT_CACHE_CLEANUP_INTERVAL must be >= 0")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create a Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        socket_timeout=settings.redis_socket_timeout,
        decode_responses=True,
    )
