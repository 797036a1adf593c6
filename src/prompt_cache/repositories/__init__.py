"""Repository layer for data access.

This layer abstracts external dependencies (Redis, the prompt generator
service) behind protocol-based interfaces. The repositories are
protocol-based (structural typing), not inheritance-based.
"""

from prompt_cache.config import settings
from prompt_cache.protocols import PromptCacheStore, PromptGenerator

from .http_prompt_generator import HttpPromptGenerator
from .memory_repository import MemoryPromptCacheRepository
from .redis_repository import RedisPromptCacheRepository


def build_repository() -> PromptCacheStore:
    """Create the store configured by PROMPT_CACHE_BACKEND."""
    if settings.uses_memory_backend:
        return MemoryPromptCacheRepository()
    return RedisPromptCacheRepository.create()


__all__ = [
    "HttpPromptGenerator",
    "MemoryPromptCacheRepository",
    "PromptCacheStore",
    "PromptGenerator",
    "RedisPromptCacheRepository",
    "build_repository",
]
