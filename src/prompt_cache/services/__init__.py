"""Service layer for business logic.

Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from prompt_cache.repositories import RedisPromptCacheRepository
    from prompt_cache.services import EvictionService, PromptCacheService

    repository = RedisPromptCacheRepository.create()
    cache = PromptCacheService.create(repository=repository)
    eviction = EvictionService(repository)
    ```
"""

from .analytics_service import AnalyticsService
from .cleanup_scheduler import CleanupScheduler
from .eviction_service import EvictionService
from .lifecycle import TtlPolicy
from .prompt_cache_service import PromptCacheService
from .prompt_resolver import PromptResolver

__all__ = [
    "AnalyticsService",
    "CleanupScheduler",
    "EvictionService",
    "PromptCacheService",
    "PromptResolver",
    "TtlPolicy",
]
