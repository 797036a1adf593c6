"""Prompt Cache - affinity-aware system prompt caching for character chat.

Stores generated system prompts per user, character, affinity level and
language, and serves them back to nearby affinity levels so a prompt is
not regenerated on every chat turn.

Layers:
    - protocols: Interface contracts (PromptCacheStore, PromptGenerator)
    - repositories: Data access implementations (Redis, memory, HTTP generator)
    - services: Business logic (lookup/write, eviction, analytics)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from prompt_cache.repositories import RedisPromptCacheRepository
    from prompt_cache.services import PromptCacheService

    cache = PromptCacheService.create(repository=RedisPromptCacheRepository.create())
    ```

For HTTP API:
    ```python
    from prompt_cache.api.app import app
    ```
"""

from prompt_cache.config import get_redis_client, settings
from prompt_cache.entities import (
    AffinityBand,
    EntryKey,
    LanguageCode,
    MoodModifier,
    PromptCacheEntry,
    PromptConfig,
    ToneStyle,
    UpsertOutcome,
    UpsertResult,
)
from prompt_cache.exceptions import (
    ConcurrentUpdateError,
    DuplicateKeyConflict,
    EntryValidationError,
    GeneratorError,
    PromptCacheError,
    StoreUnavailable,
)
from prompt_cache.protocols import PromptCacheStore, PromptGenerator
from prompt_cache.repositories import (
    HttpPromptGenerator,
    MemoryPromptCacheRepository,
    RedisPromptCacheRepository,
)
from prompt_cache.services import (
    AnalyticsService,
    CleanupScheduler,
    EvictionService,
    PromptCacheService,
    PromptResolver,
)

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "PromptCacheStore",
    "PromptGenerator",
    # Services (business logic)
    "AnalyticsService",
    "CleanupScheduler",
    "EvictionService",
    "PromptCacheService",
    "PromptResolver",
    # Repositories (data access)
    "HttpPromptGenerator",
    "MemoryPromptCacheRepository",
    "RedisPromptCacheRepository",
    # Entities (domain models)
    "AffinityBand",
    "EntryKey",
    "LanguageCode",
    "MoodModifier",
    "PromptCacheEntry",
    "PromptConfig",
    "ToneStyle",
    "UpsertOutcome",
    "UpsertResult",
    # Errors
    "ConcurrentUpdateError",
    "DuplicateKeyConflict",
    "EntryValidationError",
    "GeneratorError",
    "PromptCacheError",
    "StoreUnavailable",
]
