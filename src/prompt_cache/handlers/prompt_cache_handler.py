"""HTTP handlers for prompt cache operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import time
from contextlib import contextmanager

from fastapi import HTTPException, status

from prompt_cache.dto import (
    CacheEntryItem,
    CacheStatsResponse,
    CharacterPerformanceItem,
    CharacterUsageItem,
    CleanupRequest,
    CleanupResponse,
    HealthCheckResponse,
    InvalidateRequest,
    InvalidateResponse,
    InvalidationStatsResponse,
    PerformanceMetricsResponse,
    PromptConfigPayload,
    PromptLookupResponse,
    PromptStoreResponse,
    ResolvePromptRequest,
    ResolvePromptResponse,
    StorePromptRequest,
    TopEntriesResponse,
    TopEntryItem,
    UsageStatsResponse,
)
from prompt_cache.entities import LanguageCode, PromptCacheEntry, PromptConfig
from prompt_cache.exceptions import (
    ConcurrentUpdateError,
    EntryValidationError,
    GeneratorError,
    StoreUnavailable,
)
from prompt_cache.services import AnalyticsService, EvictionService, PromptCacheService, PromptResolver
from prompt_cache.utils import utcnow


@contextmanager
def _http_errors(action: str):
    """Map domain exceptions raised while performing ``action`` to HTTP errors."""
    try:
        yield
    except HTTPException:
        raise
    except EntryValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except ConcurrentUpdateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    except GeneratorError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}: {e}",
        ) from e


def _to_prompt_config(payload: PromptConfigPayload) -> PromptConfig:
    return PromptConfig(
        affinity_level=payload.affinity_level,
        personality_tags=tuple(payload.personality_tags),
        tone_style=payload.tone_style,
        mood_modifiers=tuple(payload.mood_modifiers),
        language_code=payload.language_code,
    )


def _entry_fields(entry: PromptCacheEntry) -> dict:
    return {
        "user_id": entry.user_id,
        "character_id": entry.character_id,
        "affinity_level": entry.affinity_level,
        "affinity_band": entry.affinity_band.value,
        "language_code": entry.language_code.value,
        "use_count": entry.use_count,
        "created_at": entry.created_at,
        "last_used": entry.last_used,
        "ttl": entry.ttl,
        "character_version": entry.character_version,
        "prompt_version": entry.prompt_version,
        "generation_time": entry.generation_time,
        "prompt_length": entry.prompt_length,
        "compression_ratio": entry.compression_ratio,
    }


class PromptCacheHandler:
    """HTTP handlers for prompt cache operations.

    This handler delegates business logic to the services and handles
    HTTP-specific concerns like:
    - Converting entities to DTOs
    - Setting appropriate status codes
    - Error handling and responses
    """

    def __init__(
        self,
        cache_service: PromptCacheService,
        eviction_service: EvictionService,
        analytics_service: AnalyticsService,
        resolver: PromptResolver | None = None,
    ) -> None:
        """Initialize the prompt cache handler.

        Args:
            cache_service: Lookup and write service (required).
            eviction_service: Cleanup and invalidation service (required).
            analytics_service: Reporting service (required).
            resolver: Cache-then-generate flow; None when no generator is configured.
        """
        self._cache = cache_service
        self._eviction = eviction_service
        self._analytics = analytics_service
        self._resolver = resolver

    async def lookup_prompt(
        self,
        user_id: str,
        character_id: str,
        affinity_level: int,
        language_code: LanguageCode,
    ) -> PromptLookupResponse:
        """Handle GET /prompts requests. A miss is a normal 200 response."""
        with _http_errors("look up prompt"):
            start_time = time.time()
            entry = self._cache.get_prompt(user_id, character_id, affinity_level, language_code)
            lookup_time_ms = (time.time() - start_time) * 1000

            if entry is None:
                return PromptLookupResponse(is_hit=False, lookup_time_ms=lookup_time_ms)

            return PromptLookupResponse(
                is_hit=True,
                system_prompt=entry.system_prompt,
                entry=CacheEntryItem(**_entry_fields(entry)),
                lookup_time_ms=lookup_time_ms,
            )

    async def store_prompt(self, request: StorePromptRequest) -> PromptStoreResponse:
        """Handle PUT /prompts requests."""
        with _http_errors("store prompt"):
            result = self._cache.store_prompt(
                user_id=request.user_id,
                character_id=request.character_id,
                prompt_config=_to_prompt_config(request.prompt_config),
                system_prompt=request.system_prompt,
                generation_time=request.generation_time,
                character_version=request.character_version,
                prompt_version=request.prompt_version,
            )

            return PromptStoreResponse(
                success=True,
                outcome=result.outcome.value,
                entry=CacheEntryItem(**_entry_fields(result.entry)),
                message=f"Prompt {result.outcome.value}",
            )

    async def invalidate(self, request: InvalidateRequest) -> InvalidateResponse:
        """Handle POST /prompts/invalidate requests."""
        with _http_errors("invalidate cache"):
            result = self._eviction.invalidate(request.character_id, request.old_version)
            return InvalidateResponse(
                success=True,
                deleted_count=result.deleted_count,
                memory_freed=result.memory_freed,
                message=(
                    f"Invalidated {result.deleted_count} entries for character "
                    f"{request.character_id} version {request.old_version}"
                ),
            )

    async def invalidate_character(self, character_id: str) -> InvalidateResponse:
        """Handle DELETE /prompts/characters/{character_id} requests."""
        with _http_errors("invalidate character cache"):
            result = self._eviction.invalidate_character(character_id)
            return InvalidateResponse(
                success=True,
                deleted_count=result.deleted_count,
                memory_freed=result.memory_freed,
                message=f"Invalidated {result.deleted_count} entries for character {character_id}",
            )

    async def cleanup(self, request: CleanupRequest) -> CleanupResponse:
        """Handle POST /prompts/cleanup requests."""
        with _http_errors("clean up cache"):
            result = self._eviction.cleanup(request.days_old)
            return CleanupResponse(
                success=True,
                deleted_count=result.deleted_count,
                memory_freed=result.memory_freed,
                cleanup_time_ms=result.cleanup_time_ms,
            )

    async def resolve_prompt(self, request: ResolvePromptRequest) -> ResolvePromptResponse:
        """Handle POST /prompts/resolve requests."""
        if self._resolver is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Prompt generator not configured. Set PROMPT_GENERATOR_URL.",
            )

        with _http_errors("resolve prompt"):
            resolved = await self._resolver.resolve(
                user_id=request.user_id,
                character_id=request.character_id,
                prompt_config=_to_prompt_config(request.prompt_config),
                character_version=request.character_version,
                prompt_version=request.prompt_version,
                force_refresh=request.force_refresh,
            )
            return ResolvePromptResponse(
                system_prompt=resolved.system_prompt,
                cache_hit=resolved.cache_hit,
                outcome=resolved.outcome.value if resolved.outcome else None,
                generation_time_ms=resolved.generation_time_ms,
            )

    async def usage_stats(self, days: int) -> UsageStatsResponse:
        """Handle GET /stats/usage requests."""
        with _http_errors("get usage stats"):
            stats = self._analytics.usage_stats(days)
            return UsageStatsResponse(
                days=days,
                characters=[
                    CharacterUsageItem(
                        character_id=s.character_id,
                        entry_count=s.entry_count,
                        total_use_count=s.total_use_count,
                        avg_generation_time=s.avg_generation_time,
                        cache_hit_rate=s.cache_hit_rate,
                        unique_user_count=s.unique_user_count,
                        memory_usage=s.memory_usage,
                        affinity_distribution=s.affinity_distribution,
                    )
                    for s in stats
                ],
            )

    async def top_entries(self, limit: int) -> TopEntriesResponse:
        """Handle GET /stats/top requests."""
        with _http_errors("get top entries"):
            now = utcnow()
            return TopEntriesResponse(
                entries=[
                    TopEntryItem(**_entry_fields(entry), efficiency=entry.efficiency(now))
                    for entry in self._analytics.top_entries(limit)
                ]
            )

    async def invalidation_stats(self, days: int) -> InvalidationStatsResponse:
        """Handle GET /stats/invalidations requests."""
        with _http_errors("get invalidation stats"):
            stats = self._analytics.invalidation_stats(days)
            return InvalidationStatsResponse(
                days=days,
                total_invalidations=stats.total_invalidations,
                ttl_expired=stats.ttl_expired,
                low_usage=stats.low_usage,
                average_lifespan_days=stats.average_lifespan_days,
            )

    async def performance_metrics(self, days: int) -> PerformanceMetricsResponse:
        """Handle GET /stats/performance requests."""
        with _http_errors("get performance metrics"):
            metrics = self._analytics.performance_metrics(days)
            return PerformanceMetricsResponse(
                days=days,
                total_entries=metrics.total_entries,
                total_hits=metrics.total_hits,
                hit_ratio=metrics.hit_ratio,
                avg_generation_time=metrics.avg_generation_time,
                total_memory_usage=metrics.total_memory_usage,
                efficiency_score=metrics.efficiency_score,
                characters=[
                    CharacterPerformanceItem(
                        character_id=c.character_id,
                        entry_count=c.entry_count,
                        total_hits=c.total_hits,
                        hit_ratio=c.hit_ratio,
                        avg_generation_time=c.avg_generation_time,
                        memory_usage=c.memory_usage,
                        last_used=c.last_used,
                        efficiency=c.efficiency,
                    )
                    for c in metrics.characters
                ],
            )

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /stats requests."""
        with _http_errors("get stats"):
            stats = self._cache.get_stats()
            return CacheStatsResponse(
                backend=stats.get("backend", "unknown"),
                total_entries=stats.get("total_entries", 0),
                affinity_tolerance=stats.get("affinity_tolerance", 0),
                ttl_days=stats.get("ttl_days", 0),
                extended_ttl_days=stats.get("extended_ttl_days", 0),
            )

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        cache_healthy = self._cache.is_healthy()
        generator_healthy = None
        if self._resolver is not None:
            generator_healthy = await self._resolver.generator_available()

        return HealthCheckResponse(
            status="healthy" if cache_healthy else "unhealthy",
            cache_healthy=cache_healthy,
            generator_healthy=generator_healthy,
        )
