"""Response DTOs for API endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class CacheEntryItem(BaseModel):
    """Metadata of one cache entry (prompt text excluded)."""

    user_id: str
    character_id: str
    affinity_level: int = Field(..., ge=0, le=100)
    affinity_band: str = Field(..., description="Reporting label derived from the level")
    language_code: str
    use_count: int = Field(..., ge=1)
    created_at: datetime
    last_used: datetime
    ttl: datetime = Field(..., description="Absolute expiry instant")
    character_version: str
    prompt_version: str
    generation_time: int = Field(..., description="Generation time in milliseconds")
    prompt_length: int
    compression_ratio: float


class PromptLookupResponse(BaseModel):
    """Response DTO for a prompt lookup."""

    is_hit: bool = Field(..., description="Whether a cached prompt was served")
    system_prompt: str | None = Field(None, description="The cached prompt on a hit")
    entry: CacheEntryItem | None = None
    lookup_time_ms: float = Field(..., description="Time taken for the lookup in milliseconds")


class PromptStoreResponse(BaseModel):
    """Response DTO for storing a prompt."""

    success: bool
    outcome: str = Field(..., description="'inserted' or 'folded'")
    entry: CacheEntryItem
    message: str


class InvalidateResponse(BaseModel):
    """Response DTO for invalidation operations."""

    success: bool
    deleted_count: int = Field(..., ge=0)
    memory_freed: int = Field(..., description="Prompt characters removed", ge=0)
    message: str


class CleanupResponse(BaseModel):
    """Response DTO for a cleanup sweep."""

    success: bool
    deleted_count: int = Field(..., ge=0)
    memory_freed: int = Field(..., description="Prompt characters removed", ge=0)
    cleanup_time_ms: float


class CharacterUsageItem(BaseModel):
    """Per-character usage rollup."""

    character_id: str
    entry_count: int
    total_use_count: int
    avg_generation_time: float
    cache_hit_rate: float = Field(..., description="Fraction of entries used more than once", ge=0.0, le=1.0)
    unique_user_count: int
    memory_usage: int
    affinity_distribution: dict[str, int] = Field(default_factory=dict)


class UsageStatsResponse(BaseModel):
    """Response DTO for usage statistics."""

    days: int
    characters: list[CharacterUsageItem] = Field(default_factory=list)


class TopEntryItem(CacheEntryItem):
    """A cache entry with its usage rate."""

    efficiency: float = Field(..., description="Uses per day since creation")


class TopEntriesResponse(BaseModel):
    """Response DTO for the most used entries."""

    entries: list[TopEntryItem] = Field(default_factory=list)


class CharacterPerformanceItem(BaseModel):
    """Per-character performance over entries used in the window."""

    character_id: str
    entry_count: int
    total_hits: int
    hit_ratio: float = Field(..., description="Mean use count per entry")
    avg_generation_time: float
    memory_usage: int
    last_used: datetime
    efficiency: float = Field(..., description="Mean entry score (0-1)")


class PerformanceMetricsResponse(BaseModel):
    """Response DTO for cache-wide performance metrics."""

    days: int
    total_entries: int = Field(..., description="Live entries", ge=0)
    total_hits: int
    hit_ratio: float
    avg_generation_time: float
    total_memory_usage: int
    efficiency_score: float = Field(..., description="Entry-weighted mean efficiency (0-1)")
    characters: list[CharacterPerformanceItem] = Field(default_factory=list)


class InvalidationStatsResponse(BaseModel):
    """Response DTO for invalidation statistics."""

    days: int
    total_invalidations: int
    ttl_expired: int
    low_usage: int
    average_lifespan_days: float


class CacheStatsResponse(BaseModel):
    """Response DTO for store statistics."""

    backend: str
    total_entries: int = Field(..., ge=0)
    affinity_tolerance: int
    ttl_days: int
    extended_ttl_days: int


class ResolvePromptResponse(BaseModel):
    """Response DTO for prompt resolution."""

    system_prompt: str
    cache_hit: bool
    outcome: str | None = Field(None, description="How a fresh prompt was stored")
    generation_time_ms: int


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")
    generator_healthy: bool | None = Field(
        None,
        description="Whether the prompt generator is reachable (None if not configured)",
    )
