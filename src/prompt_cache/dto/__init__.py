"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import (
    CleanupRequest,
    InvalidateRequest,
    PromptConfigPayload,
    ResolvePromptRequest,
    StorePromptRequest,
)
from .responses import (
    CacheEntryItem,
    CacheStatsResponse,
    CharacterPerformanceItem,
    CharacterUsageItem,
    CleanupResponse,
    HealthCheckResponse,
    InvalidateResponse,
    InvalidationStatsResponse,
    PerformanceMetricsResponse,
    PromptLookupResponse,
    PromptStoreResponse,
    ResolvePromptResponse,
    TopEntriesResponse,
    TopEntryItem,
    UsageStatsResponse,
)

__all__ = [
    "CacheEntryItem",
    "CacheStatsResponse",
    "CharacterPerformanceItem",
    "CharacterUsageItem",
    "CleanupRequest",
    "CleanupResponse",
    "HealthCheckResponse",
    "InvalidateRequest",
    "InvalidateResponse",
    "InvalidationStatsResponse",
    "PerformanceMetricsResponse",
    "PromptConfigPayload",
    "PromptLookupResponse",
    "PromptStoreResponse",
    "ResolvePromptRequest",
    "ResolvePromptResponse",
    "StorePromptRequest",
    "TopEntriesResponse",
    "TopEntryItem",
    "UsageStatsResponse",
]
