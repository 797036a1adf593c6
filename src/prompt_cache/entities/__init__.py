"""Domain entities for internal representation.

These are pure dataclasses (frozen) used internally by services
and repositories. They are NOT used for API contracts - use DTOs
from the dto package for that.
"""

from .prompt_cache_entry import (
    DEFAULT_VERSION,
    MAX_USE_COUNT,
    EntryKey,
    PromptCacheEntry,
)
from .prompt_config import AffinityBand, LanguageCode, MoodModifier, PromptConfig, ToneStyle
from .results import (
    CharacterPerformance,
    CharacterUsageStats,
    CleanupResult,
    GeneratedPrompt,
    InvalidationResult,
    InvalidationStats,
    PerformanceMetrics,
    ResolvedPrompt,
    UpsertOutcome,
    UpsertResult,
)

__all__ = [
    "AffinityBand",
    "CharacterPerformance",
    "CharacterUsageStats",
    "CleanupResult",
    "DEFAULT_VERSION",
    "EntryKey",
    "GeneratedPrompt",
    "InvalidationResult",
    "InvalidationStats",
    "LanguageCode",
    "MAX_USE_COUNT",
    "MoodModifier",
    "PerformanceMetrics",
    "PromptCacheEntry",
    "PromptConfig",
    "ResolvedPrompt",
    "ToneStyle",
    "UpsertOutcome",
    "UpsertResult",
]
