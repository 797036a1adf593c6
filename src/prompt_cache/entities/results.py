"""Result entities returned by cache operations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .prompt_cache_entry import PromptCacheEntry


class UpsertOutcome(str, Enum):
    """How a write was settled."""

    INSERTED = "inserted"
    FOLDED = "folded"


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of a write plus the entry as persisted."""

    outcome: UpsertOutcome
    entry: PromptCacheEntry


@dataclass(frozen=True)
class CleanupResult:
    """Summary of a low-value pruning sweep.

    Attributes:
        deleted_count: Entries removed
        memory_freed: Sum of prompt lengths removed
        cleanup_time_ms: Wall time of the sweep
    """

    deleted_count: int
    memory_freed: int
    cleanup_time_ms: float


@dataclass(frozen=True)
class InvalidationResult:
    """Summary of a version or character invalidation."""

    deleted_count: int
    memory_freed: int


@dataclass(frozen=True)
class CharacterUsageStats:
    """Per-character rollup over a trailing window.

    Attributes:
        character_id: The character
        entry_count: Entries created in the window
        total_use_count: Sum of use counts
        avg_generation_time: Mean generation time in milliseconds
        cache_hit_rate: Fraction of entries served more than once
        unique_user_count: Distinct users with entries
        memory_usage: Sum of prompt lengths
        affinity_distribution: Entry count per affinity band
    """

    character_id: str
    entry_count: int
    total_use_count: int
    avg_generation_time: float
    cache_hit_rate: float
    unique_user_count: int
    memory_usage: int
    affinity_distribution: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class InvalidationStats:
    """Why entries in a trailing window are (or will be) gone."""

    ttl_expired: int
    low_usage: int
    average_lifespan_days: float

    @property
    def total_invalidations(self) -> int:
        return self.ttl_expired + self.low_usage


@dataclass(frozen=True)
class GeneratedPrompt:
    """Output of the external prompt generator."""

    system_prompt: str
    generation_time_ms: int


@dataclass(frozen=True)
class ResolvedPrompt:
    """A prompt handed back to the chat layer, cached or fresh.

    Attributes:
        system_prompt: The prompt text
        cache_hit: True when served from the cache
        outcome: How the fresh prompt was stored, None on a hit or when
            the store could not be written
        generation_time_ms: Generator time for fresh prompts, 0 on a hit
    """

    system_prompt: str
    cache_hit: bool
    outcome: UpsertOutcome | None = None
    generation_time_ms: int = 0


@dataclass(frozen=True)
class CharacterPerformance:
    """Per-character performance over entries used in a trailing window.

    Attributes:
        character_id: The character
        entry_count: Live entries used in the window
        total_hits: Sum of use counts
        hit_ratio: Mean use count per entry
        avg_generation_time: Mean generation time in milliseconds
        memory_usage: Sum of prompt lengths
        last_used: Most recent use of any of the entries
        efficiency: Mean entry score in [0, 1] (usage, age and prompt size)
    """

    character_id: str
    entry_count: int
    total_hits: int
    hit_ratio: float
    avg_generation_time: float
    memory_usage: int
    last_used: datetime
    efficiency: float


@dataclass(frozen=True)
class PerformanceMetrics:
    """Cache-wide performance summary."""

    total_entries: int
    total_hits: int
    hit_ratio: float
    avg_generation_time: float
    total_memory_usage: int
    efficiency_score: float
    characters: list[CharacterPerformance] = field(default_factory=list)
