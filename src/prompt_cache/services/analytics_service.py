"""Read-only usage rollups over the prompt cache.

Aggregation runs over a snapshot iterator, so entries created, updated
or deleted during a pass may or may not be counted.
"""

from collections import Counter, defaultdict
from datetime import datetime, timedelta

from prompt_cache.entities import (
    AffinityBand,
    CharacterPerformance,
    CharacterUsageStats,
    InvalidationStats,
    PerformanceMetrics,
    PromptCacheEntry,
)
from prompt_cache.protocols import PromptCacheStore
from prompt_cache.utils import utcnow

_USAGE_SATURATION = 10
_AGE_HORIZON_DAYS = 30
_OPTIMAL_PROMPT_LENGTH = 2000


def entry_score(entry: PromptCacheEntry, now: datetime) -> float:
    """Score an entry in [0, 1]: half usage, 30% freshness, 20% prompt size.

    Usage saturates at ten uses, freshness reaches zero after thirty days
    and the size score peaks at a 2000 character prompt.
    """
    usage = min(entry.use_count / _USAGE_SATURATION, 1.0)
    age_days = (now - entry.created_at) / timedelta(days=1)
    freshness = min(1.0, max(0.0, 1 - age_days / _AGE_HORIZON_DAYS))
    deviation = abs(entry.prompt_length - _OPTIMAL_PROMPT_LENGTH) / _OPTIMAL_PROMPT_LENGTH
    size = max(0.0, 1 - deviation)
    return usage * 0.5 + freshness * 0.3 + size * 0.2


def _weighted_mean(pairs: list[tuple[float, int]]) -> float:
    total_weight = sum(weight for _, weight in pairs)
    if total_weight == 0:
        return 0.0
    return sum(value * weight for value, weight in pairs) / total_weight


class AnalyticsService:
    """Operational reporting over stored entries. Never mutates anything."""

    def __init__(self, repository: PromptCacheStore) -> None:
        self._repository = repository

    def usage_stats(self, days: int = 30) -> list[CharacterUsageStats]:
        """Per-character usage for entries created in the last ``days`` days.

        Returns:
            One CharacterUsageStats per character, busiest first
        """
        start = utcnow() - timedelta(days=days)
        by_character: dict[str, list[PromptCacheEntry]] = defaultdict(list)
        for entry in self._repository.iter_entries():
            if entry.created_at >= start:
                by_character[entry.character_id].append(entry)

        stats = [
            self._character_stats(character_id, entries)
            for character_id, entries in by_character.items()
        ]
        stats.sort(key=lambda s: (-s.total_use_count, s.character_id))
        return stats

    @staticmethod
    def _character_stats(character_id: str, entries: list[PromptCacheEntry]) -> CharacterUsageStats:
        count = len(entries)
        bands = Counter(entry.affinity_band for entry in entries)
        return CharacterUsageStats(
            character_id=character_id,
            entry_count=count,
            total_use_count=sum(entry.use_count for entry in entries),
            avg_generation_time=sum(entry.generation_time for entry in entries) / count,
            cache_hit_rate=sum(1 for entry in entries if entry.use_count > 1) / count,
            unique_user_count=len({entry.user_id for entry in entries}),
            memory_usage=sum(entry.prompt_length for entry in entries),
            affinity_distribution={band.value: bands.get(band, 0) for band in AffinityBand},
        )

    def top_entries(self, limit: int = 10) -> list[PromptCacheEntry]:
        """Live entries ordered by use count, then recency."""
        now = utcnow()
        live = [entry for entry in self._repository.iter_entries() if not entry.is_expired(now)]
        live.sort(key=lambda entry: (entry.use_count, entry.last_used), reverse=True)
        return live[:limit]

    def invalidation_stats(self, days: int = 30) -> InvalidationStats:
        """Summarize why entries created in the window are, or will be, removed."""
        now = utcnow()
        start = now - timedelta(days=days)
        recent = [entry for entry in self._repository.iter_entries() if entry.created_at >= start]

        lifespans = [(entry.last_used - entry.created_at) / timedelta(days=1) for entry in recent]
        return InvalidationStats(
            ttl_expired=sum(1 for entry in recent if entry.ttl < now),
            low_usage=sum(1 for entry in recent if entry.use_count < 2),
            average_lifespan_days=sum(lifespans) / len(lifespans) if lifespans else 0.0,
        )

    def performance_metrics(self, days: int = 30) -> PerformanceMetrics:
        """Cache-wide performance over live entries used in the last ``days`` days.

        ``total_entries`` counts every live entry; the other totals and the
        per-character breakdown only cover entries used in the window.
        Characters are ordered by efficiency, best first.
        """
        now = utcnow()
        start = now - timedelta(days=days)
        live = [entry for entry in self._repository.iter_entries() if not entry.is_expired(now)]

        by_character: dict[str, list[PromptCacheEntry]] = defaultdict(list)
        for entry in live:
            if entry.last_used >= start:
                by_character[entry.character_id].append(entry)

        characters = [
            self._character_performance(character_id, entries, now)
            for character_id, entries in by_character.items()
        ]
        characters.sort(key=lambda c: (-c.efficiency, c.character_id))

        total_hits = sum(c.total_hits for c in characters)
        used_entries = sum(c.entry_count for c in characters)
        return PerformanceMetrics(
            total_entries=len(live),
            total_hits=total_hits,
            hit_ratio=total_hits / used_entries if used_entries else 0.0,
            avg_generation_time=_weighted_mean(
                [(c.avg_generation_time, c.entry_count) for c in characters]
            ),
            total_memory_usage=sum(c.memory_usage for c in characters),
            efficiency_score=_weighted_mean([(c.efficiency, c.entry_count) for c in characters]),
            characters=characters,
        )

    @staticmethod
    def _character_performance(
        character_id: str,
        entries: list[PromptCacheEntry],
        now: datetime,
    ) -> CharacterPerformance:
        count = len(entries)
        total_hits = sum(entry.use_count for entry in entries)
        return CharacterPerformance(
            character_id=character_id,
            entry_count=count,
            total_hits=total_hits,
            hit_ratio=total_hits / count,
            avg_generation_time=sum(entry.generation_time for entry in entries) / count,
            memory_usage=sum(entry.prompt_length for entry in entries),
            last_used=max(entry.last_used for entry in entries),
            efficiency=sum(entry_score(entry, now) for entry in entries) / count,
        )
