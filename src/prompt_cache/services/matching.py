"""Pure predicates deciding which entries a cache operation touches.

Reads and writes deliberately match differently:

- ``matches_exact_key`` is used only by the write path. Two entries are
  the same entry only when user, character, affinity level and language
  are all identical.
- ``matches_range`` is used only by the lookup path. A stored entry can
  serve any request whose affinity level lies within the tolerance window.

So entries at levels 18 and 24 coexist in storage, and a read at 21 may be
served by either.
"""

from collections.abc import Iterable
from datetime import datetime

from prompt_cache.entities import EntryKey, LanguageCode, PromptCacheEntry

MIN_AFFINITY = 0
MAX_AFFINITY = 100


def affinity_window(affinity_level: int, tolerance: int) -> tuple[int, int]:
    """Inclusive level range a lookup at affinity_level accepts, clamped to 0-100."""
    return (
        max(MIN_AFFINITY, affinity_level - tolerance),
        min(MAX_AFFINITY, affinity_level + tolerance),
    )


def matches_exact_key(entry: PromptCacheEntry, key: EntryKey) -> bool:
    """Check whether an entry occupies the exact dedup key."""
    return entry.key == key


def matches_range(
    entry: PromptCacheEntry,
    user_id: str,
    character_id: str,
    affinity_level: int,
    language_code: LanguageCode,
    tolerance: int,
    now: datetime,
) -> bool:
    """Check whether a live entry may serve a lookup."""
    low, high = affinity_window(affinity_level, tolerance)
    return (
        entry.user_id == user_id
        and entry.character_id == character_id
        and entry.language_code == language_code
        and low <= entry.affinity_level <= high
        and entry.ttl > now
    )


def pick_best(entries: Iterable[PromptCacheEntry]) -> PromptCacheEntry | None:
    """Most recently used entry, ties broken by the higher use count."""
    return max(entries, key=lambda entry: (entry.last_used, entry.use_count), default=None)


def is_prunable(entry: PromptCacheEntry, cutoff: datetime, now: datetime) -> bool:
    """Low-value test: idle since before cutoff, expired, or never reused."""
    return entry.last_used < cutoff or entry.ttl < now or entry.use_count < 2
