"""Eviction and invalidation of prompt cache entries.

Every operation here is idempotent and safe to run while requests are
being served: a request that read an entry just before it was deleted
simply serves it one last time.
"""

import logging
import time
from datetime import timedelta

from prompt_cache.config import settings
from prompt_cache.entities import CleanupResult, InvalidationResult, PromptCacheEntry
from prompt_cache.protocols import PromptCacheStore
from prompt_cache.utils import utcnow

from . import matching

logger = logging.getLogger(__name__)


def _memory_of(entries: list[PromptCacheEntry]) -> int:
    return sum(entry.prompt_length for entry in entries)


class EvictionService:
    """Removes expired, low-value and superseded entries."""

    def __init__(self, repository: PromptCacheStore, days_old: int | None = None) -> None:
        """Initialize the eviction service.

        Args:
            repository: Cache storage backend (required).
            days_old: Default idle horizon for cleanup. Defaults to settings.
        """
        self._repository = repository
        self._days_old = settings.cleanup_days_old if days_old is None else days_old

    def purge_expired(self) -> int:
        """Delete entries whose ttl has passed.

        Lookups already ignore them; this reclaims the storage.

        Returns:
            Number of entries deleted
        """
        now = utcnow()
        deleted = self._repository.delete_many(lambda entry: entry.ttl < now)
        if deleted:
            logger.info("Purged %d expired prompt caches", len(deleted))
        return len(deleted)

    def cleanup(self, days_old: int | None = None) -> CleanupResult:
        """Prune low-value entries in one sweep.

        Deletes entries matching ANY of: unused for more than days_old
        days, ttl already passed, or used fewer than twice.

        Args:
            days_old: Idle horizon in days. Defaults to the service default.

        Returns:
            CleanupResult with count, freed prompt characters and duration
        """
        days_old = self._days_old if days_old is None else days_old
        if days_old < 0:
            raise ValueError("days_old must be >= 0")

        start_time = time.perf_counter()
        now = utcnow()
        cutoff = now - timedelta(days=days_old)

        deleted = self._repository.delete_many(
            lambda entry: matching.is_prunable(entry, cutoff, now)
        )
        result = CleanupResult(
            deleted_count=len(deleted),
            memory_freed=_memory_of(deleted),
            cleanup_time_ms=(time.perf_counter() - start_time) * 1000,
        )
        logger.info(
            "Prompt cache cleanup removed %d entries (%d chars) in %.1f ms",
            result.deleted_count,
            result.memory_freed,
            result.cleanup_time_ms,
        )
        return result

    def invalidate(self, character_id: str, old_version: str) -> InvalidationResult:
        """Delete every entry built from a superseded character version.

        Usage and ttl are ignored: stale prompts must never be served after
        a character edit. Entries with other versions are untouched.

        Args:
            character_id: The edited character
            old_version: The version being replaced

        Returns:
            InvalidationResult with count and freed prompt characters
        """
        deleted = self._repository.delete_by_character(character_id, old_version)
        logger.info(
            "Cache invalidated for character %s version %s: %d entries",
            character_id,
            old_version,
            len(deleted),
        )
        return InvalidationResult(deleted_count=len(deleted), memory_freed=_memory_of(deleted))

    def invalidate_character(self, character_id: str) -> InvalidationResult:
        """Delete every entry of a character regardless of version."""
        deleted = self._repository.delete_by_character(character_id)
        logger.info("Cache invalidated for character %s: %d entries", character_id, len(deleted))
        return InvalidationResult(deleted_count=len(deleted), memory_freed=_memory_of(deleted))

    @property
    def days_old(self) -> int:
        return self._days_old
