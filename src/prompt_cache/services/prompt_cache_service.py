"""Prompt cache service for core business logic.

This service owns the lookup, write/dedup and lifecycle rules and talks
to storage only through the PromptCacheStore protocol.
"""

import logging
from dataclasses import replace

from prompt_cache.config import settings
from prompt_cache.entities import (
    DEFAULT_VERSION,
    EntryKey,
    LanguageCode,
    PromptCacheEntry,
    PromptConfig,
    UpsertOutcome,
    UpsertResult,
)
from prompt_cache.exceptions import ConcurrentUpdateError, DuplicateKeyConflict
from prompt_cache.protocols import PromptCacheStore
from prompt_cache.utils import utcnow

from . import lifecycle, matching
from .lifecycle import TtlPolicy

logger = logging.getLogger(__name__)

_MAX_SETTLE_ATTEMPTS = 3


class PromptCacheService:
    """Core prompt cache orchestration service.

    Depends on the PromptCacheStore PROTOCOL, not a concrete backend, so
    the same rules run against Redis in production and the in-memory store
    in tests.

    Example:
        ```python
        from prompt_cache.repositories import RedisPromptCacheRepository
        from prompt_cache.services import PromptCacheService

        cache = PromptCacheService.create(repository=RedisPromptCacheRepository.create())

        entry = cache.get_prompt("user-1", "char-1", affinity_level=42, language_code=LanguageCode.JA)
        if entry is None:
            prompt, elapsed_ms = generate(...)
            cache.store_prompt("user-1", "char-1", config, prompt, elapsed_ms)
        ```
    """

    def __init__(
        self,
        repository: PromptCacheStore,
        affinity_tolerance: int | None = None,
        ttl_policy: TtlPolicy | None = None,
    ) -> None:
        """Initialize the prompt cache service.

        Args:
            repository: Cache storage backend (required).
            affinity_tolerance: Lookup window half-width. Defaults to settings.
            ttl_policy: Retention rule. Defaults to settings.
        """
        self._repository = repository
        self._tolerance = (
            settings.affinity_tolerance if affinity_tolerance is None else affinity_tolerance
        )
        self._ttl_policy = ttl_policy or TtlPolicy.from_settings()

    @classmethod
    def create(
        cls,
        repository: PromptCacheStore,
        affinity_tolerance: int | None = None,
        ttl_policy: TtlPolicy | None = None,
    ) -> "PromptCacheService":
        """Factory method to create PromptCacheService with settings defaults."""
        return cls(
            repository=repository,
            affinity_tolerance=affinity_tolerance,
            ttl_policy=ttl_policy,
        )

    # Lookup

    def find(
        self,
        user_id: str,
        character_id: str,
        affinity_level: int,
        language_code: LanguageCode = LanguageCode.JA,
    ) -> PromptCacheEntry | None:
        """Find the best live entry near an affinity level.

        Business logic:
        1. Query the store for entries within +-tolerance of the level
        2. Keep live entries that match user, character and language exactly
        3. Return the most recently used, ties broken by use count

        Read-only; a None result means the caller must generate.

        Args:
            user_id: Requesting user
            character_id: Character being talked to
            affinity_level: Current affinity level (0-100)
            language_code: Prompt language

        Returns:
            The best matching entry, or None on a miss
        """
        now = utcnow()
        low, high = matching.affinity_window(affinity_level, self._tolerance)
        candidates = self._repository.find_in_range(user_id, character_id, language_code, low, high)
        return matching.pick_best(
            entry
            for entry in candidates
            if matching.matches_range(
                entry, user_id, character_id, affinity_level, language_code, self._tolerance, now
            )
        )

    def get_prompt(
        self,
        user_id: str,
        character_id: str,
        affinity_level: int,
        language_code: LanguageCode = LanguageCode.JA,
    ) -> PromptCacheEntry | None:
        """Serve a cached prompt and record the hit.

        If the hit cannot be recorded because the entry is too contended,
        the entry that was read is still served.

        Returns:
            The entry after hit recording, or None on a miss
        """
        entry = self.find(user_id, character_id, affinity_level, language_code)
        if entry is None or not entry.is_valid(utcnow()):
            return None
        try:
            return self.record_hit(entry)
        except ConcurrentUpdateError as e:
            logger.warning("Hit not recorded for %s: %s", entry.key, e)
            return entry

    # Lifecycle

    def record_hit(self, entry: PromptCacheEntry) -> PromptCacheEntry:
        """Count one served request against an entry.

        Not idempotent: call exactly once per served request. If the entry
        was deleted in the meantime the prompt that was read is still
        served, so the stale copy is returned.
        """
        now = utcnow()
        updated = self._repository.update(
            entry.key,
            lambda current: lifecycle.prepare_for_save(
                lifecycle.apply_hit(current, now), now, self._ttl_policy
            ),
        )
        return updated if updated is not None else entry

    def record_generation(
        self,
        entry: PromptCacheEntry,
        system_prompt: str,
        generation_time: int,
    ) -> PromptCacheEntry:
        """Replace an entry's prompt with a regenerated one.

        Raises:
            EntryValidationError: If the new prompt or timing is out of range
        """
        replace(entry, system_prompt=system_prompt, generation_time=generation_time).validate()

        folded = self._fold(entry.key, system_prompt, generation_time)
        if folded is not None:
            return folded

        # Deleted since it was read: store it again as a new entry
        return self.store_prompt(
            user_id=entry.user_id,
            character_id=entry.character_id,
            prompt_config=entry.prompt_config,
            system_prompt=system_prompt,
            generation_time=generation_time,
            character_version=entry.character_version,
            prompt_version=entry.prompt_version,
        ).entry

    # Write / dedup

    def build_entry(
        self,
        user_id: str,
        character_id: str,
        prompt_config: PromptConfig,
        system_prompt: str,
        generation_time: int = 0,
        character_version: str = DEFAULT_VERSION,
        prompt_version: str = DEFAULT_VERSION,
    ) -> PromptCacheEntry:
        """Build a validated candidate entry for upsert."""
        candidate = lifecycle.new_entry(
            user_id=user_id,
            character_id=character_id,
            prompt_config=prompt_config,
            system_prompt=system_prompt,
            now=utcnow(),
            policy=self._ttl_policy,
            generation_time=generation_time,
            character_version=character_version,
            prompt_version=prompt_version,
        )
        candidate.validate()
        return candidate

    def store_prompt(
        self,
        user_id: str,
        character_id: str,
        prompt_config: PromptConfig,
        system_prompt: str,
        generation_time: int = 0,
        character_version: str = DEFAULT_VERSION,
        prompt_version: str = DEFAULT_VERSION,
    ) -> UpsertResult:
        """Store a freshly generated prompt, inserting or folding.

        Raises:
            EntryValidationError: If any field is out of range
        """
        candidate = self.build_entry(
            user_id=user_id,
            character_id=character_id,
            prompt_config=prompt_config,
            system_prompt=system_prompt,
            generation_time=generation_time,
            character_version=character_version,
            prompt_version=prompt_version,
        )
        return self.upsert(candidate)

    def upsert(self, candidate: PromptCacheEntry) -> UpsertResult:
        """Insert a candidate or fold it into the live entry with the same exact key.

        Business logic:
        1. Look for a live entry on the exact key (optimization only)
        2. If none, insert; the store rejects a racing duplicate
        3. On an existing entry or a rejected insert, fold: overwrite the
           prompt, reset usage, keep the existing row
        4. If the entry vanished before the fold, start over

        Args:
            candidate: The entry to persist

        Returns:
            UpsertResult with INSERTED or FOLDED and the persisted entry

        Raises:
            EntryValidationError: If the candidate is out of range
            ConcurrentUpdateError: If the write did not settle
        """
        candidate.validate()
        key = candidate.key

        for _ in range(_MAX_SETTLE_ATTEMPTS):
            now = utcnow()
            existing = self._repository.get(key)
            if existing is None or existing.is_expired(now):
                try:
                    stored = self._repository.insert(
                        lifecycle.prepare_for_save(candidate, now, self._ttl_policy)
                    )
                    logger.info("New prompt cache created for %s", key)
                    return UpsertResult(outcome=UpsertOutcome.INSERTED, entry=stored)
                except DuplicateKeyConflict:
                    logger.info("Concurrent insert for %s, folding into the existing entry", key)

            folded = self._fold(key, candidate.system_prompt, candidate.generation_time)
            if folded is not None:
                logger.info("Prompt cache folded for %s", key)
                return UpsertResult(outcome=UpsertOutcome.FOLDED, entry=folded)

        raise ConcurrentUpdateError(
            f"Write for {key} did not settle after {_MAX_SETTLE_ATTEMPTS} attempts"
        )

    def _fold(self, key: EntryKey, system_prompt: str, generation_time: int) -> PromptCacheEntry | None:
        now = utcnow()
        return self._repository.update(
            key,
            lambda current: lifecycle.prepare_for_save(
                lifecycle.apply_generation(current, system_prompt, generation_time, now),
                now,
                self._ttl_policy,
            ),
        )

    # Introspection

    def get_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        stats = self._repository.get_stats()
        stats["affinity_tolerance"] = self._tolerance
        stats["ttl_days"] = self._ttl_policy.default_ttl.days
        stats["extended_ttl_days"] = self._ttl_policy.extended_ttl.days
        return stats

    def is_healthy(self) -> bool:
        return self._repository.health_check()

    @property
    def affinity_tolerance(self) -> int:
        return self._tolerance

    @property
    def ttl_policy(self) -> TtlPolicy:
        return self._ttl_policy

    @property
    def repository(self) -> PromptCacheStore:
        """Get the underlying repository (for testing)."""
        return self._repository
