"""Prompt cache storage protocol.

Defines the interface for any backend that can persist prompt cache
entries with an exact-key uniqueness guarantee, an affinity range query,
and bulk deletes.

Implementations:
- Redis (default)
- In-process memory (development and tests)
"""

from collections.abc import Callable, Iterator
from typing import Protocol, runtime_checkable

from prompt_cache.entities import EntryKey, LanguageCode, PromptCacheEntry


@runtime_checkable
class PromptCacheStore(Protocol):
    """Protocol for prompt cache storage backends.

    Any type that implements these methods satisfies the protocol, no
    explicit inheritance needed. Every method is atomic with respect to a
    single entry; nothing spans entries.

    Implementations raise ``StoreUnavailable`` when the backend cannot be
    reached.
    """

    def insert(self, entry: PromptCacheEntry) -> PromptCacheEntry:
        """Insert a new entry.

        Args:
            entry: The entry to persist, derived fields already computed

        Returns:
            The entry as stored

        Raises:
            DuplicateKeyConflict: If a live entry already exists for entry.key
        """
        ...

    def get(self, key: EntryKey) -> PromptCacheEntry | None:
        """Fetch the entry stored under an exact key.

        Args:
            key: The exact tuple

        Returns:
            The entry, or None if absent
        """
        ...

    def find_in_range(
        self,
        user_id: str,
        character_id: str,
        language_code: LanguageCode,
        min_level: int,
        max_level: int,
    ) -> list[PromptCacheEntry]:
        """Fetch entries whose affinity level lies in [min_level, max_level].

        Expired entries may be included; callers filter on ttl.

        Returns:
            Matching entries in no particular order
        """
        ...

    def update(
        self,
        key: EntryKey,
        mutate: Callable[[PromptCacheEntry], PromptCacheEntry],
    ) -> PromptCacheEntry | None:
        """Atomically read, transform and write back one entry.

        Args:
            key: The exact tuple
            mutate: Pure transform from the current entry to its new state

        Returns:
            The entry as written, or None if no entry exists for key

        Raises:
            ConcurrentUpdateError: If optimistic retries are exhausted
        """
        ...

    def delete_many(
        self,
        predicate: Callable[[PromptCacheEntry], bool],
    ) -> list[PromptCacheEntry]:
        """Delete every entry matching a predicate in one sweep.

        Returns:
            The deleted entries
        """
        ...

    def delete_by_character(
        self,
        character_id: str,
        character_version: str | None = None,
    ) -> list[PromptCacheEntry]:
        """Delete a character's entries, optionally only one version.

        Args:
            character_id: The character
            character_version: Only delete entries with this version; all if None

        Returns:
            The deleted entries
        """
        ...

    def iter_entries(self) -> Iterator[PromptCacheEntry]:
        """Iterate over a snapshot of stored entries.

        Entries created or deleted during iteration may or may not appear.
        """
        ...

    def count_all(self) -> int:
        """Count stored entries."""
        ...

    def health_check(self) -> bool:
        """Check if the store is reachable."""
        ...

    def get_stats(self) -> dict:
        """Get store statistics (implementation-specific)."""
        ...
