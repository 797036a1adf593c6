"""In-process implementation of PromptCacheStore.

Keeps entries in a dict keyed by the exact tuple, guarded by a single
lock. Suitable for development, the demo script and tests; state is lost
when the process exits.
"""

import logging
import threading
from collections.abc import Callable, Iterator

from prompt_cache.entities import EntryKey, LanguageCode, PromptCacheEntry
from prompt_cache.exceptions import DuplicateKeyConflict
from prompt_cache.utils import utcnow

logger = logging.getLogger(__name__)


class MemoryPromptCacheRepository:
    """Dict-backed store satisfying the PromptCacheStore protocol.

    Expired entries stay in the dict until a sweep removes them, but an
    insert over an expired entry replaces it rather than conflicting.
    """

    def __init__(self) -> None:
        self._entries: dict[EntryKey, PromptCacheEntry] = {}
        self._lock = threading.Lock()

    def insert(self, entry: PromptCacheEntry) -> PromptCacheEntry:
        key = entry.key
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None and not existing.is_expired(utcnow()):
                raise DuplicateKeyConflict(key)
            self._entries[key] = entry
        return entry

    def get(self, key: EntryKey) -> PromptCacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def find_in_range(
        self,
        user_id: str,
        character_id: str,
        language_code: LanguageCode,
        min_level: int,
        max_level: int,
    ) -> list[PromptCacheEntry]:
        with self._lock:
            return [
                entry
                for key, entry in self._entries.items()
                if key.user_id == user_id
                and key.character_id == character_id
                and key.language_code == language_code
                and min_level <= key.affinity_level <= max_level
            ]

    def update(
        self,
        key: EntryKey,
        mutate: Callable[[PromptCacheEntry], PromptCacheEntry],
    ) -> PromptCacheEntry | None:
        with self._lock:
            current = self._entries.get(key)
            if current is None:
                return None
            updated = mutate(current)
            if updated.key != key:
                raise ValueError(f"Update must not change the entry key ({key})")
            self._entries[key] = updated
            return updated

    def delete_many(
        self,
        predicate: Callable[[PromptCacheEntry], bool],
    ) -> list[PromptCacheEntry]:
        with self._lock:
            doomed = [entry for entry in self._entries.values() if predicate(entry)]
            for entry in doomed:
                del self._entries[entry.key]
        return doomed

    def delete_by_character(
        self,
        character_id: str,
        character_version: str | None = None,
    ) -> list[PromptCacheEntry]:
        return self.delete_many(
            lambda entry: entry.character_id == character_id
            and (character_version is None or entry.character_version == character_version)
        )

    def iter_entries(self) -> Iterator[PromptCacheEntry]:
        with self._lock:
            snapshot = list(self._entries.values())
        return iter(snapshot)

    def count_all(self) -> int:
        with self._lock:
            return len(self._entries)

    def health_check(self) -> bool:
        return True

    def get_stats(self) -> dict:
        return {
            "backend": "memory",
            "total_entries": self.count_all(),
        }
