"""Redis implementation of PromptCacheStore.

Layout (all keys under a configurable prefix):

- ``{prefix}:entry:{user}:{character}:{lang}:{level}``: JSON string holding
  one entry. The key is derived from the exact tuple, so the key space
  itself enforces uniqueness; inserts use ``SET NX`` and carry a native
  expiry at the entry's ttl.
- ``{prefix}:range:{user}:{character}:{lang}``: sorted set of entry keys
  scored by affinity level, for range lookups.
- ``{prefix}:character:{character}``: set of entry keys, for version
  invalidation.

Index members can outlive their entry when Redis expires the entry key;
readers skip them and cleanup sweeps drop them.
"""

import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from itertools import islice
from urllib.parse import quote

import redis

from prompt_cache.config import get_redis_client, settings
from prompt_cache.entities import (
    EntryKey,
    LanguageCode,
    MoodModifier,
    PromptCacheEntry,
    PromptConfig,
    ToneStyle,
)
from prompt_cache.exceptions import ConcurrentUpdateError, DuplicateKeyConflict, StoreUnavailable
from prompt_cache.utils import from_timestamp

logger = logging.getLogger(__name__)

_BATCH_SIZE = 500


def _batched(items: Iterator[str], size: int) -> Iterator[list[str]]:
    iterator = iter(items)
    while batch := list(islice(iterator, size)):
        yield batch


class RedisPromptCacheRepository:
    """Redis implementation of the PromptCacheStore protocol.

    This class satisfies the protocol through structural typing - no
    explicit inheritance needed.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
        max_update_retries: int = 5,
    ) -> None:
        """Initialize the Redis prompt cache repository.

        Args:
            redis_client: Redis client instance. If None, creates default.
            key_prefix: Namespace for every key this repository touches.
            max_update_retries: Optimistic retries before an update gives up.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.cache_key_prefix
        self._max_update_retries = max_update_retries

    @classmethod
    def create(cls, key_prefix: str | None = None) -> "RedisPromptCacheRepository":
        """Factory method to create RedisPromptCacheRepository with defaults.

        Args:
            key_prefix: Key namespace. If None, uses settings.

        Returns:
            Configured RedisPromptCacheRepository
        """
        return cls(key_prefix=key_prefix)

    # Keys

    def _entry_key(self, key: EntryKey) -> str:
        return (
            f"{self._prefix}:entry:{quote(key.user_id, safe='')}:"
            f"{quote(key.character_id, safe='')}:{key.language_code.value}:{key.affinity_level}"
        )

    def _range_key(self, user_id: str, character_id: str, language_code: LanguageCode) -> str:
        return (
            f"{self._prefix}:range:{quote(user_id, safe='')}:"
            f"{quote(character_id, safe='')}:{language_code.value}"
        )

    def _character_key(self, character_id: str) -> str:
        return f"{self._prefix}:character:{quote(character_id, safe='')}"

    # Serialization

    @staticmethod
    def _encode(entry: PromptCacheEntry) -> str:
        config = entry.prompt_config
        return json.dumps(
            {
                "user_id": entry.user_id,
                "character_id": entry.character_id,
                "system_prompt": entry.system_prompt,
                "prompt_config": {
                    "affinity_level": config.affinity_level,
                    "personality_tags": list(config.personality_tags),
                    "tone_style": config.tone_style.value,
                    "mood_modifiers": [mood.value for mood in config.mood_modifiers],
                    "language_code": config.language_code.value,
                },
                "created_at": entry.created_at.timestamp(),
                "last_used": entry.last_used.timestamp(),
                "ttl": entry.ttl.timestamp(),
                "use_count": entry.use_count,
                "character_version": entry.character_version,
                "prompt_version": entry.prompt_version,
                "generation_time": entry.generation_time,
                "prompt_length": entry.prompt_length,
                "compression_ratio": entry.compression_ratio,
            },
            ensure_ascii=False,
        )

    @staticmethod
    def _decode(raw: str | bytes) -> PromptCacheEntry:
        data = json.loads(raw)
        config = data["prompt_config"]
        return PromptCacheEntry(
            user_id=data["user_id"],
            character_id=data["character_id"],
            system_prompt=data["system_prompt"],
            prompt_config=PromptConfig(
                affinity_level=int(config["affinity_level"]),
                personality_tags=tuple(config.get("personality_tags", ())),
                tone_style=ToneStyle(config["tone_style"]),
                mood_modifiers=tuple(MoodModifier(m) for m in config.get("mood_modifiers", ())),
                language_code=LanguageCode(config.get("language_code", LanguageCode.JA.value)),
            ),
            created_at=from_timestamp(data["created_at"]),
            last_used=from_timestamp(data["last_used"]),
            ttl=from_timestamp(data["ttl"]),
            use_count=int(data["use_count"]),
            character_version=data["character_version"],
            prompt_version=data["prompt_version"],
            generation_time=int(data["generation_time"]),
            prompt_length=int(data["prompt_length"]),
            compression_ratio=float(data["compression_ratio"]),
        )

    @staticmethod
    def _expiry_ms(entry: PromptCacheEntry) -> int:
        return int(entry.ttl.timestamp() * 1000)

    @contextmanager
    def _store_errors(self, operation: str):
        """Translate connection-level Redis failures into StoreUnavailable."""
        try:
            yield
        except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as e:
            logger.error("Redis %s failed: %s", operation, e)
            raise StoreUnavailable(f"Redis {operation} failed: {e}") from e

    # Protocol

    def insert(self, entry: PromptCacheEntry) -> PromptCacheEntry:
        """Insert a new entry; the whole write runs in one MULTI block.

        If the key already exists the SET NX is a no-op, and re-adding the
        same index members is harmless because they are derived from the key.
        """
        redis_key = self._entry_key(entry.key)
        with self._store_errors("insert"):
            pipe = self._client.pipeline(transaction=True)
            pipe.set(redis_key, self._encode(entry), nx=True, pxat=self._expiry_ms(entry))
            pipe.zadd(
                self._range_key(entry.user_id, entry.character_id, entry.language_code),
                {redis_key: entry.affinity_level},
            )
            pipe.sadd(self._character_key(entry.character_id), redis_key)
            created = pipe.execute()[0]

        if not created:
            raise DuplicateKeyConflict(entry.key)
        return entry

    def get(self, key: EntryKey) -> PromptCacheEntry | None:
        with self._store_errors("get"):
            raw = self._client.get(self._entry_key(key))
        return self._decode(raw) if raw is not None else None

    def find_in_range(
        self,
        user_id: str,
        character_id: str,
        language_code: LanguageCode,
        min_level: int,
        max_level: int,
    ) -> list[PromptCacheEntry]:
        with self._store_errors("range lookup"):
            keys = self._client.zrangebyscore(
                self._range_key(user_id, character_id, language_code), min_level, max_level
            )
            if not keys:
                return []
            values = self._client.mget(keys)
        return [self._decode(raw) for raw in values if raw is not None]

    def update(
        self,
        key: EntryKey,
        mutate: Callable[[PromptCacheEntry], PromptCacheEntry],
    ) -> PromptCacheEntry | None:
        """Optimistic read-modify-write using WATCH/MULTI."""
        redis_key = self._entry_key(key)
        with self._store_errors("update"), self._client.pipeline() as pipe:
            for _ in range(self._max_update_retries):
                try:
                    pipe.watch(redis_key)
                    raw = pipe.get(redis_key)
                    if raw is None:
                        pipe.unwatch()
                        return None

                    updated = mutate(self._decode(raw))
                    if updated.key != key:
                        raise ValueError(f"Update must not change the entry key ({key})")

                    pipe.multi()
                    pipe.set(redis_key, self._encode(updated), pxat=self._expiry_ms(updated))
                    pipe.execute()
                    return updated
                except redis.exceptions.WatchError:
                    logger.debug("Concurrent write on %s, retrying", redis_key)
                    continue

        raise ConcurrentUpdateError(
            f"Gave up updating {key} after {self._max_update_retries} attempts"
        )

    def delete_many(
        self,
        predicate: Callable[[PromptCacheEntry], bool],
    ) -> list[PromptCacheEntry]:
        """Delete every entry matching predicate.

        The MGET snapshot only nominates candidates. Each candidate is read
        again under WATCH and deleted in MULTI only if it still matches, so
        an entry touched by a concurrent hit survives the sweep.
        """
        candidates: list[str] = []
        deleted: list[PromptCacheEntry] = []
        with self._store_errors("sweep"):
            for keys in _batched(self._scan(f"{self._prefix}:entry:*"), _BATCH_SIZE):
                for redis_key, raw in zip(keys, self._client.mget(keys)):
                    if raw is not None and predicate(self._decode(raw)):
                        candidates.append(redis_key)

            for redis_key in candidates:
                entry = self._delete_if(redis_key, predicate)
                if entry is not None:
                    deleted.append(entry)
            pruned = self._prune_indexes()

        if pruned:
            logger.info("Dropped %d dangling index members", pruned)
        return deleted

    def delete_by_character(
        self,
        character_id: str,
        character_version: str | None = None,
    ) -> list[PromptCacheEntry]:
        character_key = self._character_key(character_id)
        doomed: list[tuple[str, PromptCacheEntry]] = []
        with self._store_errors("character delete"):
            members = list(self._client.smembers(character_key))
            dangling = []
            for keys in _batched(iter(members), _BATCH_SIZE):
                for redis_key, raw in zip(keys, self._client.mget(keys)):
                    if raw is None:
                        dangling.append(redis_key)
                        continue
                    entry = self._decode(raw)
                    if character_version is None or entry.character_version == character_version:
                        doomed.append((redis_key, entry))

            if dangling:
                self._client.srem(character_key, *dangling)
            self._delete_entries(doomed)

        return [entry for _, entry in doomed]

    def iter_entries(self) -> Iterator[PromptCacheEntry]:
        with self._store_errors("scan"):
            for keys in _batched(self._scan(f"{self._prefix}:entry:*"), _BATCH_SIZE):
                for raw in self._client.mget(keys):
                    # Deleted between SCAN and MGET
                    if raw is not None:
                        yield self._decode(raw)

    def count_all(self) -> int:
        with self._store_errors("count"):
            return sum(1 for _ in self._scan(f"{self._prefix}:entry:*"))

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.exceptions.RedisError:
            return False

    def get_stats(self) -> dict:
        return {
            "backend": "redis",
            "key_prefix": self._prefix,
            "total_entries": self.count_all(),
        }

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client

    # Internals

    def _scan(self, pattern: str) -> Iterator[str]:
        return self._client.scan_iter(match=pattern, count=_BATCH_SIZE)

    def _delete_entries(self, doomed: list[tuple[str, PromptCacheEntry]]) -> None:
        if not doomed:
            return
        pipe = self._client.pipeline(transaction=False)
        for redis_key, entry in doomed:
            pipe.delete(redis_key)
            pipe.zrem(
                self._range_key(entry.user_id, entry.character_id, entry.language_code), redis_key
            )
            pipe.srem(self._character_key(entry.character_id), redis_key)
        pipe.execute()

    def _delete_if(
        self,
        redis_key: str,
        predicate: Callable[[PromptCacheEntry], bool],
    ) -> PromptCacheEntry | None:
        """Delete one entry and its index members if it still matches.

        A concurrent write aborts the MULTI; the entry is then left for the
        next sweep to judge again.
        """
        with self._client.pipeline() as pipe:
            try:
                pipe.watch(redis_key)
                raw = pipe.get(redis_key)
                if raw is None:
                    pipe.unwatch()
                    return None

                entry = self._decode(raw)
                if not predicate(entry):
                    pipe.unwatch()
                    return None

                pipe.multi()
                pipe.delete(redis_key)
                pipe.zrem(
                    self._range_key(entry.user_id, entry.character_id, entry.language_code),
                    redis_key,
                )
                pipe.srem(self._character_key(entry.character_id), redis_key)
                pipe.execute()
                return entry
            except redis.exceptions.WatchError:
                logger.debug("Entry %s changed during sweep, skipping", redis_key)
                return None

    def _prune_indexes(self) -> int:
        """Remove index members whose entry key no longer exists."""
        removed = 0
        for index_key in list(self._scan(f"{self._prefix}:character:*")):
            members = list(self._client.smembers(index_key))
            missing = self._missing_keys(members)
            if missing:
                removed += self._client.srem(index_key, *missing)

        for index_key in list(self._scan(f"{self._prefix}:range:*")):
            members = self._client.zrange(index_key, 0, -1)
            missing = self._missing_keys(members)
            if missing:
                removed += self._client.zrem(index_key, *missing)
        return removed

    def _missing_keys(self, keys: list[str]) -> list[str]:
        if not keys:
            return []
        pipe = self._client.pipeline(transaction=False)
        for key in keys:
            pipe.exists(key)
        return [key for key, exists in zip(keys, pipe.execute()) if not exists]
