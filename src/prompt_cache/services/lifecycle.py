"""Pure lifecycle transforms applied to entries around every write.

Nothing here talks to a store. The service layer composes these into the
``mutate`` callables handed to ``PromptCacheStore.update`` and runs
``prepare_for_save`` on everything it persists.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from prompt_cache.config import settings
from prompt_cache.entities import (
    DEFAULT_VERSION,
    MAX_USE_COUNT,
    PromptCacheEntry,
    PromptConfig,
)

MIN_COMPRESSION_RATIO = 0.1
MAX_COMPRESSION_RATIO = 10.0


@dataclass(frozen=True)
class TtlPolicy:
    """Usage-weighted retention.

    New entries live ``default_ttl``. Once an entry has been used more than
    ``extension_threshold`` times, each write pushes its expiry to
    ``extended_ttl`` from now.
    """

    default_ttl: timedelta = timedelta(days=30)
    extended_ttl: timedelta = timedelta(days=60)
    extension_threshold: int = 10

    @classmethod
    def from_settings(cls) -> "TtlPolicy":
        return cls(
            default_ttl=timedelta(days=settings.ttl_days),
            extended_ttl=timedelta(days=settings.extended_ttl_days),
            extension_threshold=settings.extension_threshold,
        )


def compression_ratio(prompt_length: int, prompt_config: PromptConfig) -> float:
    base = prompt_config.base_size
    ratio = prompt_length / base if base > 0 else 1.0
    return min(MAX_COMPRESSION_RATIO, max(MIN_COMPRESSION_RATIO, ratio))


def recompute_derived(entry: PromptCacheEntry) -> PromptCacheEntry:
    """Recompute prompt_length and compression_ratio from the payload."""
    prompt_length = len(entry.system_prompt)
    return replace(
        entry,
        prompt_length=prompt_length,
        compression_ratio=compression_ratio(prompt_length, entry.prompt_config),
    )


def apply_ttl_rule(entry: PromptCacheEntry, now: datetime, policy: TtlPolicy) -> PromptCacheEntry:
    """Extend the ttl of frequently used entries; never shorten it."""
    if entry.use_count > policy.extension_threshold:
        return replace(entry, ttl=max(entry.ttl, now + policy.extended_ttl))
    return entry


def prepare_for_save(entry: PromptCacheEntry, now: datetime, policy: TtlPolicy) -> PromptCacheEntry:
    return apply_ttl_rule(recompute_derived(entry), now, policy)


def apply_hit(entry: PromptCacheEntry, now: datetime) -> PromptCacheEntry:
    return replace(entry, use_count=min(entry.use_count + 1, MAX_USE_COUNT), last_used=now)


def apply_generation(
    entry: PromptCacheEntry,
    system_prompt: str,
    generation_time: int,
    now: datetime,
) -> PromptCacheEntry:
    """Overwrite the payload in place and restart usage counting.

    Creation time, ttl, versions and configuration are kept.
    """
    return replace(
        entry,
        system_prompt=system_prompt,
        generation_time=generation_time,
        prompt_length=len(system_prompt),
        last_used=now,
        use_count=1,
    )


def new_entry(
    user_id: str,
    character_id: str,
    prompt_config: PromptConfig,
    system_prompt: str,
    now: datetime,
    policy: TtlPolicy,
    generation_time: int = 0,
    character_version: str = DEFAULT_VERSION,
    prompt_version: str = DEFAULT_VERSION,
) -> PromptCacheEntry:
    """Build a fresh candidate entry with the default ttl."""
    return recompute_derived(
        PromptCacheEntry(
            user_id=user_id,
            character_id=character_id,
            system_prompt=system_prompt,
            prompt_config=prompt_config,
            created_at=now,
            last_used=now,
            ttl=now + policy.default_ttl,
            use_count=1,
            character_version=character_version,
            prompt_version=prompt_version,
            generation_time=generation_time,
        )
    )
