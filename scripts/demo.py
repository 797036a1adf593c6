#!/usr/bin/env python3
"""
Demo script for the prompt cache.

Walks through a typical character chat: a prompt is stored, folded,
served to nearby affinity levels, promoted to the long ttl, and finally
invalidated when the character is edited.

Runs against the in-memory store by default. Pass --redis to use the
Redis instance configured by REDIS_URL.
"""

import asyncio
import sys

from prompt_cache.entities import GeneratedPrompt, LanguageCode, MoodModifier, PromptConfig, ToneStyle
from prompt_cache.repositories import MemoryPromptCacheRepository, RedisPromptCacheRepository
from prompt_cache.services import AnalyticsService, EvictionService, PromptCacheService, PromptResolver

USER_ID = "demo-user"
CHARACTER_ID = "sakura"

FIRST_PROMPT = (
    "あなたは「さくら」です。少しだけ砕けた丁寧語で話し、相手の話をよく聞き、"
    "時々照れながらも明るく励ましてください。"
)
REGENERATED_PROMPT = (
    "あなたは「さくら」です。相手とは顔見知りになったばかりなので、"
    "少しだけ砕けた丁寧語で、興味を持って質問を返してください。"
)


class CannedGenerator:
    """Stand-in generator that answers instantly with a fixed prompt."""

    async def generate(self, user_id: str, character_id: str, prompt_config: PromptConfig) -> GeneratedPrompt:
        return GeneratedPrompt(
            system_prompt=f"{FIRST_PROMPT}（好感度 {prompt_config.affinity_level}）",
            generation_time_ms=1800,
        )

    async def is_available(self) -> bool:
        return True


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def config_for(affinity_level: int) -> PromptConfig:
    return PromptConfig(
        affinity_level=affinity_level,
        tone_style=ToneStyle.SOFT_POLITE,
        personality_tags=("明るい", "聞き上手", "照れ屋"),
        mood_modifiers=(MoodModifier.SHY,),
        language_code=LanguageCode.JA,
    )


def demo_store_and_lookup(cache: PromptCacheService) -> None:
    """Store a prompt, fold a regeneration into it, and look it up nearby."""
    print_section("Store, Fold and Range Lookup")

    result = cache.store_prompt(USER_ID, CHARACTER_ID, config_for(22), FIRST_PROMPT, generation_time=2100)
    print(f"\n📝 Stored at level 22: {result.outcome.value}")

    result = cache.store_prompt(USER_ID, CHARACTER_ID, config_for(22), REGENERATED_PROMPT, generation_time=1900)
    print(f"📝 Stored again at level 22: {result.outcome.value} (use_count={result.entry.use_count})")

    print("\n🔍 Looking up nearby affinity levels:")
    for level in (25, 17, 28):
        entry = cache.get_prompt(USER_ID, CHARACTER_ID, level)
        if entry is not None:
            print(f"  Level {level}: ✓ HIT (stored level {entry.affinity_level}, use_count={entry.use_count})")
        else:
            print(f"  Level {level}: ✗ MISS")


def demo_ttl_extension(cache: PromptCacheService) -> None:
    """Serve the entry until it earns the extended ttl."""
    print_section("Usage-Weighted TTL")

    entry = cache.find(USER_ID, CHARACTER_ID, 22)
    print(f"\n⏳ Expires: {entry.ttl:%Y-%m-%d} (use_count={entry.use_count})")

    while entry.use_count <= cache.ttl_policy.extension_threshold:
        entry = cache.get_prompt(USER_ID, CHARACTER_ID, 24)

    print(f"⏳ Expires: {entry.ttl:%Y-%m-%d} (use_count={entry.use_count})")


async def demo_resolver(cache: PromptCacheService) -> None:
    """Resolve prompts through the cache-then-generate flow."""
    print_section("Cache-then-Generate")

    resolver = PromptResolver(cache, CannedGenerator())
    for level in (60, 63, 60):
        resolved = await resolver.resolve(USER_ID, CHARACTER_ID, config_for(level))
        source = "cache" if resolved.cache_hit else f"generator ({resolved.outcome.value})"
        print(f"  Level {level}: served from {source}")


def demo_reporting(analytics: AnalyticsService) -> None:
    """Print usage rollups."""
    print_section("Usage Statistics")

    for stats in analytics.usage_stats(days=30):
        print(f"\n📊 {stats.character_id}")
        print(f"  Entries: {stats.entry_count}")
        print(f"  Total uses: {stats.total_use_count}")
        print(f"  Hit rate: {stats.cache_hit_rate:.2%}")
        print(f"  Avg generation: {stats.avg_generation_time:.0f}ms")
        print(f"  Bands: {stats.affinity_distribution}")


def demo_invalidation(eviction: EvictionService, cache: PromptCacheService) -> None:
    """Invalidate the character after an edit."""
    print_section("Character Edit")

    result = eviction.invalidate(CHARACTER_ID, "1.0.0")
    print(f"\n🧹 Invalidated {result.deleted_count} entries ({result.memory_freed} chars)")

    entry = cache.get_prompt(USER_ID, CHARACTER_ID, 22)
    print(f"🔍 Lookup at level 22 after edit: {'HIT' if entry else 'MISS'}")


def main() -> None:
    """Run all demos."""
    print("\n🚀 Prompt Cache Demo")
    print("=" * 70)

    use_redis = "--redis" in sys.argv[1:]

    try:
        repository = RedisPromptCacheRepository.create() if use_redis else MemoryPromptCacheRepository()
        cache = PromptCacheService.create(repository=repository)
        eviction = EvictionService(repository)
        analytics = AnalyticsService(repository)

        eviction.invalidate_character(CHARACTER_ID)

        demo_store_and_lookup(cache)
        demo_ttl_extension(cache)
        asyncio.run(demo_resolver(cache))
        demo_reporting(analytics)
        demo_invalidation(eviction, cache)

        print("\n" + "=" * 70)
        print("✅ Demo completed successfully!")
        print("=" * 70)

    except Exception as e:
        print(f"\n❌ Error: {e}")
        if use_redis:
            print("\nMake sure Redis is running, or set REDIS_URL to your Redis instance.")


if __name__ == "__main__":
    main()
