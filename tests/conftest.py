"""
Pytest configuration and fixtures.

Settings are read from the environment at import time, so the test
backend is selected before anything from prompt_cache is imported.
"""

import os

os.environ["PROMPT_CACHE_BACKEND"] = "memory"
os.environ["PROMPT_CACHE_CLEANUP_INTERVAL"] = "0"
os.environ.pop("PROMPT_GENERATOR_URL", None)

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402

from prompt_cache.entities import (  # noqa: E402
    LanguageCode,
    MoodModifier,
    PromptCacheEntry,
    PromptConfig,
    ToneStyle,
)
from prompt_cache.repositories import MemoryPromptCacheRepository  # noqa: E402
from prompt_cache.services import (  # noqa: E402
    AnalyticsService,
    EvictionService,
    PromptCacheService,
    TtlPolicy,
)
from prompt_cache.services.lifecycle import compression_ratio  # noqa: E402
from prompt_cache.utils import utcnow  # noqa: E402

SAMPLE_PROMPT = (
    "あなたは優しく寄り添うキャラクターです。相手の気持ちに共感しながら、"
    "決して上から目線にならず、穏やかな口調で会話を続けてください。"
)
OTHER_PROMPT = (
    "You are a cheerful companion. Keep replies warm and short, "
    "and remember what the user told you earlier in the conversation."
)


def make_config(
    affinity_level: int = 22,
    language_code: LanguageCode = LanguageCode.JA,
    personality_tags: tuple[str, ...] = ("優しい", "聞き上手"),
) -> PromptConfig:
    return PromptConfig(
        affinity_level=affinity_level,
        personality_tags=personality_tags,
        tone_style=ToneStyle.SOFT_POLITE,
        mood_modifiers=(MoodModifier.NEUTRAL,),
        language_code=language_code,
    )


def make_entry(
    user_id: str = "user-1",
    character_id: str = "char-1",
    affinity_level: int = 22,
    language_code: LanguageCode = LanguageCode.JA,
    use_count: int = 1,
    created_at: datetime | None = None,
    last_used: datetime | None = None,
    ttl: datetime | None = None,
    character_version: str = "1.0.0",
    system_prompt: str = SAMPLE_PROMPT,
    generation_time: int = 100,
) -> PromptCacheEntry:
    """Build an entry directly, bypassing the service."""
    now = utcnow()
    created_at = created_at or now
    config = make_config(affinity_level, language_code)
    return PromptCacheEntry(
        user_id=user_id,
        character_id=character_id,
        system_prompt=system_prompt,
        prompt_config=config,
        created_at=created_at,
        last_used=last_used or created_at,
        ttl=ttl or created_at + timedelta(days=30),
        use_count=use_count,
        character_version=character_version,
        generation_time=generation_time,
        prompt_length=len(system_prompt),
        compression_ratio=compression_ratio(len(system_prompt), config),
    )


@pytest.fixture
def repository() -> MemoryPromptCacheRepository:
    """Fresh in-memory store."""
    return MemoryPromptCacheRepository()


@pytest.fixture
def cache_service(repository) -> PromptCacheService:
    """Cache service with the documented defaults (+-5, 30d/60d, >10 uses)."""
    return PromptCacheService(repository=repository, affinity_tolerance=5, ttl_policy=TtlPolicy())


@pytest.fixture
def eviction_service(repository) -> EvictionService:
    return EvictionService(repository, days_old=30)


@pytest.fixture
def analytics_service(repository) -> AnalyticsService:
    return AnalyticsService(repository)


@pytest.fixture
def entry_factory():
    """Factory for entries with chosen usage, timestamps and ttl."""
    return make_entry
