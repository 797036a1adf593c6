"""
Tests for the cache-then-generate flow.
"""

import pytest

from conftest import OTHER_PROMPT, SAMPLE_PROMPT, make_config
from prompt_cache.entities import GeneratedPrompt, UpsertOutcome
from prompt_cache.exceptions import ConcurrentUpdateError, DuplicateKeyConflict, GeneratorError, StoreUnavailable
from prompt_cache.protocols import PromptGenerator
from prompt_cache.repositories import MemoryPromptCacheRepository
from prompt_cache.services import PromptCacheService, PromptResolver


class FakeGenerator:
    """Returns a fixed prompt and counts calls."""

    def __init__(self, system_prompt=SAMPLE_PROMPT, fail=False):
        self.system_prompt = system_prompt
        self.fail = fail
        self.calls = 0

    async def generate(self, user_id, character_id, prompt_config):
        self.calls += 1
        if self.fail:
            raise GeneratorError("generator down")
        return GeneratedPrompt(system_prompt=self.system_prompt, generation_time_ms=120)

    async def is_available(self):
        return not self.fail


class UnavailableRepository(MemoryPromptCacheRepository):
    """A store whose every access fails."""

    def find_in_range(self, *args, **kwargs):
        raise StoreUnavailable("redis down")

    def get(self, key):
        raise StoreUnavailable("redis down")


class UnsettledRepository(MemoryPromptCacheRepository):
    """Inserts always collide and the colliding entry is always gone again."""

    def insert(self, entry):
        raise DuplicateKeyConflict(entry.key)

    def update(self, key, mutate):
        return None


class ContendedRepository(MemoryPromptCacheRepository):
    """Reads work but every read-modify-write loses its race."""

    def update(self, key, mutate):
        raise ConcurrentUpdateError(f"Gave up updating {key}")


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def resolver(cache_service, generator):
    return PromptResolver(cache_service, generator)


def test_fake_generator_satisfies_protocol(generator):
    """Test structural typing against the generator protocol."""
    assert isinstance(generator, PromptGenerator)


@pytest.mark.asyncio
async def test_miss_generates_and_stores(resolver, generator, repository):
    """Test that a miss calls the generator once and caches the result."""
    resolved = await resolver.resolve("user-1", "char-1", make_config(22))

    assert resolved.cache_hit is False
    assert resolved.outcome is UpsertOutcome.INSERTED
    assert resolved.system_prompt == SAMPLE_PROMPT
    assert resolved.generation_time_ms == 120
    assert generator.calls == 1
    assert repository.count_all() == 1


@pytest.mark.asyncio
async def test_nearby_level_hits_cache(resolver, generator):
    """Test that a second turn within tolerance is served from the cache."""
    await resolver.resolve("user-1", "char-1", make_config(22))
    resolved = await resolver.resolve("user-1", "char-1", make_config(26))

    assert resolved.cache_hit is True
    assert resolved.outcome is None
    assert resolved.generation_time_ms == 0
    assert generator.calls == 1


@pytest.mark.asyncio
async def test_force_refresh_folds(cache_service, repository):
    """Test that a forced refresh regenerates and folds into the entry."""
    generator = FakeGenerator(system_prompt=OTHER_PROMPT)
    resolver = PromptResolver(cache_service, generator)
    cache_service.store_prompt("user-1", "char-1", make_config(22), SAMPLE_PROMPT)

    resolved = await resolver.resolve("user-1", "char-1", make_config(22), force_refresh=True)

    assert resolved.cache_hit is False
    assert resolved.outcome is UpsertOutcome.FOLDED
    assert generator.calls == 1
    assert repository.count_all() == 1
    assert cache_service.find("user-1", "char-1", 22).system_prompt == OTHER_PROMPT


@pytest.mark.asyncio
async def test_unavailable_store_falls_back_to_generator():
    """Test that an unreachable store downgrades to uncached generation."""
    repository = UnavailableRepository()
    generator = FakeGenerator()
    resolver = PromptResolver(PromptCacheService(repository, affinity_tolerance=5), generator)

    resolved = await resolver.resolve("user-1", "char-1", make_config(22))

    assert resolved.cache_hit is False
    assert resolved.outcome is None
    assert resolved.system_prompt == SAMPLE_PROMPT
    assert repository.count_all() == 0


@pytest.mark.asyncio
async def test_invalid_generated_prompt_is_served_not_stored(cache_service, repository):
    """Test that a prompt failing validation is still returned."""
    resolver = PromptResolver(cache_service, FakeGenerator(system_prompt="too short"))

    resolved = await resolver.resolve("user-1", "char-1", make_config(22))

    assert resolved.system_prompt == "too short"
    assert resolved.outcome is None
    assert repository.count_all() == 0


@pytest.mark.asyncio
async def test_generator_error_propagates(cache_service):
    """Test that a miss with a failing generator raises."""
    resolver = PromptResolver(cache_service, FakeGenerator(fail=True))

    with pytest.raises(GeneratorError):
        await resolver.resolve("user-1", "char-1", make_config(22))
    assert await resolver.generator_available() is False


@pytest.mark.asyncio
async def test_unsettled_write_still_serves_generated_prompt():
    """Test that a write that never settles does not fail the chat turn."""
    generator = FakeGenerator()
    resolver = PromptResolver(PromptCacheService(UnsettledRepository(), affinity_tolerance=5), generator)

    resolved = await resolver.resolve("user-1", "char-1", make_config(22))

    assert resolved.cache_hit is False
    assert resolved.outcome is None
    assert resolved.system_prompt == SAMPLE_PROMPT
    assert generator.calls == 1


@pytest.mark.asyncio
async def test_contended_hit_still_served(entry_factory):
    """Test that a found entry is served even when its hit cannot be recorded."""
    repository = ContendedRepository()
    entry = repository.insert(entry_factory(affinity_level=22, use_count=4))
    generator = FakeGenerator(system_prompt=OTHER_PROMPT)
    resolver = PromptResolver(PromptCacheService(repository, affinity_tolerance=5), generator)

    resolved = await resolver.resolve("user-1", "char-1", make_config(24))

    assert resolved.cache_hit is True
    assert resolved.system_prompt == SAMPLE_PROMPT
    assert generator.calls == 0
    assert repository.get(entry.key).use_count == 4
