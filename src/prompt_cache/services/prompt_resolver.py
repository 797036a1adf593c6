"""Caller-side flow: serve from the cache, generate on a miss, store the result.

This sits on the chat layer's side of the cache boundary. Generation
happens here, never inside a cache operation, and an unreachable store
downgrades to "generate without the cache" instead of failing the request.
"""

import logging

from prompt_cache.entities import DEFAULT_VERSION, PromptConfig, ResolvedPrompt
from prompt_cache.exceptions import ConcurrentUpdateError, EntryValidationError, StoreUnavailable
from prompt_cache.protocols import PromptGenerator

from .prompt_cache_service import PromptCacheService

logger = logging.getLogger(__name__)


class PromptResolver:
    """Resolves the system prompt for one chat turn."""

    def __init__(self, cache_service: PromptCacheService, generator: PromptGenerator) -> None:
        self._cache = cache_service
        self._generator = generator

    async def resolve(
        self,
        user_id: str,
        character_id: str,
        prompt_config: PromptConfig,
        character_version: str = DEFAULT_VERSION,
        prompt_version: str = DEFAULT_VERSION,
        force_refresh: bool = False,
    ) -> ResolvedPrompt:
        """Return a cached prompt, or generate and cache a new one.

        Args:
            user_id: Requesting user
            character_id: Character being talked to
            prompt_config: Current affinity, personality, tone, mood, language
            character_version: Current character configuration version
            prompt_version: Current prompt template version
            force_refresh: Skip the lookup and always regenerate

        Returns:
            ResolvedPrompt describing where the prompt came from

        Raises:
            GeneratorError: If a prompt had to be generated and generation failed
        """
        store_available = True

        if not force_refresh:
            try:
                entry = self._cache.get_prompt(
                    user_id,
                    character_id,
                    prompt_config.affinity_level,
                    prompt_config.language_code,
                )
            except StoreUnavailable as e:
                logger.warning("Prompt cache unavailable, generating without it: %s", e)
                store_available = False
                entry = None

            if entry is not None:
                return ResolvedPrompt(system_prompt=entry.system_prompt, cache_hit=True)

        generated = await self._generator.generate(user_id, character_id, prompt_config)

        outcome = None
        if store_available:
            try:
                outcome = self._cache.store_prompt(
                    user_id=user_id,
                    character_id=character_id,
                    prompt_config=prompt_config,
                    system_prompt=generated.system_prompt,
                    generation_time=generated.generation_time_ms,
                    character_version=character_version,
                    prompt_version=prompt_version,
                ).outcome
            except (StoreUnavailable, EntryValidationError, ConcurrentUpdateError) as e:
                logger.warning("Failed to save prompt cache: %s", e)

        return ResolvedPrompt(
            system_prompt=generated.system_prompt,
            cache_hit=False,
            outcome=outcome,
            generation_time_ms=generated.generation_time_ms,
        )

    async def generator_available(self) -> bool:
        return await self._generator.is_available()
