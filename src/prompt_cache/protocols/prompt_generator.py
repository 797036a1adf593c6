"""Prompt generator protocol.

The generator turns a character configuration into system prompt text.
It lives outside the cache boundary: the cache only ever sees text that
was already produced.
"""

from typing import Protocol, runtime_checkable

from prompt_cache.entities import GeneratedPrompt, PromptConfig


@runtime_checkable
class PromptGenerator(Protocol):
    """Protocol for system prompt generation services."""

    async def generate(
        self,
        user_id: str,
        character_id: str,
        prompt_config: PromptConfig,
    ) -> GeneratedPrompt:
        """Generate a system prompt.

        Args:
            user_id: The user the prompt is for
            character_id: The character speaking
            prompt_config: Affinity, personality, tone, mood and language

        Returns:
            The prompt text and how long generation took

        Raises:
            GeneratorError: If generation fails
        """
        ...

    async def is_available(self) -> bool:
        """Check if the generator can be reached."""
        ...
