"""HTTP-based prompt generator.

Calls an external prompt generation service. The service receives the
character configuration and answers with the prompt text:

    POST {base_url}/generate
    {"user_id": ..., "character_id": ..., "prompt_config": {...}}

    -> {"system_prompt": "...", "generation_time_ms": 1234}

``generation_time_ms`` is optional; when absent the round-trip time is
used instead.
"""

import logging
import time

import httpx

from prompt_cache.config import settings
from prompt_cache.entities import GeneratedPrompt, PromptConfig
from prompt_cache.exceptions import GeneratorError

logger = logging.getLogger(__name__)


class HttpPromptGenerator:
    """HTTP implementation of the PromptGenerator protocol.

    Example:
        ```python
        generator = HttpPromptGenerator.create(base_url="http://localhost:9000")
        generated = await generator.generate("user-1", "char-1", config)
        print(generated.system_prompt)
        ```
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the generator client.

        Args:
            base_url: Generator service base URL. Defaults to settings.generator_url.
            timeout: Request timeout in seconds. Defaults to settings.generator_timeout.
        """
        url = base_url or settings.generator_url
        if not url:
            raise ValueError("Generator URL required. Set PROMPT_GENERATOR_URL or pass base_url.")
        self._base_url = url.rstrip("/")
        self._timeout = timeout or settings.generator_timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @classmethod
    def create(
        cls,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> "HttpPromptGenerator":
        """Factory method to create HttpPromptGenerator with defaults."""
        return cls(base_url=base_url, timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def generate(
        self,
        user_id: str,
        character_id: str,
        prompt_config: PromptConfig,
    ) -> GeneratedPrompt:
        """Request a system prompt from the generator service.

        Raises:
            GeneratorError: If the request fails or the response is malformed
        """
        payload = {
            "user_id": user_id,
            "character_id": character_id,
            "prompt_config": {
                "affinity_level": prompt_config.affinity_level,
                "personality_tags": list(prompt_config.personality_tags),
                "tone_style": prompt_config.tone_style.value,
                "mood_modifiers": [mood.value for mood in prompt_config.mood_modifiers],
                "language_code": prompt_config.language_code.value,
            },
        }

        start_time = time.perf_counter()
        try:
            response = await self.client.post(f"{self._base_url}/generate", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise GeneratorError(f"Prompt generator request failed: {e}") from e
        except ValueError as e:
            raise GeneratorError(f"Prompt generator returned invalid JSON: {e}") from e

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        system_prompt = data.get("system_prompt") if isinstance(data, dict) else None
        if not isinstance(system_prompt, str):
            raise GeneratorError(f"Unexpected response format: {data}")

        generation_time = data.get("generation_time_ms", elapsed_ms)
        logger.debug("Generated prompt for %s/%s in %d ms", user_id, character_id, generation_time)
        return GeneratedPrompt(system_prompt=system_prompt, generation_time_ms=int(generation_time))

    async def is_available(self) -> bool:
        """Check if the generator service answers its health endpoint."""
        try:
            response = await self.client.get(f"{self._base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
