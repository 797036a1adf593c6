"""
Tests for the HTTP prompt generator client.
"""

import json

import httpx
import pytest

from conftest import SAMPLE_PROMPT, make_config
from prompt_cache.exceptions import GeneratorError
from prompt_cache.repositories import HttpPromptGenerator


def _generator(handler) -> HttpPromptGenerator:
    generator = HttpPromptGenerator(base_url="http://generator.test/")
    generator._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return generator


def test_requires_base_url():
    """Test that a missing URL is a configuration error."""
    with pytest.raises(ValueError):
        HttpPromptGenerator()


@pytest.mark.asyncio
async def test_generate_posts_config():
    """Test the request payload and response mapping."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"system_prompt": SAMPLE_PROMPT, "generation_time_ms": 321})

    generator = _generator(handler)
    generated = await generator.generate("user-1", "char-1", make_config(42))
    await generator.close()

    assert seen["url"] == "http://generator.test/generate"
    assert seen["body"]["user_id"] == "user-1"
    assert seen["body"]["prompt_config"]["affinity_level"] == 42
    assert seen["body"]["prompt_config"]["mood_modifiers"] == ["neutral"]
    assert generated.system_prompt == SAMPLE_PROMPT
    assert generated.generation_time_ms == 321


@pytest.mark.asyncio
async def test_generate_falls_back_to_elapsed_time():
    """Test that a missing timing field is replaced by the round-trip time."""
    generator = _generator(lambda request: httpx.Response(200, json={"system_prompt": SAMPLE_PROMPT}))

    generated = await generator.generate("user-1", "char-1", make_config())

    assert generated.generation_time_ms >= 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="internal error"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"prompt": "wrong field"}),
    ],
)
async def test_generate_errors(response):
    """Test that failures surface as GeneratorError."""
    generator = _generator(lambda request: response)

    with pytest.raises(GeneratorError):
        await generator.generate("user-1", "char-1", make_config())


@pytest.mark.asyncio
async def test_is_available():
    """Test the availability check."""
    healthy = _generator(lambda request: httpx.Response(200, json={"status": "ok"}))
    assert await healthy.is_available() is True

    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    assert await _generator(refuse).is_available() is False
