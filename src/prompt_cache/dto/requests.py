"""Request DTOs for API endpoints."""

from typing import Annotated

from pydantic import BaseModel, Field

from prompt_cache.entities import LanguageCode, MoodModifier, ToneStyle


class PromptConfigPayload(BaseModel):
    """Character configuration a prompt was generated from."""

    affinity_level: int = Field(..., description="Affinity level (0-100)", ge=0, le=100)
    personality_tags: list[Annotated[str, Field(max_length=20)]] = Field(
        default_factory=list,
        description="Ordered personality tags (at most 15, 20 chars each)",
        max_length=15,
    )
    tone_style: ToneStyle = Field(..., description="Speech register")
    mood_modifiers: list[MoodModifier] = Field(
        default_factory=list,
        description="Active mood tags",
    )
    language_code: LanguageCode = Field(LanguageCode.JA, description="Prompt language")


class StorePromptRequest(BaseModel):
    """Request DTO for storing a freshly generated prompt."""

    user_id: str = Field(..., description="Owning user", min_length=1)
    character_id: str = Field(..., description="Owning character", min_length=1)
    prompt_config: PromptConfigPayload
    system_prompt: str = Field(
        ...,
        description="The generated system prompt (51-8000 chars)",
        min_length=51,
        max_length=8000,
    )
    generation_time: int = Field(
        0,
        description="Time the generator took in milliseconds",
        ge=0,
        le=60000,
    )
    character_version: str = Field("1.0.0", min_length=1, max_length=50)
    prompt_version: str = Field("1.0.0", min_length=1, max_length=20)


class InvalidateRequest(BaseModel):
    """Request DTO for version invalidation after a character edit."""

    character_id: str = Field(..., description="The edited character", min_length=1)
    old_version: str = Field(..., description="The superseded character version", min_length=1)


class CleanupRequest(BaseModel):
    """Request DTO for a low-value pruning sweep."""

    days_old: int = Field(30, description="Idle horizon in days", ge=0)


class ResolvePromptRequest(BaseModel):
    """Request DTO for resolving a prompt through cache and generator."""

    user_id: str = Field(..., min_length=1)
    character_id: str = Field(..., min_length=1)
    prompt_config: PromptConfigPayload
    character_version: str = Field("1.0.0", min_length=1, max_length=50)
    prompt_version: str = Field("1.0.0", min_length=1, max_length=20)
    force_refresh: bool = Field(False, description="Skip the cache lookup and regenerate")
