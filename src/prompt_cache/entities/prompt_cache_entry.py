"""Prompt cache entry domain entity."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from prompt_cache.exceptions import EntryValidationError

from .prompt_config import AffinityBand, LanguageCode, PromptConfig

MIN_PROMPT_LENGTH = 50  # exclusive
MAX_PROMPT_LENGTH = 8000
MAX_PERSONALITY_TAGS = 15
MAX_TAG_LENGTH = 20
MAX_USE_COUNT = 10000
MAX_GENERATION_TIME_MS = 60000
MAX_CHARACTER_VERSION_LENGTH = 50
MAX_PROMPT_VERSION_LENGTH = 20
DEFAULT_VERSION = "1.0.0"


@dataclass(frozen=True)
class EntryKey:
    """The exact tuple at most one live entry may exist for."""

    user_id: str
    character_id: str
    affinity_level: int
    language_code: LanguageCode

    def __str__(self) -> str:
        return (
            f"user={self.user_id} character={self.character_id} "
            f"level={self.affinity_level} lang={self.language_code.value}"
        )


@dataclass(frozen=True)
class PromptCacheEntry:
    """Domain entity for one stored, reusable system prompt.

    Instances are immutable; lifecycle changes produce new instances via
    ``dataclasses.replace``. ``prompt_length`` and ``compression_ratio`` are
    derived and get recomputed right before every write.

    Attributes:
        user_id: Owning user
        character_id: Owning character
        system_prompt: The cached prompt text
        prompt_config: Configuration the prompt was generated from
        created_at: When the entry was first stored
        last_used: Last time the entry was served or regenerated
        ttl: Absolute expiry instant
        use_count: Times served (starts at 1, capped at 10000)
        character_version: Character configuration version
        prompt_version: Prompt template version
        generation_time: Time the generator took, in milliseconds
        prompt_length: Length of system_prompt
        compression_ratio: prompt_length relative to the config it came from
    """

    user_id: str
    character_id: str
    system_prompt: str
    prompt_config: PromptConfig
    created_at: datetime
    last_used: datetime
    ttl: datetime
    use_count: int = 1
    character_version: str = DEFAULT_VERSION
    prompt_version: str = DEFAULT_VERSION
    generation_time: int = 0
    prompt_length: int = 0
    compression_ratio: float = 1.0

    @property
    def key(self) -> EntryKey:
        """Exact-match key used for deduplication."""
        return EntryKey(
            user_id=self.user_id,
            character_id=self.character_id,
            affinity_level=self.prompt_config.affinity_level,
            language_code=self.prompt_config.language_code,
        )

    @property
    def affinity_level(self) -> int:
        return self.prompt_config.affinity_level

    @property
    def language_code(self) -> LanguageCode:
        return self.prompt_config.language_code

    @property
    def affinity_band(self) -> AffinityBand:
        return AffinityBand.for_level(self.prompt_config.affinity_level)

    def is_expired(self, now: datetime) -> bool:
        return self.ttl <= now

    def is_valid(self, now: datetime) -> bool:
        """Check whether the entry may be served.

        Valid means unexpired, both versions set, and a prompt longer
        than the minimum.
        """
        return (
            not self.is_expired(now)
            and bool(self.character_version)
            and bool(self.prompt_version)
            and len(self.system_prompt.strip()) > MIN_PROMPT_LENGTH
        )

    def efficiency(self, now: datetime) -> float:
        """Usage rate in hits per day since creation (at least one day)."""
        days = (now - self.created_at) / timedelta(days=1)
        return self.use_count / max(1.0, days)

    def validate(self) -> None:
        """Reject any field outside its documented range.

        Raises:
            EntryValidationError: On the first offending field
        """
        if not self.user_id or not self.character_id:
            raise EntryValidationError("user_id and character_id are required")

        config = self.prompt_config
        if not 0 <= config.affinity_level <= 100:
            raise EntryValidationError(
                f"affinity_level must be between 0 and 100, got {config.affinity_level}"
            )
        if len(config.personality_tags) > MAX_PERSONALITY_TAGS:
            raise EntryValidationError(
                f"Too many personality tags: {len(config.personality_tags)} > {MAX_PERSONALITY_TAGS}"
            )
        for tag in config.personality_tags:
            if len(tag) > MAX_TAG_LENGTH:
                raise EntryValidationError(
                    f"Personality tag {tag!r} exceeds {MAX_TAG_LENGTH} characters"
                )

        if len(self.system_prompt.strip()) <= MIN_PROMPT_LENGTH:
            raise EntryValidationError(
                f"System prompt too short: must be longer than {MIN_PROMPT_LENGTH} characters"
            )
        if len(self.system_prompt) > MAX_PROMPT_LENGTH:
            raise EntryValidationError(
                f"System prompt too long: {len(self.system_prompt)} > {MAX_PROMPT_LENGTH}"
            )

        if not 1 <= self.use_count <= MAX_USE_COUNT:
            raise EntryValidationError(
                f"use_count must be between 1 and {MAX_USE_COUNT}, got {self.use_count}"
            )
        if not 0 <= self.generation_time <= MAX_GENERATION_TIME_MS:
            raise EntryValidationError(
                f"generation_time must be between 0 and {MAX_GENERATION_TIME_MS} ms, "
                f"got {self.generation_time}"
            )

        if not self.character_version or len(self.character_version) > MAX_CHARACTER_VERSION_LENGTH:
            raise EntryValidationError(
                f"character_version must be 1-{MAX_CHARACTER_VERSION_LENGTH} characters"
            )
        if not self.prompt_version or len(self.prompt_version) > MAX_PROMPT_VERSION_LENGTH:
            raise EntryValidationError(
                f"prompt_version must be 1-{MAX_PROMPT_VERSION_LENGTH} characters"
            )
