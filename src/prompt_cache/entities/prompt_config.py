"""Prompt configuration and the enumerations it is built from."""

from dataclasses import dataclass
from enum import Enum


class ToneStyle(str, Enum):
    """Speech register the character uses, from most formal to most intimate."""

    POLITE = "丁寧語で礼儀正しい口調"
    SOFT_POLITE = "少しだけ砕けた丁寧語"
    CASUAL_MIX = "時々タメ口を交えた親しみやすい口調"
    FRIENDLY = "親友のようにフレンドリーで親しみやすい口調"
    INTIMATE = "恋人のように甘く親密な口調"


class MoodModifier(str, Enum):
    """Transient mood tags layered on top of the tone."""

    EXCITED = "excited"
    SHY = "shy"
    PLAYFUL = "playful"
    MELANCHOLIC = "melancholic"
    NEUTRAL = "neutral"


class LanguageCode(str, Enum):
    """Languages a prompt can be generated in."""

    JA = "ja"
    EN = "en"


class AffinityBand(str, Enum):
    """Coarse relationship label derived from an affinity level.

    Used for reporting only, never for key matching.
    """

    STRANGER = "stranger"
    ACQUAINTANCE = "acquaintance"
    FRIEND = "friend"
    CLOSE_FRIEND = "close_friend"
    LOVER = "lover"

    @classmethod
    def for_level(cls, level: int) -> "AffinityBand":
        """Map an affinity level (0-100) to its band."""
        if level >= 85:
            return cls.LOVER
        if level >= 60:
            return cls.CLOSE_FRIEND
        if level >= 40:
            return cls.FRIEND
        if level >= 20:
            return cls.ACQUAINTANCE
        return cls.STRANGER


@dataclass(frozen=True)
class PromptConfig:
    """The character configuration a system prompt was generated from.

    Attributes:
        affinity_level: Relationship depth between user and character (0-100)
        personality_tags: Ordered personality tags (at most 15, 20 chars each)
        tone_style: Speech register
        mood_modifiers: Active mood tags
        language_code: Language of the generated prompt
    """

    affinity_level: int
    tone_style: ToneStyle
    personality_tags: tuple[str, ...] = ()
    mood_modifiers: tuple[MoodModifier, ...] = ()
    language_code: LanguageCode = LanguageCode.JA

    @property
    def base_size(self) -> int:
        """Characters of configuration the prompt was expanded from."""
        return sum(len(tag) for tag in self.personality_tags) + len(self.tone_style.value)
