"""Utility helpers for the prompt cache."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def from_timestamp(value: float) -> datetime:
    """Convert a Unix timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(value, tz=timezone.utc)


__all__ = ["from_timestamp", "utcnow"]
