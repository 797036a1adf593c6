"""
Tests for lookup matching, tie-breaking and the pruning predicate.
"""

from datetime import timedelta

import pytest

from prompt_cache.entities import LanguageCode
from prompt_cache.services import matching
from prompt_cache.utils import utcnow


@pytest.mark.parametrize(
    "level, window",
    [(22, (17, 27)), (2, (0, 7)), (98, (93, 100)), (0, (0, 5)), (100, (95, 100))],
)
def test_affinity_window_clamped(level, window):
    """Test that the window is clamped to the 0-100 range."""
    assert matching.affinity_window(level, 5) == window


@pytest.mark.parametrize("query, expected", [(17, True), (27, True), (16, False), (28, False)])
def test_matches_range_inclusive_tolerance(entry_factory, query, expected):
    """Test |query - stored| <= tolerance at both edges."""
    now = utcnow()
    entry = entry_factory(affinity_level=22)

    assert matching.matches_range(entry, "user-1", "char-1", query, LanguageCode.JA, 5, now) is expected


def test_matches_range_requires_exact_identity(entry_factory):
    """Test that user, character and language never match fuzzily."""
    now = utcnow()
    entry = entry_factory(affinity_level=22)

    assert not matching.matches_range(entry, "user-2", "char-1", 22, LanguageCode.JA, 5, now)
    assert not matching.matches_range(entry, "user-1", "char-2", 22, LanguageCode.JA, 5, now)
    assert not matching.matches_range(entry, "user-1", "char-1", 22, LanguageCode.EN, 5, now)


def test_matches_range_skips_expired(entry_factory):
    """Test that an entry at its ttl no longer serves lookups."""
    now = utcnow()
    entry = entry_factory(ttl=now)

    assert not matching.matches_range(entry, "user-1", "char-1", 22, LanguageCode.JA, 5, now)


def test_matches_exact_key(entry_factory):
    """Test that the write path distinguishes neighbouring levels."""
    entry = entry_factory(affinity_level=22)

    assert matching.matches_exact_key(entry, entry_factory(affinity_level=22).key)
    assert not matching.matches_exact_key(entry, entry_factory(affinity_level=23).key)


def test_pick_best_prefers_recency(entry_factory):
    """Test that the most recently used entry wins over a busier one."""
    now = utcnow()
    recent = entry_factory(affinity_level=20, last_used=now, use_count=1)
    busy = entry_factory(affinity_level=24, last_used=now - timedelta(hours=1), use_count=50)

    assert matching.pick_best([busy, recent]) is recent


def test_pick_best_breaks_ties_by_use_count(entry_factory):
    """Test that equal recency falls back to the higher use count."""
    now = utcnow()
    low = entry_factory(affinity_level=20, last_used=now, use_count=2)
    high = entry_factory(affinity_level=24, last_used=now, use_count=7)

    assert matching.pick_best([low, high]) is high
    assert matching.pick_best([high, low]) is high


def test_pick_best_empty():
    """Test that no candidates means a miss."""
    assert matching.pick_best([]) is None


def test_is_prunable_conditions(entry_factory):
    """Test each low-value condition on its own."""
    now = utcnow()
    cutoff = now - timedelta(days=30)

    keeper = entry_factory(use_count=3, last_used=now)
    idle = entry_factory(use_count=3, created_at=now - timedelta(days=40), ttl=now + timedelta(days=5))
    expired = entry_factory(use_count=3, last_used=now, ttl=now - timedelta(seconds=1))
    unused = entry_factory(use_count=1, last_used=now)

    assert not matching.is_prunable(keeper, cutoff, now)
    assert matching.is_prunable(idle, cutoff, now)
    assert matching.is_prunable(expired, cutoff, now)
    assert matching.is_prunable(unused, cutoff, now)
