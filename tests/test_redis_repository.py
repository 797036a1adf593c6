"""
Tests for the Redis repository against a mocked client.
"""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import redis

from prompt_cache.entities import EntryKey, LanguageCode
from prompt_cache.exceptions import ConcurrentUpdateError, DuplicateKeyConflict, StoreUnavailable
from prompt_cache.repositories import RedisPromptCacheRepository
from prompt_cache.utils import utcnow

ENTRY_KEY = "test:entry:user-1:char-1:ja:22"
RANGE_KEY = "test:range:user-1:char-1:ja"
CHARACTER_KEY = "test:character:char-1"
DROP_KEY = "test:entry:user-1:char-1:ja:40"


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def repo(client):
    return RedisPromptCacheRepository(redis_client=client, key_prefix="test", max_update_retries=3)


@pytest.fixture
def entry(entry_factory):
    return entry_factory(affinity_level=22, created_at=utcnow().replace(microsecond=0))


def test_encode_decode_preserves_entry(entry):
    """Test that the JSON form carries every field."""
    raw = RedisPromptCacheRepository._encode(entry)

    assert "あなた" in raw
    assert RedisPromptCacheRepository._decode(raw) == entry


def test_insert_runs_one_transaction(repo, client, entry):
    """Test SET NX with expiry plus both index writes in one MULTI."""
    pipe = client.pipeline.return_value
    pipe.execute.return_value = [True, 1, 1]

    assert repo.insert(entry) is entry

    client.pipeline.assert_called_once_with(transaction=True)
    args, kwargs = pipe.set.call_args
    assert args[0] == ENTRY_KEY
    assert kwargs["nx"] is True
    assert kwargs["pxat"] == int(entry.ttl.timestamp() * 1000)
    pipe.zadd.assert_called_once_with(RANGE_KEY, {ENTRY_KEY: 22})
    pipe.sadd.assert_called_once_with(CHARACTER_KEY, ENTRY_KEY)


def test_insert_conflict(repo, client, entry):
    """Test that a failed SET NX surfaces as a duplicate-key conflict."""
    client.pipeline.return_value.execute.return_value = [None, 0, 0]

    with pytest.raises(DuplicateKeyConflict) as exc_info:
        repo.insert(entry)
    assert exc_info.value.key == entry.key


def test_keys_are_escaped(repo, client, entry_factory):
    """Test that separators inside ids cannot collide with the layout."""
    client.get.return_value = None
    repo.get(EntryKey("a:b", "c/d", 5, LanguageCode.EN))

    client.get.assert_called_once_with("test:entry:a%3Ab:c%2Fd:en:5")


def test_get(repo, client, entry):
    """Test reading and decoding one entry."""
    client.get.return_value = RedisPromptCacheRepository._encode(entry)
    assert repo.get(entry.key) == entry

    client.get.return_value = None
    assert repo.get(entry.key) is None


def test_find_in_range_skips_dangling_members(repo, client, entry):
    """Test the score range query and index members without an entry."""
    client.zrangebyscore.return_value = [ENTRY_KEY, "test:entry:user-1:char-1:ja:25"]
    client.mget.return_value = [RedisPromptCacheRepository._encode(entry), None]

    found = repo.find_in_range("user-1", "char-1", LanguageCode.JA, 17, 27)

    client.zrangebyscore.assert_called_once_with(RANGE_KEY, 17, 27)
    assert found == [entry]


def test_find_in_range_empty(repo, client):
    """Test that an empty index skips the MGET."""
    client.zrangebyscore.return_value = []

    assert repo.find_in_range("user-1", "char-1", LanguageCode.JA, 0, 5) == []
    client.mget.assert_not_called()


def test_update_retries_on_watch_error(repo, client, entry):
    """Test that a concurrent write is retried and the mutation reapplied."""
    pipe = client.pipeline.return_value.__enter__.return_value
    pipe.get.return_value = RedisPromptCacheRepository._encode(entry)
    pipe.execute.side_effect = [redis.exceptions.WatchError(), [True]]

    updated = repo.update(entry.key, lambda current: replace(current, use_count=current.use_count + 1))

    assert updated.use_count == entry.use_count + 1
    assert pipe.watch.call_count == 2
    pipe.watch.assert_called_with(ENTRY_KEY)


def test_update_missing_entry(repo, client, entry):
    """Test that updating a vanished key returns None."""
    pipe = client.pipeline.return_value.__enter__.return_value
    pipe.get.return_value = None

    assert repo.update(entry.key, lambda current: current) is None
    pipe.unwatch.assert_called_once()


def test_update_gives_up(repo, client, entry):
    """Test that exhausting retries raises."""
    pipe = client.pipeline.return_value.__enter__.return_value
    pipe.get.return_value = RedisPromptCacheRepository._encode(entry)
    pipe.execute.side_effect = redis.exceptions.WatchError()

    with pytest.raises(ConcurrentUpdateError):
        repo.update(entry.key, lambda current: current)
    assert pipe.watch.call_count == 3


def test_update_rejects_key_change(repo, client, entry):
    """Test that a mutation may not move the entry to another key."""
    pipe = client.pipeline.return_value.__enter__.return_value
    pipe.get.return_value = RedisPromptCacheRepository._encode(entry)

    with pytest.raises(ValueError):
        repo.update(entry.key, lambda current: replace(current, user_id="someone-else"))


def test_delete_by_character_filters_version(repo, client, entry_factory):
    """Test version filtering and cleanup of dangling set members."""
    old = entry_factory(affinity_level=22)
    new = entry_factory(affinity_level=40, character_version="2.0.0")
    stored = {
        ENTRY_KEY: RedisPromptCacheRepository._encode(old),
        "test:entry:user-1:char-1:ja:40": RedisPromptCacheRepository._encode(new),
        "test:entry:user-1:char-1:ja:60": None,
    }
    client.smembers.return_value = set(stored)
    client.mget.side_effect = lambda keys: [stored[key] for key in keys]
    pipe = client.pipeline.return_value

    deleted = repo.delete_by_character("char-1", "1.0.0")

    assert [entry.key for entry in deleted] == [old.key]
    client.srem.assert_called_once_with(CHARACTER_KEY, "test:entry:user-1:char-1:ja:60")
    pipe.delete.assert_called_once_with(ENTRY_KEY)
    pipe.zrem.assert_called_once_with(RANGE_KEY, ENTRY_KEY)
    pipe.srem.assert_called_once_with(CHARACTER_KEY, ENTRY_KEY)


def _prepare_sweep(client, stored):
    """Serve SCAN and MGET from a dict, with no dangling index members."""

    def scan_iter(match, count):
        if match == "test:entry:*":
            return iter(list(stored))
        if match == "test:character:*":
            return iter([CHARACTER_KEY])
        return iter([])

    client.scan_iter.side_effect = scan_iter
    client.mget.side_effect = lambda keys: [stored[key] for key in keys]
    client.smembers.return_value = set(stored)
    client.pipeline.return_value.execute.return_value = [1] * len(stored)
    return client.pipeline.return_value.__enter__.return_value


def test_delete_many_sweeps_and_prunes(repo, client, entry_factory):
    """Test that a sweep deletes matches in MULTI and keeps the rest."""
    now = utcnow()
    keep = entry_factory(affinity_level=22, use_count=5)
    drop = entry_factory(affinity_level=40, created_at=now - timedelta(days=40), ttl=now - timedelta(days=1))
    stored = {
        ENTRY_KEY: RedisPromptCacheRepository._encode(keep),
        DROP_KEY: RedisPromptCacheRepository._encode(drop),
    }
    pipe = _prepare_sweep(client, stored)
    pipe.get.return_value = stored[DROP_KEY]

    deleted = repo.delete_many(lambda entry: entry.ttl < now)

    assert [entry.affinity_level for entry in deleted] == [40]
    pipe.watch.assert_called_once_with(DROP_KEY)
    pipe.multi.assert_called_once()
    pipe.delete.assert_called_once_with(DROP_KEY)
    pipe.zrem.assert_called_once_with(RANGE_KEY, DROP_KEY)
    pipe.srem.assert_called_once_with(CHARACTER_KEY, DROP_KEY)


def test_delete_many_spares_entry_hit_during_sweep(repo, client, entry_factory):
    """Test that an entry reused after the snapshot is re-checked and kept."""
    now = utcnow()
    unused = entry_factory(affinity_level=40, use_count=1)
    stored = {DROP_KEY: RedisPromptCacheRepository._encode(unused)}
    pipe = _prepare_sweep(client, stored)
    pipe.get.return_value = RedisPromptCacheRepository._encode(replace(unused, use_count=2, last_used=now))

    deleted = repo.delete_many(lambda entry: entry.use_count < 2)

    assert deleted == []
    pipe.unwatch.assert_called_once()
    pipe.multi.assert_not_called()
    pipe.delete.assert_not_called()


def test_delete_many_skips_entry_written_during_delete(repo, client, entry_factory):
    """Test that an aborted MULTI leaves the entry for the next sweep."""
    unused = entry_factory(affinity_level=40, use_count=1)
    stored = {DROP_KEY: RedisPromptCacheRepository._encode(unused)}
    pipe = _prepare_sweep(client, stored)
    pipe.get.return_value = stored[DROP_KEY]
    pipe.execute.side_effect = redis.exceptions.WatchError()

    deleted = repo.delete_many(lambda entry: entry.use_count < 2)

    assert deleted == []
    pipe.delete.assert_called_once_with(DROP_KEY)


def test_delete_many_skips_entry_gone_before_delete(repo, client, entry_factory):
    """Test that an entry deleted by someone else is not reported."""
    stored = {DROP_KEY: RedisPromptCacheRepository._encode(entry_factory(affinity_level=40))}
    pipe = _prepare_sweep(client, stored)
    pipe.get.return_value = None

    assert repo.delete_many(lambda entry: True) == []
    pipe.multi.assert_not_called()



def test_connection_error_becomes_store_unavailable(repo, client, entry):
    """Test the translation of connection-level failures."""
    client.get.side_effect = redis.exceptions.ConnectionError("connection refused")
    with pytest.raises(StoreUnavailable):
        repo.get(entry.key)

    client.zrangebyscore.side_effect = redis.exceptions.TimeoutError("timed out")
    with pytest.raises(StoreUnavailable):
        repo.find_in_range("user-1", "char-1", LanguageCode.JA, 0, 10)


def test_health_check(repo, client):
    """Test ping-based health checks."""
    client.ping.return_value = True
    assert repo.health_check() is True

    client.ping.side_effect = redis.exceptions.ConnectionError("down")
    assert repo.health_check() is False


def test_get_stats(repo, client):
    """Test the stats dictionary."""
    client.scan_iter.return_value = iter(["test:entry:a", "test:entry:b"])

    stats = repo.get_stats()

    assert stats == {"backend": "redis", "key_prefix": "test", "total_entries": 2}
