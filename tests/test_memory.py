"""Tests for the compressed cache, batch streaming and row decorator."""

import asyncio

import pytest

from terse_json import memory
from terse_json.core import CompressOptions, expand
from terse_json.envelope import is_terse_payload
from terse_json.memory import TerseCache, acompress_stream, compress_rows, compress_stream, terse_rows
from terse_json.view import TerseView


def _users(count=2):
    return [{"firstName": f"User{i}", "lastName": f"Last{i}", "id": i} for i in range(count)]


class _Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_cache_returns_views_and_raw_envelopes():
    cache = TerseCache()
    cache.set("users", _users())

    users = cache.get("users")
    assert isinstance(users[0], TerseView)
    assert users[1].firstName == "User1"

    raw = cache.get_raw("users")
    assert is_terse_payload(raw)
    assert expand(raw) == _users()


def test_cache_membership_delete_and_clear():
    cache = TerseCache()
    assert cache.get("missing") is None
    assert cache.get_raw("missing") is None

    cache.set("users", _users())
    cache.set("more", _users(3))
    assert cache.has("users")
    assert "more" in cache
    assert 5 not in cache
    assert len(cache) == 2

    assert cache.delete("users") is True
    assert cache.delete("users") is False
    assert not cache.has("users")

    cache.clear()
    assert len(cache) == 0


def test_cache_uses_configured_options():
    cache = TerseCache(CompressOptions(key_pattern="numeric"))
    cache.set("users", _users())
    assert set(cache.get_raw("users")["table"]) == {"0", "1"}


def test_cache_ttl_expiry(monkeypatch):
    clock = _Clock()
    monkeypatch.setattr(memory.time, "time", clock)

    cache = TerseCache(default_ttl=10)
    cache.set("short", _users(), ttl=1)
    cache.set("default", _users())
    cache.set("also_default", _users())
    cache.default_ttl = None
    cache.set("pinned", _users())

    clock.now += 2
    assert cache.get("short") is None
    assert cache.has("default")

    clock.now += 9
    assert not cache.has("default")
    assert cache.get_raw("also_default") is None
    assert cache.has("pinned")


def test_cache_evicts_least_recently_used():
    cache = TerseCache(max_size=2)
    cache.set("a", _users())
    cache.set("b", _users())
    cache.get("a")
    cache.set("c", _users())

    assert cache.has("a")
    assert not cache.has("b")
    assert cache.has("c")
    assert len(cache) == 2


def test_cache_raw_reads_refresh_recency():
    cache = TerseCache(max_size=2)
    cache.set("a", _users())
    cache.set("b", _users())
    cache.get_raw("a")
    cache.set("c", _users())

    assert cache.has("a")
    assert not cache.has("b")


def test_cache_length_skips_expired_entries(monkeypatch):
    clock = _Clock()
    monkeypatch.setattr(memory.time, "time", clock)

    cache = TerseCache(max_size=2)
    cache.set("short", _users(), ttl=1)
    cache.set("kept", _users())
    assert len(cache) == 2

    clock.now += 5
    assert len(cache) == 1

    cache.set("fresh", _users())
    assert cache.has("kept")
    assert cache.has("fresh")


def test_cache_rejects_bad_max_size():
    with pytest.raises(ValueError):
        TerseCache(max_size=0)


def test_compress_stream_batches_in_order():
    envelopes = list(compress_stream(iter(_users(5)), batch_size=2))
    assert [len(envelope["data"]) for envelope in envelopes] == [2, 2, 1]
    restored = [record for envelope in envelopes for record in expand(envelope)]
    assert restored == _users(5)


def test_compress_stream_empty_source_and_bad_batch():
    assert list(compress_stream([])) == []
    with pytest.raises(ValueError):
        list(compress_stream(_users(), batch_size=0))


def test_acompress_stream_batches_in_order():
    async def source():
        for user in _users(5):
            yield user

    async def collect():
        return [envelope async for envelope in acompress_stream(source(), batch_size=3)]

    envelopes = asyncio.run(collect())
    assert [len(envelope["data"]) for envelope in envelopes] == [3, 2]
    restored = [record for envelope in envelopes for record in expand(envelope)]
    assert restored == _users(5)


def test_compress_rows_returns_views():
    rows = compress_rows(_users(3))
    assert [row.lastName for row in rows] == ["Last0", "Last1", "Last2"]


def test_terse_rows_wraps_record_arrays():
    @terse_rows()
    def fetch(count):
        return _users(count)

    rows = fetch(3)
    assert isinstance(rows[0], TerseView)
    assert rows[2].firstName == "User2"
    assert fetch.__name__ == "fetch"


def test_terse_rows_passes_other_results_through():
    @terse_rows()
    def scalar():
        return 42

    @terse_rows(skip_single_rows=True)
    def single():
        return _users(1)

    @terse_rows(min_array_length=5)
    def few():
        return _users(2)

    @terse_rows(enabled=False)
    def disabled():
        return _users(2)

    assert scalar() == 42
    assert type(single()[0]) is dict
    assert type(few()[0]) is dict
    assert type(disabled()[0]) is dict
