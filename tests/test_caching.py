import fnmatch
from datetime import timedelta

import pytest
import redis

from schoolhistory.caching import (
    CLASS_LIST_PATTERN,
    STUDENT_CACHE_TTL,
    STUDENT_LIST_PATTERN,
    JsonCache,
    class_cache_key,
    paginate,
    student_cache_key,
    student_list_cache_key,
)


class _FakeRedis:
    def __init__(self):
        self.store = {}
        self.expiry = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value if isinstance(value, bytes) else str(value).encode()
        self.expiry[key] = ex

    def delete(self, *keys):
        return sum(1 for k in keys if self.store.pop(k, None) is not None)

    def scan_iter(self, match="*"):
        return iter([k for k in self.store if fnmatch.fnmatchcase(k, match)])


class _BrokenRedis(_FakeRedis):
    def get(self, key):
        raise redis.ConnectionError("down")


def test_paginate_defaults():
    assert paginate(0, 0) == (0, 10)
    assert paginate(-3, -1) == (0, 10)


def test_paginate_offset():
    assert paginate(1, 5) == (0, 5)
    offset, limit = paginate(4, 7)
    assert limit == 7
    assert offset == 3 * limit


def test_cache_keys():
    assert class_cache_key(7) == "class:7"
    assert student_cache_key(12) == "student:12"
    assert student_list_cache_key(2, 20) == "student:list:2:20"


def test_round_trip_and_ttl():
    client = _FakeRedis()
    cache = JsonCache(client, STUDENT_CACHE_TTL)
    reply = {"items": [{"id": 1, "name": "Lan", "is_deleted": False}], "total": 1}
    cache.set("student:list:1:10", reply)
    assert cache.get("student:list:1:10") == reply
    assert client.expiry["student:list:1:10"] == timedelta(minutes=5)


def test_numeric_ttl_is_seconds():
    cache = JsonCache(_FakeRedis(), 30)
    assert cache.ttl == timedelta(seconds=30)


def test_non_positive_ttl_rejected():
    with pytest.raises(ValueError):
        JsonCache(_FakeRedis(), 0)


def test_miss_empty_and_garbage():
    client = _FakeRedis()
    cache = JsonCache(client)
    assert cache.get("class:1") is None
    client.store["class:2"] = b""
    assert cache.get("class:2") is None
    client.store["class:3"] = b"{broken"
    assert cache.get("class:3") is None


def test_redis_error_is_a_miss():
    cache = JsonCache(_BrokenRedis())
    assert cache.get("class:1") is None


def test_delete():
    cache = JsonCache(_FakeRedis())
    cache.set("class:1", {"name": "A"})
    cache.delete("class:1")
    assert cache.get("class:1") is None


def test_invalidate_only_matching():
    client = _FakeRedis()
    cache = JsonCache(client)
    cache.set("class:list:a", [1])
    cache.set("class:list:b", [2])
    cache.set("class:1", {"name": "A"})
    cache.set("student:list:1:10", [3])
    assert cache.invalidate(CLASS_LIST_PATTERN) == 2
    assert sorted(client.store) == ["class:1", "student:list:1:10"]
    assert cache.invalidate(STUDENT_LIST_PATTERN) == 1
    assert sorted(client.store) == ["class:1"]