"""JSON values cached in Redis, with the cache keys and paging rules of the services."""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any

import redis

log = logging.getLogger(__name__)

CLASS_CACHE_TTL = timedelta(minutes=10)
STUDENT_CACHE_TTL = timedelta(minutes=5)
CLASS_LIST_PATTERN = "class:list:*"
STUDENT_LIST_PATTERN = "student:list:*"
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10


def paginate(page: int, page_size: int) -> tuple[int, int]:
    """Offset and limit of a page; non-positive values fall back to page 1 of 10."""
    if page <= 0:
        page = DEFAULT_PAGE
    if page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    return (page - 1) * page_size, page_size


def class_cache_key(class_id: int) -> str:
    return f"class:{int(class_id)}"


def student_cache_key(student_id: int) -> str:
    return f"student:{int(student_id)}"


def student_list_cache_key(page: int, page_size: int) -> str:
    return f"student:list:{int(page)}:{int(page_size)}"


class JsonCache:
    """Stores JSON-encodable values in Redis with a fixed time to live."""

    def __init__(self, client: Any, ttl: timedelta | int | float = CLASS_CACHE_TTL) -> None:
        if not isinstance(ttl, timedelta):
            ttl = timedelta(seconds=ttl)
        if ttl <= timedelta(0):
            raise ValueError("cache ttl must be positive")
        self._client = client
        self.ttl = ttl

    def get(self, key: str) -> Any | None:
        """The cached value, or None on a miss, an empty value or undecodable data."""
        try:
            raw = self._client.get(key)
        except redis.RedisError as exc:
            log.warning("Failed to read cache key %s: %s", key, exc)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            log.warning("Failed to unmarshal cached value for %s: %s", key, exc)
            return None

    def set(self, key: str, value: Any) -> None:
        """Cache a value as JSON; Redis errors are raised."""
        data = json.dumps(value, ensure_ascii=False).encode("utf-8")
        self._client.set(key, data, ex=self.ttl)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def invalidate(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns how many were deleted."""
        removed = 0
        for key in list(self._client.scan_iter(match=pattern)):
            self._client.delete(key)
            removed += 1
        return removed