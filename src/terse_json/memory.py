"""Server-side helpers that keep record sets compressed in memory."""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable, Iterable, Iterator, Optional

from .core import CompressOptions, compress, is_compressible_array
from .view import wrap_payload

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


@dataclass
class CacheEntry:
    payload: dict[str, Any]
    created_at: float
    expires_at: Optional[float] = None


class TerseCache:
    """In-memory cache that stores record sets as compressed envelopes.

    ``get`` hands back lazy views, so only the fields a caller touches are
    ever translated back to canonical names.
    """

    def __init__(
        self,
        options: Optional[CompressOptions] = None,
        *,
        max_size: Optional[int] = None,
        default_ttl: Optional[float] = None,
    ):
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.options = options
        self.max_size = max_size
        self.default_ttl = default_ttl
        # Insertion order doubles as recency order.
        self._entries: dict[str, CacheEntry] = {}

    def set(self, key: str, records: Any, ttl: Optional[float] = None) -> None:
        self._entries.pop(key, None)
        self._purge_expired()
        if self.max_size is not None and len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            self._entries.pop(oldest)
            logger.debug("Evicted least recently used cache entry %s", oldest)
        now = time.time()
        effective_ttl = ttl if ttl is not None else self.default_ttl
        self._entries[key] = CacheEntry(
            payload=compress(records, self.options),
            created_at=now,
            expires_at=now + effective_ttl if effective_ttl is not None else None,
        )

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at < time.time():
            del self._entries[key]
            return None
        return entry

    def _touch(self, key: str, entry: CacheEntry) -> None:
        self._entries.pop(key, None)
        self._entries[key] = entry

    def get(self, key: str) -> Any:
        entry = self._live_entry(key)
        if entry is None:
            return None
        self._touch(key, entry)
        return wrap_payload(entry.payload)

    def get_raw(self, key: str) -> Optional[dict[str, Any]]:
        """Return the stored envelope without wrapping, e.g. for forwarding."""
        entry = self._live_entry(key)
        if entry is None:
            return None
        self._touch(key, entry)
        return entry.payload

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def _purge_expired(self) -> None:
        now = time.time()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.expires_at is not None and entry.expires_at < now
        ]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)


def compress_stream(
    source: Iterable[Any],
    options: Optional[CompressOptions] = None,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[dict[str, Any]]:
    """Yield one envelope per ``batch_size`` records, in source order."""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    batch: list[Any] = []
    for item in source:
        batch.append(item)
        if len(batch) >= batch_size:
            yield compress(batch, options)
            batch = []
    if batch:
        yield compress(batch, options)


async def acompress_stream(
    source: AsyncIterable[Any],
    options: Optional[CompressOptions] = None,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> AsyncIterator[dict[str, Any]]:
    """Async counterpart of :func:`compress_stream` for cursors and streams."""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    batch: list[Any] = []
    async for item in source:
        batch.append(item)
        if len(batch) >= batch_size:
            yield compress(batch, options)
            batch = []
    if batch:
        yield compress(batch, options)


def compress_rows(rows: Any, options: Optional[CompressOptions] = None) -> Any:
    """Compress query rows and hand them back as lazy views."""
    return wrap_payload(compress(rows, options))


def terse_rows(
    options: Optional[CompressOptions] = None,
    *,
    enabled: bool = True,
    min_array_length: int = 1,
    skip_single_rows: bool = False,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate a row-returning function so its result comes back as lazy views.

    Apply it at the call site of a database or ORM query; results that are
    not arrays of records are returned unchanged.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            rows = func(*args, **kwargs)
            if not enabled or not is_compressible_array(rows):
                return rows
            if len(rows) < min_array_length or (skip_single_rows and len(rows) == 1):
                return rows
            return compress_rows(rows, options)

        return wrapper

    return decorator
