"""Size-aware caches for filters and blocks."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Hashable, Protocol, runtime_checkable

from neutrino.chain import FilterType
from neutrino.errors import ElementNotFoundError, NeutrinoError


@runtime_checkable
class CacheValue(Protocol):
    """A value that can report how much of a cache's capacity it takes."""

    def size(self) -> int:
        """Return the amount of capacity this value occupies."""
        ...


@dataclass(frozen=True)
class FilterCacheKey:
    """The key under which a compact filter is cached."""

    block_hash: bytes
    filter_type: FilterType = FilterType.REGULAR


@dataclass(frozen=True, eq=False)
class CacheableBlock:
    """A block whose cache size is its serialized size in bytes.

    ``block`` is either the raw serialized block or an object with a
    ``serialize()`` method returning it.
    """

    block: Any

    def size(self) -> int:
        if isinstance(self.block, (bytes, bytearray, memoryview)):
            return len(self.block)
        return len(self.block.serialize())


@dataclass(frozen=True, eq=False)
class CacheableFilter:
    """A serialized compact filter whose cache size is its length in bytes."""

    filter_bytes: bytes

    def size(self) -> int:
        return len(self.filter_bytes)


def _value_size(value: CacheValue, context: str) -> int:
    try:
        return int(value.size())
    except Exception as exc:
        raise NeutrinoError(f"{context}: {exc}") from exc


_MISSING = object()


class LRUCache:
    """A thread-safe least-recently-used cache bounded by total value size."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("cache capacity can't be negative")
        self.capacity = capacity
        self._size = 0
        self._entries: OrderedDict[Hashable, CacheValue] = OrderedDict()
        self._lock = threading.Lock()

    def _evict(self, needed: int) -> bool:
        if needed > self.capacity:
            raise NeutrinoError(
                f"can't evict {needed} elements in size, "
                f"since capacity is {self.capacity}"
            )
        evicted = False
        while self.capacity - self._size < needed:
            if not self._entries:
                raise NeutrinoError(
                    "all elements got evicted, yet still need to evict "
                    f"{needed - (self.capacity - self._size)}, likelihood "
                    "of error during size calculation"
                )
            key, oldest = next(iter(self._entries.items()))
            size = _value_size(
                oldest, "couldn't determine size of existing cache value"
            )
            del self._entries[key]
            self._size -= size
            evicted = True
        return evicted

    def put(self, key: Hashable, value: CacheValue) -> bool:
        """Store ``value`` under ``key`` as the most recent entry.

        Returns whether older entries had to be evicted to make room.
        """
        needed = _value_size(value, "couldn't determine size of cache value")
        if needed > self.capacity:
            raise ValueError(
                f"can't insert entry of size {needed} into cache with "
                f"capacity {self.capacity}"
            )

        with self._lock:
            existing = self._entries.get(key, _MISSING)
            if existing is not _MISSING:
                old_size = _value_size(
                    existing, "couldn't determine size of existing cache value"
                )
                del self._entries[key]
                self._size -= old_size

            evicted = self._evict(needed)
            self._entries[key] = value
            self._size += needed
            return evicted

    def get(self, key: Hashable) -> CacheValue:
        """Return the value for ``key`` and mark it most recently used."""
        with self._lock:
            try:
                value = self._entries[key]
            except KeyError:
                raise ElementNotFoundError() from None
            self._entries.move_to_end(key)
            return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)