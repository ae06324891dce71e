"""A thread-safe string-keyed map split into independently locked shards."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Iterator, Mapping
from typing import Any, NamedTuple

from zinxtools.hashing import Hasher, default_hash

DEFAULT_SHARD_COUNT = 32


class Item(NamedTuple):
    """A key and its value, as yielded by :meth:`ShardLockMap.iter_buffered`."""

    key: str
    value: Any


class _Shard:
    __slots__ = ("items", "lock")

    def __init__(self) -> None:
        self.items: dict[str, Any] = {}
        self.lock = threading.Lock()


class ShardLockMap:
    """A map from strings to anything, sharded to reduce lock contention."""

    def __init__(self, hasher: Hasher | None = None, shard_count: int = DEFAULT_SHARD_COUNT) -> None:
        if shard_count < 1:
            raise ValueError("shard_count must be at least 1")
        self._hasher = hasher if hasher is not None else default_hash()
        self._shards = [_Shard() for _ in range(shard_count)]

    @property
    def shard_count(self) -> int:
        return len(self._shards)

    def _shard(self, key: str) -> _Shard:
        return self._shards[self._hasher.sum(key) % len(self._shards)]

    def count(self) -> int:
        """Return the number of stored elements."""
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.items)
        return total

    def __len__(self) -> int:
        return self.count()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value under ``key``, or ``default`` when it is missing."""
        shard = self._shard(key)
        with shard.lock:
            return shard.items.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""
        shard = self._shard(key)
        with shard.lock:
            shard.items[key] = value

    def set_nx(self, key: str, value: Any) -> bool:
        """Store ``value`` only if ``key`` is absent; return whether it was stored."""
        shard = self._shard(key)
        with shard.lock:
            if key in shard.items:
                return False
            shard.items[key] = value
            return True

    def mset(self, data: Mapping[str, Any]) -> None:
        """Store every key and value of ``data``."""
        for key, value in data.items():
            self.set(key, value)

    def has(self, key: str) -> bool:
        """Return whether ``key`` is stored."""
        shard = self._shard(key)
        with shard.lock:
            return key in shard.items

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def remove(self, key: str) -> None:
        """Remove ``key`` if present."""
        shard = self._shard(key)
        with shard.lock:
            shard.items.pop(key, None)

    def remove_cb(self, key: str, callback: Callable[[str, Any, bool], bool]) -> bool:
        """Call ``callback(key, value, exists)`` under the shard lock.

        The element is removed when the callback returns true and it exists.
        The callback's result is returned either way.
        """
        shard = self._shard(key)
        with shard.lock:
            exists = key in shard.items
            remove = bool(callback(key, shard.items.get(key), exists))
            if remove and exists:
                del shard.items[key]
            return remove

    def pop(self, key: str) -> tuple[Any, bool]:
        """Remove ``key`` and return ``(value, existed)``."""
        shard = self._shard(key)
        with shard.lock:
            if key in shard.items:
                return shard.items.pop(key), True
            return None, False

    def clear(self) -> None:
        """Remove every element that is present when the call starts."""
        for item in self.iter_buffered():
            self.remove(item.key)

    def is_empty(self) -> bool:
        return self.count() == 0

    def _snapshot(self) -> list[Item]:
        snapshot: list[Item] = []
        for shard in self._shards:
            with shard.lock:
                snapshot.extend(Item(key, value) for key, value in shard.items.items())
        return snapshot

    def iter_buffered(self) -> Iterator[Item]:
        """Return an iterator over a snapshot of the map taken now."""
        return iter(self._snapshot())

    def items(self) -> dict[str, Any]:
        """Return a copy of all elements as a plain dict."""
        return dict(self._snapshot())

    def keys(self) -> list[str]:
        """Return all keys."""
        keys: list[str] = []
        for shard in self._shards:
            with shard.lock:
                keys.extend(shard.items)
        return keys

    def iter_cb(self, fn: Callable[[str, Any], None]) -> None:
        """Call ``fn(key, value)`` for every element, holding each shard's lock in turn."""
        for shard in self._shards:
            with shard.lock:
                for key, value in shard.items.items():
                    fn(key, value)

    def to_json(self) -> str:
        """Encode all elements as a JSON object with sorted keys."""
        return json.dumps(self.items(), sort_keys=True, separators=(",", ":"))

    def load_json(self, data: str | bytes) -> None:
        """Store every member of the JSON object ``data``."""
        decoded = json.loads(data)
        if not isinstance(decoded, dict):
            raise ValueError("JSON document is not an object")
        for key, value in decoded.items():
            self.set(key, value)