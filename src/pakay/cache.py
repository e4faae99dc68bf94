"""Bounded LRU cache of converters, keyed by codec fingerprint."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from pakay.codec import CodecConfig, Converter, HashidsConverter
from pakay.config import DEFAULT_CACHE_CAPACITY
from pakay.errors import ConfigurationError

logger = logging.getLogger("pakay.cache")


@dataclass
class CachedConverter:
    converter: Converter
    last_used: float
    hit_count: int = 0


class CodecCache:
    """Maps CodecConfig fingerprints to converter instances.

    Eviction only costs a rebuild on next use; it never changes results.
    The lock covers the dict lookup and recency bump only. Converters are
    built outside it, and if two threads race on the same miss the first
    insert wins.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CACHE_CAPACITY,
        converter_factory: Callable[[CodecConfig], Converter] = HashidsConverter.from_config,
    ):
        if not isinstance(capacity, int) or capacity < 1:
            raise ConfigurationError("cache_capacity", "must be a positive integer")
        self._capacity = capacity
        self._factory = converter_factory
        self._entries: OrderedDict[tuple, CachedConverter] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, config: CodecConfig) -> Converter:
        key = config.fingerprint
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
                entry.hit_count += 1
                entry.last_used = time.monotonic()
                self._hits += 1
                return entry.converter
            self._misses += 1

        converter = self._factory(config)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
                return entry.converter
            while len(self._entries) >= self._capacity:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Evicted converter for hasher '%s'", evicted_key[0])
            self._entries[key] = CachedConverter(converter, last_used=time.monotonic())
        return converter

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, config: CodecConfig) -> bool:
        return config.fingerprint in self._entries

    def stats(self) -> dict:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "capacity": self._capacity,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate_percentage": round(self._hits / lookups * 100, 2) if lookups else 0.0,
            }
