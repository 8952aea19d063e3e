#!/usr/bin/env python3
"""
In-Memory LRU Cache

Implements:
- get(key) → value | None      (refreshes recency on hit)
- add(key, value) → evicted?   (drops the least-recently-used entry when full)
- get_stats() → {hits, misses, writes, evictions, entries, hit_rate_percent}

Thread-safe: one lock guards the entries and the counters. A hit takes
nothing but that lock.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, Hashable, List, Optional

logger = logging.getLogger(__name__)


class LRUCache:
    """Bounded mapping with strict least-recently-used eviction."""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"cache capacity must be positive, got {capacity}")

        self.capacity = capacity
        self._entries: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()

        self.stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "evictions": 0,
            "start_time": time.time(),
        }

        logger.debug(f"LRUCache initialized (capacity={capacity})")

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            try:
                value = self._entries[key]
            except KeyError:
                self.stats["misses"] += 1
                return None
            self._entries.move_to_end(key)
            self.stats["hits"] += 1
            return value

    def add(self, key: Hashable, value: Any) -> bool:
        """Insert or refresh `key`. Returns True if an entry was evicted to make room."""
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self._entries[key] = value
                return False

            self._entries[key] = value
            self.stats["writes"] += 1
            if len(self._entries) <= self.capacity:
                return False

            evicted, _ = self._entries.popitem(last=False)
            self.stats["evictions"] += 1

        logger.debug(f"Evicted {evicted} (capacity={self.capacity})")
        return True

    def __contains__(self, key: Hashable) -> bool:
        # Membership checks do not count as use.
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> List[Hashable]:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self.stats)
            entries = len(self._entries)

        total_requests = stats["hits"] + stats["misses"]
        hit_rate = (stats["hits"] / total_requests * 100) if total_requests > 0 else 0

        return {
            "hits": stats["hits"],
            "misses": stats["misses"],
            "hit_rate_percent": round(hit_rate, 1),
            "total_requests": total_requests,
            "entries": entries,
            "capacity": self.capacity,
            "writes": stats["writes"],
            "evictions": stats["evictions"],
            "uptime_seconds": int(time.time() - stats["start_time"]),
        }

    def format_report(self) -> str:
        stats = self.get_stats()
        return (
            f"Hit Rate: {stats['hit_rate_percent']}% ({stats['hits']}/{stats['total_requests']}) | "
            f"Entries: {stats['entries']}/{stats['capacity']} | "
            f"Writes: {stats['writes']} | Evictions: {stats['evictions']}"
        )
