"""
In-memory conversion cache.
Keyed by a digest of (input text, options); bounded by approximate byte size and entry age.
"""

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .models import ConversionResult
from .utils import compute_bytes_hash

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class CacheEntry:
    value: Any
    timestamp: float
    size: int


def estimate_size(value: Any) -> int:
    """Approximate memory footprint of a cached value in bytes."""
    if value is None:
        return 0
    if isinstance(value, bytes):
        return len(value)
    if isinstance(value, str):
        return len(value.encode('utf-8'))
    if isinstance(value, ConversionResult):
        return estimate_size(value.data) + 256
    try:
        return len(json.dumps(value, default=str))
    except (TypeError, ValueError):
        return 0


class ConversionCache:
    """
    Size- and age-bounded cache of conversion results.

    Entries older than max_age are dropped on access. When space runs out the
    least recently used entries go first. A single entry larger than a quarter
    of max_size is never stored.
    """

    def __init__(self, max_size: int = 50 * MB, max_age: float = 300.0,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize cache.

        Args:
            max_size: Capacity in bytes
            max_age: Entry lifetime in seconds
            clock: Time source (seconds)
        """
        self.max_size = max_size
        self.max_age = max_age
        self._clock = clock
        self._entries: 'OrderedDict[str, CacheEntry]' = OrderedDict()
        self._current_size = 0

    @staticmethod
    def make_key(input_text: str, options: Any = None) -> str:
        """Digest of the input text and its options."""
        if hasattr(options, 'to_dict'):
            options = options.to_dict()
        options_str = json.dumps(options or {}, sort_keys=True, default=str)
        input_hash = compute_bytes_hash(input_text.encode('utf-8', 'surrogatepass'))
        options_hash = compute_bytes_hash(options_str.encode('utf-8'))
        return f"{input_hash}_{options_hash[:16]}"

    def get(self, input_text: str, options: Any = None) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        key = self.make_key(input_text, options)
        entry = self._live_entry(key)
        if entry is None:
            return None

        entry.timestamp = self._clock()
        self._entries.move_to_end(key)
        logger.debug(f"Cache hit: {key[:12]}")
        return entry.value

    def set(self, input_text: str, options: Any, value: Any) -> bool:
        """
        Store a value.

        Returns:
            True if stored, False if the value was too large to cache
        """
        key = self.make_key(input_text, options)
        size = estimate_size(value)

        if size > self.max_size * 0.25:
            logger.debug(f"Not caching {size} bytes (over 25% of capacity)")
            return False

        self._remove(key)
        self._purge_expired()

        if self._current_size + size > self.max_size:
            self._evict(size)

        self._entries[key] = CacheEntry(value=value, timestamp=self._clock(), size=size)
        self._current_size += size
        return True

    def has(self, input_text: str, options: Any = None) -> bool:
        return self._live_entry(self.make_key(input_text, options)) is not None

    def delete(self, input_text: str, options: Any = None) -> bool:
        return self._remove(self.make_key(input_text, options))

    def clear(self):
        self._entries.clear()
        self._current_size = 0
        logger.debug("Conversion cache cleared")

    def stats(self) -> Dict[str, Any]:
        """Entry count, size in bytes and utilization (0-1)."""
        return {
            'entries': len(self._entries),
            'current_size': self._current_size,
            'max_size': self.max_size,
            'utilization': self._current_size / self.max_size if self.max_size else 0.0,
        }

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp > self.max_age:
            self._remove(key)
            return None
        return entry

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._current_size -= entry.size
        return True

    def _purge_expired(self):
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.timestamp > self.max_age]
        for key in expired:
            self._remove(key)

    def _evict(self, needed: int):
        """Drop least recently used entries until needed bytes fit."""
        while self._entries and self._current_size + needed > self.max_size:
            key, entry = self._entries.popitem(last=False)
            self._current_size -= entry.size
            logger.debug(f"Evicted cache entry {key[:12]} ({entry.size} bytes)")
