"""Recent-question cache used for duplicate detection.

Keys are normalized question texts, so "What is 2+2?" and "  what is 2+2?  "
are the same entry. The cache is bounded: the least recently used entry is
evicted once ``max_size`` is exceeded, and entries older than the optional
TTL are treated as absent.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .config import Settings, settings
from .models import Question

logger = logging.getLogger(__name__)


@dataclass
class QuestionCacheEntry:
    """A cached question with access bookkeeping."""

    question: Question
    created_at: datetime
    last_accessed: datetime
    access_count: int = 0
    stored_at: float = 0.0


class QuestionCache:
    """In-memory LRU cache of recently generated questions.

    All operations are thread-safe. Data is lost on process restart and is
    not shared between workers.
    """

    DEFAULT_MAX_SIZE = 10_000

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            max_size: Maximum number of questions kept before LRU eviction
            ttl_seconds: Age after which an entry expires (None keeps entries
                until evicted)
            clock: Monotonic clock used for TTL checks
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._max_size = max_size
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: "OrderedDict[str, QuestionCacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "QuestionCache":
        config = config or settings
        return cls(
            max_size=config.question_cache_max_size,
            ttl_seconds=config.question_cache_ttl_seconds,
        )

    @staticmethod
    def normalize_key(question_text: str) -> str:
        """Lowercase and trim question text into a cache key."""
        return question_text.strip().lower()

    def _is_expired(self, entry: QuestionCacheEntry) -> bool:
        if self._ttl_seconds is None:
            return False
        return self._clock() - entry.stored_at > self._ttl_seconds

    def _lookup(self, key: str) -> Optional[QuestionCacheEntry]:
        # Caller holds the lock
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            del self._cache[key]
            self._expirations += 1
            return None
        return entry

    def is_duplicate(self, question: Question) -> bool:
        """Check whether a question with the same text is already cached."""
        key = self.normalize_key(question.question_text)
        with self._lock:
            entry = self._lookup(key)
            if entry is None:
                self._misses += 1
                return False
            self._hits += 1
            entry.access_count += 1
            entry.last_accessed = datetime.now(timezone.utc)
            self._cache.move_to_end(key)
            return True

    def add(self, question: Question) -> None:
        """Store a copy of a question, evicting the least recently used entry if full."""
        key = self.normalize_key(question.question_text)
        now = datetime.now(timezone.utc)
        entry = QuestionCacheEntry(
            question=question.model_copy(deep=True),
            created_at=now,
            last_accessed=now,
            stored_at=self._clock(),
        )
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            self._cache[key] = entry
            while len(self._cache) > self._max_size:
                self._cache.popitem(last=False)
                self._evictions += 1

    def get(self, question_text: str) -> Optional[Question]:
        """Return a copy of the cached question for a text, if present."""
        key = self.normalize_key(question_text)
        with self._lock:
            entry = self._lookup(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            entry.access_count += 1
            entry.last_accessed = datetime.now(timezone.utc)
            self._cache.move_to_end(key)
            return entry.question.model_copy(deep=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear(self) -> None:
        """Remove all cached questions and reset counters."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0
        logger.info(f"Cleared {count} cached questions")

    def get_stats(self) -> Dict[str, Any]:
        """Return cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "ttl_seconds": self._ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "hit_rate": self._hits / total if total > 0 else 0.0,
            }
