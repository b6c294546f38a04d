"""Response cache for assistant replies.

Entries are keyed by a hash of the normalized user message, the two most
recent prior chat messages, and a small context fingerprint, so the same
question asked in a different conversational state misses the cache.
Keys are namespaced by session id so a shared instance never serves one
session's reply to another.
"""

import hashlib
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from loguru import logger

from fitcoach.coach.schemas.context import OptimizedContext

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 120.0
HISTORY_WINDOW = 2
WORKOUT_FINGERPRINT_CHARS = 50
_HASH_CHARS = 16


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    key: str
    response: T
    timestamp: float


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:_HASH_CHARS]


def create_request_key(message: str, context: OptimizedContext, session_id: str | None = None) -> str:
    """Derive the cache key for a user message in its conversational context.

    Args:
        message: Raw user message
        context: Optimized context built for this request
        session_id: Session or user id used as a namespace

    Returns:
        Cache key string
    """
    message_hash = _digest(message.strip().lower())
    recent = "|".join(m.content for m in context.chat_history[-HISTORY_WINDOW:])
    history_hash = _digest(recent)
    fingerprint = json.dumps(
        {
            "goals": context.user_basics.goals,
            "workout": context.current_plan_summary.workout[:WORKOUT_FINGERPRINT_CHARS],
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    key = f"{message_hash}-{history_hash}-{_digest(fingerprint)}"
    if session_id:
        return f"{_digest(session_id)}:{key}"
    return key


class ResponseCache(Generic[T]):
    """Time-bounded memoization of assistant responses.

    Entries are never updated in place: an expired entry is replaced by a
    fresh one on the next miss.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> T | None:
        """Return a live entry's response, dropping it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl_seconds:
            del self._entries[key]
            return None
        return entry.response

    async def get_or_create(
        self,
        key: str,
        create_fn: Callable[[], Awaitable[T]],
        should_store: Callable[[T], bool] | None = None,
    ) -> T:
        """Return the cached response for ``key`` or create and store it.

        Args:
            key: Cache key
            create_fn: Coroutine factory invoked only on a miss
            should_store: Optional predicate; results it rejects are returned but not cached

        Returns:
            Cached or freshly created response
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("Response cache hit", key=key)
            return cached

        logger.debug("Response cache miss", key=key)
        response = await create_fn()
        if should_store is None or should_store(response):
            self._entries[key] = CacheEntry(key=key, response=response, timestamp=self._clock())
        return response

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now - entry.timestamp >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Response cache cleared")

    @property
    def size(self) -> int:
        return len(self._entries)
