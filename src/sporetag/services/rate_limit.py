"""Sliding-window submission throttling backed by Redis."""

from __future__ import annotations

import json
import logging
import math
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Final

import redis

from sporetag.core.settings import settings
from sporetag.db.time import epoch_millis

logger = logging.getLogger(__name__)

KEY_PREFIX: Final[str] = "rate_limit:"


class RateLimiterConfigurationError(RuntimeError):
    """Raised when the rate limiter cannot be built from configuration.

    Throttling is mandatory: a missing counter store is never treated as
    permission to skip the check.
    """


@dataclass(frozen=True)
class RateLimitDecision:
    """Verdict for a single submission attempt."""

    allowed: bool
    remaining: int
    retry_after_seconds: int | None = None


class RateLimitStore:
    """Reads and writes per-identity timestamp windows in Redis.

    Each window is stored under ``rate_limit:<identity>`` as a JSON array of
    epoch-millisecond integers.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @staticmethod
    def key_for(identity: str) -> str:
        return f"{KEY_PREFIX}{identity}"

    def load(self, identity: str) -> list[int]:
        """Return the stored timestamps for ``identity`` (empty on a miss)."""
        raw = self._client.get(self.key_for(identity))
        if raw is None:
            return []
        try:
            decoded = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding undecodable rate-limit window for %s", identity)
            return []
        if not isinstance(decoded, list):
            return []
        return [
            int(ts)
            for ts in decoded
            if isinstance(ts, int | float) and not isinstance(ts, bool)
        ]

    def save(self, identity: str, timestamps: Iterable[int], ttl_seconds: int) -> None:
        """Replace the window for ``identity`` and reset its expiry."""
        self._client.set(
            self.key_for(identity),
            json.dumps(list(timestamps)),
            ex=int(ttl_seconds),
        )


def _prune(timestamps: Iterable[int], cutoff: int) -> list[int]:
    return sorted(ts for ts in timestamps if ts > cutoff)


class RateLimiter:
    """Per-identity sliding window limiter.

    Only accepted attempts are recorded. The read-modify-write cycle is not
    transactional: two in-flight requests from one identity may both pass,
    and the last write wins. Before writing, the window is re-read and merged
    so an entry stored by a writer that finished first is kept.
    """

    def __init__(
        self,
        store: RateLimitStore,
        *,
        max_submissions: int = 5,
        window_seconds: int = 3600,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        if store is None:
            raise RateLimiterConfigurationError("A rate-limit store is required")
        self.store = store
        self.max_submissions = max_submissions
        self.window_seconds = window_seconds
        self._clock = clock

    @property
    def window_millis(self) -> int:
        return self.window_seconds * 1000

    def check(self, identity: str) -> RateLimitDecision:
        """Return whether ``identity`` may submit now, recording the attempt if so.

        Raises:
            redis.RedisError: If the backing store cannot be reached.
        """
        now = self._clock()
        cutoff = now - self.window_millis
        window = _prune(self.store.load(identity), cutoff)

        if len(window) >= self.max_submissions:
            retry_after = math.ceil((window[0] + self.window_millis - now) / 1000)
            logger.info("Rate limit reached for identity %s", identity)
            return RateLimitDecision(
                allowed=False,
                remaining=0,
                retry_after_seconds=max(1, retry_after),
            )

        window.append(now)
        concurrent = _prune(self.store.load(identity), cutoff)
        # Multiset union keeps same-millisecond entries from being collapsed.
        merged = sorted((Counter(window) | Counter(concurrent)).elements())
        self.store.save(identity, merged, ttl_seconds=self.window_seconds)
        return RateLimitDecision(
            allowed=True,
            remaining=max(0, self.max_submissions - len(merged)),
        )


@lru_cache(maxsize=1)
def _redis_client(url: str) -> Any:
    return redis.from_url(url)


def get_rate_limiter() -> RateLimiter:
    """Return a rate limiter wired to the configured Redis instance."""
    if not settings.redis_url:
        raise RateLimiterConfigurationError("REDIS_URL must be set; rate limiting is mandatory")
    return RateLimiter(
        RateLimitStore(_redis_client(settings.redis_url)),
        max_submissions=settings.rate_limit_max_submissions,
        window_seconds=settings.rate_limit_window_seconds,
    )
