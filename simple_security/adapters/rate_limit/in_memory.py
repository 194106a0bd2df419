"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: buckets live in lock-striped shards, so updates for one key
  are serialized while unrelated keys rarely contend.
- Buckets are kept for the process lifetime unless ``stale_after_windows``
  is set.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable

from simple_security.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class RateWindowBucket:
    window_start: float
    count: int


class _Shard:
    __slots__ = ("lock", "buckets", "last_sweep")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.buckets: dict[str, RateWindowBucket] = {}
        self.last_sweep: float | None = None


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    A key's window opens with its first request and lasts ``window_seconds``.
    Up to ``limit`` requests are admitted inside the window; later ones are
    rejected without touching the counter. The first request at or after the
    window end opens a new window with a count of 1.

    Because windows are fixed, a client can get ``limit`` requests through at
    the very end of one window and another ``limit`` right at the start of
    the next.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        shards: int = 64,
        stale_after_windows: int | None = None,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of admitted requests per window.
            window_seconds: Size of the fixed window in seconds.
            clock: Time source returning seconds; monotonic by default.
            shards: Number of lock stripes the key space is split into.
            stale_after_windows: When set, buckets whose window opened at
                least this many windows ago are dropped during ``admit``.

        Raises:
            ValueError: If any argument is out of range.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if shards < 1:
            raise ValueError("shards must be >= 1")
        if stale_after_windows is not None and stale_after_windows < 1:
            raise ValueError("stale_after_windows must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._stale_after_windows = stale_after_windows
        self._shards = tuple(_Shard() for _ in range(shards))

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def __len__(self) -> int:
        return sum(len(shard.buckets) for shard in self._shards)

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def _is_expired(self, bucket: RateWindowBucket, now: float) -> bool:
        return now - bucket.window_start >= self._window_seconds

    def _sweep_locked(self, shard: _Shard, now: float) -> int:
        """Drop stale buckets from a shard whose lock is already held."""
        max_age = self._stale_after_windows * self._window_seconds
        stale = [
            key
            for key, bucket in shard.buckets.items()
            if now - bucket.window_start >= max_age
        ]
        for key in stale:
            del shard.buckets[key]
        shard.last_sweep = now
        return len(stale)

    def _maybe_sweep_locked(self, shard: _Shard, now: float) -> None:
        if self._stale_after_windows is None:
            return
        if shard.last_sweep is None or now - shard.last_sweep >= self._window_seconds:
            self._sweep_locked(shard, now)

    def admit(self, key: str) -> RateLimitResult:
        """Record one request for ``key`` and decide whether it may proceed.

        The check and the increment happen under the key's shard lock, so
        concurrent calls for the same key never both act on a stale count.

        Args:
            key: Unique identifier for rate limiting (e.g., client IP).

        Returns:
            RateLimitResult with the admission decision.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        shard = self._shard_for(key)

        with shard.lock:
            now = self._clock()
            self._maybe_sweep_locked(shard, now)

            bucket = shard.buckets.get(key)
            if bucket is None or self._is_expired(bucket, now):
                bucket = RateWindowBucket(window_start=now, count=0)
                shard.buckets[key] = bucket

            reset_at = bucket.window_start + self._window_seconds

            if bucket.count < self._limit:
                bucket.count += 1
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    remaining=self._limit - bucket.count,
                    reset_at=reset_at,
                )

            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=0,
                reset_at=reset_at,
                retry_after_seconds=max(0.0, reset_at - now),
            )

    def snapshot(self, key: str) -> RateWindowBucket | None:
        """Return a copy of the bucket tracked for ``key``, if any."""
        shard = self._shard_for(key)
        with shard.lock:
            bucket = shard.buckets.get(key)
            return replace(bucket) if bucket is not None else None

    def evict_stale(self, now: float | None = None) -> int:
        """Sweep every shard for stale buckets.

        Args:
            now: Clock reading to sweep against; defaults to the limiter clock.

        Returns:
            Number of buckets removed. Always 0 when ``stale_after_windows``
            is not configured.
        """
        if self._stale_after_windows is None:
            return 0

        removed = 0
        for shard in self._shards:
            with shard.lock:
                removed += self._sweep_locked(shard, self._clock() if now is None else now)
        return removed
