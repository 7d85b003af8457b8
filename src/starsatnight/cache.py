"""Process-scoped result cache with single-flight computation.

Entries anchored to a date are served only on that local date and expire at
the next local midnight of the request's timezone. Unanchored entries (pure
date-indexed almanac data) live until their TTL, if any, or LRU eviction.

Concurrent callers for a key that is already being computed wait for that
computation's result instead of starting their own. A failed computation is
raised to every waiter and nothing is stored.
"""

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Generic, Hashable, TypeVar

import pytz

from starsatnight.sources import Clock, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


def next_local_midnight(now: datetime, tz_name: str) -> datetime:
    """First midnight strictly after now in tz_name, as an aware datetime."""
    tz = pytz.timezone(tz_name)
    local = now.astimezone(tz)
    return tz.localize(datetime.combine(local.date() + timedelta(days=1), time()))


def local_today(now: datetime, tz_name: str) -> date:
    return now.astimezone(pytz.timezone(tz_name)).date()


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    computed_at: datetime
    anchored_on: date | None  # Local date the value is valid for; None = any date
    expires_at: datetime | None

    def is_valid(self, now: datetime, today: date) -> bool:
        if self.expires_at is not None and now >= self.expires_at:
            return False
        return self.anchored_on is None or self.anchored_on == today


class ResultCache:
    """Thread-safe LRU cache keyed by CacheKey (any hashable works)."""

    def __init__(
        self,
        capacity: int = 256,
        unanchored_ttl: timedelta | None = None,
        clock: Clock = utc_now,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._unanchored_ttl = unanchored_ttl
        self._clock = clock
        self._entries: OrderedDict[Hashable, CacheEntry] = OrderedDict()
        self._in_flight: dict[Hashable, Future] = {}
        self._lock = threading.Lock()
        self.computations = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def get_or_compute(
        self,
        key: Hashable,
        compute_fn: Callable[[], T],
        *,
        timezone: str,
        refresh: bool = False,
        anchored: bool = True,
    ) -> T:
        """Return a valid cached value for key, computing it at most once.

        Args:
            key: Full identity of the value, including resolved window bounds.
            compute_fn: Produces the value on a miss.
            timezone: Request timezone; defines "today" and midnight expiry.
            refresh: Skip the stored entry and recompute.
            anchored: Value depends on "today" (satellites, planets).
        """
        now = self._clock()
        today = local_today(now, timezone)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not refresh:
                if entry.is_valid(now, today):
                    self._entries.move_to_end(key)
                    logger.debug("Cache hit: %s", key)
                    return entry.value
                del self._entries[key]
                logger.debug("Cache entry expired: %s", key)

            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future
                self.computations += 1

        if not owner:
            logger.debug("Waiting on in-flight computation: %s", key)
            return future.result()

        try:
            logger.debug("Cache miss%s: %s", " (refresh)" if refresh else "", key)
            value = compute_fn()
        except BaseException as exc:
            with self._lock:
                del self._in_flight[key]
            future.set_exception(exc)
            raise

        if anchored:
            expires_at = next_local_midnight(now, timezone)
        elif self._unanchored_ttl is not None:
            expires_at = now + self._unanchored_ttl
        else:
            expires_at = None
        entry = CacheEntry(
            value=value,
            computed_at=now,
            anchored_on=today if anchored else None,
            expires_at=expires_at,
        )
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted: %s", evicted)
            del self._in_flight[key]
        future.set_result(value)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
