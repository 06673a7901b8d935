"""
TTL caches owned by the orchestrator and injected where needed.

`ExpiringCache` is the building block; `ShownResultsCache` remembers which
result ids a user has already seen today, and `ProcessedMessages` keeps
replies for delivered message ids so redeliveries are answered the same way.
"""
import logging
import time
from datetime import date, datetime
from typing import Any, Callable, Hashable

log = logging.getLogger(__name__)


class ExpiringCache:
    def __init__(self, ttl: float, clock: Callable[[], float] = time.time, max_entries: int = 50_000):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._items: dict[Hashable, tuple[float, Any]] = {}

    def get(self, key: Hashable, default: Any = None) -> Any:
        item = self._items.get(key)
        if item is None:
            return default
        expires_at, value = item
        if expires_at <= self._clock():
            self._items.pop(key, None)
            return default
        return value

    def set(self, key: Hashable, value: Any, ttl: float | None = None):
        if key not in self._items and len(self._items) >= self.max_entries:
            self.purge()
            if len(self._items) >= self.max_entries:
                # drop the entry closest to expiry
                oldest = min(self._items, key=lambda k: self._items[k][0])
                self._items.pop(oldest, None)
                log.warning(f"[CACHE] Full at {self.max_entries} entries, evicted live entry {oldest!r}")
        self._items[key] = (self._clock() + (self.ttl if ttl is None else ttl), value)

    def discard(self, key: Hashable):
        self._items.pop(key, None)

    def purge(self) -> int:
        now = self._clock()
        expired = [k for k, (exp, _) in self._items.items() if exp <= now]
        for k in expired:
            del self._items[k]
        return len(expired)

    def __contains__(self, key: Hashable) -> bool:
        marker = object()
        return self.get(key, marker) is not marker

    def __len__(self) -> int:
        self.purge()
        return len(self._items)


class ShownResultsCache:
    """Result ids shown to each user, reset when the calendar day changes."""

    def __init__(self, ttl: float = 24 * 3600, clock: Callable[[], float] = time.time,
                 today: Callable[[], date] | None = None):
        self._cache = ExpiringCache(ttl, clock=clock)
        self._today = today or (lambda: datetime.fromtimestamp(clock()).date())

    def shown(self, user_id: str) -> set[str]:
        return set(self._cache.get((user_id, self._today()), ()))

    def add(self, user_id: str, result_ids: list[str]):
        key = (user_id, self._today())
        seen = list(self._cache.get(key, ()))
        seen.extend(r for r in result_ids if r not in seen)
        self._cache.set(key, tuple(seen))

    def clear(self, user_id: str):
        self._cache.discard((user_id, self._today()))


class ProcessedMessages:
    """Replies keyed by inbound message id."""

    def __init__(self, ttl: float = 3600, clock: Callable[[], float] = time.time):
        self._cache = ExpiringCache(ttl, clock=clock)

    def reply_for(self, message_id: str | None) -> str | None:
        if not message_id:
            return None
        return self._cache.get(message_id)

    def remember(self, message_id: str | None, reply: str):
        if message_id:
            self._cache.set(message_id, reply)
