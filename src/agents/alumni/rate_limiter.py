"""
Admission control for inbound turns.

Tracks searches per user and denies a turn when the daily search budget is
spent, a cooldown is running, or recent activity looks automated. Denials
carry a reason and how long to wait; nothing else about the user changes.
"""
import logging
import math
from collections import Counter, defaultdict, deque
from datetime import datetime, timedelta
from typing import Callable, NamedTuple

from .text import normalize

log = logging.getLogger(__name__)


class Admission(NamedTuple):
    allowed: bool
    reason: str | None = None
    retry_after: timedelta | None = None
    detail: str | None = None

    @property
    def retry_after_minutes(self) -> int:
        if not self.retry_after:
            return 0
        return max(1, math.ceil(self.retry_after.total_seconds() / 60))


ALLOW = Admission(True)

COOLDOWN_REASONS = {
    "rapid_fire_searches": "Too many searches in a short time",
    "duplicate_queries": "Repeated identical searches",
}


class RateLimiter:
    def __init__(
        self,
        daily_limit: int = 30,
        rapid_fire_limit: int = 10,
        rapid_fire_window: timedelta = timedelta(minutes=5),
        rapid_fire_cooldown: timedelta = timedelta(minutes=15),
        duplicate_limit: int = 5,
        duplicate_window: timedelta = timedelta(hours=1),
        duplicate_cooldown: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.daily_limit = daily_limit
        self.rapid_fire_limit = rapid_fire_limit
        self.rapid_fire_window = rapid_fire_window
        self.rapid_fire_cooldown = rapid_fire_cooldown
        self.duplicate_limit = duplicate_limit
        self.duplicate_window = duplicate_window
        self.duplicate_cooldown = duplicate_cooldown
        self._clock = clock
        self._searches: dict[str, deque[tuple[datetime, str]]] = defaultdict(deque)
        self._cooldowns: dict[str, tuple[datetime, str]] = {}

    def _prune(self, user_id: str, now: datetime):
        # keep today's searches and anything inside the longest window
        horizon = min(now.replace(hour=0, minute=0, second=0, microsecond=0),
                      now - max(self.rapid_fire_window, self.duplicate_window))
        searches = self._searches.get(user_id)
        if searches is None:
            return
        while searches and searches[0][0] < horizon:
            searches.popleft()
        if not searches:
            del self._searches[user_id]

    def searches_today(self, user_id: str, now: datetime | None = None) -> int:
        now = now or self._clock()
        return sum(1 for ts, _ in self._searches.get(user_id, ()) if ts.date() == now.date())

    def record_search(self, user_id: str, query: str = "", now: datetime | None = None):
        now = now or self._clock()
        self._prune(user_id, now)
        self._searches[user_id].append((now, normalize(query)))

    def set_cooldown(self, user_id: str, duration: timedelta, reason: str, now: datetime | None = None):
        now = now or self._clock()
        self._cooldowns[user_id] = (now + duration, reason)
        log.warning(f"[RATE] {user_id}: cooldown {duration} ({reason})")

    def _suspicious(self, user_id: str, now: datetime) -> tuple[str, timedelta] | None:
        searches = self._searches.get(user_id, ())
        recent = [ts for ts, _ in searches if now - ts <= self.rapid_fire_window]
        if len(recent) > self.rapid_fire_limit:
            return "rapid_fire_searches", self.rapid_fire_cooldown
        repeated = Counter(q for ts, q in searches if q and now - ts <= self.duplicate_window)
        if repeated and max(repeated.values()) > self.duplicate_limit:
            return "duplicate_queries", self.duplicate_cooldown
        return None

    async def check_admission(self, user_id: str, kind: str = "message", query: str = "",
                              now: datetime | None = None) -> Admission:
        """
        Decide whether a turn may start

        kind="message" only checks; kind="search" also uses up one search
        from today's budget when allowed.
        """
        now = now or self._clock()
        self._prune(user_id, now)

        if self.searches_today(user_id, now) >= self.daily_limit:
            midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
            log.info(f"[RATE] {user_id}: daily limit {self.daily_limit} reached")
            return Admission(False, "daily_limit_exceeded", midnight - now)

        cooldown = self._cooldowns.get(user_id)
        if cooldown:
            until, reason = cooldown
            if until > now:
                log.info(f"[RATE] {user_id}: cooldown active ({reason})")
                return Admission(False, "user_cooldown", until - now, COOLDOWN_REASONS.get(reason, reason))
            del self._cooldowns[user_id]

        suspicious = self._suspicious(user_id, now)
        if suspicious:
            reason, duration = suspicious
            self.set_cooldown(user_id, duration, reason, now)
            return Admission(False, reason, duration, COOLDOWN_REASONS[reason])

        if kind == "search":
            self.record_search(user_id, query, now)
        return ALLOW
