"""
Conversational Memory

Per-user bounded turn log, last-search context, interest counters and
behavior metrics, plus the derived views built from them.
"""
import logging
from collections import Counter
from datetime import datetime

from .models import Memory, SearchHistoryEntry, Turn, utcnow
from .text import normalize

log = logging.getLogger(__name__)

MAX_TURNS = 200
CONTEXT_WINDOW = 10
SEARCH_HISTORY_LIMIT = 20

DOMAIN_KEYWORDS = ("tech", "finance", "healthcare", "education", "marketing",
                   "sales", "design", "engineering", "consulting", "startup")
SKILL_KEYWORDS = ("developer", "designer", "manager", "analyst", "consultant",
                  "engineer", "architect", "specialist", "expert", "lead")
LOCATION_KEYWORDS = ("mumbai", "delhi", "bangalore", "pune", "hyderabad",
                     "chennai", "kolkata", "ahmedabad", "noida", "gurgaon")

ENGAGEMENT_TIERS = (
    (200, "highly_engaged"),
    (100, "engaged"),
    (50, "moderate"),
)


def record_turn(
    memory: Memory,
    message: str,
    reply: str,
    intent: str,
    *,
    is_follow_up: bool = False,
    search_query: str | None = None,
    result_ids: list[str] | None = None,
    now: datetime | None = None,
    max_turns: int = MAX_TURNS,
    history_limit: int = SEARCH_HISTORY_LIMIT,
) -> Memory:
    """
    Append one turn and update context, interests and metrics in place

    `search_query` is set for turns that actually ran a search (new or
    follow-up). Follow-ups accumulate shown ids so later batches skip them.
    """
    now = now or utcnow()
    memory.turns.append(Turn(message=message, reply=reply, intent=intent,
                             timestamp=now, is_follow_up=is_follow_up))
    if len(memory.turns) > max_turns:
        del memory.turns[: len(memory.turns) - max_turns]

    metrics = memory.metrics
    metrics.total_interactions += 1

    if search_query is not None:
        ids = list(result_ids or [])
        ctx = memory.current_context
        if is_follow_up:
            ids = list(dict.fromkeys(ctx.last_search_result_ids + ids))
        ctx.topic = _topic_of(search_query) or ctx.topic
        ctx.last_search_query = search_query
        ctx.last_search_result_ids = ids
        ctx.last_search_at = now

        memory.search_history.append(SearchHistoryEntry(
            query=search_query, timestamp=now, result_count=len(result_ids or []),
            is_follow_up=is_follow_up,
        ))
        if len(memory.search_history) > history_limit:
            del memory.search_history[: len(memory.search_history) - history_limit]

    if intent == "search":
        metrics.total_searches += 1
        update_interests(memory, search_query or message)
    if is_follow_up:
        metrics.follow_up_searches += 1
        memory.current_context.follow_up_count += 1

    log.debug(
        f"[MEMORY] {memory.user_id}: turns={len(memory.turns)} searches={metrics.total_searches} "
        f"follow_ups={metrics.follow_up_searches}"
    )
    return memory


def update_interests(memory: Memory, query: str):
    norm = normalize(query)
    counters = memory.interests
    for vocab, bucket in ((DOMAIN_KEYWORDS, counters.domains),
                          (SKILL_KEYWORDS, counters.skills),
                          (LOCATION_KEYWORDS, counters.locations)):
        for kw in vocab:
            if kw in norm:
                bucket[kw] = bucket.get(kw, 0) + 1


def _topic_of(query: str) -> str | None:
    norm = normalize(query)
    for vocab in (DOMAIN_KEYWORDS, SKILL_KEYWORDS):
        for kw in vocab:
            if kw in norm:
                return kw
    return None


def engagement_score(total_searches: int, follow_up_searches: int, total_interactions: int) -> int:
    return total_searches * 10 + follow_up_searches * 20 + total_interactions * 2


def engagement_level(memory: Memory) -> str:
    m = memory.metrics
    score = engagement_score(m.total_searches, m.follow_up_searches, m.total_interactions)
    for threshold, level in ENGAGEMENT_TIERS:
        if score > threshold:
            return level
    return "new_user"


def top_interests(memory: Memory, n: int = 3) -> dict[str, list[str]]:
    counters = memory.interests
    return {
        name: [k for k, _ in Counter(bucket).most_common(n)]
        for name, bucket in (("domains", counters.domains),
                             ("skills", counters.skills),
                             ("locations", counters.locations))
    }


def recent_context(memory: Memory, window: int = CONTEXT_WINDOW) -> list[Turn]:
    return memory.turns[-window:]


def follow_up_suggestions(memory: Memory, limit: int = 3) -> list[str]:
    """Suggested next searches built from top interests and recent queries."""
    interests = top_interests(memory)
    suggestions = []
    skills, domains, locations = interests["skills"], interests["domains"], interests["locations"]
    if skills and locations:
        suggestions.append(f"{skills[0]}s in {locations[0].title()}")
    if domains:
        suggestions.append(f"{domains[0]} mentors")
    if skills and domains:
        suggestions.append(f"{domains[0]} {skills[0]}s")
    last = memory.current_context.last_search_query
    if last:
        suggestions.append(f"senior {last}")
    return list(dict.fromkeys(suggestions))[:limit]


def analytics(memory: Memory) -> dict:
    m = memory.metrics
    rate = round(m.follow_up_searches / m.total_searches * 100) if m.total_searches else 0
    return {
        "engagement_level": engagement_level(memory),
        "total_searches": m.total_searches,
        "follow_up_searches": m.follow_up_searches,
        "total_interactions": m.total_interactions,
        "follow_up_rate": rate,
        "top_interests": top_interests(memory),
        "recent_queries": [h.query for h in memory.search_history[-5:]],
    }


def favorite_interest(memory: Memory) -> str | None:
    interests = top_interests(memory, n=1)
    for key in ("skills", "domains"):
        if interests[key]:
            return interests[key][0]
    return None

