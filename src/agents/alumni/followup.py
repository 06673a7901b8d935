"""
Follow-up Resolver

Decides whether a message continues the previous search and builds the
refined query plus the set of result ids to leave out. It never runs the
search itself.
"""
import logging
import re
from datetime import datetime, timedelta
from typing import NamedTuple

from .messages import FOLLOW_UP_DEFAULT_PREFIX, FOLLOW_UP_PREFIXES
from .models import Memory, RefinementType, utcnow
from .text import casual_subtype, contains_phrase, normalize

log = logging.getLogger(__name__)

FOLLOW_UP_TERMS = (
    "more", "another", "any more", "anymore", "else", "other", "others", "similar",
    "like this", "same kind", "also", "what about", "how about", "show me more",
    "different", "besides", "additional", "next",
)

SENIOR_TERMS = ("senior", "experienced", "seasoned")
JUNIOR_TERMS = ("junior", "fresher", "freshers", "entry level", "entry-level")
NEARBY_TERMS = ("same city", "nearby", "near me", "my city", "around me")

_PLACE_RE = re.compile(r"\b(?:in|from|near|at)\s+([a-z][a-z .'-]{1,40})$")
_NOT_PLACES = {"the", "same", "my", "general", "total", "all", "this", "that"}

SHORT_MESSAGE_TOKENS = 3


class FollowUpResolution(NamedTuple):
    enhanced_query: str
    refinement_type: RefinementType
    exclude_ids: list[str]


class FollowUpResolver:
    def __init__(self, window: timedelta = timedelta(minutes=5)):
        self.window = window

    def has_recent_search(self, memory: Memory | None, now: datetime | None = None) -> bool:
        if memory is None:
            return False
        ctx = memory.current_context
        if not ctx.last_search_query or ctx.last_search_at is None:
            return False
        now = now or utcnow()
        return now - ctx.last_search_at <= self.window

    def is_follow_up(self, message: str, memory: Memory | None, now: datetime | None = None) -> bool:
        """
        A follow-up needs a search from the last few minutes, and either a
        follow-up term in the message or a message of at most three words.
        Pure small talk ("thanks", "hi") never counts as a follow-up.
        """
        if not self.has_recent_search(memory, now):
            return False
        norm = normalize(message)
        if not norm:
            return False
        if any(contains_phrase(norm, term) for term in FOLLOW_UP_TERMS):
            return True
        return len(norm.split()) <= SHORT_MESSAGE_TOKENS and casual_subtype(norm) is None

    def refinement_for(self, message: str, location: str | None = None) -> RefinementType:
        return self._refine(normalize(message), location)[0]

    def _refine(self, norm: str, location: str | None) -> tuple[RefinementType, str | None]:
        if any(contains_phrase(norm, t) for t in SENIOR_TERMS):
            return RefinementType.SENIOR, None
        if any(contains_phrase(norm, t) for t in JUNIOR_TERMS):
            return RefinementType.JUNIOR, None
        if contains_phrase(norm, "startup") or contains_phrase(norm, "startups"):
            return RefinementType.STARTUP, None
        if any(contains_phrase(norm, t) for t in NEARBY_TERMS):
            if location:
                return RefinementType.LOCATION, location
            return RefinementType.NEXT_BATCH, None
        m = _PLACE_RE.search(norm)
        if m:
            place = m.group(1).strip(" .'-")
            if place and place.split()[0] not in _NOT_PLACES:
                return RefinementType.LOCATION, place.title()
        if contains_phrase(norm, "different"):
            return RefinementType.EXCLUDE_PREVIOUS, None
        return RefinementType.NEXT_BATCH, None

    def resolve(self, message: str, memory: Memory, location: str | None = None) -> FollowUpResolution:
        ctx = memory.current_context
        base = ctx.last_search_query or ""
        refinement, place = self._refine(normalize(message), location)

        if refinement == RefinementType.SENIOR:
            query = base if base.lower().startswith("senior ") else f"senior {base}"
        elif refinement == RefinementType.JUNIOR:
            query = base if base.lower().startswith("junior ") else f"junior {base}"
        elif refinement == RefinementType.STARTUP:
            query = f"{base} startup experience"
        elif refinement == RefinementType.LOCATION:
            query = f"{base} in {place}"
        else:
            query = base

        resolution = FollowUpResolution(
            enhanced_query=query.strip(),
            refinement_type=refinement,
            exclude_ids=list(ctx.last_search_result_ids),
        )
        log.info(
            f"[FOLLOWUP] '{message[:40]}' → {refinement.value} query='{resolution.enhanced_query}' "
            f"excluding={len(resolution.exclude_ids)}"
        )
        return resolution


def reply_prefix(refinement: RefinementType | None) -> str:
    if refinement is None:
        return FOLLOW_UP_DEFAULT_PREFIX
    return FOLLOW_UP_PREFIXES.get(refinement.value, FOLLOW_UP_DEFAULT_PREFIX)
