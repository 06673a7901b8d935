"""Shared fixtures for the alumni agent tests."""

import pytest

from agents.alumni.config import Settings
from agents.alumni.models import BasicProfile, EnhancedProfile, Profile
from agents.alumni.orchestrator import TurnOrchestrator
from agents.alumni.rate_limiter import RateLimiter
from agents.alumni.search import SearchResult
from agents.alumni.store import InMemoryMemoryStore, InMemoryProfileStore, InMemorySessionStore

USER = "919876543210"

COMPLETE_FIELDS = dict(
    full_name="Asha Rao",
    gender="Female",
    professional_role="Startup Founder",
    date_of_birth="1992-03-14",
    country="India",
    address="Pune",
    phone="+919876543210",
    linkedin="https://linkedin.com/in/asharao",
    domain="Technology",
    yatra_impact=["Found Clarity in Journey"],
    community_asks=["Mentorship & Guidance"],
    community_gives=["Community Building & Networking"],
    additional_email=False,
    instagram=False,
    completed=True,
)


def make_profile(user_id: str = USER, complete: bool = True, **fields) -> Profile:
    enhanced = dict(COMPLETE_FIELDS) if complete else {}
    enhanced.update(fields)
    return Profile(
        user_id=user_id,
        basic=BasicProfile(name="Asha Rao", email="asha@example.com", verified=True),
        enhanced=EnhancedProfile(**enhanced),
    )


class FakeSearch:
    """Directory search double; returns queued batches of result ids."""

    def __init__(self, batches=None, fail: bool = False):
        self.batches = list(batches or [])
        self.fail = fail
        self.calls: list[tuple[str, list[str]]] = []

    async def search(self, query, exclude_ids):
        self.calls.append((query, list(exclude_ids)))
        if self.fail:
            raise ConnectionError("directory unavailable")
        ids = self.batches.pop(0) if self.batches else []
        if not ids:
            return SearchResult("", [])
        return SearchResult("\n".join(f"• profile {i}" for i in ids), ids)


@pytest.fixture
def test_settings():
    return Settings(
        KAFKA_ENABLED=False,
        PERSIST_RETRY_ATTEMPTS=3,
        PERSIST_RETRY_MAX_WAIT=0.01,
        SEARCH_TIMEOUT_SECONDS=2,
    )


@pytest.fixture
def build_orchestrator(test_settings):
    """Factory returning (orchestrator, parts) wired to in-memory stores."""

    def _build(profiles=None, search=None, rate_limiter=None, **kwargs):
        parts = dict(
            profiles=InMemoryProfileStore(profiles if profiles is not None else [make_profile()]),
            sessions=InMemorySessionStore(),
            memories=InMemoryMemoryStore(),
            search=search or FakeSearch(),
            rate_limiter=rate_limiter or RateLimiter(),
        )
        parts.update(kwargs)
        orchestrator = TurnOrchestrator(config=test_settings, **parts)
        return orchestrator, parts

    return _build
