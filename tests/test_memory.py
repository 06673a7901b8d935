"""Unit tests for conversational memory bookkeeping and analytics."""

from agents.alumni.memory import (
    analytics, engagement_level, engagement_score, favorite_interest, follow_up_suggestions,
    recent_context, record_turn,
)
from agents.alumni.models import Memory


class TestRecordTurn:
    """Turn log, last-search context and counters."""

    def test_turn_log_is_bounded(self):
        memory = Memory(user_id="u1")
        for i in range(12):
            record_turn(memory, f"msg {i}", "ok", "casual", max_turns=10)
        assert len(memory.turns) == 10
        assert memory.turns[0].message == "msg 2"
        assert [t.message for t in recent_context(memory, 3)] == ["msg 9", "msg 10", "msg 11"]

    def test_search_updates_context_and_interests(self):
        memory = Memory(user_id="u1")
        record_turn(memory, "react developers in pune", "results", "search",
                    search_query="react developers in pune", result_ids=["a", "b"])
        ctx = memory.current_context
        assert ctx.last_search_query == "react developers in pune"
        assert ctx.last_search_result_ids == ["a", "b"]
        assert ctx.topic == "developer"
        assert memory.metrics.total_searches == 1
        assert memory.interests.locations == {"pune": 1}

    def test_follow_up_accumulates_shown_ids(self):
        memory = Memory(user_id="u1")
        record_turn(memory, "fintech mentors", "r", "search", search_query="fintech mentors", result_ids=["a"])
        record_turn(memory, "more", "r", "follow_up_search", is_follow_up=True,
                    search_query="fintech mentors", result_ids=["b", "a"])
        assert memory.current_context.last_search_result_ids == ["a", "b"]
        assert memory.metrics.follow_up_searches == 1
        assert memory.metrics.total_searches == 1
        assert memory.current_context.follow_up_count == 1

    def test_search_history_is_bounded(self):
        memory = Memory(user_id="u1")
        for i in range(5):
            record_turn(memory, f"q{i}", "r", "search", search_query=f"q{i}", history_limit=3)
        assert [h.query for h in memory.search_history] == ["q2", "q3", "q4"]


class TestEngagement:
    """Engagement scoring keeps growing after the turn log is trimmed."""

    def test_score_formula(self):
        assert engagement_score(3, 2, 10) == 3 * 10 + 2 * 20 + 10 * 2

    def test_levels(self):
        memory = Memory(user_id="u1")
        assert engagement_level(memory) == "new_user"
        memory.metrics.total_interactions = 30
        assert engagement_level(memory) == "moderate"
        memory.metrics.total_searches = 10
        assert engagement_level(memory) == "engaged"

    def test_engagement_is_monotonic_past_the_turn_limit(self):
        memory = Memory(user_id="u1")
        scores = []
        for i in range(30):
            record_turn(memory, f"msg {i}", "ok", "casual", max_turns=5)
            m = memory.metrics
            scores.append(engagement_score(m.total_searches, m.follow_up_searches, m.total_interactions))
        assert scores == sorted(scores)
        assert memory.metrics.total_interactions == 30


class TestDerivedViews:
    """Suggestions and analytics built from memory."""

    def _memory(self):
        memory = Memory(user_id="u1")
        for q in ("python developer in pune", "developer in pune", "fintech finance mentors"):
            record_turn(memory, q, "r", "search", search_query=q, result_ids=["x"])
        return memory

    def test_favorite_interest(self):
        assert favorite_interest(self._memory()) == "developer"
        assert favorite_interest(Memory(user_id="u1")) is None

    def test_suggestions(self):
        suggestions = follow_up_suggestions(self._memory())
        assert suggestions[0] == "developers in Pune"
        assert len(suggestions) <= 3

    def test_analytics(self):
        data = analytics(self._memory())
        assert data["total_searches"] == 3
        assert data["recent_queries"][-1] == "fintech finance mentors"
        assert data["total_interactions"] == 3
        assert data["engagement_level"] == "new_user"
        assert data["top_interests"]["locations"] == ["pune"]
