"""Unit tests for follow-up query resolution."""

from datetime import timedelta

from agents.alumni.followup import FollowUpResolver, reply_prefix
from agents.alumni.messages import FOLLOW_UP_DEFAULT_PREFIX
from agents.alumni.models import Memory, RefinementType, utcnow


def searched_memory(query="fintech mentors", ids=("p1", "p2", "p3")) -> Memory:
    memory = Memory(user_id="u1")
    memory.current_context.last_search_query = query
    memory.current_context.last_search_result_ids = list(ids)
    memory.current_context.last_search_at = utcnow()
    return memory


class TestResolve:
    """Refined queries and exclusion sets."""

    def setup_method(self):
        self.resolver = FollowUpResolver()

    def test_senior_refinement(self):
        resolution = self.resolver.resolve("any senior ones?", searched_memory())
        assert resolution.enhanced_query == "senior fintech mentors"
        assert resolution.refinement_type == RefinementType.SENIOR

    def test_senior_prefix_not_doubled(self):
        resolution = self.resolver.resolve("more senior", searched_memory("senior fintech mentors"))
        assert resolution.enhanced_query == "senior fintech mentors"

    def test_junior_refinement(self):
        assert self.resolver.resolve("freshers?", searched_memory()).enhanced_query == "junior fintech mentors"

    def test_startup_refinement(self):
        resolution = self.resolver.resolve("with startup background", searched_memory())
        assert resolution.enhanced_query == "fintech mentors startup experience"

    def test_same_city_uses_user_location(self):
        resolution = self.resolver.resolve("anyone in the same city?", searched_memory(), location="Pune")
        assert resolution.refinement_type == RefinementType.LOCATION
        assert resolution.enhanced_query == "fintech mentors in Pune"

    def test_same_city_without_location_is_next_batch(self):
        resolution = self.resolver.resolve("same city?", searched_memory(), location=None)
        assert resolution.refinement_type == RefinementType.NEXT_BATCH
        assert resolution.enhanced_query == "fintech mentors"

    def test_explicit_place(self):
        resolution = self.resolver.resolve("what about in bangalore", searched_memory())
        assert resolution.enhanced_query == "fintech mentors in Bangalore"

    def test_different_excludes_previous(self):
        resolution = self.resolver.resolve("different people", searched_memory())
        assert resolution.refinement_type == RefinementType.EXCLUDE_PREVIOUS

    def test_exclusions_are_previous_result_ids(self):
        """Test every refinement excludes the ids already shown."""
        for message in ("more", "senior", "different", "startup"):
            assert self.resolver.resolve(message, searched_memory()).exclude_ids == ["p1", "p2", "p3"]


class TestWindow:
    """Follow-ups expire with the time window."""

    def test_window_boundary(self):
        resolver = FollowUpResolver(window=timedelta(minutes=5))
        memory = searched_memory()
        searched_at = memory.current_context.last_search_at
        assert resolver.is_follow_up("more", memory, now=searched_at + timedelta(minutes=5))
        assert not resolver.is_follow_up("more", memory, now=searched_at + timedelta(minutes=5, seconds=1))

    def test_no_search_no_follow_up(self):
        assert not FollowUpResolver().is_follow_up("more", Memory(user_id="u1"))

    def test_long_message_without_terms(self):
        memory = searched_memory()
        assert not FollowUpResolver().is_follow_up("I want to learn about organic farming methods", memory)

    def test_reply_prefix(self):
        assert reply_prefix(RefinementType.SENIOR).startswith("Here are more senior")
        assert reply_prefix(None) == FOLLOW_UP_DEFAULT_PREFIX
