"""Tests for caches, stores and the MCP-backed collaborators."""

import asyncio
import json
from datetime import date
from unittest.mock import AsyncMock

import pytest

from agents.alumni.ai_classifier import MCPIntentClassifier
from agents.alumni.cache import ExpiringCache, ProcessedMessages, ShownResultsCache
from agents.alumni.config import Settings
from agents.alumni.fields import ProfileField
from agents.alumni.models import Memory, Session, UpdatingField
from agents.alumni.orchestrator import build_orchestrator as wire_orchestrator
from agents.alumni.search import MCPSearchEngine
from agents.alumni.store import (
    InMemoryMemoryStore, InMemoryProfileStore, InMemorySessionStore, MCPMemoryStore, MCPProfileStore,
    PersistenceError, SessionCorruptedError,
)
from common.mcp_client import MCPClient

from conftest import USER, make_profile


class FakeClock:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t


class TestCaches:
    """TTL caches."""

    def test_entries_expire(self):
        clock = FakeClock()
        cache = ExpiringCache(ttl=10, clock=clock)
        cache.set("k", "v")
        assert cache.get("k") == "v"
        clock.t += 10
        assert "k" not in cache
        assert len(cache) == 0

    def test_per_entry_ttl_and_capacity(self):
        clock = FakeClock()
        cache = ExpiringCache(ttl=100, clock=clock, max_entries=2)
        cache.set("short", 1, ttl=1)
        cache.set("long", 2)
        cache.set("third", 3)
        assert "short" not in cache
        assert cache.get("long") == 2 and cache.get("third") == 3

    def test_rewriting_a_key_when_full_keeps_others(self):
        cache = ExpiringCache(ttl=100, clock=FakeClock(), max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 3)
        assert cache.get("a") == 3 and cache.get("b") == 2

    def test_shown_results_reset_each_day(self):
        day = {"value": date(2026, 3, 2)}
        shown = ShownResultsCache(clock=FakeClock(), today=lambda: day["value"])
        shown.add("u1", ["a", "b"])
        shown.add("u1", ["b", "c"])
        assert shown.shown("u1") == {"a", "b", "c"}
        day["value"] = date(2026, 3, 3)
        assert shown.shown("u1") == set()

    def test_processed_messages(self):
        processed = ProcessedMessages(ttl=60, clock=FakeClock())
        processed.remember("m1", "hello")
        processed.remember(None, "ignored")
        assert processed.reply_for("m1") == "hello"
        assert processed.reply_for(None) is None


class TestInMemoryStores:
    """Store contracts the orchestrator relies on."""

    def test_profile_reads_are_copies(self):
        store = InMemoryProfileStore([make_profile()])
        profile = asyncio.run(store.get_profile(USER))
        profile.enhanced.full_name = "Changed"
        assert asyncio.run(store.get_profile(USER)).enhanced.full_name == "Asha Rao"

    def test_list_field_type_enforced(self):
        store = InMemoryProfileStore([make_profile()])
        with pytest.raises(PersistenceError):
            asyncio.run(store.set_field(USER, ProfileField.COMMUNITY_ASKS, "Mentorship"))

    def test_mark_completed_requires_all_fields(self):
        store = InMemoryProfileStore([make_profile(phone=None, completed=False)])
        with pytest.raises(PersistenceError):
            asyncio.run(store.mark_completed(USER))

    def test_session_round_trip_and_corruption(self):
        store = InMemorySessionStore()
        session = Session(user_id=USER, waiting_for=UpdatingField(field=ProfileField.PHONE, total_steps=2))
        asyncio.run(store.put_session(USER, session, ttl=60))
        assert asyncio.run(store.get_session(USER)).waiting_for.field == ProfileField.PHONE

        store.put_raw(USER, "not json")
        with pytest.raises(SessionCorruptedError):
            asyncio.run(store.get_session(USER))


class TestMCPClient:
    """JSON-RPC handling with the HTTP layer mocked out."""

    def _client(self, *responses):
        client = MCPClient("http://mcp.local/")
        client._post = AsyncMock(side_effect=[{"result": {}}, {}] + list(responses))
        return client

    def test_endpoint(self):
        assert MCPClient("http://mcp.local/").endpoint == "http://mcp.local/mcp/v1/jsonrpc"

    def test_call_parses_text_content(self):
        client = self._client({"result": {"content": [{"type": "text", "text": '{"ok": true}'}]}})
        assert asyncio.run(client.call("profile.get", {"user_id": USER})) == {"ok": True}
        payload = client._post.call_args.args[0]
        assert payload["method"] == "tools/call"
        assert payload["params"]["name"] == "profile.get"

    def test_call_raises_on_jsonrpc_error(self):
        client = self._client({"error": {"code": -32000, "message": "nope"}})
        with pytest.raises(RuntimeError):
            asyncio.run(client.call("profile.get", {}))

    def test_structured_output_is_schema_checked(self):
        reply = {"result": {"content": [{"type": "text", "text": json.dumps({"reply": '{"intent": 5}'})}]}}
        client = self._client(reply)
        with pytest.raises(ValueError):
            asyncio.run(client.llm_structured([], schema={"type": "object", "properties": {"intent": {"type": "string"}}}))


class TestMCPCollaborators:
    """Profile store, directory search and AI classifier over a mocked MCP client."""

    def test_profile_write_errors_become_persistence_errors(self):
        mcp = AsyncMock()
        mcp.call.side_effect = RuntimeError("tool failed")
        with pytest.raises(PersistenceError):
            asyncio.run(MCPProfileStore(mcp).set_field(USER, ProfileField.COUNTRY, "India"))

    def test_profile_get(self):
        mcp = AsyncMock()
        mcp.call.return_value = {"profile": {"basic": {"name": "Asha Rao"}, "enhanced": {"country": "India"}}}
        profile = asyncio.run(MCPProfileStore(mcp).get_profile(USER))
        assert profile.user_id == USER
        assert profile.enhanced.country == "India"

    def test_search_renders_profiles(self):
        mcp = AsyncMock()
        mcp.call.return_value = {
            "result_ids": ["p1"],
            "profiles": [{"name": "Ravi", "role": "Founder", "city": "Pune", "linkedin": "https://linkedin.com/in/ravi"}],
        }
        result = asyncio.run(MCPSearchEngine(mcp).search("founders in pune", ["p0"]))
        assert result.result_ids == ["p1"]
        assert "1. *Ravi*" in result.text
        assert mcp.call.call_args.args[1]["exclude_ids"] == ["p0"]

    def test_ai_classifier_label_confidence(self):
        mcp = AsyncMock()
        mcp.llm_structured.return_value = {"intent": "SEARCH", "confidence": "high", "extracted_terms": ["mentor"]}
        result = asyncio.run(MCPIntentClassifier(mcp).classify("need a mentor", {}))
        assert result == ("search", 0.9, ["mentor"])

    def test_memory_round_trip(self):
        mcp = AsyncMock()
        mcp.call.return_value = {"ok": True}
        store = MCPMemoryStore(mcp)
        memory = Memory(user_id=USER)
        memory.metrics.total_searches = 3
        asyncio.run(store.put_memory(USER, memory))
        tool, args = mcp.call.call_args.args
        assert tool == "memory.put"
        assert args["memory"]["metrics"]["total_searches"] == 3

        mcp.call.return_value = {"memory": args["memory"]}
        assert asyncio.run(store.get_memory(USER)).metrics.total_searches == 3

    def test_memory_write_failure_is_retryable(self):
        mcp = AsyncMock()
        mcp.call.side_effect = ConnectionError("down")
        with pytest.raises(PersistenceError):
            asyncio.run(MCPMemoryStore(mcp).put_memory(USER, Memory(user_id=USER)))

    def test_unreadable_memory_starts_fresh(self):
        mcp = AsyncMock()
        mcp.call.return_value = {"memory": {"turns": "garbage"}}
        assert asyncio.run(MCPMemoryStore(mcp).get_memory(USER)) is None


class TestWiring:
    """Production wiring picks stores from settings."""

    def test_memory_on_tool_server_by_default(self):
        orchestrator = wire_orchestrator(Settings(KAFKA_ENABLED=False))
        assert isinstance(orchestrator.memories, MCPMemoryStore)
        assert orchestrator.sessions._cache.max_entries == 50_000

    def test_local_memory_backend(self):
        orchestrator = wire_orchestrator(Settings(KAFKA_ENABLED=False, MEMORY_BACKEND="local"))
        assert isinstance(orchestrator.memories, InMemoryMemoryStore)
