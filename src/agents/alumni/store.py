"""
Persistence for profiles, sessions and conversational memory.

The orchestrator talks to the three store interfaces below. In-memory
implementations back local runs and tests; `MCPProfileStore` and
`MCPMemoryStore` keep profiles and memory on the MCP tool server. Sessions
are short-lived and stay in process.
"""
import logging
from typing import Protocol

from pydantic import ValidationError

from common.mcp_client import MCPClient

from .cache import ExpiringCache
from .fields import LIST_FIELDS, ProfileField
from .models import Memory, Profile, Session

log = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """A write could not be completed."""


class SessionCorruptedError(ValueError):
    """A stored session could not be parsed."""


class ProfileStore(Protocol):
    async def get_profile(self, user_id: str) -> Profile | None: ...
    async def set_field(self, user_id: str, field: ProfileField, value) -> None: ...
    async def set_instagram_url(self, user_id: str, url: str) -> None: ...
    async def mark_completed(self, user_id: str) -> None: ...
    async def link_email(self, user_id: str, email: str) -> None: ...
    async def email_owner(self, email: str) -> str | None: ...


class SessionStore(Protocol):
    async def get_session(self, user_id: str) -> Session | None: ...
    async def put_session(self, user_id: str, session: Session, ttl: float) -> None: ...
    async def delete_session(self, user_id: str) -> None: ...


class MemoryStore(Protocol):
    async def get_memory(self, user_id: str) -> Memory | None: ...
    async def put_memory(self, user_id: str, memory: Memory) -> None: ...


# ---------- In-memory ----------
class InMemoryProfileStore:
    def __init__(self, profiles: list[Profile] | None = None):
        self._profiles: dict[str, Profile] = {p.user_id: p for p in profiles or []}

    def add(self, profile: Profile):
        self._profiles[profile.user_id] = profile

    async def get_profile(self, user_id: str) -> Profile | None:
        profile = self._profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def set_field(self, user_id: str, field: ProfileField, value) -> None:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise PersistenceError(f"no profile for {user_id}")
        if field in LIST_FIELDS and not isinstance(value, list):
            raise PersistenceError(f"{field.value} expects a list")
        setattr(profile.enhanced, field.value, value)
        log.info(f"[STORE] {user_id}: set {field.value}")

    async def set_instagram_url(self, user_id: str, url: str) -> None:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise PersistenceError(f"no profile for {user_id}")
        profile.enhanced.instagram_url = url

    async def mark_completed(self, user_id: str) -> None:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise PersistenceError(f"no profile for {user_id}")
        if not profile.is_complete():
            raise PersistenceError(f"profile {user_id} still has missing fields")
        profile.enhanced.completed = True
        log.info(f"[STORE] {user_id}: profile marked completed")

    async def link_email(self, user_id: str, email: str) -> None:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise PersistenceError(f"no profile for {user_id}")
        if email not in profile.basic.linked_emails:
            profile.basic.linked_emails.append(email)

    async def email_owner(self, email: str) -> str | None:
        email = email.lower()
        for profile in self._profiles.values():
            if profile.basic.email == email or email in profile.basic.linked_emails:
                return profile.user_id
        return None


class InMemorySessionStore:
    """Keeps sessions serialized, the way a key-value store would."""

    def __init__(self, cache: ExpiringCache | None = None):
        self._cache = cache or ExpiringCache(ttl=48 * 3600)

    async def get_session(self, user_id: str) -> Session | None:
        raw = self._cache.get(user_id)
        if raw is None:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError as e:
            raise SessionCorruptedError(f"session for {user_id} is unreadable") from e

    async def put_session(self, user_id: str, session: Session, ttl: float) -> None:
        self._cache.set(user_id, session.model_dump_json(), ttl=ttl)

    async def delete_session(self, user_id: str) -> None:
        self._cache.discard(user_id)

    def put_raw(self, user_id: str, raw: str, ttl: float = 3600):
        self._cache.set(user_id, raw, ttl=ttl)


class InMemoryMemoryStore:
    def __init__(self):
        self._memories: dict[str, str] = {}

    async def get_memory(self, user_id: str) -> Memory | None:
        raw = self._memories.get(user_id)
        return Memory.model_validate_json(raw) if raw else None

    async def put_memory(self, user_id: str, memory: Memory) -> None:
        self._memories[user_id] = memory.model_dump_json()


# ---------- MCP backed ----------
class MCPProfileStore:
    """Profiles owned by the backend, reached through MCP profile.* tools."""

    def __init__(self, mcp: MCPClient, timeout: float = 15):
        self.mcp = mcp
        self.timeout = timeout

    async def _write(self, tool: str, arguments: dict):
        try:
            result = await self.mcp.call(tool, arguments, timeout=self.timeout)
        except Exception as e:
            raise PersistenceError(f"{tool} failed: {e}") from e
        if isinstance(result, dict) and result.get("ok") is False:
            raise PersistenceError(f"{tool} rejected: {result.get('error')}")

    async def get_profile(self, user_id: str) -> Profile | None:
        result = await self.mcp.call("profile.get", {"user_id": user_id}, timeout=self.timeout)
        data = result.get("profile") if isinstance(result, dict) else None
        if not data:
            return None
        return Profile.model_validate({"user_id": user_id, **data})

    async def set_field(self, user_id: str, field: ProfileField, value) -> None:
        await self._write("profile.set_field", {"user_id": user_id, "field": field.value, "value": value})

    async def set_instagram_url(self, user_id: str, url: str) -> None:
        await self._write("profile.set_field", {"user_id": user_id, "field": "instagram_url", "value": url})

    async def mark_completed(self, user_id: str) -> None:
        await self._write("profile.mark_completed", {"user_id": user_id})

    async def link_email(self, user_id: str, email: str) -> None:
        await self._write("profile.link_email", {"user_id": user_id, "email": email})

    async def email_owner(self, email: str) -> str | None:
        result = await self.mcp.call("profile.find_by_email", {"email": email}, timeout=self.timeout)
        return result.get("user_id") if isinstance(result, dict) else None


class MCPMemoryStore:
    """Conversational memory kept by the backend through memory.get / memory.put."""

    def __init__(self, mcp: MCPClient, timeout: float = 15):
        self.mcp = mcp
        self.timeout = timeout

    async def get_memory(self, user_id: str) -> Memory | None:
        result = await self.mcp.call("memory.get", {"user_id": user_id}, timeout=self.timeout)
        data = result.get("memory") if isinstance(result, dict) else None
        if not data:
            return None
        try:
            return Memory.model_validate({**data, "user_id": user_id})
        except ValidationError as e:
            log.warning(f"[STORE] {user_id}: stored memory is unreadable ({e.error_count()} errors), starting fresh")
            return None

    async def put_memory(self, user_id: str, memory: Memory) -> None:
        try:
            result = await self.mcp.call(
                "memory.put",
                {"user_id": user_id, "memory": memory.model_dump(mode="json")},
                timeout=self.timeout,
            )
        except Exception as e:
            raise PersistenceError(f"memory.put failed: {e}") from e
        if isinstance(result, dict) and result.get("ok") is False:
            raise PersistenceError(f"memory.put rejected: {result.get('error')}")
