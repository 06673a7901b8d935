"""
Turn Orchestrator

One inbound message = one turn:

    dedupe → admission → load session/profile/memory → classify → validate
    → wizard | search | follow-up | casual → record memory → persist → reply

Turns for the same user run one at a time behind a per-user lock.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import NamedTuple

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential,
)

from common.mcp_client import MCPClient

from .ai_classifier import MCPIntentClassifier
from .cache import ExpiringCache, ProcessedMessages, ShownResultsCache
from .config import Settings, settings as default_settings
from .followup import FollowUpResolver, reply_prefix
from .intents import SEARCH_INTENTS, IntentClassifier, validate_intent_for_user_state
from .memory import analytics, favorite_interest, follow_up_suggestions, record_turn
from .messages import (
    AFFIRMATIVE_IDLE, ALREADY_VERIFIED, APOLOGY_GENERIC, APOLOGY_SEARCH, CASUAL_REPLIES,
    FIELD_STILL_IN_PROGRESS, GREETING_COMPLETE, NEGATIVE_IDLE, NO_MORE_RESULTS, NO_RESULTS,
    NO_RESULTS_SUGGEST, NOTHING_TO_SKIP, NUMBERS_IDLE, PLEASE_RESEND, PROFILE_STATUS_FOOTER,
    RATE_LIMIT_MESSAGES, SEARCH_EMPTY_QUERY, UNREGISTERED, format_message,
)
from .fields import DISPLAY_NAMES
from .models import Intent, IntentType, Memory, Profile, Session, utcnow
from .rate_limiter import Admission, RateLimiter
from .search import MCPSearchEngine, SearchEngine
from .store import (
    InMemoryMemoryStore, InMemorySessionStore, MCPMemoryStore, MCPProfileStore, MemoryStore,
    PersistenceError, ProfileStore, SessionCorruptedError, SessionStore,
)
from .wizard import (
    ENTRY_GREETING, ENTRY_RESUME, ENTRY_SEARCH_LOCKED, ENTRY_UPDATE_REQUEST, ProfileWizard,
)

log = logging.getLogger(__name__)

RETRYABLE_ERRORS = (PersistenceError, ConnectionError, TimeoutError)


class TurnNotSaved(RuntimeError):
    """Session or memory could not be written after retries."""


class InboundMessage(BaseModel):
    sender_id: str
    text: str
    message_id: str | None = None


class TurnResult(NamedTuple):
    reply: str | None
    duplicate: bool = False
    denied: bool = False
    intent: str | None = None


class SearchOutcome(NamedTuple):
    query: str
    result_ids: list[str]
    is_follow_up: bool = False


class UserLocks:
    """One asyncio.Lock per user id, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: str):
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[user_id] -= 1
            if self._holders[user_id] == 0:
                del self._holders[user_id]
                self._locks.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._locks)


def normalize_sender(sender_id: str) -> str:
    return "".join(ch for ch in (sender_id or "") if ch.isdigit()) or (sender_id or "").strip()


def denial_message(admission: Admission, daily_limit: int) -> str:
    template = RATE_LIMIT_MESSAGES.get(admission.reason or "", RATE_LIMIT_MESSAGES["user_cooldown"])
    return format_message(template, limit=daily_limit, minutes=admission.retry_after_minutes)


class TurnOrchestrator:
    def __init__(
        self,
        *,
        profiles: ProfileStore,
        sessions: SessionStore,
        memories: MemoryStore,
        search: SearchEngine,
        rate_limiter: RateLimiter,
        classifier: IntentClassifier | None = None,
        resolver: FollowUpResolver | None = None,
        shown_results: ShownResultsCache | None = None,
        processed: ProcessedMessages | None = None,
        config: Settings = default_settings,
    ):
        self.profiles = profiles
        self.sessions = sessions
        self.memories = memories
        self.search = search
        self.rate_limiter = rate_limiter
        self.config = config
        self.resolver = resolver or FollowUpResolver(timedelta(minutes=config.FOLLOW_UP_WINDOW_MINUTES))
        self.classifier = classifier or IntentClassifier(self.resolver)
        self.wizard = ProfileWizard(profiles)
        self.shown_results = shown_results or ShownResultsCache(config.SHOWN_RESULTS_TTL_HOURS * 3600)
        self.processed = processed or ProcessedMessages(config.MESSAGE_DEDUP_TTL_SECONDS)
        self.locks = UserLocks()
        self.session_ttl = config.SESSION_TTL_HOURS * 3600

    # ---------- Entry point ----------
    async def handle(self, msg: InboundMessage) -> TurnResult:
        user_id = normalize_sender(msg.sender_id)
        text = (msg.text or "").strip()
        if not user_id or not text:
            return TurnResult(None)

        async with self.locks.hold(user_id):
            cached = self.processed.reply_for(msg.message_id)
            if cached is not None:
                log.info(f"[TURN] {user_id}: duplicate delivery of {msg.message_id}, replaying reply")
                return TurnResult(cached, duplicate=True)

            admission = await self.rate_limiter.check_admission(user_id, "message")
            if not admission.allowed:
                reply = denial_message(admission, self.rate_limiter.daily_limit)
                log.warning(f"[TURN] {user_id}: denied ({admission.reason}, retry in {admission.retry_after_minutes}m)")
                self.processed.remember(msg.message_id, reply)
                return TurnResult(reply, denied=True)

            try:
                reply, intent = await self._turn(user_id, text)
            except TurnNotSaved as e:
                log.error(f"[TURN] {user_id}: could not persist turn: {e}")
                return TurnResult(PLEASE_RESEND)
            except Exception as e:
                log.error(f"[TURN] {user_id}: turn failed: {e}", exc_info=True)
                return TurnResult(APOLOGY_GENERIC)

            self.processed.remember(msg.message_id, reply)
            return TurnResult(reply, intent=intent.type.value)

    async def reset_session(self, user_id: str):
        user_id = normalize_sender(user_id)
        async with self.locks.hold(user_id):
            await self.sessions.delete_session(user_id)
            log.info(f"[TURN] {user_id}: session reset")

    async def insights(self, user_id: str) -> dict | None:
        user_id = normalize_sender(user_id)
        profile = await self.profiles.get_profile(user_id)
        if profile is None:
            return None
        memory = await self.memories.get_memory(user_id) or Memory(user_id=user_id)
        return {
            **analytics(memory),
            "suggestions": follow_up_suggestions(memory),
            "profile_completion": profile.completion_percentage(),
            "profile_completed": profile.enhanced.completed,
        }

    # ---------- Turn ----------
    async def _load_session(self, user_id: str) -> Session:
        try:
            session = await self.sessions.get_session(user_id)
        except SessionCorruptedError as e:
            log.warning(f"[TURN] {user_id}: {e}; starting a fresh session")
            session = None
        return session or Session(user_id=user_id)

    async def _turn(self, user_id: str, text: str) -> tuple[str, Intent]:
        session = await self._load_session(user_id)
        profile = await self.profiles.get_profile(user_id)
        memory = await self.memories.get_memory(user_id) or Memory(user_id=user_id)

        session.authenticated = profile is not None
        session.profile_snapshot = profile

        intent = await self.classifier.classify_async(text, session, memory)
        intent = validate_intent_for_user_state(intent, session, profile)

        outcome = None
        if profile is None:
            reply = UNREGISTERED
        else:
            reply, outcome = await self._route(session, profile, memory, intent, text)

        # a skip that also ran a search counts as a search
        label = IntentType.SEARCH.value if outcome and intent.type == IntentType.SKIP else intent.type.value
        record_turn(
            memory, text, reply, label,
            is_follow_up=bool(outcome and outcome.is_follow_up),
            search_query=outcome.query if outcome else None,
            result_ids=outcome.result_ids if outcome else None,
            max_turns=self.config.MEMORY_MAX_TURNS,
            history_limit=self.config.SEARCH_HISTORY_LIMIT,
        )
        session.profile_snapshot = profile
        session.updated_at = utcnow()
        try:
            await self._persist(user_id, session, memory)
        except RETRYABLE_ERRORS as e:
            raise TurnNotSaved(str(e)) from e
        return reply, intent

    async def _persist(self, user_id: str, session: Session, memory: Memory):
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.PERSIST_RETRY_ATTEMPTS),
            wait=wait_exponential(multiplier=0.1, max=self.config.PERSIST_RETRY_MAX_WAIT),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    log.warning(f"[STORE] {user_id}: retrying save (attempt {attempt.retry_state.attempt_number})")
                await self.sessions.put_session(user_id, session, self.session_ttl)
                await self.memories.put_memory(user_id, memory)

    # ---------- Routing ----------
    async def _route(self, session: Session, profile: Profile, memory: Memory,
                     intent: Intent, text: str) -> tuple[str, SearchOutcome | None]:
        t = intent.type

        if t == IntentType.PROFILE_FIELD_INPUT:
            return await self.wizard.handle_input(session, profile, intent), None

        if intent.blocked and intent.block_reason == "profile_update_in_progress":
            field = session.current_field()
            return format_message(
                FIELD_STILL_IN_PROGRESS,
                display=DISPLAY_NAMES[field] if field else "Profile",
                prompt=self.wizard.current_prompt(session),
            ), None

        if t == IntentType.SKIP:
            if not session.collecting:
                return NOTHING_TO_SKIP, None
            reply = self.wizard.skip(session, profile)
            if intent.query and profile.is_complete():
                # "skip, find python mentors" pauses the wizard and searches in one turn
                found, outcome = await self._search(session.user_id, memory, intent)
                return f"{reply}\n\n{found}", outcome
            return reply, None

        if t in SEARCH_INTENTS and intent.blocked:
            return self.wizard.start(session, profile, ENTRY_SEARCH_LOCKED), None
        if t == IntentType.SEARCH:
            return await self._search(session.user_id, memory, intent)
        if t == IntentType.FOLLOW_UP_SEARCH:
            return await self._follow_up(session.user_id, profile, memory, text)

        if t == IntentType.PROFILE_UPDATE_REQUEST:
            return self.wizard.start(session, profile, ENTRY_UPDATE_REQUEST), None

        if t == IntentType.AFFIRMATIVE and not profile.is_complete():
            return self.wizard.start(session, profile, ENTRY_RESUME), None
        if t in (IntentType.EMAIL, IntentType.OTP):
            return ALREADY_VERIFIED, None

        if t == IntentType.CASUAL and intent.subtype == "greeting":
            if not profile.is_complete():
                return self.wizard.start(session, profile, ENTRY_GREETING), None
            return format_message(GREETING_COMPLETE, name=profile.first_name), None

        if t == IntentType.AFFIRMATIVE:
            reply = AFFIRMATIVE_IDLE
        elif t == IntentType.NEGATIVE:
            reply = NEGATIVE_IDLE
        elif t == IntentType.NUMERIC_LIST:
            reply = NUMBERS_IDLE
        else:
            reply = CASUAL_REPLIES.get(intent.subtype or "generic", CASUAL_REPLIES["generic"])
        return reply + self._status_footer(profile), None

    def _status_footer(self, profile: Profile) -> str:
        if profile.is_complete():
            return ""
        return format_message(PROFILE_STATUS_FOOTER, pct=profile.completion_percentage())

    async def _run_search(self, query: str, exclude_ids: list[str]):
        return await asyncio.wait_for(
            self.search.search(query, exclude_ids), timeout=self.config.SEARCH_TIMEOUT_SECONDS
        )

    async def _search(self, user_id: str, memory: Memory, intent: Intent) -> tuple[str, SearchOutcome | None]:
        query = (intent.query or "").strip()
        if not query:
            return SEARCH_EMPTY_QUERY, None

        self.rate_limiter.record_search(user_id, query)
        try:
            result = await self._run_search(query, [])
        except Exception as e:
            log.error(f"[TURN] {user_id}: search failed for '{query}': {e}")
            return APOLOGY_SEARCH, None

        if not result.result_ids and not result.text:
            reply = format_message(NO_RESULTS, query=query)
            interest = favorite_interest(memory)
            if interest:
                reply += format_message(NO_RESULTS_SUGGEST, interest=interest)
            return reply, SearchOutcome(query, [])

        self.shown_results.add(user_id, result.result_ids)
        return result.text, SearchOutcome(query, result.result_ids)

    async def _follow_up(self, user_id: str, profile: Profile, memory: Memory,
                         text: str) -> tuple[str, SearchOutcome | None]:
        resolution = self.resolver.resolve(text, memory, profile.location)
        exclude = list(dict.fromkeys(resolution.exclude_ids + sorted(self.shown_results.shown(user_id))))

        self.rate_limiter.record_search(user_id, resolution.enhanced_query)
        try:
            result = await self._run_search(resolution.enhanced_query, exclude)
        except Exception as e:
            log.error(f"[TURN] {user_id}: follow-up search failed: {e}")
            return APOLOGY_SEARCH, None

        outcome = SearchOutcome(resolution.enhanced_query, result.result_ids, is_follow_up=True)
        if not result.result_ids and not result.text:
            return format_message(NO_MORE_RESULTS, query=resolution.enhanced_query), outcome

        self.shown_results.add(user_id, result.result_ids)
        return reply_prefix(resolution.refinement_type) + result.text, outcome


def build_orchestrator(config: Settings = default_settings) -> TurnOrchestrator:
    """
    Wire the orchestrator against the MCP backend

    Profiles and memory live on the tool server (set MEMORY_BACKEND=local to
    keep memory in process instead). Sessions stay in process: they are lost
    on restart, and once SESSION_MAX_ENTRIES is reached the session closest to
    expiry is evicted, which sends that user back to Idle.
    """
    mcp = MCPClient(base=config.MCP_BASE, client_name=f"{config.AGENT_NAME}-agent")
    if config.MEMORY_BACKEND == "local":
        memories = InMemoryMemoryStore()
    else:
        memories = MCPMemoryStore(mcp)
    resolver = FollowUpResolver(timedelta(minutes=config.FOLLOW_UP_WINDOW_MINUTES))
    ai = MCPIntentClassifier(mcp, timeout=config.AI_TIMEOUT_SECONDS) if config.AI_CLASSIFIER_ENABLED else None
    return TurnOrchestrator(
        profiles=MCPProfileStore(mcp),
        sessions=InMemorySessionStore(ExpiringCache(
            ttl=config.SESSION_TTL_HOURS * 3600, max_entries=config.SESSION_MAX_ENTRIES)),
        memories=memories,
        search=MCPSearchEngine(mcp, timeout=config.SEARCH_TIMEOUT_SECONDS),
        rate_limiter=RateLimiter(
            daily_limit=config.DAILY_SEARCH_LIMIT,
            rapid_fire_limit=config.RAPID_FIRE_LIMIT,
            rapid_fire_window=timedelta(minutes=config.RAPID_FIRE_WINDOW_MINUTES),
            rapid_fire_cooldown=timedelta(minutes=config.RAPID_FIRE_COOLDOWN_MINUTES),
            duplicate_limit=config.DUPLICATE_QUERY_LIMIT,
            duplicate_window=timedelta(minutes=config.DUPLICATE_QUERY_WINDOW_MINUTES),
            duplicate_cooldown=timedelta(minutes=config.DUPLICATE_QUERY_COOLDOWN_MINUTES),
        ),
        classifier=IntentClassifier(
            resolver, ai,
            ai_min_confidence=config.AI_MIN_CONFIDENCE,
            ai_timeout=config.AI_TIMEOUT_SECONDS,
        ),
        resolver=resolver,
        config=config,
    )
