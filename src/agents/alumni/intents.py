"""
Intent Classifier

Ordered rule cascade, first match wins:

    1. field input while a profile field is being collected
    2. skip / cancel, unless the rest of the message is a search
    3. email address, six digit code
    4. explicit profile update request
    5. yes / no
    6. list of numbers
    7. follow-up to a search from the last few minutes
    8. greeting, thanks, goodbye, short acknowledgment
    9. search request
   10. anything else is casual/generic

An optional AI classifier may replace steps 3-10 when it answers with a
known intent above the confidence floor. It never replaces steps 1-2.
"""
import asyncio
import logging
import re
from datetime import datetime

from .followup import FollowUpResolver
from .memory import recent_context
from .messages import NO_WORDS, SKIP_WORDS, STRONG_SKIP_WORDS, YES_WORDS
from .models import (
    AdditionalEmailInput, Confidence, Intent, IntentType, Memory, Profile, Session,
)
from .text import casual_subtype, contains_phrase, normalize
from .validators import EMAIL_RE

log = logging.getLogger(__name__)


# ---------- Vocabularies ----------
# generic help words only count towards the keyword score, never alone
GENERIC_SEARCH_WORDS = (
    "help", "need", "looking", "find", "search", "connect", "assistance", "support", "want", "require",
)

SEARCH_KEYWORDS = GENERIC_SEARCH_WORDS + (
    # technical skills & roles
    "developer", "development", "react", "javascript", "python", "java", "web development",
    "app development", "frontend", "backend", "fullstack", "devops", "software", "programming",
    "coding", "engineer", "mobile app", "android", "ios", "flutter", "nodejs", "node", "angular",
    "vue", "database", "ai", "ml", "data scientist", "data analyst", "machine learning",
    "artificial intelligence", "blockchain", "cybersecurity", "cloud computing", "aws", "azure",
    "docker", "kubernetes",
    # business & entrepreneurship
    "entrepreneur", "startup", "business", "marketing", "sales", "finance", "legal", "accounting",
    "consultant", "mentor", "advisor", "investor", "funding", "partnership", "strategy", "ceo",
    "founder", "business development", "product manager", "project manager", "operations", "hr",
    "recruitment",
    # industries & domains
    "fintech", "edtech", "healthtech", "agritech", "manufacturing", "healthcare", "pharmaceutical",
    "education", "agriculture", "technology", "media", "entertainment", "retail", "ecommerce",
    "logistics", "transportation", "energy", "renewable", "sustainability", "environment",
    "construction", "real estate", "hospitality", "tourism", "food", "beverage", "fashion",
    # professional services
    "designer", "ux", "ui", "graphic design", "content writer", "copywriter", "researcher",
    "analyst", "freelancer", "specialist", "expert", "professional", "architect", "manager",
    "director", "executive", "lead", "head", "chief", "senior", "junior",
    # locations
    "mumbai", "delhi", "bangalore", "bengaluru", "hyderabad", "chennai", "kolkata", "pune",
    "ahmedabad", "jaipur", "lucknow", "noida", "gurgaon", "new york", "san francisco", "london",
    "toronto", "sydney", "singapore", "dubai", "berlin",
    # support types
    "advice", "guidance", "mentorship", "feedback", "insights", "networking", "collaboration",
    "consultation", "coaching", "training", "workshop", "internship", "job", "opportunity", "career",
)

_KEYWORD_RES = [
    (kw, re.compile(rf"(?<!\w){re.escape(kw)}(?:s|es|er|ers|ing|ed|ist|ists)?(?!\w)"))
    for kw in dict.fromkeys(SEARCH_KEYWORDS)
]

SEARCH_PATTERNS = [
    re.compile(r"\bi\s+(?:need|want|require|am looking for|m looking for)\b.*\b(?:help|support|assistance|expert|guidance|mentor|someone)"),
    re.compile(r"\blooking\s+for\b.*\b(?:expert|developer|help|advice|mentor|professional|someone|people|founder|co-?founder|investor)"),
    re.compile(r"\bneed\s+help\s+(?:with|in|for|about)\b"),
    re.compile(r"\bhelp\b.*\b(?:with|in|for|about)\b"),
    re.compile(r"\bconnect\b.*\b(?:with|to|me)\b"),
    re.compile(r"\bfind\b.*\b(?:someone|expert|help|person|professional|people|mentor)"),
    re.compile(r"\b(?:professionals?|experts?|developers?|founders?)\b.*\b(?:in|from|near)\b"),
    re.compile(r"\b(?:react|python|javascript|java|node|flutter)\b.*\b(?:developer|expert|engineer)"),
    re.compile(r"\b(?:anyone|people|alumni|someone)\s+(?:from|in|working in|working on|who)\b"),
    re.compile(r"\bwho\s+(?:can|knows|works)\b"),
]

PROFILE_URL_RE = re.compile(r"(?:linkedin\.com|instagram\.com)", re.IGNORECASE)
OTP_RE = re.compile(r"^\s*\d{6}\s*$")
NUMERIC_LIST_RE = re.compile(r"^\s*\d+(?:\s*[,\s]\s*\d+)*\s*$")

PROFILE_UPDATE_PHRASES = (
    "update profile", "complete profile", "edit profile", "update my profile",
    "complete my profile", "edit my profile", "finish profile", "finish my profile",
)
PROFILE_ACTION_WORDS = ("update", "edit", "change", "modify", "complete", "finish", "fill")
PROFILE_TARGET_WORDS = ("profile", "details", "info", "information", "data")

# multi-word yes/no answers are only read from the edges of short replies
YES_NO_MAX_TOKENS = 4
SKIP_MAX_TOKENS = 5
# a skip word followed by this much other text may be a search
SKIP_REST_MIN_CHARS = 8

# intents that may pass while a profile field is being collected
IN_PROGRESS_ALLOWED_INTENTS = {
    IntentType.NUMERIC_LIST,
    IntentType.AFFIRMATIVE,
    IntentType.NEGATIVE,
    IntentType.SKIP,
    IntentType.CASUAL,
    IntentType.PROFILE_FIELD_INPUT,
}

SEARCH_INTENTS = {IntentType.SEARCH, IntentType.FOLLOW_UP_SEARCH}

# labels the AI classifier may return
AI_INTENT_LABELS = {
    "search": IntentType.SEARCH,
    "follow_up_search": IntentType.FOLLOW_UP_SEARCH,
    "profile_update_request": IntentType.PROFILE_UPDATE_REQUEST,
    "profile": IntentType.PROFILE_UPDATE_REQUEST,
    "casual": IntentType.CASUAL,
    "help": IntentType.CASUAL,
    "skip": IntentType.SKIP,
    "email": IntentType.EMAIL,
    "otp": IntentType.OTP,
    "numeric": IntentType.NUMERIC_LIST,
    "numeric_list": IntentType.NUMERIC_LIST,
    "affirmative": IntentType.AFFIRMATIVE,
    "negative": IntentType.NEGATIVE,
}


# ---------- Rule detectors ----------
def is_skip_command(text: str) -> bool:
    """True when the whole message is a skip phrase, optionally with a few extra words."""
    norm = normalize(text)
    if norm in SKIP_WORDS:
        return True
    return len(norm.split()) <= 3 and any(norm.startswith(w + " ") for w in SKIP_WORDS)


def _strip_phrases(norm: str, phrases) -> str:
    for phrase in sorted(phrases, key=len, reverse=True):
        norm = re.sub(rf"(?<!\w){re.escape(phrase)}(?!\w)", " ", norm)
    return re.sub(r"\s+", " ", norm).strip(" ,.;:-")


def detect_skip(text: str, collecting: bool = False) -> Intent | None:
    """
    Skip/cancel words, unless the rest of the message is a search

        "skip" → skip
        "exit strategy advisors in pune" → search
        "later, find python mentors" → search; skip carrying the query while collecting
    """
    norm = normalize(text)
    if not norm or len(norm.split()) > SKIP_MAX_TOKENS:
        return None
    matched = [w for w in SKIP_WORDS if contains_phrase(norm, w)]
    if not matched:
        return None

    rest = _strip_phrases(norm, matched)
    search = detect_search(text) if len(rest) > SKIP_REST_MIN_CHARS and detect_search(rest) else None
    if search is not None and not collecting:
        return search

    strong = any(w in STRONG_SKIP_WORDS for w in matched)
    return Intent(
        type=IntentType.SKIP,
        confidence=Confidence.HIGH if strong else Confidence.MEDIUM,
        keywords=sorted(matched),
        query=rest if search is not None else None,
    )


def detect_structured_token(text: str) -> Intent | None:
    m = EMAIL_RE.search(text or "")
    if m:
        return Intent(type=IntentType.EMAIL, confidence=Confidence.HIGH, value=m.group(0).lower())
    if OTP_RE.match(text or ""):
        return Intent(type=IntentType.OTP, confidence=Confidence.HIGH, value=text.strip())
    return None


def detect_profile_update(text: str) -> Intent | None:
    norm = normalize(text)
    if any(contains_phrase(norm, p) for p in PROFILE_UPDATE_PHRASES):
        return Intent(type=IntentType.PROFILE_UPDATE_REQUEST, confidence=Confidence.HIGH)
    has_action = any(contains_phrase(norm, w) for w in PROFILE_ACTION_WORDS)
    has_target = any(contains_phrase(norm, w) for w in PROFILE_TARGET_WORDS)
    if has_action and has_target:
        return Intent(type=IntentType.PROFILE_UPDATE_REQUEST, confidence=Confidence.MEDIUM)
    return None


def _edge_match(norm: str, words: set[str]) -> bool:
    if norm in words:
        return True
    if len(norm.split()) > YES_NO_MAX_TOKENS:
        return False
    return any(norm.startswith(w + " ") or norm.endswith(" " + w) for w in words)


def detect_yes_no(text: str) -> Intent | None:
    norm = normalize(text)
    if not norm:
        return None
    if _edge_match(norm, YES_WORDS):
        return Intent(type=IntentType.AFFIRMATIVE, confidence=Confidence.HIGH if norm in YES_WORDS else Confidence.MEDIUM)
    if _edge_match(norm, NO_WORDS):
        return Intent(type=IntentType.NEGATIVE, confidence=Confidence.HIGH if norm in NO_WORDS else Confidence.MEDIUM)
    return None


def detect_numeric_list(text: str) -> Intent | None:
    if not NUMERIC_LIST_RE.match(text or ""):
        return None
    numbers = [int(n) for n in re.findall(r"\d+", text)]
    return Intent(type=IntentType.NUMERIC_LIST, confidence=Confidence.HIGH, numbers=numbers)


def detect_casual(text: str) -> Intent | None:
    subtype = casual_subtype(text)
    if subtype is None:
        return None
    return Intent(type=IntentType.CASUAL, confidence=Confidence.HIGH, subtype=subtype)


def search_keywords(norm: str) -> list[str]:
    return [kw for kw, rx in _KEYWORD_RES if rx.search(norm)]


def detect_search(text: str) -> Intent | None:
    """
    Keyword and phrasing based search detection

    Examples:
        "looking for react developers in pune" → search, high
        "fintech mentors" → search, medium
        "python" → search, low
        "https://linkedin.com/in/me" → None
    """
    if PROFILE_URL_RE.search(text or "") or EMAIL_RE.search(text or ""):
        return None
    norm = normalize(text)
    if not norm:
        return None

    keywords = search_keywords(norm)
    pattern_hit = any(p.search(norm) for p in SEARCH_PATTERNS)
    specific = [kw for kw in keywords if kw not in GENERIC_SEARCH_WORDS]
    if not pattern_hit and not specific:
        return None

    if pattern_hit and len(keywords) >= 2:
        confidence = Confidence.HIGH
    elif pattern_hit or len(keywords) >= 2:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW
    return Intent(type=IntentType.SEARCH, confidence=confidence, query=text.strip(), keywords=keywords)


# ---------- Classifier ----------
class IntentClassifier:
    def __init__(self, resolver: FollowUpResolver | None = None, ai=None, *,
                 ai_min_confidence: float = 0.7, ai_timeout: float = 30):
        self.resolver = resolver or FollowUpResolver()
        self.ai = ai
        self.ai_min_confidence = ai_min_confidence
        self.ai_timeout = ai_timeout

    def _preempt(self, message: str, session: Session | None) -> Intent | None:
        # steps 1-2
        if session is not None and session.collecting and not is_skip_command(message):
            return Intent(
                type=IntentType.PROFILE_FIELD_INPUT,
                confidence=Confidence.HIGH,
                field=session.current_field(),
                value=message,
            )
        return detect_skip(message, collecting=session is not None and session.collecting)

    def _cascade(self, message: str, session: Session | None, memory: Memory | None,
                 now: datetime | None) -> Intent:
        # steps 3-10
        for detector in (detect_structured_token, detect_profile_update, detect_yes_no, detect_numeric_list):
            intent = detector(message)
            if intent:
                return intent

        if self.resolver.is_follow_up(message, memory, now):
            location = session.profile_snapshot.location if session and session.profile_snapshot else None
            return Intent(
                type=IntentType.FOLLOW_UP_SEARCH,
                confidence=Confidence.HIGH,
                query=memory.current_context.last_search_query,
                refinement_type=self.resolver.refinement_for(message, location),
            )

        return detect_casual(message) or detect_search(message) or Intent(
            type=IntentType.CASUAL, confidence=Confidence.LOW, subtype="generic"
        )

    def classify(self, message: str, session: Session | None = None, memory: Memory | None = None,
                 now: datetime | None = None) -> Intent:
        """Rule cascade only; same inputs always give the same Intent."""
        intent = self._preempt(message, session) or self._cascade(message, session, memory, now)
        log.info(f"[INTENT] '{(message or '')[:40]}' → {intent.type.value} ({intent.confidence.value})")
        return intent

    async def classify_async(self, message: str, session: Session | None = None,
                             memory: Memory | None = None, now: datetime | None = None) -> Intent:
        """Like `classify`, but lets the AI classifier answer steps 3-10 when configured."""
        pre = self._preempt(message, session)
        if pre is not None:
            log.info(f"[INTENT] '{(message or '')[:40]}' → {pre.type.value} (pre-empted)")
            return pre
        if self.ai is not None:
            ai_intent = await self._ai_intent(message, session, memory, now)
            if ai_intent is not None:
                log.info(f"[INTENT] '{(message or '')[:40]}' → {ai_intent.type.value} (ai)")
                return ai_intent
        return self.classify(message, session, memory, now)

    async def _ai_intent(self, message: str, session: Session | None, memory: Memory | None,
                         now: datetime | None) -> Intent | None:
        context = {
            "waiting_for": session.waiting_for.state if session else "idle",
            "profile_complete": bool(session and session.profile_snapshot and session.profile_snapshot.is_complete()),
            "last_search_query": memory.current_context.last_search_query if memory else None,
            "recent_messages": [t.message for t in recent_context(memory, 5)] if memory else [],
        }
        try:
            result = await asyncio.wait_for(self.ai.classify(message, context), timeout=self.ai_timeout)
        except asyncio.TimeoutError:
            log.warning(f"[INTENT] AI classifier timed out after {self.ai_timeout}s, using rules")
            return None
        except Exception as e:
            log.warning(f"[INTENT] AI classifier failed: {e}, using rules")
            return None

        intent_type = AI_INTENT_LABELS.get((result.intent or "").lower())
        if intent_type is None or result.confidence < self.ai_min_confidence:
            log.info(f"[INTENT] AI result ignored: intent={result.intent} confidence={result.confidence:.2f}")
            return None

        confidence = Confidence.HIGH if result.confidence >= 0.85 else Confidence.MEDIUM
        terms = [t for t in result.extracted_terms if t]
        if intent_type == IntentType.SEARCH:
            return Intent(type=intent_type, confidence=confidence, query=message.strip(),
                          keywords=terms, source="ai")
        if intent_type == IntentType.FOLLOW_UP_SEARCH:
            if not self.resolver.has_recent_search(memory, now):
                return None
            location = session.profile_snapshot.location if session and session.profile_snapshot else None
            return Intent(type=intent_type, confidence=confidence,
                          query=memory.current_context.last_search_query,
                          refinement_type=self.resolver.refinement_for(message, location), source="ai")
        if intent_type in (IntentType.EMAIL, IntentType.OTP, IntentType.NUMERIC_LIST):
            # structured values still come from the rules
            structured = detect_structured_token(message) or detect_numeric_list(message)
            if structured is None or structured.type != intent_type:
                return None
            return structured.model_copy(update={"source": "ai"})
        subtype = "generic" if intent_type == IntentType.CASUAL else None
        return Intent(type=intent_type, confidence=confidence, subtype=subtype, keywords=terms, source="ai")


def validate_intent_for_user_state(intent: Intent, session: Session | None,
                                   profile: Profile | None) -> Intent:
    """
    Re-check an intent against where the user is

    While a field is being collected only a short allow-list passes; search
    of any kind is blocked until the profile is complete.
    """
    if session is not None and session.collecting:
        allowed = set(IN_PROGRESS_ALLOWED_INTENTS)
        if isinstance(session.waiting_for, AdditionalEmailInput):
            allowed.add(IntentType.EMAIL)
        if intent.type not in allowed:
            log.info(f"[INTENT] Blocked {intent.type.value}: profile_update_in_progress")
            return intent.model_copy(update={"blocked": True, "block_reason": "profile_update_in_progress"})

    if intent.type in SEARCH_INTENTS and not (profile is not None and profile.is_complete()):
        log.info(f"[INTENT] Blocked {intent.type.value}: profile_incomplete")
        return intent.model_copy(update={"blocked": True, "block_reason": "profile_incomplete"})
    return intent
