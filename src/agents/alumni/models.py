"""
Data models for sessions, profiles, conversational memory and intents.

Session state is a tagged union over `waiting_for`, so a queue can only
exist while a field is actually being collected.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .fields import GATED_FIELDS, LIST_FIELDS, REQUIRED_FIELDS, ProfileField


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- Profile ----------
class BasicProfile(BaseModel):
    name: str | None = None
    email: str | None = None
    verified: bool = False
    linked_emails: list[str] = Field(default_factory=list)


class EnhancedProfile(BaseModel):
    full_name: str | None = None
    gender: str | None = None
    professional_role: str | None = None
    date_of_birth: str | None = None
    country: str | None = None
    address: str | None = None
    phone: str | None = None
    linkedin: str | None = None
    domain: str | None = None
    yatra_impact: list[str] = Field(default_factory=list)
    community_asks: list[str] = Field(default_factory=list)
    community_gives: list[str] = Field(default_factory=list)
    completed: bool = False
    # None means the gate question was never answered
    additional_email: bool | None = None
    instagram: bool | None = None
    instagram_url: str | None = None


class Profile(BaseModel):
    user_id: str
    basic: BasicProfile = Field(default_factory=BasicProfile)
    enhanced: EnhancedProfile = Field(default_factory=EnhancedProfile)

    def value_of(self, field: ProfileField):
        return getattr(self.enhanced, field.value)

    def has_value(self, field: ProfileField) -> bool:
        value = self.value_of(field)
        if field in LIST_FIELDS:
            return bool(value)
        if field in GATED_FIELDS:
            return value is not None
        return isinstance(value, str) and bool(value.strip())

    def incomplete_fields(self, include_optional: bool = False) -> list[ProfileField]:
        missing = [f for f in REQUIRED_FIELDS if not self.has_value(f)]
        if include_optional:
            missing += [f for f in GATED_FIELDS if not self.has_value(f)]
        return missing

    def is_complete(self) -> bool:
        return not self.incomplete_fields()

    def completion_percentage(self) -> int:
        filled = len(REQUIRED_FIELDS) - len(self.incomplete_fields())
        return round(filled / len(REQUIRED_FIELDS) * 100)

    @property
    def location(self) -> str | None:
        return self.enhanced.address or None

    @property
    def first_name(self) -> str:
        name = self.enhanced.full_name or self.basic.name or ""
        return name.split()[0] if name.split() else "there"


# ---------- Session ----------
class Idle(BaseModel):
    state: Literal["idle"] = "idle"


class UpdatingField(BaseModel):
    state: Literal["updating_field"] = "updating_field"
    field: ProfileField
    remaining_queue: list[ProfileField] = Field(default_factory=list)
    total_steps: int = 1


class AdditionalEmailInput(BaseModel):
    state: Literal["additional_email_input"] = "additional_email_input"
    remaining_queue: list[ProfileField] = Field(default_factory=list)
    total_steps: int = 1


class InstagramURLInput(BaseModel):
    state: Literal["instagram_url_input"] = "instagram_url_input"
    remaining_queue: list[ProfileField] = Field(default_factory=list)
    total_steps: int = 1


class Ready(BaseModel):
    state: Literal["ready"] = "ready"


WaitingFor = Annotated[
    Union[Idle, UpdatingField, AdditionalEmailInput, InstagramURLInput, Ready],
    Field(discriminator="state"),
]

COLLECTING_STATES = (UpdatingField, AdditionalEmailInput, InstagramURLInput)


class Session(BaseModel):
    user_id: str
    waiting_for: WaitingFor = Field(default_factory=Idle)
    authenticated: bool = False
    profile_snapshot: Profile | None = None
    attempts: dict[str, int] = Field(default_factory=dict)
    ready: bool = False
    profile_skipped: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def collecting(self) -> bool:
        return isinstance(self.waiting_for, COLLECTING_STATES)

    def current_field(self) -> ProfileField | None:
        """Field whose answer the next message is expected to carry."""
        wf = self.waiting_for
        if isinstance(wf, UpdatingField):
            return wf.field
        if isinstance(wf, AdditionalEmailInput):
            return ProfileField.ADDITIONAL_EMAIL
        if isinstance(wf, InstagramURLInput):
            return ProfileField.INSTAGRAM
        return None


# ---------- Conversational memory ----------
class Turn(BaseModel):
    message: str
    reply: str
    intent: str
    timestamp: datetime = Field(default_factory=utcnow)
    is_follow_up: bool = False


class CurrentContext(BaseModel):
    topic: str | None = None
    last_search_query: str | None = None
    last_search_result_ids: list[str] = Field(default_factory=list)
    last_search_at: datetime | None = None
    follow_up_count: int = 0


class SearchHistoryEntry(BaseModel):
    query: str
    timestamp: datetime = Field(default_factory=utcnow)
    result_count: int = 0
    is_follow_up: bool = False


class InterestCounters(BaseModel):
    domains: dict[str, int] = Field(default_factory=dict)
    skills: dict[str, int] = Field(default_factory=dict)
    locations: dict[str, int] = Field(default_factory=dict)


class BehaviorMetrics(BaseModel):
    total_searches: int = 0
    follow_up_searches: int = 0
    total_interactions: int = 0


class Memory(BaseModel):
    user_id: str
    turns: list[Turn] = Field(default_factory=list)
    current_context: CurrentContext = Field(default_factory=CurrentContext)
    search_history: list[SearchHistoryEntry] = Field(default_factory=list)
    interests: InterestCounters = Field(default_factory=InterestCounters)
    metrics: BehaviorMetrics = Field(default_factory=BehaviorMetrics)


# ---------- Intent ----------
class IntentType(str, Enum):
    EMAIL = "email"
    OTP = "otp"
    SKIP = "skip"
    PROFILE_UPDATE_REQUEST = "profile_update_request"
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    NUMERIC_LIST = "numeric_list"
    FOLLOW_UP_SEARCH = "follow_up_search"
    CASUAL = "casual"
    SEARCH = "search"
    PROFILE_FIELD_INPUT = "profile_field_input"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RefinementType(str, Enum):
    SENIOR = "senior"
    JUNIOR = "junior"
    STARTUP = "startup"
    LOCATION = "location"
    EXCLUDE_PREVIOUS = "exclude_previous"
    NEXT_BATCH = "next_batch"


class Intent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: IntentType
    confidence: Confidence = Confidence.MEDIUM
    field: ProfileField | None = None
    value: str | None = None
    subtype: str | None = None
    query: str | None = None
    keywords: list[str] = Field(default_factory=list)
    numbers: list[int] = Field(default_factory=list)
    refinement_type: RefinementType | None = None
    blocked: bool = False
    block_reason: str | None = None
    source: str = "rules"
