"""
Profile Completion State Machine

Walks a user through the queue of incomplete profile fields one message at
a time. Owns `session.waiting_for` while a field is being collected.

    Idle/Ready ──start──▶ UpdatingField(f, queue) ──valid──▶ UpdatingField(next, …)
                               │  ▲                            │
                               │  └──invalid (attempts += 1)   └──queue empty──▶ Ready
                               ├──gate answered yes──▶ AdditionalEmailInput / InstagramURLInput
                               └──skip──▶ Ready (profile_skipped)
"""
import logging
from typing import Callable, Dict

from .fields import DISPLAY_NAMES, GATED_FIELDS, REQUIRED_FIELDS, ProfileField
from .messages import (
    ADDITIONAL_EMAIL_IS_PRIMARY, ADDITIONAL_EMAIL_PROMPT, ADDITIONAL_EMAIL_TAKEN,
    FIELD_SAVED, GREETING_RESUME, INSTAGRAM_URL_PROMPT, NEXT_STEP,
    PROFILE_ALREADY_COMPLETE, PROFILE_COMPLETED, PROFILE_LOCKED, PROFILE_PAUSED,
    SAVE_FAILED, UPDATE_START, field_prompt, format_message, retry_message,
)
from .models import (
    AdditionalEmailInput, InstagramURLInput, Intent, Profile, Ready, Session, UpdatingField,
)
from .store import PersistenceError, ProfileStore
from .validators import validate_email, validate_field, validate_instagram

log = logging.getLogger(__name__)

# entry reasons
ENTRY_GREETING = "greeting"
ENTRY_SEARCH_LOCKED = "search_locked"
ENTRY_UPDATE_REQUEST = "update_request"
ENTRY_RESUME = "resume"

ENTRY_TEMPLATES = {
    ENTRY_GREETING: GREETING_RESUME,
    ENTRY_SEARCH_LOCKED: PROFILE_LOCKED,
    ENTRY_UPDATE_REQUEST: UPDATE_START,
    ENTRY_RESUME: UPDATE_START,
}

# attempt counters for the gated sub-inputs
ADDITIONAL_EMAIL_ADDRESS = "additional_email_address"
INSTAGRAM_URL = "instagram_url"


def _step(total: int, remaining: list[ProfileField]) -> int:
    return total - len(remaining)


class ProfileWizard:
    def __init__(self, profiles: ProfileStore):
        self.profiles = profiles
        self.state_handlers: Dict[str, Callable] = {
            "updating_field": self._on_field,
            "additional_email_input": self._on_additional_email,
            "instagram_url_input": self._on_instagram_url,
        }

    # ---------- Entry ----------
    def start(self, session: Session, profile: Profile, reason: str = ENTRY_UPDATE_REQUEST) -> str:
        """
        Enter UpdatingField at the first incomplete field, or report the profile complete

        Only an explicit update request queues the optional yes/no questions;
        every other entry collects the required fields and hands back to search.
        """
        queue = profile.incomplete_fields(include_optional=reason == ENTRY_UPDATE_REQUEST)
        if not queue:
            session.waiting_for = Ready()
            session.ready = True
            return PROFILE_ALREADY_COMPLETE

        first, rest = queue[0], queue[1:]
        session.waiting_for = UpdatingField(field=first, remaining_queue=rest, total_steps=len(queue))
        session.profile_skipped = False
        session.ready = False
        log.info(f"[WIZARD] {session.user_id}: start ({reason}) at {first.value}, {len(queue)} step(s)")

        return format_message(
            ENTRY_TEMPLATES.get(reason, UPDATE_START),
            name=profile.first_name,
            pct=profile.completion_percentage(),
            missing=len(profile.incomplete_fields()),
            step=1,
            total=len(queue),
            display=DISPLAY_NAMES[first],
            prompt=field_prompt(first),
        )

    def current_prompt(self, session: Session) -> str:
        wf = session.waiting_for
        if isinstance(wf, AdditionalEmailInput):
            return ADDITIONAL_EMAIL_PROMPT
        if isinstance(wf, InstagramURLInput):
            return INSTAGRAM_URL_PROMPT
        if isinstance(wf, UpdatingField):
            return field_prompt(wf.field)
        return ""

    # ---------- Transitions ----------
    async def handle_input(self, session: Session, profile: Profile, intent: Intent) -> str:
        handler = self.state_handlers.get(session.waiting_for.state)
        if handler is None:
            log.error(f"[WIZARD] {session.user_id}: no handler for state {session.waiting_for.state}")
            return self.start(session, profile)
        return await handler(session, profile, intent.value or "")

    def skip(self, session: Session, profile: Profile) -> str:
        """Pause collection; persisted fields and the completed flag stay as they are."""
        log.info(f"[WIZARD] {session.user_id}: skipped at {session.waiting_for.state}")
        session.waiting_for = Ready()
        session.profile_skipped = True
        session.ready = True
        total = len(REQUIRED_FIELDS)
        return format_message(
            PROFILE_PAUSED,
            filled=total - len(profile.incomplete_fields()),
            total=total,
            pct=profile.completion_percentage(),
        )

    def _fail(self, session: Session, field: ProfileField, key: str, raw: str, result, **overrides) -> str:
        session.attempts[key] = session.attempts.get(key, 0) + 1
        attempt = session.attempts[key]
        log.info(f"[WIZARD] {session.user_id}: invalid {key} (attempt {attempt})")
        return retry_message(field, attempt, result.message, raw, result.problems, **overrides)

    async def _on_field(self, session: Session, profile: Profile, raw: str) -> str:
        wf: UpdatingField = session.waiting_for
        field = wf.field
        result = validate_field(field, raw)
        if not result.valid:
            return self._fail(session, field, field.value, raw, result)

        try:
            await self.profiles.set_field(session.user_id, field, result.value)
        except PersistenceError as e:
            log.error(f"[WIZARD] {session.user_id}: saving {field.value} failed: {e}")
            return format_message(SAVE_FAILED, display=DISPLAY_NAMES[field], prompt=field_prompt(field))

        setattr(profile.enhanced, field.value, result.value)
        session.attempts.pop(field.value, None)

        if field in GATED_FIELDS and result.value is True:
            sub_state = AdditionalEmailInput if field == ProfileField.ADDITIONAL_EMAIL else InstagramURLInput
            session.waiting_for = sub_state(remaining_queue=wf.remaining_queue, total_steps=wf.total_steps)
            saved = self._saved(field, wf.total_steps, wf.remaining_queue)
            return f"{saved}\n\n{self.current_prompt(session)}"

        return await self._advance(session, profile, field, wf.remaining_queue, wf.total_steps)

    async def _on_additional_email(self, session: Session, profile: Profile, raw: str) -> str:
        wf: AdditionalEmailInput = session.waiting_for
        result = validate_email(raw)
        if not result.valid:
            return self._fail(
                session, ProfileField.ADDITIONAL_EMAIL, ADDITIONAL_EMAIL_ADDRESS, raw, result,
                examples=["name@example.com", "firstname.lastname@company.org"],
                prompt=ADDITIONAL_EMAIL_PROMPT,
            )

        email = result.value
        if email == (profile.basic.email or "").lower():
            return ADDITIONAL_EMAIL_IS_PRIMARY
        owner = await self.profiles.email_owner(email)
        if owner is not None and owner != session.user_id:
            log.info(f"[WIZARD] {session.user_id}: additional email already linked elsewhere")
            return ADDITIONAL_EMAIL_TAKEN

        try:
            await self.profiles.link_email(session.user_id, email)
        except PersistenceError as e:
            log.error(f"[WIZARD] {session.user_id}: linking email failed: {e}")
            return format_message(SAVE_FAILED, display="Additional Email", prompt=ADDITIONAL_EMAIL_PROMPT)

        if email not in profile.basic.linked_emails:
            profile.basic.linked_emails.append(email)
        session.attempts.pop(ADDITIONAL_EMAIL_ADDRESS, None)
        return await self._advance(session, profile, ProfileField.ADDITIONAL_EMAIL,
                                   wf.remaining_queue, wf.total_steps)

    async def _on_instagram_url(self, session: Session, profile: Profile, raw: str) -> str:
        wf: InstagramURLInput = session.waiting_for
        result = validate_instagram(raw)
        if not result.valid:
            return self._fail(
                session, ProfileField.INSTAGRAM, INSTAGRAM_URL, raw, result,
                examples=["https://instagram.com/yourname", "instagram.com/yourname", "yourname"],
                prompt=INSTAGRAM_URL_PROMPT,
            )

        try:
            await self.profiles.set_instagram_url(session.user_id, result.value)
        except PersistenceError as e:
            log.error(f"[WIZARD] {session.user_id}: saving instagram url failed: {e}")
            return format_message(SAVE_FAILED, display="Instagram Profile", prompt=INSTAGRAM_URL_PROMPT)

        profile.enhanced.instagram_url = result.value
        session.attempts.pop(INSTAGRAM_URL, None)
        return await self._advance(session, profile, ProfileField.INSTAGRAM,
                                   wf.remaining_queue, wf.total_steps)

    # ---------- Helpers ----------
    def _saved(self, field: ProfileField, total: int, remaining: list[ProfileField]) -> str:
        step = _step(total, remaining)
        return format_message(
            FIELD_SAVED,
            display=DISPLAY_NAMES[field],
            step=step,
            total=total,
            pct=round(step / total * 100),
        )

    async def _mark_completed_if_ready(self, session: Session, profile: Profile):
        if profile.enhanced.completed or not profile.is_complete():
            return
        try:
            await self.profiles.mark_completed(session.user_id)
        except PersistenceError as e:
            # retried on the next saved field or the next wizard run
            log.error(f"[WIZARD] {session.user_id}: mark completed failed: {e}")
            return
        profile.enhanced.completed = True
        log.info(f"[WIZARD] {session.user_id}: profile completed")

    async def _advance(self, session: Session, profile: Profile, saved_field: ProfileField,
                       queue: list[ProfileField], total: int) -> str:
        saved = self._saved(saved_field, total, queue)
        await self._mark_completed_if_ready(session, profile)

        if queue:
            nxt, rest = queue[0], queue[1:]
            session.waiting_for = UpdatingField(field=nxt, remaining_queue=rest, total_steps=total)
            return saved + format_message(
                NEXT_STEP,
                step=_step(total, rest),
                total=total,
                display=DISPLAY_NAMES[nxt],
                prompt=field_prompt(nxt),
            )

        session.waiting_for = Ready()
        session.attempts.clear()
        session.profile_skipped = False
        session.ready = True
        log.info(f"[WIZARD] {session.user_id}: queue finished, completed={profile.enhanced.completed}")
        if profile.enhanced.completed:
            return f"{saved}\n\n{PROFILE_COMPLETED}"
        return saved
