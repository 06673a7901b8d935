"""Unit tests for the profile completion state machine."""

import asyncio
import itertools

import pytest

from agents.alumni.fields import GATED_FIELDS, REQUIRED_FIELDS, ProfileField
from agents.alumni.messages import (
    ADDITIONAL_EMAIL_IS_PRIMARY, ADDITIONAL_EMAIL_TAKEN, PROFILE_ALREADY_COMPLETE, PROFILE_COMPLETED,
)
from agents.alumni.models import (
    AdditionalEmailInput, Intent, IntentType, Ready, Session, UpdatingField,
)
from agents.alumni.store import InMemoryProfileStore, PersistenceError
from agents.alumni.wizard import ENTRY_GREETING, ENTRY_SEARCH_LOCKED, ProfileWizard

from conftest import COMPLETE_FIELDS, USER, make_profile

VALID_ANSWERS = {
    ProfileField.FULL_NAME: "John Doe",
    ProfileField.GENDER: "1",
    ProfileField.PROFESSIONAL_ROLE: "3",
    ProfileField.DATE_OF_BIRTH: "19/07/1995",
    ProfileField.COUNTRY: "india",
    ProfileField.ADDRESS: "Pune",
    ProfileField.PHONE: "+91 98765 43210",
    ProfileField.LINKEDIN: "johndoe",
    ProfileField.DOMAIN: "2",
    ProfileField.YATRA_IMPACT: "1,2",
    ProfileField.COMMUNITY_ASKS: "1,3",
    ProfileField.COMMUNITY_GIVES: "2",
    ProfileField.ADDITIONAL_EMAIL: "no",
    ProfileField.INSTAGRAM: "no",
}


def answer(text: str) -> Intent:
    return Intent(type=IntentType.PROFILE_FIELD_INPUT, value=text)


class Harness:
    """Wizard plus the in-memory store, driven one message at a time."""

    def __init__(self, profile):
        self.store = InMemoryProfileStore([profile])
        self.wizard = ProfileWizard(self.store)
        self.session = Session(user_id=profile.user_id)

    def profile(self):
        return asyncio.run(self.store.get_profile(USER))

    def start(self, reason="update_request"):
        return self.wizard.start(self.session, self.profile(), reason)

    def send(self, text: str) -> str:
        return asyncio.run(self.wizard.handle_input(self.session, self.profile(), answer(text)))


class TestStart:
    """Entering the wizard."""

    def test_queue_starts_at_first_missing_field(self):
        h = Harness(make_profile(complete=False))
        reply = h.start()
        wf = h.session.waiting_for
        assert isinstance(wf, UpdatingField)
        assert wf.field == ProfileField.FULL_NAME
        assert wf.total_steps == len(REQUIRED_FIELDS) + len(GATED_FIELDS)
        assert "Step 1 of 14" in reply

    def test_locked_search_entry_mentions_missing_count(self):
        h = Harness(make_profile(country=None, phone=None, completed=False))
        reply = h.start(ENTRY_SEARCH_LOCKED)
        assert "Missing 2 field(s)" in reply
        assert h.session.waiting_for.field == ProfileField.COUNTRY

    def test_greeting_entry_queues_required_fields_only(self):
        h = Harness(make_profile(complete=False))
        h.start(ENTRY_GREETING)
        assert h.session.waiting_for.total_steps == len(REQUIRED_FIELDS)
        for field in REQUIRED_FIELDS:
            h.send(VALID_ANSWERS[field])
        assert isinstance(h.session.waiting_for, Ready)
        assert h.profile().enhanced.completed is True
        assert h.profile().enhanced.additional_email is None

    def test_complete_profile_goes_straight_to_ready(self):
        h = Harness(make_profile())
        assert h.start() == PROFILE_ALREADY_COMPLETE
        assert isinstance(h.session.waiting_for, Ready)


class TestFieldInput:
    """Valid and invalid answers."""

    def test_valid_name_advances_to_gender(self):
        h = Harness(make_profile(complete=False))
        h.start()
        reply = h.send("John Doe")
        assert "Full Name Saved" in reply
        assert h.profile().enhanced.full_name == "John Doe"
        assert h.session.waiting_for.field == ProfileField.GENDER

    def test_invalid_answer_stays_and_counts_attempts(self):
        h = Harness(make_profile(complete=False))
        h.start()
        h.send("J")
        reply = h.send("J")
        assert h.session.waiting_for.field == ProfileField.FULL_NAME
        assert h.session.attempts[ProfileField.FULL_NAME.value] == 2
        assert "Example:" in reply
        assert h.profile().enhanced.full_name is None

    def test_attempts_reset_after_success(self):
        h = Harness(make_profile(complete=False))
        h.start()
        h.send("J")
        h.send("John Doe")
        assert ProfileField.FULL_NAME.value not in h.session.attempts

    def test_save_failure_keeps_state(self):
        h = Harness(make_profile(complete=False))
        h.start()

        async def broken(*args, **kwargs):
            raise PersistenceError("backend down")

        h.store.set_field = broken
        reply = h.send("John Doe")
        assert "Couldn't save" in reply
        assert h.session.waiting_for.field == ProfileField.FULL_NAME


class TestCompletion:
    """Finishing the queue in any order."""

    @pytest.mark.parametrize("order", list(itertools.permutations(
        [ProfileField.GENDER, ProfileField.DOMAIN, ProfileField.PHONE])))
    def test_any_fill_order_completes(self, order):
        missing = {f.value: None for f in order}
        h = Harness(make_profile(completed=False, **missing))
        # simulate an earlier run that collected the fields in a different order
        h.session.waiting_for = UpdatingField(field=order[0], remaining_queue=list(order[1:]), total_steps=3)
        replies = [h.send(VALID_ANSWERS[f]) for f in order]
        assert PROFILE_COMPLETED in replies[-1]
        assert h.profile().enhanced.completed is True
        assert isinstance(h.session.waiting_for, Ready)

    def test_full_walkthrough(self):
        h = Harness(make_profile(complete=False))
        h.start()
        for field in list(REQUIRED_FIELDS) + list(GATED_FIELDS):
            assert h.session.current_field() == field
            h.send(VALID_ANSWERS[field])
        profile = h.profile()
        assert profile.is_complete()
        assert profile.enhanced.completed is True
        assert profile.enhanced.linkedin == "https://linkedin.com/in/johndoe"
        assert profile.completion_percentage() == 100


class TestGatedFields:
    """Additional email and Instagram sub-inputs."""

    def _at_email_gate(self):
        fields = {k: v for k, v in COMPLETE_FIELDS.items()}
        fields.update(additional_email=None, instagram=None, completed=False)
        h = Harness(make_profile(**fields))
        h.start()
        assert h.session.current_field() == ProfileField.ADDITIONAL_EMAIL
        return h

    def test_yes_opens_email_input(self):
        h = self._at_email_gate()
        h.send("yes")
        assert isinstance(h.session.waiting_for, AdditionalEmailInput)

    def test_primary_email_rejected(self):
        h = self._at_email_gate()
        h.send("yes")
        assert h.send("asha@example.com") == ADDITIONAL_EMAIL_IS_PRIMARY

    def test_email_owned_by_someone_else(self):
        h = self._at_email_gate()
        other = make_profile(user_id="911111111111")
        other.basic.email = "taken@example.com"
        h.store.add(other)
        h.send("yes")
        assert h.send("taken@example.com") == ADDITIONAL_EMAIL_TAKEN

    def test_email_linked_then_instagram(self):
        h = self._at_email_gate()
        h.send("yes")
        h.send("asha.work@example.com")
        assert "asha.work@example.com" in h.profile().basic.linked_emails
        assert h.session.current_field() == ProfileField.INSTAGRAM

    def test_instagram_url_saved_and_completes(self):
        h = self._at_email_gate()
        h.send("no")
        h.send("yes")
        reply = h.send("@asha.rao")
        profile = h.profile()
        assert profile.enhanced.instagram_url == "https://instagram.com/asha.rao"
        assert profile.enhanced.completed is True
        assert PROFILE_COMPLETED in reply


class TestSkip:
    """Skipping pauses without touching saved data."""

    def test_skip_keeps_saved_fields(self):
        h = Harness(make_profile(complete=False))
        h.start()
        h.send("John Doe")
        reply = h.wizard.skip(h.session, h.profile())
        assert isinstance(h.session.waiting_for, Ready)
        assert h.session.profile_skipped is True
        assert h.profile().enhanced.full_name == "John Doe"
        assert h.profile().enhanced.completed is False
        assert "1/12" in reply
