"""Unit tests for profile field validators and normalizers."""

import pytest

from agents.alumni.fields import COMMUNITY_ASKS, PROFESSIONAL_ROLES, YATRA_IMPACT, ProfileField
from agents.alumni.messages import retry_message
from agents.alumni.validators import (
    sanitize_input,
    validate_country,
    validate_date_of_birth,
    validate_email,
    validate_field,
    validate_full_name,
    validate_gender,
    validate_instagram,
    validate_linkedin,
    validate_multiple_choice,
    validate_phone,
    validate_single_choice,
    validate_yes_no,
)


class TestNames:
    """Full name and place validation."""

    def test_real_name_accepted(self):
        """Test ordinary names pass through with whitespace collapsed."""
        assert validate_full_name("  John   Doe ") == (True, "John Doe", "", ())

    def test_single_letter_rejected(self):
        result = validate_full_name("J")
        assert result.valid is False
        assert "2-100" in result.message

    def test_digits_rejected_with_problem_breakdown(self):
        """Test the problem list names the offending characters."""
        result = validate_full_name("John 3")
        assert result.valid is False
        assert "3" in result.problems[0]

    def test_placeholder_rejected(self):
        assert validate_full_name("test user").valid is False

    def test_country_alias_and_title_case(self):
        assert validate_country("usa").value == "United States"
        assert validate_country("new zealand").value == "New Zealand"
        assert validate_country("India1").valid is False


class TestChoices:
    """Single, multiple and yes/no choices."""

    def test_gender_by_number_and_word(self):
        assert validate_gender("2").value == "Female"
        assert validate_gender("male").value == "Male"
        assert validate_gender("4").valid is False

    def test_single_choice_by_number_or_name(self):
        assert validate_single_choice("2", PROFESSIONAL_ROLES).value == "Student"
        assert validate_single_choice("student", PROFESSIONAL_ROLES).value == "Student"

    def test_single_choice_out_of_range(self):
        result = validate_single_choice("9", PROFESSIONAL_ROLES)
        assert result.valid is False
        assert "1 to 8" in result.message

    def test_multiple_choice_dedupes_in_input_order(self):
        result = validate_multiple_choice("3, 1 3", COMMUNITY_ASKS)
        assert result.value == [COMMUNITY_ASKS[2], COMMUNITY_ASKS[0]]

    def test_multiple_choice_rejects_words(self):
        result = validate_multiple_choice("1, two", COMMUNITY_ASKS)
        assert result.valid is False
        assert "two" in result.problems[0]

    def test_yatra_impact_is_capped(self):
        """Test yatra impact accepts at most three selections."""
        assert validate_field(ProfileField.YATRA_IMPACT, "1,2,3").value == YATRA_IMPACT
        assert validate_field(ProfileField.YATRA_IMPACT, "4").valid is False

    def test_yes_no_accepts_numbers_for_gates(self):
        assert validate_yes_no("1").value is True
        assert validate_yes_no("Nope").value is False
        assert validate_yes_no("perhaps").valid is False


class TestDatesAndNumbers:
    """Date of birth and phone normalization."""

    @pytest.mark.parametrize("raw", ["19/07/1995", "19-07-1995", "1995-07-19", "19 July 1995", "July 19, 1995"])
    def test_date_formats_normalize_to_iso(self, raw):
        assert validate_date_of_birth(raw).value == "1995-07-19"

    def test_impossible_date(self):
        result = validate_date_of_birth("31/02/1995")
        assert result.valid is False
        assert "doesn't exist" in result.message

    def test_year_out_of_range(self):
        assert validate_date_of_birth("19/07/2020").valid is False
        assert validate_date_of_birth("19/07/1950").valid is False

    def test_phone_with_country_code(self):
        assert validate_phone("+91 98765 43210").value == "+919876543210"
        assert validate_phone("919876543210").value == "+919876543210"

    def test_local_phone_kept_as_digits(self):
        assert validate_phone("98765-43210").value == "9876543210"

    def test_phone_too_short(self):
        assert validate_phone("12345").valid is False


class TestLinks:
    """LinkedIn, Instagram and email normalization."""

    def test_linkedin_username(self):
        assert validate_linkedin("johndoe").value == "https://linkedin.com/in/johndoe"

    def test_linkedin_url_stripped_of_tracking(self):
        url = "www.linkedin.com/in/johndoe/?trk=public"
        assert validate_linkedin(url).value == "https://linkedin.com/in/johndoe"

    def test_linkedin_normalization_is_stable(self):
        """Test validating an already normalized URL returns it unchanged."""
        normalized = validate_linkedin("https://in.linkedin.com/in/johndoe").value
        assert validate_linkedin(normalized).value == normalized

    def test_linkedin_wrong_host(self):
        assert validate_linkedin("https://twitter.com/johndoe").valid is False

    def test_instagram_handle_and_url(self):
        assert validate_instagram("@jane.doe").value == "https://instagram.com/jane.doe"
        assert validate_instagram("instagram.com/jane.doe?igsh=x").value == "https://instagram.com/jane.doe"

    def test_email_lowercased(self):
        assert validate_email("Asha.Rao@Example.COM").value == "asha.rao@example.com"
        assert validate_email("asha at example").valid is False

    def test_sanitize_strips_brackets_and_caps_length(self):
        assert sanitize_input("<b>hi</b>") == "bhi/b"
        assert len(sanitize_input("a" * 5000)) == 1000


class TestRetryTiers:
    """Error replies grow more detailed with each failed attempt."""

    def _reply(self, attempt):
        result = validate_date_of_birth("sometime in 95")
        return retry_message(ProfileField.DATE_OF_BIRTH, attempt, result.message, "sometime in 95", result.problems)

    def test_first_attempt_repeats_prompt(self):
        assert "Enter your date of birth" in self._reply(1)

    def test_second_attempt_shows_one_example(self):
        reply = self._reply(2)
        assert "Example:" in reply
        assert "Examples:" not in reply

    def test_third_attempt_lists_examples(self):
        assert "Examples:" in self._reply(3)

    def test_fourth_attempt_breaks_down_input_and_mentions_skip(self):
        reply = self._reply(4)
        assert '"sometime in 95"' in reply
        assert "skip" in reply
        assert self._reply(7) == reply
