"""
Validators and Normalizers for Profile Fields

Each validator turns raw user text into a normalized field value, or an
error message plus a list of concrete problems found in the literal input.
All functions are pure; the catalogs they read are module constants.
"""
import logging
import re
from datetime import date, datetime
from typing import Any, NamedTuple
from urllib.parse import urlsplit

from .fields import (
    GENDERS, MULTI_SELECT, SINGLE_SELECT, ProfileField,
)

log = logging.getLogger(__name__)

MAX_INPUT_LENGTH = 1000
MIN_BIRTH_YEAR = 1960
MAX_BIRTH_YEAR = 2010

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
NAME_RE = re.compile(r"^[a-zA-Z\s\-.']+$")
FAKE_NAME_RE = re.compile(r"^(test|example|sample|dummy|user|admin)\b", re.IGNORECASE)
GEO_RE = re.compile(r"^[a-zA-Z\s\-.'()]+$")
LINKEDIN_USER_RE = re.compile(r"^[a-zA-Z0-9\-_%.]{2,100}$")
INSTAGRAM_USER_RE = re.compile(r"^[a-zA-Z0-9._]{2,30}$")

NON_ANSWERS = {"no", "none", "skip", "later", "pass", "na", "n/a", "nil", "-"}

YES_ANSWERS = {"yes", "y", "1", "true", "ok", "okay", "sure", "yep", "yeah", "haan", "ha", "ji"}
NO_ANSWERS = {"no", "n", "2", "false", "nope", "nah", "cancel", "nahi", "na"}

GENDER_MAP = {
    "1": "Male", "male": "Male", "m": "Male", "man": "Male",
    "2": "Female", "female": "Female", "f": "Female", "woman": "Female",
    "3": "Others", "other": "Others", "others": "Others", "o": "Others",
    "non-binary": "Others", "nonbinary": "Others",
}

COUNTRY_ALIASES = {
    "usa": "United States", "us": "United States", "america": "United States",
    "united states of america": "United States",
    "uk": "United Kingdom", "england": "United Kingdom", "britain": "United Kingdom",
    "uae": "United Arab Emirates", "bharat": "India", "hindustan": "India",
}

# numeric day/month/year shapes, separators / - or .
_DMY_RE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$")
_YMD_RE = re.compile(r"^(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})$")
_WORDY_DATE_FORMATS = ("%d %B %Y", "%d %b %Y", "%B %d %Y", "%b %d %Y")


class Validation(NamedTuple):
    valid: bool
    value: Any = None
    message: str = ""
    problems: tuple[str, ...] = ()


def _ok(value) -> Validation:
    return Validation(True, value)


def _fail(message: str, *problems: str) -> Validation:
    return Validation(False, None, message, tuple(problems))


def sanitize_input(text: str | None) -> str:
    """Trim, cap length and drop angle brackets."""
    if not text:
        return ""
    return text.strip()[:MAX_INPUT_LENGTH].replace("<", "").replace(">", "")


# ---------- Names & Places ----------
def validate_full_name(raw: str) -> Validation:
    """
    Validate a full name

    Examples:
        "John Doe" → valid, "John Doe"
        "j" → invalid (too short)
        "test user" → invalid (placeholder)
    """
    name = re.sub(r"\s+", " ", sanitize_input(raw))
    if len(name) < 2 or len(name) > 100:
        return _fail(
            "Name should be 2-100 characters long.",
            f"'{name}' has {len(name)} characters; a name needs between 2 and 100.",
        )
    if not NAME_RE.match(name):
        bad = sorted({ch for ch in name if not (ch.isalpha() or ch in " -.'")})
        return _fail(
            "Name should only contain letters, spaces, hyphens, and apostrophes.",
            f"'{name}' contains characters that aren't allowed: {' '.join(bad)}",
        )
    if FAKE_NAME_RE.match(name):
        return _fail(
            "Please enter your real full name.",
            f"'{name}' looks like a placeholder rather than a real name.",
        )
    return _ok(name)


def validate_country(raw: str) -> Validation:
    country = sanitize_input(raw)
    if len(country) < 2 or len(country) > 50:
        return _fail(
            "Country must be 2-50 characters long.",
            f"'{country}' has {len(country)} characters.",
        )
    if not GEO_RE.match(country):
        return _fail(
            "Country should only contain letters, spaces, hyphens, and apostrophes.",
            f"'{country}' contains digits or symbols.",
        )
    alias = COUNTRY_ALIASES.get(country.lower())
    if alias:
        return _ok(alias)
    return _ok(" ".join(w[:1].upper() + w[1:] for w in country.split()))


def validate_address(raw: str) -> Validation:
    """City/town: any non-empty text is accepted."""
    address = sanitize_input(raw)
    if not address:
        return _fail("Please type your city or town name.", "The message was empty.")
    if len(address) > 200:
        return _fail(
            "Please keep your city/town under 200 characters.",
            f"Your answer has {len(address)} characters.",
        )
    return _ok(address)


# ---------- Choices ----------
def validate_gender(raw: str) -> Validation:
    key = sanitize_input(raw).lower().rstrip(".!")
    gender = GENDER_MAP.get(key)
    if gender:
        return _ok(gender)
    return _fail(
        "Please reply with 1 (Male), 2 (Female) or 3 (Others).",
        f"'{sanitize_input(raw)}' is not one of the options {', '.join(GENDERS)}.",
    )


def validate_single_choice(raw: str, options: list[str]) -> Validation:
    """
    Pick one option by its number or by its (case-insensitive) name

    Examples:
        "2", PROFESSIONAL_ROLES → valid, "Student"
        "student" → valid, "Student"
        "9" → invalid (out of range)
    """
    text = sanitize_input(raw).rstrip(".")
    if text.isdigit():
        n = int(text)
        if 1 <= n <= len(options):
            return _ok(options[n - 1])
        return _fail(
            f"Please reply with a number from 1 to {len(options)}.",
            f"{n} is outside the range 1-{len(options)}.",
        )
    matched = next((opt for opt in options if opt.lower() == text.lower()), None)
    if matched:
        return _ok(matched)
    return _fail(
        f"Please reply with a number from 1 to {len(options)}.",
        f"'{text}' is neither a number nor one of the listed options.",
    )


def validate_multiple_choice(raw: str, options: list[str], min_selections: int = 1,
                             max_selections: int | None = None) -> Validation:
    """
    Validate a comma/space separated list of option numbers

    Returns the selected option names in the order given, duplicates removed.

    Examples:
        "1,3" → valid, [options[0], options[2]]
        "1 1 2" → valid, [options[0], options[1]]
        "0, 99" → invalid
    """
    text = sanitize_input(raw)
    max_selections = max_selections or len(options)
    if not text:
        return _fail(
            f"Please select at least {min_selections} option.\n\nFormat: 1,3,5",
            "The message was empty.",
        )

    tokens = [t for t in re.split(r"[,\s]+", text) if t]
    non_numeric = [t for t in tokens if not t.isdigit()]
    if non_numeric:
        return _fail(
            "Please use numbers separated by commas.\n\nExample: 1,4,7",
            f"These parts are not numbers: {', '.join(non_numeric)}",
        )

    numbers: list[int] = []
    for t in tokens:
        n = int(t)
        if n not in numbers:
            numbers.append(n)

    out_of_range = [n for n in numbers if n < 1 or n > len(options)]
    if out_of_range:
        return _fail(
            f"Please choose numbers between 1 and {len(options)}.",
            f"Out of range: {', '.join(str(n) for n in out_of_range)} (valid: 1-{len(options)})",
        )
    if len(numbers) < min_selections:
        return _fail(
            f"Please select at least {min_selections} option(s).",
            f"You picked {len(numbers)}; at least {min_selections} needed.",
        )
    if len(numbers) > max_selections:
        return _fail(
            f"Please select at most {max_selections} option(s).",
            f"You picked {len(numbers)}; at most {max_selections} allowed.",
        )
    return _ok([options[n - 1] for n in numbers])


def validate_yes_no(raw: str) -> Validation:
    key = sanitize_input(raw).lower().rstrip(".!")
    if key in YES_ANSWERS:
        return _ok(True)
    if key in NO_ANSWERS:
        return _ok(False)
    return _fail("Please reply YES or NO.", f"'{sanitize_input(raw)}' is not a yes or a no.")


# ---------- Dates & Numbers ----------
def _parse_date(text: str) -> date | None:
    m = _DMY_RE.match(text)
    if m:
        day, month, year = (int(g) for g in m.groups())
        return date(year, month, day)
    m = _YMD_RE.match(text)
    if m:
        year, month, day = (int(g) for g in m.groups())
        return date(year, month, day)
    cleaned = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", text.replace(",", " "))
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    for fmt in _WORDY_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def validate_date_of_birth(raw: str) -> Validation:
    """
    Validate a date of birth and normalize it to YYYY-MM-DD

    Examples:
        "19/07/1995" → valid, "1995-07-19"
        "1995-07-19" → valid, "1995-07-19"
        "31/02/1995" → invalid (no such date)
        "19/07/2020" → invalid (year out of range)
    """
    text = sanitize_input(raw)
    try:
        parsed = _parse_date(text)
    except ValueError:
        return _fail(
            "That date doesn't exist. Please check the day and month.",
            f"'{text}' is not a real calendar date.",
        )
    if parsed is None:
        return _fail(
            "Please enter your date of birth as DD/MM/YYYY.",
            f"'{text}' doesn't match a date format like DD/MM/YYYY or YYYY-MM-DD.",
        )
    if not MIN_BIRTH_YEAR <= parsed.year <= MAX_BIRTH_YEAR:
        return _fail(
            f"Year must be between {MIN_BIRTH_YEAR} and {MAX_BIRTH_YEAR}.",
            f"The year {parsed.year} is outside {MIN_BIRTH_YEAR}-{MAX_BIRTH_YEAR}.",
        )
    return _ok(parsed.isoformat())


def validate_phone(raw: str) -> Validation:
    """
    Examples:
        "+91 98765 43210" → valid, "+919876543210"
        "919876543210" → valid, "+919876543210"
        "9876543210" → valid, "9876543210"
    """
    text = sanitize_input(raw)
    digits = re.sub(r"\D", "", text)
    if len(digits) < 10 or len(digits) > 15:
        return _fail(
            "Phone number must be 10-15 digits.",
            f"'{text}' has {len(digits)} digits; a phone number needs 10 to 15.",
        )
    letters = re.sub(r"[\d\s+\-().]", "", text)
    if letters:
        return _fail(
            "Phone number should contain only digits (and an optional + country code).",
            f"'{text}' contains unexpected characters: {letters}",
        )
    if text.startswith("+") or len(digits) > 10:
        return _ok("+" + digits)
    return _ok(digits)


# ---------- Links & Email ----------
def validate_email(raw: str) -> Validation:
    text = sanitize_input(raw).lower()
    m = EMAIL_RE.search(text)
    if not m:
        return _fail(
            "Please enter a valid email address.\n\nExample: name@example.com",
            f"'{text}' is missing the name@domain.com shape.",
        )
    return _ok(m.group(0))


def validate_linkedin(raw: str) -> Validation:
    """
    Normalize a LinkedIn profile to https://linkedin.com/in/<handle>

    Re-validating the normalized URL returns it unchanged.

    Examples:
        "johndoe" → valid, "https://linkedin.com/in/johndoe"
        "www.linkedin.com/in/johndoe/?trk=x" → valid, "https://linkedin.com/in/johndoe"
        "https://twitter.com/johndoe" → invalid
    """
    text = sanitize_input(raw)
    if not text or text.lower() in NON_ANSWERS:
        return _fail(
            "Please enter your LinkedIn URL or username.",
            f"'{text}' isn't a LinkedIn link or username.",
        )

    if "linkedin.com" not in text.lower():
        handle = text.lstrip("@")
        if LINKEDIN_USER_RE.match(handle) and "." not in handle.strip("."):
            return _ok(f"https://linkedin.com/in/{handle}")
        return _fail(
            "Please enter your LinkedIn URL or username.",
            f"'{text}' is not a linkedin.com link and has characters a username can't have.",
        )

    url = text if re.match(r"^https?://", text, re.IGNORECASE) else "https://" + text
    parts = urlsplit(url)
    host = parts.netloc.lower()
    if not (host == "linkedin.com" or host.endswith(".linkedin.com")):
        return _fail("URL must be from linkedin.com.", f"The link points to '{host}'.")

    segments = [s for s in parts.path.split("/") if s]
    if len(segments) >= 2 and segments[0].lower() in {"in", "pub"}:
        return _ok(f"https://linkedin.com/in/{segments[1]}")
    if segments:
        # company pages and other paths are kept as given, minus tracking params
        return _ok(f"https://linkedin.com/{'/'.join(segments)}")
    return _fail(
        "Please share your profile link, not just linkedin.com.",
        f"'{text}' has no profile path after linkedin.com.",
    )


def validate_instagram(raw: str) -> Validation:
    """
    Examples:
        "jane.doe" → valid, "https://instagram.com/jane.doe"
        "instagram.com/jane.doe?igsh=x" → valid, "https://instagram.com/jane.doe"
    """
    text = sanitize_input(raw)
    if "instagram.com" not in text.lower():
        handle = text.lstrip("@")
        if INSTAGRAM_USER_RE.match(handle):
            return _ok(f"https://instagram.com/{handle}")
        return _fail(
            "Please enter your Instagram URL or username.",
            f"'{text}' isn't an instagram.com link or a valid username.",
        )

    url = text if re.match(r"^https?://", text, re.IGNORECASE) else "https://" + text
    parts = urlsplit(url)
    host = parts.netloc.lower()
    if not (host == "instagram.com" or host.endswith(".instagram.com")):
        return _fail("URL must be from instagram.com.", f"The link points to '{host}'.")
    segments = [s for s in parts.path.split("/") if s]
    if not segments:
        return _fail(
            "Please share your profile link, not just instagram.com.",
            f"'{text}' has no username after instagram.com.",
        )
    return _ok(f"https://instagram.com/{segments[0]}")


# ---------- Dispatcher ----------
def validate_field(field: ProfileField, raw: str) -> Validation:
    """Validate `raw` for `field` using the matching rule."""
    if field in SINGLE_SELECT:
        result = validate_single_choice(raw, SINGLE_SELECT[field])
    elif field in MULTI_SELECT:
        options, min_n, max_n = MULTI_SELECT[field]
        result = validate_multiple_choice(raw, options, min_n, max_n)
    else:
        validator = _VALIDATORS[field]
        result = validator(raw)

    if result.valid:
        log.info(f"[VALIDATOR] {field.value}: accepted → {result.value!r}")
    else:
        log.info(f"[VALIDATOR] {field.value}: rejected ({result.message.splitlines()[0]})")
    return result


_VALIDATORS = {
    ProfileField.FULL_NAME: validate_full_name,
    ProfileField.GENDER: validate_gender,
    ProfileField.DATE_OF_BIRTH: validate_date_of_birth,
    ProfileField.COUNTRY: validate_country,
    ProfileField.ADDRESS: validate_address,
    ProfileField.PHONE: validate_phone,
    ProfileField.LINKEDIN: validate_linkedin,
    ProfileField.ADDITIONAL_EMAIL: validate_yes_no,
    ProfileField.INSTAGRAM: validate_yes_no,
}
