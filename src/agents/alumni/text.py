"""Small text helpers shared by the intent rules and the follow-up resolver."""
import re

from .messages import ACK_WORDS, FAREWELL_WORDS, GRATITUDE_WORDS, GREETING_WORDS

_PUNCT_RE = re.compile(r"[^\w\s@.,'&+/-]")
_TRAILING_RE = re.compile(r"[!?.,]+$")


def normalize(text: str) -> str:
    """Lowercase, collapse whitespace, drop emoji and stray punctuation."""
    text = _PUNCT_RE.sub(" ", (text or "").lower())
    text = re.sub(r"\s+", " ", text).strip()
    return _TRAILING_RE.sub("", text).strip()


def tokens(text: str) -> list[str]:
    return normalize(text).split()


def contains_phrase(text: str, phrase: str) -> bool:
    """Whole-word match of `phrase` inside already-normalized `text`."""
    return re.search(rf"(?<![\w]){re.escape(phrase)}(?![\w])", text) is not None


def casual_subtype(text: str) -> str | None:
    """Return greeting/gratitude/farewell/acknowledgment when the lexicon matches."""
    norm = normalize(text)
    if not norm:
        return None
    if any(norm == g or norm.startswith(g + " ") for g in GREETING_WORDS):
        return "greeting"
    if any(contains_phrase(norm, g) for g in GRATITUDE_WORDS):
        return "gratitude"
    if any(contains_phrase(norm, f) for f in FAREWELL_WORDS):
        return "farewell"
    if norm in ACK_WORDS:
        return "acknowledgment"
    return None
