"""
Message Templates for the Alumni Network Agent

All conversational messages are defined here for easy modification and consistency.
Word lists used by the intent rules live here too.
"""
from .fields import (
    COMMUNITY_ASKS, COMMUNITY_GIVES, DISPLAY_NAMES, DOMAINS, FIELD_EXAMPLES,
    PROFESSIONAL_ROLES, YATRA_IMPACT, ProfileField, options_list,
)

# ---------- Accepted Response Variations ----------
YES_WORDS = {"yes", "y", "yeah", "yep", "yup", "sure", "ok", "okay", "alright",
             "correct", "right", "haan", "han", "ha", "ji", "haanji", "theek hai"}

NO_WORDS = {"no", "n", "nope", "nah", "wrong", "incorrect", "nahi", "nahin", "na", "no thanks"}

STRONG_SKIP_WORDS = {"stop", "cancel", "quit", "exit"}

SKIP_WORDS = {"skip", "later", "maybe later", "not now", "pause", "next time",
              "not interested", "hold on", "postpone", "defer"} | STRONG_SKIP_WORDS

GREETING_WORDS = {"hi", "hii", "hey", "hello", "helo", "good morning", "good afternoon",
                  "good evening", "namaste", "namaskar"}

GRATITUDE_WORDS = {"thanks", "thank you", "thankyou", "thx", "ty", "appreciate", "grateful", "dhanyavad"}

FAREWELL_WORDS = {"bye", "goodbye", "see you", "talk later", "take care", "farewell", "good night"}

ACK_WORDS = {"cool", "nice", "great", "awesome", "good", "fine", "got it", "noted", "perfect"}


# ---------- Entry & Status ----------
UNREGISTERED = """Hi! 👋 This number isn't linked to an alumni profile yet.

Please register with the email you used for the Yatra, then message us again from this number."""

PROFILE_LOCKED = """📋 *Profile Completion Needed*

Hi {name}! Search opens up once your profile is complete.

Missing {missing} field(s). Let's continue:

*Step {step} of {total}:* {display}

{prompt}"""

GREETING_RESUME = """Welcome back, {name}! 👋

Your profile is {pct}% complete. Let's finish it so you can search the network.

*Step {step} of {total}:* {display}

{prompt}"""

UPDATE_START = """Sure, let's update your profile.

*Step {step} of {total}:* {display}

{prompt}"""

PROFILE_ALREADY_COMPLETE = """✅ Your profile is complete and search is unlocked.

What expertise are you looking for today?"""

GREETING_COMPLETE = """Hi {name}! 👋

🔓 You're connected to the alumni network. What expertise are you looking for today?

*Popular searches:*
• "React developers in Bangalore"
• "fintech startup founders"
• "healthcare entrepreneurs"

Or describe what you need help with!"""

PROFILE_STATUS_FOOTER = """

📋 Profile {pct}% complete. Type "complete profile" to finish it and unlock search."""


# ---------- Wizard ----------
FIELD_SAVED = """✅ *{display} Saved!*

📊 *Progress:* {step}/{total} ({pct}%)"""

NEXT_STEP = """

*Step {step} of {total}:* {display}

{prompt}"""

PROFILE_COMPLETED = """🎉 *Profile Complete!*

✅ All fields completed (100%)
🔓 Search is now available!

What expertise are you looking for today?"""

PROFILE_PAUSED = """⏸️ *Profile Update Paused*

Progress: {filled}/{total} required fields completed ({pct}%)

When ready to continue, type:
• "complete profile"
• "update profile"

What can I help you with in the meantime?"""

NOTHING_TO_SKIP = """No problem. What can I help you with?"""

SAVE_FAILED = """❌ *Couldn't save your {display}*

Something went wrong on our side. Please send it again.

{prompt}"""

FIELD_STILL_IN_PROGRESS = """We're in the middle of your profile update.

*Current field:* {display}

{prompt}

Type "skip" to pause and come back later."""

ADDITIONAL_EMAIL_PROMPT = """📧 Please type the additional email address you'd like to link."""

ADDITIONAL_EMAIL_IS_PRIMARY = """That's already your primary email. Please share a different address, or type "skip"."""

ADDITIONAL_EMAIL_TAKEN = """That email is already linked to another account. Please share a different address, or type "skip"."""

INSTAGRAM_URL_PROMPT = """📸 Please share your Instagram profile link or username."""


# ---------- Field Prompts ----------
FIELD_PROMPTS = {
    ProfileField.FULL_NAME: "Please enter your full name:\n\nExample: Priya Sharma",
    ProfileField.GENDER: "Select your gender:\n\n1. Male\n2. Female\n3. Others\n\nReply with: 1, 2, or 3",
    ProfileField.PROFESSIONAL_ROLE: (
        f"Select your professional role:\n\n{options_list(PROFESSIONAL_ROLES)}\n\n"
        f"Reply with: 1-{len(PROFESSIONAL_ROLES)}"
    ),
    ProfileField.DATE_OF_BIRTH: (
        "Enter your date of birth:\n\nAny of these formats works:\n"
        "• 19/07/1995\n• 19 July 1995\n• 1995-07-19"
    ),
    ProfileField.COUNTRY: "Enter your country:\n\nExample: India",
    ProfileField.ADDRESS: "Enter your city/town:\n\nJust type your city or town name.",
    ProfileField.PHONE: (
        "Enter your phone number with country code:\n\n"
        "Examples:\n+91 9876543210\n+1 2025551234"
    ),
    ProfileField.LINKEDIN: (
        "Enter your LinkedIn profile:\n\n"
        "• https://linkedin.com/in/yourname\n• linkedin.com/in/yourname\n• yourname"
    ),
    ProfileField.DOMAIN: f"Select your industry domain:\n\n{options_list(DOMAINS)}\n\nReply with: 1-{len(DOMAINS)}",
    ProfileField.YATRA_IMPACT: (
        f"How did the Yatra help you? (Select 1-3)\n\n{options_list(YATRA_IMPACT)}\n\n"
        "Examples:\n• Single: 1\n• Multiple: 1,2"
    ),
    ProfileField.COMMUNITY_ASKS: (
        f"What support do you need from the community?\n(Select 1 or more)\n\n{options_list(COMMUNITY_ASKS)}\n\n"
        "Example: 1,3,5"
    ),
    ProfileField.COMMUNITY_GIVES: (
        f"What can you contribute to the community?\n(Select 1 or more)\n\n{options_list(COMMUNITY_GIVES)}\n\n"
        "Example: 1,3,5,7"
    ),
    ProfileField.ADDITIONAL_EMAIL: "Add another email address?\n\nReply: YES or NO\n\n(Helps other alumni find you)",
    ProfileField.INSTAGRAM: "Do you have Instagram to share?\n\nReply: YES or NO\n\n(This helps with networking)",
}


# ---------- Search ----------
SEARCH_EMPTY_QUERY = """What kind of expertise are you looking for?

Example: "React developers in Pune" or "mentors in fintech\""""

NO_RESULTS = """I couldn't find matching profiles for "{query}"."""

NO_RESULTS_SUGGEST = """

You often look for *{interest}*. Try a broader search, like "{interest} professionals"."""

NO_MORE_RESULTS = """That's everyone I could find for "{query}". Try a new search or a different angle."""

FOLLOW_UP_PREFIXES = {
    "senior": "Here are more senior professionals based on your search:\n\n",
    "junior": "Here are junior/entry-level professionals:\n\n",
    "startup": "Here are professionals with startup experience:\n\n",
    "location": "Here are professionals near you:\n\n",
    "exclude_previous": "Here are different profiles from your last search:\n\n",
    "next_batch": "Here are more profiles matching your criteria:\n\n",
}

FOLLOW_UP_DEFAULT_PREFIX = "Based on your previous search, here are additional profiles:\n\n"


# ---------- Casual ----------
CASUAL_REPLIES = {
    "gratitude": "You're welcome! 😊 Anything else I can help you find?",
    "farewell": "Take care! 👋 Message me anytime you need to find someone.",
    "acknowledgment": "👍 Anything else I can help you with?",
    "generic": """I can help you find people in the alumni network.

Try something like "looking for a mentor in agritech" or "anyone from Pune?\"""",
}

AFFIRMATIVE_IDLE = """👍 Great! What are you looking for today?"""

NEGATIVE_IDLE = """No problem. Message me whenever you need something."""

NUMBERS_IDLE = """I wasn't expecting a selection just now. Tell me what you're looking for, or type "update profile"."""

ALREADY_VERIFIED = """Your account is already verified ✅ No need to send an email or code."""


# ---------- Errors & Denials ----------
APOLOGY_GENERIC = "Sorry, something went wrong on our side. Please try again in a moment."

APOLOGY_SEARCH = "Sorry, search is temporarily unavailable. Please try again in a few minutes."

PLEASE_RESEND = "Sorry, I couldn't save that. Please send your last message again."

RATE_LIMIT_MESSAGES = {
    "daily_limit_exceeded": """⏰ *Daily search limit reached*

You've used all {limit} searches for today. Your limit resets at midnight.""",
    "user_cooldown": """⏳ Please wait {minutes} minute(s) before searching again.""",
    "rapid_fire_searches": """🐢 That's a lot of searches in a short time. Please take a {minutes} minute break.""",
    "duplicate_queries": """🔁 You've repeated the same search several times. Please try again in {minutes} minute(s), or rephrase it.""",
}


# ---------- Retry Tiers ----------
RETRY_TIER_2 = """❌ {message}

Example: {example}"""

RETRY_TIER_3 = """❌ {message}

Examples:
{examples}"""

RETRY_TIER_4 = """❌ Let's sort out your *{display}*.

What I received: "{raw}"
{problems}

Examples that work:
{examples}

Type "skip" to pause and finish later."""


def format_message(template: str, **kwargs) -> str:
    """
    Format a message template with provided data

    Args:
        template: Message template string
        **kwargs: Data to fill into template

    Returns:
        Formatted message string
    """
    defaults = {
        "name": "there",
        "pct": 0,
        "minutes": 1,
    }
    data = {**defaults, **kwargs}
    return template.format(**data)


def field_prompt(field: ProfileField) -> str:
    return FIELD_PROMPTS.get(field, f"Please provide your {DISPLAY_NAMES[field]}:")


def retry_message(field: ProfileField, attempt: int, message: str, raw: str,
                  problems: tuple[str, ...] = (), *, examples: list[str] | None = None,
                  prompt: str | None = None, display: str | None = None) -> str:
    """
    Build an error reply whose detail grows with the attempt count

    Tier 1 restates the rule, tier 2 adds one example, tier 3 several,
    tier 4 and beyond break down the literal input and mention skip.
    """
    if examples is None:
        examples = FIELD_EXAMPLES.get(field) or []
    tier = min(max(attempt, 1), 4)

    if tier == 1:
        return f"❌ {message}\n\n{prompt or field_prompt(field)}"
    if tier == 2 and examples:
        return format_message(RETRY_TIER_2, message=message, example=examples[0])
    bullets = "\n".join(f"• {ex}" for ex in examples)
    if tier == 3 and examples:
        return format_message(RETRY_TIER_3, message=message, examples=bullets)
    breakdown = "\n".join(f"• {p}" for p in problems) or f"• {message}"
    return format_message(
        RETRY_TIER_4,
        display=display or DISPLAY_NAMES[field],
        raw=(raw or "").strip()[:200],
        problems=breakdown,
        examples=bullets,
    )
