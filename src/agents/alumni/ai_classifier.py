"""
Optional AI intent classifier backed by the MCP `llm.call` tool.

The rule cascade stays the source of truth: anything this returns is
checked against a schema, and the caller falls back to rules on error.
"""
import json
import logging
from typing import NamedTuple

from common.mcp_client import MCPClient

log = logging.getLogger(__name__)

INTENT_RESPONSE_SCHEMA = {
    "type": "object",
    "required": ["intent", "confidence"],
    "properties": {
        "intent": {"type": "string"},
        "confidence": {"type": ["number", "string"]},
        "extracted_terms": {"type": "array", "items": {"type": "string"}},
    },
}

LABEL_CONFIDENCE = {"high": 0.9, "medium": 0.7, "low": 0.4}

SYSTEM_PROMPT = """You classify WhatsApp messages sent to an alumni networking assistant.

Pick exactly one intent:
- SEARCH: the user wants to find people, expertise or help
- FOLLOW_UP_SEARCH: the user wants more or refined results for their previous search
- PROFILE: the user wants to update or complete their profile
- CASUAL: greetings, thanks, small talk, questions about the assistant
- SKIP: the user wants to stop or pause what they are doing
- EMAIL / OTP / NUMERIC: the message is an email address, a 6 digit code, or a list of numbers
- UNKNOWN: none of the above

Return JSON only:
{"intent": "<label>", "confidence": 0.0-1.0, "extracted_terms": ["<search terms>"]}"""


class AIClassification(NamedTuple):
    intent: str
    confidence: float
    extracted_terms: list[str]


class MCPIntentClassifier:
    def __init__(self, mcp: MCPClient, timeout: float = 30):
        self.mcp = mcp
        self.timeout = timeout

    async def classify(self, text: str, context: dict) -> AIClassification:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"Context: {json.dumps(context, default=str)}\nUser message: {text}"},
        ]
        parsed = await self.mcp.llm_structured(
            messages,
            schema=INTENT_RESPONSE_SCHEMA,
            temperature=0.1,
            max_tokens=120,
            timeout=self.timeout,
        )
        intent = str(parsed.get("intent") or "unknown").strip().lower()
        raw = parsed.get("confidence", 0.0)
        if isinstance(raw, str) and raw.lower() in LABEL_CONFIDENCE:
            confidence = LABEL_CONFIDENCE[raw.lower()]
        else:
            try:
                confidence = float(raw)
            except (TypeError, ValueError):
                confidence = 0.0
        confidence = max(0.0, min(1.0, confidence))
        terms = [str(t) for t in parsed.get("extracted_terms") or []]
        log.info(f"[LLM] intent={intent} confidence={confidence:.2f} terms={terms}")
        return AIClassification(intent, confidence, terms)
