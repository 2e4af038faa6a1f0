"""Safety gate: a deterministic, priority-ordered refusal decision.

Pattern classes are checked in a fixed order and the first hit wins:
unsafe content, prompt injection, secrets, toxic language, then off-topic.
Refusal replies are canned per reason and never echo user input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import structlog

from phone_advisor.pipeline.lexicon import REFUSAL_REASONS, Lexicon
from phone_advisor.pipeline.text import contains_any, normalize

log = structlog.get_logger("safety")

RefusalReason = Literal[
    "unsafe_request",
    "prompt_injection",
    "secrets_request",
    "defamation_or_toxic",
    "irrelevant",
]

# Messages at or below this many normalized characters are never off-topic.
OFF_TOPIC_MIN_CHARS = 20

SAFE_REPLIES: dict[str, str] = {
    "unsafe_request": (
        "I can't help with unsafe or harmful requests. If you have a question about "
        "mobile phones, I can help you compare models, features, and prices."
    ),
    "prompt_injection": (
        "I can't share hidden instructions or internal prompts. I can help with phone "
        "recommendations, comparisons, and feature explanations instead."
    ),
    "secrets_request": (
        "I can't help with requests for secrets like API keys or credentials. I can help "
        "you with phone recommendations and comparisons."
    ),
    "defamation_or_toxic": (
        "I can't insult or attack brands or people. If you tell me your budget and "
        "priorities, I can compare options neutrally and explain trade-offs."
    ),
    "irrelevant": (
        "I'm here to help with mobile phone shopping: recommendations, comparisons, and "
        "feature explanations. What's your budget and top priority "
        "(camera/battery/performance/compact)?"
    ),
}


@dataclass(frozen=True)
class SafetyDecision:
    action: Literal["allow", "refuse"]
    reason: RefusalReason | None = None
    safe_reply: str | None = None

    @property
    def refused(self) -> bool:
        return self.action == "refuse"


ALLOW = SafetyDecision(action="allow")


def _refuse(reason: RefusalReason) -> SafetyDecision:
    log.info("safety_refused", reason=reason)
    return SafetyDecision(action="refuse", reason=reason, safe_reply=SAFE_REPLIES[reason])


def evaluate(user_text: str, lexicon: Lexicon) -> SafetyDecision:
    """Return ``allow`` or the first matching ``refuse`` decision."""
    text = normalize(user_text)

    for reason in REFUSAL_REASONS:
        if contains_any(text, lexicon.safety_patterns[reason]):
            return _refuse(reason)  # type: ignore[arg-type]

    if len(text) > OFF_TOPIC_MIN_CHARS and not contains_any(text, lexicon.domain_keywords):
        return _refuse("irrelevant")

    return ALLOW
