"""Intent parser: budget, OS, brand and feature extraction from free text.

Each extractor is independent, works on normalized text and returns None
when nothing matches. There is no cross-field disambiguation: short brand
aliases such as "mi" or "ss" can fire inside unrelated words, and that is
left to the lexicon rather than patched here.
"""

from __future__ import annotations

import math
import re

from phone_advisor.models.contracts import FEATURES, ParsedIntent
from phone_advisor.pipeline.lexicon import Lexicon
from phone_advisor.pipeline.text import contains_any, normalize

_CURRENCY = r"(?:₹|\brs\.?|\binr)"
# "4k video" / "8k recording" describe resolution, not money.
_NOT_RESOLUTION = r"(?!\s*(?:video|recording|display|screen|resolution|res\b))"
_AMOUNT = r"(\d{1,3}\s*k\b" + _NOT_RESOLUTION + r"|\d{1,3}(?:,\d{2,3})+|\d{4,7})"

# Fixed precedence: the first pattern that yields a positive amount wins.
_BUDGET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(_CURRENCY + r"\s*(\d{1,3})\s*k\b"),
    re.compile(_CURRENCY + r"\s*(\d[\d,]*)"),
    re.compile(r"\b(\d{1,3})\s*k\b" + _NOT_RESOLUTION),
    re.compile(r"\b(?:under|below|within|around|upto|up to|less than)\s+" + _AMOUNT),
    re.compile(r"\bbudget(?:\s+of|\s+is|:)?\s+" + _AMOUNT),
)


def _amount_to_int(raw: str, thousands: bool = False) -> int | None:
    compact = raw.replace(",", "").replace(" ", "")
    if compact.endswith("k"):
        compact = compact[:-1]
        thousands = True
    try:
        value = float(compact)
    except ValueError:
        return None
    if thousands:
        value *= 1000
    if not math.isfinite(value) or value <= 0:
        return None
    return int(value)


def parse_budget(text: str) -> int | None:
    t = normalize(text)
    for index, pattern in enumerate(_BUDGET_PATTERNS):
        match = pattern.search(t)
        if not match:
            continue
        # The first and third patterns capture the number in front of a "k".
        amount = _amount_to_int(match.group(1), thousands=index in (0, 2))
        if amount is not None:
            return amount
    return None


def parse_os(text: str, lexicon: Lexicon) -> str | None:
    t = normalize(text)
    # iOS first: "apple" must never fall through to an Android guess.
    for os_name in ("iOS", "Android"):
        if contains_any(t, lexicon.os_keywords.get(os_name, ())):
            return os_name
    return None


def parse_brands(text: str, lexicon: Lexicon) -> tuple[str, ...] | None:
    t = normalize(text)
    matched = [brand for brand, aliases in lexicon.brand_aliases.items() if contains_any(t, aliases)]
    return tuple(dict.fromkeys(matched)) or None


def parse_features(text: str, lexicon: Lexicon) -> tuple[str, ...] | None:
    t = normalize(text)
    matched = [
        feature
        for feature in FEATURES
        if contains_any(t, lexicon.feature_keywords.get(feature, ()))
    ]
    return tuple(matched) or None


def parse(raw_text: str, lexicon: Lexicon) -> ParsedIntent:
    """Run every extractor and assemble one ParsedIntent."""
    return ParsedIntent(
        budget=parse_budget(raw_text),
        brands=parse_brands(raw_text, lexicon),
        os_preference=parse_os(raw_text, lexicon),
        features=parse_features(raw_text, lexicon),
    )
