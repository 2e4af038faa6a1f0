"""Text canonicalization shared by every matcher in the pipeline."""

from __future__ import annotations

import re
from collections.abc import Iterable

_RE_WHITESPACE = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Lower-case, collapse whitespace runs to one space, trim the ends.

    Pure and idempotent. ``None`` and empty input both yield ``""``.
    """
    if not text:
        return ""
    return _RE_WHITESPACE.sub(" ", text.lower()).strip()


def contains_any(normalized_text: str, needles: Iterable[str]) -> bool:
    """True if any (already normalized) needle is a substring of the text."""
    return any(needle in normalized_text for needle in needles)


def contains_word(normalized_text: str, needles: Iterable[str]) -> bool:
    """Like ``contains_any``, but a needle must not sit inside a longer word.

    ``ram`` matches "8gb ram" and not "instagram"; ``hz`` does not match "120hz".
    """
    for needle in needles:
        word = needle.strip()
        if word and re.search(r"(?<!\w)" + re.escape(word) + r"(?!\w)", normalized_text):
            return True
    return False


def format_inr(amount: int | float) -> str:
    """Render a rupee amount with Indian digit grouping: ``₹1,29,999``."""
    rounded = int(round(amount))
    sign = "-" if rounded < 0 else ""
    digits = str(abs(rounded))
    if len(digits) <= 3:
        return f"{sign}₹{digits}"
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return f"{sign}₹{','.join(groups)},{tail}"
