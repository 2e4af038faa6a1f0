"""Free-text phone name resolution and "A vs B" pair extraction."""

from __future__ import annotations

import re
from collections.abc import Iterable

from phone_advisor.models.contracts import CatalogItem
from phone_advisor.pipeline.text import normalize

# Below this a match is usually a brand name alone or a short generic word.
MIN_NAME_SCORE = 30

_RE_VS = re.compile(r"(.+?)\s+(?:vs|versus)\.?\s+(.+)", re.IGNORECASE)
_RE_WHITESPACE = re.compile(r"\s+")


def extract_vs_pair(text: str) -> tuple[str, str] | None:
    """Split on the first ``vs``/``versus``; both sides trimmed and non-empty."""
    compact = _RE_WHITESPACE.sub(" ", text or "").strip()
    match = _RE_VS.search(compact)
    if not match:
        return None
    left, right = match.group(1).strip(), match.group(2).strip()
    if not left or not right:
        return None
    return left, right


def name_score(item: CatalogItem, query: str) -> int:
    q = normalize(query)
    full = normalize(item.title)
    model = normalize(item.model)
    brand = normalize(item.brand)

    score = 0
    if q == full:
        score += 100
    if full in q:
        score += 70
    if model in q:
        score += 50
    if brand in q:
        score += 10
    return score


def resolve_by_name(items: Iterable[CatalogItem], name: str) -> CatalogItem | None:
    """Best-scoring item for ``name``, or None under the confidence threshold.

    Ties go to the longer model name ("Pixel 8a" over "Pixel 8"), then to
    catalog order.
    """
    best: CatalogItem | None = None
    best_key: tuple[int, int] = (0, 0)
    for item in items:
        key = (name_score(item, name), len(item.model))
        if key[0] >= MIN_NAME_SCORE and key > best_key:
            best, best_key = item, key
    return best
