"""Catalog ranker: strict hard filters, then additive soft scoring.

Every score contribution comes with a short reason string. Reasons are for
display only; nothing downstream branches on them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from phone_advisor.models.contracts import CatalogItem, ParsedIntent
from phone_advisor.pipeline.text import format_inr

WITHIN_BUDGET_POINTS = 10.0
MAX_CLOSENESS_POINTS = 3.0
OS_MATCH_POINTS = 4.0
MAX_RATING_POINTS = 3.0


@dataclass(frozen=True)
class RankedCandidate:
    item: CatalogItem
    score: float
    reasons: tuple[str, ...] = field(default_factory=tuple)


def _passes_hard_filters(item: CatalogItem, intent: ParsedIntent) -> bool:
    if intent.budget is not None and item.price > intent.budget:
        return False
    if intent.brands:
        allowed = {brand.lower() for brand in intent.brands}
        if item.brand.lower() not in allowed:
            return False
    if intent.os_preference is not None and item.os != intent.os_preference:
        return False
    return True


def _feature_points(item: CatalogItem, feature: str) -> list[tuple[float, str]]:
    """Points for one requested feature tag."""
    points: list[tuple[float, str]] = []

    if feature == "camera":
        if "camera" in item.tags:
            points.append((6.0, "Strong camera focus"))
        if item.has_ois:
            points.append((2.0, "Has OIS (stabilization)"))

    elif feature == "battery":
        mah = item.battery_mah or 0
        if mah >= 5500:
            points.append((6.0, "Excellent battery size"))
        elif mah >= 5000:
            points.append((4.0, "Good battery size"))
        elif mah >= 4500:
            points.append((2.0, "Decent battery size"))

    elif feature == "charging":
        watts = item.charging_w or 0
        if watts >= 80:
            points.append((6.0, "Very fast charging"))
        elif watts >= 33:
            points.append((4.0, "Fast charging"))
        elif watts >= 18:
            points.append((2.0, "Standard charging"))

    elif feature == "compact":
        inches = item.display_inches
        if inches is not None and inches <= 6.2:
            points.append((6.0, "Compact / one-hand friendly size"))
        elif inches is not None and inches <= 6.5:
            points.append((3.0, "Relatively manageable size"))

    elif feature == "display":
        hz = item.refresh_rate_hz or 0
        if hz >= 120:
            points.append((4.0, "120Hz smooth display"))
        elif hz >= 90:
            points.append((2.0, "High refresh display"))

    elif feature in ("performance", "gaming"):
        # No chipset data in the catalog; the performance tag is the proxy.
        if "performance" in item.tags:
            points.append((4.0, "Performance-oriented"))
            if feature == "gaming":
                points.append((2.0, "Suitable for gaming (proxy)"))

    return points


def score_item(item: CatalogItem, intent: ParsedIntent) -> tuple[float, list[str]]:
    """Additive score and reasons for one item that already passed the filters."""
    score = 0.0
    reasons: list[str] = []

    if intent.budget is not None and item.price <= intent.budget:
        closeness = 1 - (intent.budget - item.price) / intent.budget
        score += WITHIN_BUDGET_POINTS + max(0.0, min(MAX_CLOSENESS_POINTS, closeness * 3))
        reasons.append("Within budget")

    if intent.os_preference is not None and item.os == intent.os_preference:
        score += OS_MATCH_POINTS
        reasons.append(f"Matches OS preference ({intent.os_preference})")

    for feature in intent.features or ():
        for points, reason in _feature_points(item, feature):
            score += points
            reasons.append(reason)

    if item.rating is not None:
        bonus = max(0.0, min(MAX_RATING_POINTS, (item.rating - 3.5) * 2))
        if bonus > 0:
            score += bonus
            reasons.append(f"Well rated ({item.rating:g}/5)")

    return score, reasons


def rank(items: Iterable[CatalogItem], intent: ParsedIntent, limit: int = 5) -> list[RankedCandidate]:
    """Filter, score and return at most ``limit`` candidates, best first.

    ``sorted`` is stable, so ties keep catalog order.
    """
    scored = []
    for item in items:
        if not _passes_hard_filters(item, intent):
            continue
        score, reasons = score_item(item, intent)
        scored.append(RankedCandidate(item=item, score=score, reasons=tuple(reasons)))

    scored = sorted(scored, key=lambda candidate: candidate.score, reverse=True)
    return scored[: max(limit, 0)]


def present_results(candidates: Iterable[RankedCandidate]) -> list[dict[str, Any]]:
    """Search-endpoint view of ranked candidates."""
    return [
        {
            "id": candidate.item.id,
            "title": candidate.item.title,
            "price": candidate.item.price,
            "priceLabel": format_inr(candidate.item.price),
            "score": round(candidate.score, 2),
            "reasons": list(candidate.reasons),
        }
        for candidate in candidates
    ]
