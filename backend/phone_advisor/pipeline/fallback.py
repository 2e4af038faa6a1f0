"""Deterministic, model-free responses built only from catalog facts.

``synthesize`` is pure and total: any mode with any number of candidates
yields a well-formed envelope. Rules apply in order: a single candidate gets
a detail card, ``explain`` gets a canned explanation, ``compare`` gets a
table over at most three phones, and everything else gets up to three cards.
"""

from __future__ import annotations

from collections.abc import Sequence

from phone_advisor.models.contracts import (
    CatalogItem,
    ChatMode,
    Comparison,
    ComparisonRow,
    ProductCard,
    ResponseEnvelope,
)
from phone_advisor.pipeline.lexicon import Lexicon
from phone_advisor.pipeline.text import contains_word, format_inr, normalize

MAX_FALLBACK_PRODUCTS = 3
NOT_LISTED = "not listed"

NO_MATCH_MESSAGE = (
    "I couldn't find a match in the current catalog. Try increasing your budget, removing "
    "brand filters, or tell me your top priority (camera/battery/performance/compact)."
)

EXPLANATIONS: dict[str, str] = {
    "stabilization": (
        "OIS (Optical Image Stabilization) physically moves the lens or sensor to cancel hand "
        "shake, which helps most with low-light photos and handheld shots. EIS (Electronic "
        "Image Stabilization) works in software by cropping and shifting video frames, which "
        "mainly smooths video. Phones with both usually give the steadiest results."
    ),
    "refresh_rate": (
        "Refresh rate is how many times per second the screen redraws, measured in Hz. A "
        "120Hz panel makes scrolling and animations look smoother than 60Hz, and it helps in "
        "supported games. Higher refresh rates can use a little more battery."
    ),
    "battery_capacity": (
        "mAh (milliamp-hours) measures how much charge a battery holds. Around 5000 mAh "
        "typically lasts a full day of mixed use, but real battery life also depends on the "
        "chipset efficiency, display and software."
    ),
    "fast_charging": (
        "Fast charging wattage tells you how quickly power can flow into the battery. "
        "Higher wattage (for example 67W or 80W) refills a phone much faster than 18W or 25W, "
        "but the speed depends on using a compatible charger and cable."
    ),
    "display_panel": (
        "AMOLED and OLED panels light each pixel individually, which gives deep blacks, high "
        "contrast and good outdoor visibility. LCD panels use a backlight and tend to show "
        "greyer blacks. LTPO is an OLED variant that can lower its refresh rate to save power."
    ),
    "memory": (
        "RAM is the phone's working memory. More RAM lets more apps stay open in the "
        "background without reloading. 8 GB is comfortable for most people; heavy gamers and "
        "multitaskers may prefer 12 GB."
    ),
    "storage": (
        "Storage is where apps, photos and videos are kept. 128 GB suits most users, while "
        "256 GB helps if you shoot a lot of video. Faster storage standards such as UFS 3.1 "
        "or 4.0 also make apps open quicker."
    ),
    "megapixels": (
        "Megapixels count the pixels in a photo. More megapixels allow larger crops, but "
        "sensor size, lens quality, stabilization and processing matter more for photo "
        "quality than the megapixel number alone."
    ),
    "five_g": (
        "5G is the newest mobile network generation. It offers faster downloads and lower "
        "latency where coverage exists. Most current phones support it; check that the "
        "phone supports the bands your carrier uses."
    ),
    "chipset": (
        "The chipset (SoC) combines the processor, graphics and modem. It decides how fast "
        "apps run, how well games perform, and how efficiently the battery is used. Newer "
        "chip generations are usually faster and cooler than older ones."
    ),
}

GENERIC_EXPLANATION = (
    "Here's a quick way to think about any phone feature: what it is (the hardware or "
    "software involved), why it matters (the everyday problem it solves), and its impact "
    "(how much difference you would notice at your budget). Tell me the exact feature and I "
    "can explain it in detail."
)


def explain_topic(user_message: str, lexicon: Lexicon) -> str | None:
    """First lexicon topic whose keyword appears in the message."""
    text = normalize(user_message)
    for topic, keywords in lexicon.explain_topics.items():
        if topic in EXPLANATIONS and contains_word(text, keywords):
            return topic
    return None


def _fmt_number(value: float) -> str:
    return f"{value:g}"


def detail_highlights(item: CatalogItem) -> list[str]:
    """Every known spec of the item; absent optional fields say ``not listed``."""

    def spec(label: str, value: object | None, unit: str = "") -> str:
        if value is None:
            return f"{label}: {NOT_LISTED}"
        if isinstance(value, float):
            value = _fmt_number(value)
        return f"{label}: {value}{unit}"

    ois = NOT_LISTED if item.has_ois is None else ("Yes" if item.has_ois else "No")
    return [
        f"Price: {format_inr(item.price)}",
        f"OS: {item.os}",
        spec("RAM", item.ram_gb, " GB"),
        spec("Storage", item.storage_gb, " GB"),
        spec("Display", item.display_inches, '"'),
        spec("Refresh rate", item.refresh_rate_hz, "Hz"),
        spec("Battery", item.battery_mah, " mAh"),
        spec("Charging", item.charging_w, "W"),
        spec("Main camera", item.camera_primary_mp, " MP"),
        f"OIS: {ois}",
        spec("Rating", item.rating, "/5"),
        f"Summary: {item.summary or NOT_LISTED}",
    ]


def card_highlights(item: CatalogItem) -> list[str]:
    return [
        item.summary or "Option from our catalog",
        "OIS available" if item.has_ois else "OIS not listed in our catalog",
        f"Battery: {item.battery_mah} mAh" if item.battery_mah else "Battery not listed",
        f"Charging: {item.charging_w}W" if item.charging_w else "Charging not listed",
    ]


def product_card(item: CatalogItem, highlights: list[str] | None = None) -> ProductCard:
    return ProductCard(
        id=item.id,
        title=item.title,
        price=item.price,
        highlights=card_highlights(item) if highlights is None else highlights,
    )


def detail_response(item: CatalogItem) -> ResponseEnvelope:
    return ResponseEnvelope(
        mode="recommend",
        message=f"Here are the details for the {item.title} from our catalog.",
        products=[product_card(item, detail_highlights(item))],
        used_catalog_ids=[item.id],
    )


def explain_response(user_message: str, lexicon: Lexicon) -> ResponseEnvelope:
    topic = explain_topic(user_message, lexicon)
    message = EXPLANATIONS[topic] if topic else GENERIC_EXPLANATION
    return ResponseEnvelope(mode="explain", message=message, used_catalog_ids=[])


def no_match_response() -> ResponseEnvelope:
    return ResponseEnvelope(mode="clarify", message=NO_MATCH_MESSAGE, used_catalog_ids=[])


def _optional(value: object | None, template: str) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, float):
        value = _fmt_number(value)
    return template.format(value)


def comparison_table(items: Sequence[CatalogItem]) -> Comparison:
    def ois(item: CatalogItem) -> str:
        if item.has_ois is None:
            return "N/A"
        return "Yes" if item.has_ois else "No"

    rows = [
        ("Price", [format_inr(i.price) for i in items]),
        ("OS", [i.os for i in items]),
        ("Display", [_optional(i.display_inches, '{}"') for i in items]),
        ("Refresh Rate", [_optional(i.refresh_rate_hz, "{}Hz") for i in items]),
        ("Battery", [_optional(i.battery_mah, "{} mAh") for i in items]),
        ("Charging", [_optional(i.charging_w, "{}W") for i in items]),
        ("OIS", [ois(i) for i in items]),
    ]
    return Comparison(
        product_ids=[i.id for i in items],
        headers=[i.title for i in items],
        rows=[ComparisonRow(label=label, values=values) for label, values in rows],
    )


def compare_response(candidates: Sequence[CatalogItem]) -> ResponseEnvelope:
    top = list(candidates[:MAX_FALLBACK_PRODUCTS])
    return ResponseEnvelope(
        mode="compare",
        message="Here's a side-by-side comparison from our catalog.",
        products=[product_card(item) for item in top],
        comparison=comparison_table(top),
        used_catalog_ids=[item.id for item in top],
    )


def recommend_response(candidates: Sequence[CatalogItem]) -> ResponseEnvelope:
    top = list(candidates[:MAX_FALLBACK_PRODUCTS])
    return ResponseEnvelope(
        mode="recommend",
        message="Here are the best matches from our catalog.",
        products=[product_card(item) for item in top],
        used_catalog_ids=[item.id for item in top],
    )


def synthesize(
    mode_hint: ChatMode,
    user_message: str,
    candidates: Sequence[CatalogItem],
    lexicon: Lexicon,
) -> ResponseEnvelope:
    if len(candidates) == 1:
        return detail_response(candidates[0])
    if mode_hint == "explain":
        return explain_response(user_message, lexicon)
    if not candidates:
        return no_match_response()
    if mode_hint == "compare":
        return compare_response(candidates)
    return recommend_response(candidates)
