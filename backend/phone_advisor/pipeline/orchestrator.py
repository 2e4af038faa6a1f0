"""Turn orchestrator: sequences the pipeline stages for one chat turn.

Stages run in a fixed order and any of them may end the turn early:
input check, safety, mode inference, retrieval, follow-up override, pair
resolution, zero-candidate recovery, grounded generation, post-processing.
Each stage returns a new candidate list instead of editing a shared one.

Every path yields exactly one ``ResponseEnvelope``. Model failures fall back
to the deterministic synthesizer; anything unexpected becomes a ``clarify``
envelope with status 500.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from phone_advisor.models.contracts import (
    CatalogItem,
    ChatMode,
    ConversationMessage,
    ParsedIntent,
    ResponseEnvelope,
)
from phone_advisor.pipeline import fallback, intent, ranking, safety
from phone_advisor.pipeline.catalog import PhoneCatalog
from phone_advisor.pipeline.conversation import (
    is_follow_up,
    last_used_catalog_ids,
    last_user_message,
)
from phone_advisor.pipeline.lexicon import Lexicon
from phone_advisor.pipeline.prompt import SYSTEM_INSTRUCTIONS, build_grounding_payload, build_prompt
from phone_advisor.pipeline.resolver import extract_vs_pair, resolve_by_name
from phone_advisor.pipeline.response import grounding_violation, parse_model_output
from phone_advisor.pipeline.text import contains_any, contains_word, format_inr, normalize
from phone_advisor.utils.model_client import TextModel

log = structlog.get_logger("orchestrator")

EMPTY_MESSAGE_REPLY = "Please type a phone-related question (budget, brand, camera, battery etc.)."
UNEXPECTED_ERROR_REPLY = "Something went wrong while answering. Please try again."


@dataclass(frozen=True)
class TurnOutcome:
    envelope: ResponseEnvelope
    status_code: int = 200


def _asks_what_a_topic_is(t: str, lexicon: Lexicon) -> bool:
    """Questions like "what is OIS", as opposed to "what's the best 5g phone under 20k".

    Any shopping signal (a signal word, a budget or an OS) keeps the message a
    recommendation. Brands are left out: short aliases such as "mi" fire
    inside topic words like "dimensity".
    """
    if not contains_any(t, lexicon.explain_question_starters):
        return False
    if not any(contains_word(t, keywords) for keywords in lexicon.explain_topics.values()):
        return False
    if contains_word(t, lexicon.recommend_signals):
        return False
    return intent.parse_budget(t) is None and intent.parse_os(t, lexicon) is None


def infer_mode(text: str, lexicon: Lexicon) -> ChatMode:
    """``explain`` beats ``compare``, which beats the ``recommend`` default."""
    t = normalize(text)
    if contains_any(t, lexicon.explain_keywords) or _asks_what_a_topic_is(t, lexicon):
        return "explain"
    if contains_any(t, lexicon.compare_keywords) or extract_vs_pair(text) is not None:
        return "compare"
    return "recommend"


def wants_single_pick(text: str, lexicon: Lexicon) -> bool:
    return contains_any(normalize(text), lexicon.single_pick_phrases)


def _shortlist_clarify(items: Sequence[CatalogItem]) -> ResponseEnvelope:
    names = ", ".join(item.title for item in items)
    return ResponseEnvelope(
        mode="clarify",
        message=f"Which one do you mean? My last suggestions were: {names}.",
        products=[fallback.product_card(item) for item in items],
        used_catalog_ids=[item.id for item in items],
    )


def _closest_above_budget(item: CatalogItem, parsed: ParsedIntent) -> ResponseEnvelope:
    brands = " or ".join(parsed.brands or ())
    return ResponseEnvelope(
        mode="clarify",
        message=(
            f"I couldn't find a {brands} phone within {format_inr(parsed.budget or 0)} in our "
            f"catalog. The closest option is the {item.title} at {format_inr(item.price)}. "
            "Would you like details on it, or should I look at other brands in your budget?"
        ),
        products=[fallback.product_card(item)],
        used_catalog_ids=[item.id],
    )


class TurnOrchestrator:
    def __init__(
        self,
        catalog: PhoneCatalog,
        lexicon: Lexicon,
        model: TextModel | None = None,
        *,
        candidate_limit: int = 5,
        history_turns: int = 8,
        history_message_chars: int = 600,
    ) -> None:
        self.catalog = catalog
        self.lexicon = lexicon
        self.model = model
        self.candidate_limit = candidate_limit
        self.history_turns = history_turns
        self.history_message_chars = history_message_chars

    @property
    def model_enabled(self) -> bool:
        return self.model is not None

    async def run(self, history: Sequence[ConversationMessage]) -> TurnOutcome:
        try:
            return await self._run(history)
        except Exception as exc:
            log.exception("turn_unexpected_error", error=str(exc))
            envelope = ResponseEnvelope(
                mode="clarify",
                message=UNEXPECTED_ERROR_REPLY,
                error=str(exc) or type(exc).__name__,
            )
            return TurnOutcome(envelope=envelope, status_code=500)

    async def _run(self, history: Sequence[ConversationMessage]) -> TurnOutcome:
        user_text = last_user_message(history)
        if not user_text:
            return TurnOutcome(
                envelope=ResponseEnvelope(mode="clarify", message=EMPTY_MESSAGE_REPLY),
                status_code=400,
            )

        decision = safety.evaluate(user_text, self.lexicon)
        if decision.refused:
            return TurnOutcome(
                envelope=ResponseEnvelope(
                    mode="refuse",
                    message=decision.safe_reply or "",
                    used_catalog_ids=[],
                )
            )

        mode = infer_mode(user_text, self.lexicon)
        log.info("turn_mode_inferred", mode=mode)

        parsed = intent.parse(user_text, self.lexicon)
        ranked = ranking.rank(self.catalog, parsed, self.candidate_limit)
        candidates = [candidate.item for candidate in ranked]
        log.info(
            "turn_candidates_ranked",
            count=len(candidates),
            budget=parsed.budget,
            brands=parsed.brands,
            os=parsed.os_preference,
            features=parsed.features,
        )

        if is_follow_up(user_text, self.lexicon):
            terminal, candidates = self._resolve_follow_up(user_text, history, candidates)
            if terminal is not None:
                return TurnOutcome(envelope=terminal)

        candidates = self._resolve_pair(user_text, candidates)

        if not candidates:
            if mode == "explain":
                envelope = await self._generate(mode, user_text, [], history)
                return TurnOutcome(envelope=self._post_process(envelope, user_text, []))
            return TurnOutcome(envelope=self._recover_empty(parsed))

        envelope = await self._generate(mode, user_text, candidates, history)
        return TurnOutcome(envelope=self._post_process(envelope, user_text, candidates))

    # === Stages ===

    def _resolve_follow_up(
        self,
        user_text: str,
        history: Sequence[ConversationMessage],
        candidates: list[CatalogItem],
    ) -> tuple[ResponseEnvelope | None, list[CatalogItem]]:
        """Terminal envelope, or the (possibly replaced) candidate list."""
        prior = self.catalog.get_many(last_used_catalog_ids(history))

        if len(prior) == 1:
            log.info("turn_follow_up_resolved", outcome="detail", id=prior[0].id)
            return fallback.detail_response(prior[0]), candidates

        if len(prior) > 1:
            picked = resolve_by_name(prior, user_text)
            if picked is not None:
                log.info("turn_follow_up_resolved", outcome="detail", id=picked.id)
                return fallback.detail_response(picked), candidates
            log.info("turn_follow_up_resolved", outcome="shortlist", count=len(prior))
            return _shortlist_clarify(prior), candidates

        named = resolve_by_name(self.catalog, user_text)
        if named is not None:
            log.info("turn_follow_up_resolved", outcome="named", id=named.id)
            return None, [named]
        return None, candidates

    def _resolve_pair(self, user_text: str, candidates: list[CatalogItem]) -> list[CatalogItem]:
        pair = extract_vs_pair(user_text)
        if pair is None:
            return candidates
        left = resolve_by_name(self.catalog, pair[0])
        right = resolve_by_name(self.catalog, pair[1])
        if left is None or right is None or left.id == right.id:
            return candidates
        log.info("turn_pair_resolved", left=left.id, right=right.id)
        return [left, right]

    def _recover_empty(self, parsed: ParsedIntent) -> ResponseEnvelope:
        if parsed.budget is not None and parsed.brands:
            relaxed = ranking.rank(
                self.catalog,
                parsed.model_copy(update={"budget": None}),
                limit=len(self.catalog),
            )
            if relaxed:
                cheapest = min((c.item for c in relaxed), key=lambda item: item.price)
                return _closest_above_budget(cheapest, parsed)
        return fallback.no_match_response()

    async def _generate(
        self,
        mode: ChatMode,
        user_text: str,
        candidates: Sequence[CatalogItem],
        history: Sequence[ConversationMessage],
    ) -> ResponseEnvelope:
        if self.model is None:
            return self._fallback(mode, user_text, candidates, reason="model_disabled")

        payload = build_grounding_payload(
            user_text,
            mode,
            candidates,
            history,
            max_turns=self.history_turns,
            max_chars=self.history_message_chars,
        )
        try:
            raw = await self.model.complete(SYSTEM_INSTRUCTIONS, build_prompt(payload))
        except Exception as exc:
            log.warning("model_call_failed", model=self.model.name, error=str(exc))
            return self._fallback(mode, user_text, candidates, reason="model_call_failed")

        parsed = parse_model_output(raw)
        if parsed.envelope is None:
            log.warning("model_output_invalid", error=parsed.error)
            return self._fallback(mode, user_text, candidates, reason="model_output_invalid")

        violation = grounding_violation(parsed.envelope, [item.id for item in candidates])
        if violation is not None:
            log.warning("model_output_invalid", error=violation)
            return self._fallback(mode, user_text, candidates, reason="model_output_ungrounded")

        return self._with_catalog_facts(parsed.envelope)

    def _fallback(
        self,
        mode: ChatMode,
        user_text: str,
        candidates: Sequence[CatalogItem],
        reason: str,
    ) -> ResponseEnvelope:
        log.info("turn_fallback_used", reason=reason, mode=mode, candidates=len(candidates))
        return fallback.synthesize(mode, user_text, candidates, self.lexicon)

    def _with_catalog_facts(self, envelope: ResponseEnvelope) -> ResponseEnvelope:
        """Card titles and prices always come from the catalog, not the model."""
        if not envelope.products:
            return envelope
        cards = []
        for card in envelope.products:
            item = self.catalog.get(card.id)
            if item is not None:
                card = card.model_copy(update={"title": item.title, "price": item.price})
            cards.append(card)
        return envelope.model_copy(update={"products": cards})

    def _post_process(
        self,
        envelope: ResponseEnvelope,
        user_text: str,
        candidates: Sequence[CatalogItem],
    ) -> ResponseEnvelope:
        if (
            envelope.mode == "recommend"
            and envelope.products
            and len(envelope.products) > 1
            and wants_single_pick(user_text, self.lexicon)
        ):
            first = envelope.products[0]
            envelope = envelope.model_copy(
                update={"products": [first], "comparison": None, "used_catalog_ids": [first.id]}
            )

        if envelope.mode == "explain":
            return envelope.model_copy(update={"used_catalog_ids": []})
        if not envelope.used_catalog_ids:
            return envelope.model_copy(
                update={"used_catalog_ids": [item.id for item in candidates]}
            )
        return envelope
