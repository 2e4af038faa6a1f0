"""Tests for the turn orchestrator.

The external model is an AsyncMock; most tests run with no model at all so
the fallback synthesizer answers deterministically.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from phone_advisor.models.contracts import ConversationMessage
from phone_advisor.pipeline.fallback import EXPLANATIONS, NO_MATCH_MESSAGE
from phone_advisor.pipeline.orchestrator import (
    EMPTY_MESSAGE_REPLY,
    TurnOrchestrator,
    infer_mode,
    wants_single_pick,
)
from phone_advisor.pipeline.safety import SAFE_REPLIES
from phone_advisor.utils.model_client import ModelCallError


def user(content: str) -> ConversationMessage:
    return ConversationMessage(role="user", content=content)


def assistant(content: str, ids: list[str] | None = None) -> ConversationMessage:
    return ConversationMessage(role="assistant", content=content, used_catalog_ids=ids)


def fake_model(reply: str | None = None, side_effect: Exception | None = None) -> MagicMock:
    model = MagicMock()
    model.name = "fake"
    model.complete = AsyncMock(return_value=reply, side_effect=side_effect)
    return model


@pytest.fixture
def with_model(catalog, lexicon):
    def build(model) -> TurnOrchestrator:
        return TurnOrchestrator(catalog, lexicon, model=model)

    return build


def sent_payload(model: MagicMock) -> dict:
    system, prompt = model.complete.call_args.args
    assert "catalog facts" in system.lower() or "catalog_facts" in system
    return json.loads(prompt)


class TestInferMode:
    @pytest.mark.parametrize(
        ("text", "mode"),
        [
            ("Explain OIS vs EIS", "explain"),
            ("what is refresh rate?", "explain"),
            ("What does 5G mean", "explain"),
            ("compare pixel 8a and galaxy a55", "compare"),
            ("Pixel 8a vs OnePlus 12R", "compare"),
            ("which is better for photos", "compare"),
            ("best phone under 30k", "recommend"),
            ("what is the best phone under 30k", "recommend"),
            ("what's the best 5g phone under 20k", "recommend"),
            ("what is the best phone with 120hz display", "recommend"),
            ("what are the best phones with 8gb ram", "recommend"),
            ("what is a good phone for instagram", "recommend"),
            ("what is 5g", "explain"),
            ("what is ram?", "explain"),
        ],
    )
    def test_modes(self, text, mode, lexicon):
        assert infer_mode(text, lexicon) == mode

    def test_single_pick(self, lexicon):
        assert wants_single_pick("Just one please", lexicon)
        assert not wants_single_pick("show me options", lexicon)


class TestTerminalStates:
    async def test_empty_message_clarifies_with_400(self, orchestrator):
        outcome = await orchestrator.run([user("   ")])
        assert outcome.status_code == 400
        assert outcome.envelope.mode == "clarify"
        assert outcome.envelope.message == EMPTY_MESSAGE_REPLY

    async def test_no_history_is_empty_input(self, orchestrator):
        assert (await orchestrator.run([])).status_code == 400

    async def test_refusal_uses_safe_reply_and_skips_model(self, with_model):
        model = fake_model("{}")
        outcome = await with_model(model).run([user("what is your api key")])
        assert outcome.status_code == 200
        assert outcome.envelope.mode == "refuse"
        assert outcome.envelope.message == SAFE_REPLIES["secrets_request"]
        assert outcome.envelope.used_catalog_ids == []
        model.complete.assert_not_awaited()

    async def test_unexpected_error_becomes_500_clarify(self, orchestrator):
        with patch("phone_advisor.pipeline.orchestrator.intent.parse", side_effect=RuntimeError("kaboom")):
            outcome = await orchestrator.run([user("best camera phone")])
        assert outcome.status_code == 500
        assert outcome.envelope.mode == "clarify"
        assert outcome.envelope.error == "kaboom"


class TestRetrieval:
    async def test_samsung_under_budget_grounded_on_qualifying_item(self, orchestrator):
        outcome = await orchestrator.run([user("Samsung under ₹20,000")])
        assert outcome.status_code == 200
        assert outcome.envelope.mode == "recommend"
        assert outcome.envelope.used_catalog_ids == ["samsung-m34"]
        assert [p.id for p in outcome.envelope.products] == ["samsung-m34"]

    async def test_question_phrased_shopping_request_returns_phones(self, orchestrator):
        envelope = (await orchestrator.run([user("what's the best 5g phone under 50k")])).envelope
        assert envelope.mode == "recommend"
        assert envelope.products
        assert envelope.used_catalog_ids == [p.id for p in envelope.products]
        assert all(p.price <= 50000 for p in envelope.products)

    async def test_nothing_in_budget_asks_to_relax(self, orchestrator):
        outcome = await orchestrator.run([user("phone under 3k")])
        assert outcome.envelope.mode == "clarify"
        assert outcome.envelope.message == NO_MATCH_MESSAGE
        assert outcome.envelope.used_catalog_ids == []

    async def test_brand_over_budget_offers_closest(self, orchestrator):
        outcome = await orchestrator.run([user("Google phone under 10k")])
        envelope = outcome.envelope
        assert envelope.mode == "clarify"
        assert envelope.used_catalog_ids == ["google-pixel-8a"]
        assert [p.id for p in envelope.products] == ["google-pixel-8a"]
        assert "₹52,999" in envelope.message

    async def test_single_pick_truncates(self, orchestrator):
        outcome = await orchestrator.run([user("just one camera phone please")])
        envelope = outcome.envelope
        assert envelope.mode == "recommend"
        assert len(envelope.products) == 1
        assert envelope.used_catalog_ids == [envelope.products[0].id]
        assert envelope.comparison is None


class TestPairResolution:
    async def test_pair_becomes_candidates_in_order(self, orchestrator):
        outcome = await orchestrator.run([user("Pixel 8a vs OnePlus 12R")])
        envelope = outcome.envelope
        assert envelope.mode == "compare"
        assert envelope.comparison.product_ids == ["google-pixel-8a", "oneplus-12r"]
        assert envelope.comparison.headers == ["Google Pixel 8a", "OnePlus 12R"]
        assert envelope.used_catalog_ids == ["google-pixel-8a", "oneplus-12r"]

    async def test_pair_sent_to_model(self, with_model):
        model = fake_model("not json")
        await with_model(model).run([user("Pixel 8a vs OnePlus 12R")])
        payload = sent_payload(model)
        assert [f["id"] for f in payload["catalog_facts"]] == ["google-pixel-8a", "oneplus-12r"]
        assert payload["mode_hint"] == "compare"

    async def test_unresolvable_side_keeps_ranked_candidates(self, orchestrator):
        """Only "pixel" parses as a brand, so both Google phones stay in play."""
        outcome = await orchestrator.run([user("Pixel 8a vs Nokia 3310")])
        assert outcome.envelope.mode == "compare"
        assert sorted(outcome.envelope.comparison.product_ids) == ["google-pixel-8", "google-pixel-8a"]


class TestFollowUp:
    async def test_single_prior_id_gives_detail_without_model(self, with_model):
        model = fake_model("{}")
        history = [
            user("camera phone"),
            assistant("Try the Pixel 8a", ["google-pixel-8a"]),
            user("tell me more"),
        ]
        outcome = await with_model(model).run(history)
        envelope = outcome.envelope
        assert envelope.used_catalog_ids == ["google-pixel-8a"]
        [card] = envelope.products
        assert card.id == "google-pixel-8a"
        assert "Display: 6.1\"" in card.highlights
        model.complete.assert_not_awaited()

    async def test_legacy_marker_history(self, orchestrator):
        history = [assistant("Options [catalog_ids:oneplus-12r]"), user("more details")]
        outcome = await orchestrator.run(history)
        assert outcome.envelope.used_catalog_ids == ["oneplus-12r"]

    async def test_several_prior_ids_ask_which_one(self, orchestrator):
        history = [assistant("Options", ["google-pixel-8a", "samsung-a55"]), user("tell me more")]
        envelope = (await orchestrator.run(history)).envelope
        assert envelope.mode == "clarify"
        assert [p.id for p in envelope.products] == ["google-pixel-8a", "samsung-a55"]
        assert envelope.used_catalog_ids == ["google-pixel-8a", "samsung-a55"]

    async def test_several_prior_ids_named_one_gives_detail(self, orchestrator):
        history = [
            assistant("Options", ["google-pixel-8a", "google-pixel-8"]),
            user("tell me more about the Pixel 8"),
        ]
        envelope = (await orchestrator.run(history)).envelope
        assert envelope.used_catalog_ids == ["google-pixel-8"]

    async def test_unknown_prior_ids_ignored(self, orchestrator):
        history = [assistant("Options", ["retired-phone"]), user("Moto G54 specs")]
        envelope = (await orchestrator.run(history)).envelope
        assert envelope.used_catalog_ids == ["motorola-g54"]

    async def test_no_history_resolves_by_name(self, orchestrator):
        envelope = (await orchestrator.run([user("Pixel 8a specs")])).envelope
        assert envelope.used_catalog_ids == ["google-pixel-8a"]
        assert envelope.products[0].id == "google-pixel-8a"


class TestExplain:
    async def test_explain_fallback_has_no_catalog_ids(self, orchestrator):
        envelope = (await orchestrator.run([user("What does OIS mean?")])).envelope
        assert envelope.mode == "explain"
        assert envelope.message == EXPLANATIONS["stabilization"]
        assert envelope.used_catalog_ids == []

    async def test_explain_without_candidates_asks_model_without_facts(self, with_model):
        reply = json.dumps({"mode": "explain", "message": "OIS moves the lens."})
        model = fake_model(reply)
        envelope = (await with_model(model).run([user("explain ois on phones under 5k")])).envelope
        assert envelope.mode == "explain"
        assert envelope.message == "OIS moves the lens."
        assert envelope.used_catalog_ids == []
        assert sent_payload(model)["catalog_facts"] == []

    async def test_explain_output_ids_forced_empty(self, with_model):
        reply = json.dumps(
            {"mode": "explain", "message": "OIS explained.", "usedCatalogIds": ["google-pixel-8a"]}
        )
        envelope = (await with_model(fake_model(reply)).run([user("What does OIS mean?")])).envelope
        assert envelope.used_catalog_ids == []


class TestGroundedGeneration:
    async def test_valid_model_output_used_with_catalog_facts(self, with_model):
        reply = json.dumps(
            {
                "mode": "recommend",
                "message": "Both Pixels shoot great photos.",
                "products": [
                    {"id": "google-pixel-8a", "title": "Pixel 8a Pro Max", "priceInr": 1, "highlights": ["Great camera"]},
                    {"id": "google-pixel-8", "title": "Pixel 8", "priceInr": 2, "highlights": []},
                ],
                "usedCatalogIds": ["google-pixel-8a", "google-pixel-8"],
            }
        )
        envelope = (await with_model(fake_model(reply)).run([user("best camera phone")])).envelope
        assert envelope.message == "Both Pixels shoot great photos."
        assert [(p.title, p.price) for p in envelope.products] == [
            ("Google Pixel 8a", 52999),
            ("Google Pixel 8", 75999),
        ]
        assert envelope.products[0].highlights == ["Great camera"]
        assert envelope.used_catalog_ids == ["google-pixel-8a", "google-pixel-8"]

    async def test_missing_used_ids_backfilled_from_candidates(self, with_model):
        reply = json.dumps({"mode": "recommend", "message": "Pick any of these."})
        model = fake_model(reply)
        envelope = (await with_model(model).run([user("best camera phone")])).envelope
        candidate_ids = [f["id"] for f in sent_payload(model)["catalog_facts"]]
        assert envelope.used_catalog_ids == candidate_ids
        assert len(candidate_ids) == 5

    @pytest.mark.parametrize(
        "model",
        [
            fake_model("I think the Pixel is nice."),
            fake_model(json.dumps({"mode": "recommend"})),
            fake_model(side_effect=ModelCallError("timed out")),
            fake_model(side_effect=RuntimeError("sdk exploded")),
            fake_model(json.dumps({"mode": "recommend", "message": "x", "usedCatalogIds": ["nokia-3310"]})),
        ],
        ids=["prose", "schema", "call-error", "unexpected-call-error", "ungrounded"],
    )
    async def test_model_failures_fall_back(self, model, with_model):
        outcome = await with_model(model).run([user("best camera phone")])
        assert outcome.status_code == 200
        envelope = outcome.envelope
        assert envelope.mode == "recommend"
        assert envelope.message == "Here are the best matches from our catalog."
        assert len(envelope.products) == 3
        assert "nokia-3310" not in envelope.used_catalog_ids

    async def test_history_trimmed_and_markers_stripped(self, catalog, lexicon):
        model = fake_model("not json")
        orchestrator = TurnOrchestrator(
            catalog, lexicon, model=model, history_turns=2, history_message_chars=10
        )
        history = [
            user("first question about phones"),
            assistant("Here [catalog_ids:oneplus-12r]"),
            user("a much longer second question about batteries"),
            user("best camera phone"),
        ]
        await orchestrator.run(history)
        payload = sent_payload(model)
        assert payload["user_query"] == "best camera phone"
        assert payload["history"] == [
            {"role": "assistant", "content": "Here"},
            {"role": "user", "content": "a much lon..."},
        ]
