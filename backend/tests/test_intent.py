"""Tests for the intent parser: budget, OS, brand and feature extraction."""

from __future__ import annotations

import pytest

from phone_advisor.models.contracts import ParsedIntent
from phone_advisor.pipeline.intent import (
    parse,
    parse_brands,
    parse_budget,
    parse_features,
    parse_os,
)


class TestBudgetParsing:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("under 25k", 25000),
            ("₹25,000", 25000),
            ("₹25k phone", 25000),
            ("rs 30k", 30000),
            ("Rs. 18,500 max", 18500),
            ("inr 45000", 45000),
            ("around 15 k", 15000),
            ("under 30000", 30000),
            ("below 1,00,000", 100000),
            ("budget 18000", 18000),
            ("budget of 20,000", 20000),
            ("₹1,29,999", 129999),
            ("under 3k", 3000),
        ],
    )
    def test_recognized_forms(self, text, expected):
        assert parse_budget(text) == expected

    def test_currency_k_wins_over_later_patterns(self):
        assert parse_budget("rs 40k or maybe under 30000") == 40000

    @pytest.mark.parametrize(
        "text",
        ["best camera phone", "phone with 8 gb ram", "4k video recording phone", "", "under k"],
    )
    def test_no_budget(self, text):
        assert parse_budget(text) is None

    def test_zero_is_not_a_budget(self):
        assert parse_budget("₹0") is None


class TestOsParsing:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("I want an iPhone", "iOS"),
            ("apple phone under 60k", "iOS"),
            ("any android phone", "Android"),
            ("andriod with good camera", "Android"),
            ("best camera", None),
        ],
    )
    def test_os(self, text, expected, lexicon):
        assert parse_os(text, lexicon) == expected

    def test_ios_checked_first(self, lexicon):
        assert parse_os("apple or android, not sure", lexicon) == "iOS"


class TestBrandParsing:
    def test_declaration_order_and_dedup(self, lexicon):
        assert parse_brands("pixel or samsung galaxy", lexicon) == ("Samsung", "Google")

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("motrola phone", ("Motorola",)),
            ("one plus nord", ("OnePlus",)),
            ("redmi note", ("Xiaomi",)),
            ("iqoo for gaming", ("Xiaomi", "Vivo")),
        ],
    )
    def test_aliases_and_misspellings(self, text, expected, lexicon):
        assert parse_brands(text, lexicon) == expected

    def test_no_brand(self, lexicon):
        assert parse_brands("good battery", lexicon) is None


class TestShortAliasCollisions:
    """Short aliases stay in the table; these pin the collisions they cause."""

    def test_ss_inside_less(self, lexicon):
        assert parse_brands("less than 20k", lexicon) == ("Samsung",)

    def test_op_inside_top(self, lexicon):
        assert parse_brands("top camera phone", lexicon) == ("OnePlus",)

    def test_mi_inside_premium(self, lexicon):
        assert parse_brands("premium phone", lexicon) == ("Xiaomi",)

    def test_oppo_also_matches_oneplus(self, lexicon):
        assert parse_brands("oppo reno", lexicon) == ("OnePlus", "Oppo")


class TestFeatureParsing:
    def test_multiple_features_in_table_order(self, lexicon):
        assert parse_features("compact phone with 120hz display", lexicon) == ("display", "compact")

    def test_camera_and_battery(self, lexicon):
        assert parse_features("good battery and camera", lexicon) == ("camera", "battery")

    def test_charging_wattage(self, lexicon):
        assert parse_features("needs 67w charging", lexicon) == ("charging",)

    def test_none(self, lexicon):
        assert parse_features("hello", lexicon) is None


class TestParse:
    def test_assembles_all_fields(self, lexicon):
        intent = parse("Samsung under ₹20,000", lexicon)
        assert intent == ParsedIntent(budget=20000, brands=("Samsung",))

    def test_independent_fields(self, lexicon):
        intent = parse("android phone with great camera under 40k", lexicon)
        assert intent.budget == 40000
        assert intent.os_preference == "Android"
        assert intent.features == ("camera",)

    def test_empty_text(self, lexicon):
        assert parse("", lexicon) == ParsedIntent()
