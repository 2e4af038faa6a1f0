"""Pattern tables for the matchers, loaded once from ``lexicon.json``.

The JSON file is validated with pydantic, every entry is canonicalized the
same way user text is, and the result is exposed as a frozen ``Lexicon``
whose mappings are read-only. Matchers receive the lexicon as data and stay
pure functions of (text, lexicon).
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import get_args

import structlog
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from phone_advisor.config import settings
from phone_advisor.models.contracts import FEATURES, OsType

log = structlog.get_logger("lexicon")

REFUSAL_REASONS: tuple[str, ...] = (
    "unsafe_request",
    "prompt_injection",
    "secrets_request",
    "defamation_or_toxic",
)

_RE_WHITESPACE = re.compile(r"\s+")


def _canonical_entry(entry: str) -> str:
    # Lower-case and collapse runs, but keep edge spaces: " vs " must not match "nvs".
    return _RE_WHITESPACE.sub(" ", entry.lower())


def _canonical_list(entries: list[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for entry in entries:
        canon = _canonical_entry(entry)
        if canon.strip() and canon not in seen:
            seen.append(canon)
    return tuple(seen)


class _LexiconFile(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    brand_aliases: dict[str, list[str]]
    os_keywords: dict[str, list[str]]
    feature_keywords: dict[str, list[str]]
    safety_patterns: dict[str, list[str]]
    domain_keywords: list[str]
    follow_up_phrases: list[str]
    single_pick_phrases: list[str]
    explain_keywords: list[str]
    explain_question_starters: list[str]
    recommend_signals: list[str]
    explain_topics: dict[str, list[str]]
    compare_keywords: list[str]

    @field_validator("os_keywords")
    @classmethod
    def _known_os(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        unknown = set(value) - set(get_args(OsType))
        if unknown:
            raise ValueError(f"unknown OS keys: {sorted(unknown)}")
        return value

    @field_validator("feature_keywords")
    @classmethod
    def _known_features(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        unknown = set(value) - set(FEATURES)
        if unknown:
            raise ValueError(f"unknown feature keys: {sorted(unknown)}")
        return value

    @field_validator("safety_patterns")
    @classmethod
    def _all_reasons(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        if set(value) != set(REFUSAL_REASONS):
            raise ValueError(f"safety patterns must cover exactly {list(REFUSAL_REASONS)}")
        return value


def _frozen_map(raw: dict[str, list[str]]) -> Mapping[str, tuple[str, ...]]:
    return MappingProxyType({key: _canonical_list(values) for key, values in raw.items()})


@dataclass(frozen=True)
class Lexicon:
    """Read-only lookup tables. Mapping iteration order is file order."""

    brand_aliases: Mapping[str, tuple[str, ...]]
    os_keywords: Mapping[str, tuple[str, ...]]
    feature_keywords: Mapping[str, tuple[str, ...]]
    safety_patterns: Mapping[str, tuple[str, ...]]
    domain_keywords: tuple[str, ...]
    follow_up_phrases: tuple[str, ...]
    single_pick_phrases: tuple[str, ...]
    explain_keywords: tuple[str, ...]
    explain_question_starters: tuple[str, ...]
    recommend_signals: tuple[str, ...]
    explain_topics: Mapping[str, tuple[str, ...]]
    compare_keywords: tuple[str, ...]

    @classmethod
    def from_mapping(cls, raw: dict) -> Lexicon:
        parsed = _LexiconFile.model_validate(raw)
        return cls(
            brand_aliases=_frozen_map(parsed.brand_aliases),
            os_keywords=_frozen_map(parsed.os_keywords),
            feature_keywords=_frozen_map(parsed.feature_keywords),
            safety_patterns=_frozen_map(parsed.safety_patterns),
            domain_keywords=_canonical_list(parsed.domain_keywords),
            follow_up_phrases=_canonical_list(parsed.follow_up_phrases),
            single_pick_phrases=_canonical_list(parsed.single_pick_phrases),
            explain_keywords=_canonical_list(parsed.explain_keywords),
            explain_question_starters=_canonical_list(parsed.explain_question_starters),
            recommend_signals=_canonical_list(parsed.recommend_signals),
            explain_topics=_frozen_map(parsed.explain_topics),
            compare_keywords=_canonical_list(parsed.compare_keywords),
        )


@lru_cache(maxsize=4)
def _load(path: Path) -> Lexicon:
    raw = json.loads(path.read_text(encoding="utf-8"))
    lexicon = Lexicon.from_mapping(raw)
    log.info(
        "lexicon_loaded",
        path=str(path),
        brands=len(lexicon.brand_aliases),
        features=len(lexicon.feature_keywords),
    )
    return lexicon


def load_lexicon(path: Path | str | None = None) -> Lexicon:
    """Load and cache the lexicon (defaults to the packaged file)."""
    return _load(Path(path) if path is not None else settings.lexicon_path)


def clear_cache() -> None:
    """Drop cached lexicons. Used in tests."""
    _load.cache_clear()
