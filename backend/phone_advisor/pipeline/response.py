"""Parse and validate raw model text into a ResponseEnvelope.

Parsing never raises. The result is a ``ParsedModelOutput`` carrying either
a validated envelope or an error string, and the orchestrator consumes it
exactly once.
"""

from __future__ import annotations

import json
import re
from collections.abc import Collection
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from phone_advisor.models.contracts import ResponseEnvelope

_RE_FENCE = re.compile(r"\A```(?:json)?\s*(.*?)\s*(?:```)?\s*\Z", re.DOTALL | re.IGNORECASE)
_DECODER = json.JSONDecoder()


@dataclass(frozen=True)
class ParsedModelOutput:
    envelope: ResponseEnvelope | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.envelope is not None


def strip_code_fence(text: str) -> str:
    """Unwrap ```json ... ``` (one line or several); a missing closing fence is tolerated."""
    text = text.strip()
    match = _RE_FENCE.match(text)
    return match.group(1) if match else text


def extract_json(text: str) -> Any:
    """Decode the whole text, else the first JSON value opening at a ``{``.

    Trailing prose after that value is ignored. Returns None when nothing decodes.
    """
    text = strip_code_fence(text)
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    if start == -1:
        return None
    try:
        value, _end = _DECODER.raw_decode(text, start)
    except json.JSONDecodeError:
        return None
    return value


def parse_model_output(text: str) -> ParsedModelOutput:
    data = extract_json(text or "")
    if not isinstance(data, dict):
        return ParsedModelOutput(error="model output is not a JSON object")

    # ``error`` is ours to set, never the model's.
    data.pop("error", None)
    try:
        envelope = ResponseEnvelope.model_validate(data)
    except ValidationError as exc:
        return ParsedModelOutput(error=f"schema mismatch: {exc.error_count()} error(s)")
    return ParsedModelOutput(envelope=envelope)


def grounding_violation(envelope: ResponseEnvelope, candidate_ids: Collection[str]) -> str | None:
    """Describe the first id the envelope cites outside the candidates, if any."""
    allowed = set(candidate_ids)
    cited: list[str] = [card.id for card in envelope.products or ()]
    if envelope.comparison is not None:
        cited.extend(envelope.comparison.product_ids)
    cited.extend(envelope.used_catalog_ids or ())

    for catalog_id in cited:
        if catalog_id not in allowed:
            return f"ungrounded catalog id: {catalog_id}"
    return None
