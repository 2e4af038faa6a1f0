"""Conversation resolver: follow-up detection and prior result recovery.

The catalog ids behind an assistant turn travel on the message itself
(``usedCatalogIds``). Older stored conversations embedded them in the text
as ``[catalog_ids:a,b]``; that marker is still read here and nowhere else.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from phone_advisor.models.contracts import ConversationMessage
from phone_advisor.pipeline.lexicon import Lexicon
from phone_advisor.pipeline.text import contains_any, normalize

_RE_LEGACY_MARKER = re.compile(r"\[catalog_ids:([a-z0-9\-_,]+)\]", re.IGNORECASE)


def is_follow_up(text: str, lexicon: Lexicon) -> bool:
    return contains_any(normalize(text), lexicon.follow_up_phrases)


def _marker_ids(content: str) -> list[str]:
    match = _RE_LEGACY_MARKER.search(content)
    if not match:
        return []
    return [part.strip() for part in match.group(1).split(",") if part.strip()]


def last_used_catalog_ids(history: Sequence[ConversationMessage]) -> list[str]:
    """Ids behind the newest assistant turn that recorded any, else ``[]``.

    The structured field wins over the inline marker on the same message.
    """
    for message in reversed(history):
        if message.role != "assistant":
            continue
        if message.used_catalog_ids:
            return list(dict.fromkeys(i for i in message.used_catalog_ids if i))
        legacy = _marker_ids(message.content)
        if legacy:
            return list(dict.fromkeys(legacy))
    return []


def last_user_message(history: Sequence[ConversationMessage]) -> str:
    for message in reversed(history):
        if message.role == "user":
            return message.content.strip()
    return ""


def strip_markers(content: str) -> str:
    """Remove legacy id markers so they are never forwarded to the model."""
    return _RE_LEGACY_MARKER.sub("", content).strip()
