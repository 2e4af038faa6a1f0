"""Wire and catalog contracts for the phone advisor.

Every model serializes with camelCase keys (the shape the chat UI and the
external model both speak) and accepts snake_case names when built in code.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

OsType = Literal["Android", "iOS"]
Feature = Literal["camera", "battery", "performance", "display", "charging", "compact", "gaming"]
ChatMode = Literal["recommend", "compare", "explain", "clarify", "refuse"]
Role = Literal["user", "assistant"]

FEATURES: tuple[Feature, ...] = (
    "camera",
    "battery",
    "performance",
    "display",
    "charging",
    "compact",
    "gaming",
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# === Catalog ===


class CatalogItem(_FrozenCamelModel):
    """One phone record. Identity fields are required; specs are optional."""

    id: str = Field(min_length=1)
    brand: str = Field(min_length=1)
    model: str = Field(min_length=1)
    price: int = Field(
        gt=0,
        validation_alias=AliasChoices("priceInr", "price"),
        serialization_alias="priceInr",
    )
    os: OsType

    ram_gb: float | None = None
    storage_gb: int | None = None
    display_inches: float | None = None
    refresh_rate_hz: int | None = None
    battery_mah: int | None = None
    charging_w: int | None = None
    camera_primary_mp: float | None = None
    has_ois: bool | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    summary: str | None = None
    tags: tuple[Feature, ...] = ()

    @property
    def title(self) -> str:
        return f"{self.brand} {self.model}"


# === Intent ===


class ParsedIntent(_FrozenCamelModel):
    """Constraints pulled out of one message. None means unconstrained."""

    budget: int | None = None
    brands: tuple[str, ...] | None = None
    os_preference: OsType | None = None
    features: tuple[Feature, ...] | None = None


# === Conversation ===


class ConversationMessage(_CamelModel):
    role: Role
    content: str
    used_catalog_ids: list[str] | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_meta_ids(cls, data: Any) -> Any:
        """Accept the older ``meta.usedCatalogIds`` nesting."""
        if isinstance(data, dict) and "usedCatalogIds" not in data and "used_catalog_ids" not in data:
            meta = data.get("meta")
            if isinstance(meta, dict) and isinstance(meta.get("usedCatalogIds"), list):
                return {**data, "usedCatalogIds": meta["usedCatalogIds"]}
        return data


class ChatRequest(_CamelModel):
    """Chat turn request: the full ordered history, newest message last.

    ``message`` is the single-field shape older clients send; it is treated
    as a one-message history.
    """

    messages: list[ConversationMessage] = []
    message: str | None = None

    def history(self) -> list[ConversationMessage]:
        if self.messages:
            return list(self.messages)
        if self.message is not None:
            return [ConversationMessage(role="user", content=self.message)]
        return []


# === Response envelope ===


class ProductCard(_FrozenCamelModel):
    """Serialized with ``priceInr``, the key the chat UI renders."""

    id: str
    title: str
    price: int = Field(
        validation_alias=AliasChoices("priceInr", "price"),
        serialization_alias="priceInr",
    )
    highlights: list[str] = []


class ComparisonRow(_FrozenCamelModel):
    label: str
    values: list[str]


class Comparison(_FrozenCamelModel):
    product_ids: list[str]
    headers: list[str]
    rows: list[ComparisonRow]


class ResponseEnvelope(_FrozenCamelModel):
    """The one answer produced per turn, by the model or by the fallback."""

    mode: ChatMode
    message: str
    products: list[ProductCard] | None = None
    comparison: Comparison | None = None
    used_catalog_ids: list[str] | None = None
    error: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# === Search ===


class SearchRequest(_CamelModel):
    query: str
    limit: int = Field(default=5, ge=1, le=20)


# === Errors ===


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
