"""Read-only phone catalog loaded once at startup."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from pathlib import Path

import structlog
from pydantic import ValidationError

from phone_advisor.models.contracts import CatalogItem

log = structlog.get_logger("catalog")


class CatalogLoadError(RuntimeError):
    """The catalog file is missing, malformed, or has no valid records."""


class PhoneCatalog:
    """Items in file order with an id index. Never mutated after construction."""

    def __init__(self, items: Iterable[CatalogItem]) -> None:
        self._items: tuple[CatalogItem, ...] = tuple(items)
        self._by_id: dict[str, CatalogItem] = {}
        for item in self._items:
            self._by_id.setdefault(item.id, item)

    @property
    def items(self) -> tuple[CatalogItem, ...]:
        return self._items

    def get(self, catalog_id: str) -> CatalogItem | None:
        return self._by_id.get(catalog_id)

    def get_many(self, catalog_ids: Iterable[str]) -> list[CatalogItem]:
        """Known items for the ids, in the given order. Unknown ids are skipped."""
        found = []
        for catalog_id in catalog_ids:
            item = self._by_id.get(catalog_id)
            if item is not None:
                found.append(item)
        return found

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CatalogItem]:
        return iter(self._items)


def parse_records(records: list) -> list[CatalogItem]:
    """Validate raw records, skipping invalid ones and repeated ids."""
    valid: list[CatalogItem] = []
    seen: set[str] = set()
    for index, record in enumerate(records):
        try:
            item = CatalogItem.model_validate(record)
        except ValidationError as exc:
            log.warning("catalog_item_rejected", index=index, errors=exc.error_count())
            continue
        if item.id in seen:
            log.warning("catalog_item_rejected", index=index, reason="duplicate_id", id=item.id)
            continue
        seen.add(item.id)
        valid.append(item)
    return valid


def load_catalog(path: Path | str) -> PhoneCatalog:
    """Load and validate the catalog file. Raises CatalogLoadError when unusable."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise CatalogLoadError(f"catalog file not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogLoadError(f"catalog file unreadable: {path}: {exc}") from exc

    if not isinstance(raw, list):
        raise CatalogLoadError(f"catalog must be a JSON array, got {type(raw).__name__}")

    items = parse_records(raw)
    if not items:
        raise CatalogLoadError("Phone catalog dataset is empty or invalid.")

    log.info("catalog_loaded", path=str(path), items=len(items), rejected=len(raw) - len(items))
    return PhoneCatalog(items)
