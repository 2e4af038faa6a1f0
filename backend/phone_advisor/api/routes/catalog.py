"""Read-only catalog endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from phone_advisor.api.deps import get_orchestrator
from phone_advisor.models.contracts import ErrorResponse

router = APIRouter(tags=["catalog"])


def _error(status: int, code: str, message: str, *, retryable: bool = False) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=code, message=message, retryable=retryable).model_dump(
            exclude_none=True
        ),
    )


@router.get("/catalog")
async def list_catalog(request: Request) -> list[dict]:
    catalog = get_orchestrator(request).catalog
    return [item.model_dump(by_alias=True, exclude_none=True) for item in catalog]


@router.get("/catalog/{catalog_id}", response_model=None)
async def get_catalog_item(catalog_id: str, request: Request) -> dict | JSONResponse:
    item = get_orchestrator(request).catalog.get(catalog_id)
    if item is None:
        return _error(404, "catalog_item_not_found", f"No phone with id {catalog_id!r}")
    return item.model_dump(by_alias=True, exclude_none=True)
