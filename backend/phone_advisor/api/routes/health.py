"""Health check endpoint.

Always 200 while the process is up. A disabled model is reported, not
treated as unhealthy: the fallback synthesizer answers every turn then.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from phone_advisor.api.deps import get_orchestrator
from phone_advisor.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    orchestrator = get_orchestrator(request)
    return {
        "status": "ok",
        "version": "0.1.0",
        "environment": settings.environment,
        "catalog_size": len(orchestrator.catalog),
        "model_provider": settings.model_provider,
        "model_enabled": orchestrator.model_enabled,
    }
