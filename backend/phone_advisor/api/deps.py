"""Request-scoped access to the objects built at startup."""

from __future__ import annotations

from fastapi import Request

from phone_advisor.pipeline.orchestrator import TurnOrchestrator


def get_orchestrator(request: Request) -> TurnOrchestrator:
    return request.app.state.orchestrator
