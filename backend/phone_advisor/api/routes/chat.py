"""Chat and search endpoints.

Both are thin: the turn orchestrator and the deterministic pipeline do the
work, and the routes only map outcomes to HTTP status codes.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from phone_advisor.api.deps import get_orchestrator
from phone_advisor.models.contracts import ChatRequest, SearchRequest
from phone_advisor.pipeline import intent, ranking, safety

router = APIRouter(tags=["chat"])


@router.post("/chat")
async def chat(body: ChatRequest, request: Request) -> JSONResponse:
    """Answer one chat turn. Always returns a response envelope."""
    orchestrator = get_orchestrator(request)
    outcome = await orchestrator.run(body.history())
    return JSONResponse(status_code=outcome.status_code, content=outcome.envelope.to_wire())


@router.post("/search")
async def search(body: SearchRequest, request: Request) -> dict:
    """Safety-gated catalog retrieval without the external model."""
    orchestrator = get_orchestrator(request)

    decision = safety.evaluate(body.query, orchestrator.lexicon)
    if decision.refused:
        return {
            "query": body.query,
            "refused": {"reason": decision.reason, "safeReply": decision.safe_reply},
            "results": [],
        }

    parsed = intent.parse(body.query, orchestrator.lexicon)
    ranked = ranking.rank(orchestrator.catalog, parsed, body.limit)
    return {
        "query": body.query,
        "intent": parsed.model_dump(by_alias=True),
        "results": ranking.present_results(ranked),
    }
