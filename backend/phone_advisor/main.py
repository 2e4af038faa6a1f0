import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from phone_advisor.api.routes import catalog, chat, health
from phone_advisor.config import settings
from phone_advisor.logging import configure_logging
from phone_advisor.models.contracts import ErrorResponse
from phone_advisor.pipeline.catalog import load_catalog
from phone_advisor.pipeline.lexicon import load_lexicon
from phone_advisor.pipeline.orchestrator import TurnOrchestrator
from phone_advisor.utils.model_client import build_text_model

configure_logging()

logger = structlog.get_logger()


def build_orchestrator() -> TurnOrchestrator:
    """Load the static data and the model client. Raises CatalogLoadError on a bad catalog."""
    return TurnOrchestrator(
        catalog=load_catalog(settings.catalog_path),
        lexicon=load_lexicon(settings.lexicon_path),
        model=build_text_model(settings),
        candidate_limit=settings.candidate_limit,
        history_turns=settings.history_turns,
        history_message_chars=settings.history_message_chars,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Fail fast: a process without a usable catalog must not start serving.
    app.state.orchestrator = build_orchestrator()
    logger.info(
        "app_started",
        environment=settings.environment,
        catalog_size=len(app.state.orchestrator.catalog),
        model_enabled=app.state.orchestrator.model_enabled,
    )
    yield


app = FastAPI(
    title="Phone Advisor API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a unique request ID to every request for log correlation.

    Sets the ID in structlog context vars (appears in all log entries for the
    request) and returns it in the X-Request-ID response header.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", request.headers.get("X-Request-ID", ""))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return ErrorResponse JSON for request validation errors.

    FastAPI's default 422 body is {"detail": [...]}; clients get one error shape instead.
    """
    messages = []
    for err in exc.errors():
        loc = " -> ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    body = ErrorResponse(
        error="validation_error",
        message="Request does not match the expected schema",
        retryable=False,
        detail="; ".join(messages),
    )
    response = JSONResponse(status_code=422, content=body.model_dump())
    response.headers["X-Request-ID"] = _request_id(request)
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Consistent ErrorResponse JSON instead of a bare 500 for unhandled exceptions."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    response = JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": True,
        },
    )
    response.headers["X-Request-ID"] = _request_id(request)
    return response


app.include_router(health.router)
app.include_router(chat.router, prefix="/api/v1")
app.include_router(catalog.router, prefix="/api/v1")
