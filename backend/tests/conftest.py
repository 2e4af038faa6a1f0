"""Shared fixtures: the packaged lexicon, a small in-memory catalog, and an
ASGI client wired to an orchestrator without an external model."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from phone_advisor.pipeline.catalog import PhoneCatalog
from phone_advisor.pipeline.lexicon import Lexicon, load_lexicon
from phone_advisor.pipeline.orchestrator import TurnOrchestrator
from tests.factories import SMALL_CATALOG


@pytest.fixture
def lexicon() -> Lexicon:
    return load_lexicon()


@pytest.fixture
def catalog() -> PhoneCatalog:
    return PhoneCatalog(SMALL_CATALOG)


@pytest.fixture
def orchestrator(catalog: PhoneCatalog, lexicon: Lexicon) -> TurnOrchestrator:
    """Orchestrator with no external model: every answer comes from the fallback."""
    return TurnOrchestrator(catalog, lexicon, model=None)


@pytest.fixture
async def client(orchestrator: TurnOrchestrator):
    """AsyncClient over the app. Lifespan does not run under ASGITransport,
    so the orchestrator is installed on app.state directly."""
    from phone_advisor.main import app

    app.state.orchestrator = orchestrator
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
