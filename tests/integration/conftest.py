"""Integration-test fixtures.

Runs against a migrated PostgreSQL (alembic upgrade head) and skips unless
BM_INTEGRATION=1. The ledger is still the scripted fake: these tests exercise
the guarded SQL, not the network.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session.
"""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.bm_ledger.application.service import get_ledger_client
from src.main import app
from tests.fakes import FakeLedgerClient


def pytest_collection_modifyitems(config, items):
    if os.environ.get("BM_INTEGRATION") == "1":
        return
    skip = pytest.mark.skip(reason="set BM_INTEGRATION=1 to run against PostgreSQL")
    for item in items:
        if "integration" in item.path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(skip)


@pytest.fixture(scope="session")
def integration_ledger() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def live_client(integration_ledger) -> AsyncClient:
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    app.dependency_overrides[get_ledger_client] = lambda: integration_ledger
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
