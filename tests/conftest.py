"""Shared test fixtures.

The HTTP client runs the app over ASGITransport (no lifespan, so no
PostgreSQL/Redis) with the services wired to the in-memory fakes.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from config.settings import settings
from src.bm_common.database import get_db_session
from src.bm_ledger.application.service import get_ledger_client
from src.bm_market.api.router import get_market_registry
from src.bm_market.application.service import MarketRegistry
from src.bm_reconciliation.api.router import get_reconciliation_engine
from src.bm_reconciliation.application.engine import ReconciliationEngine
from src.bm_transaction.api.router import get_transaction_ledger
from src.bm_transaction.application.service import TransactionLedger
from src.main import app
from tests.fakes import (
    FakeLedgerClient,
    FakeSession,
    FakeSessionFactory,
    InMemoryMarketRepository,
    InMemoryTransactionRepository,
)


@pytest.fixture(autouse=True)
def fast_ledger_retries(monkeypatch):
    """Keep tenacity's backoff out of test wall-clock time."""
    monkeypatch.setattr(settings, "LEDGER_BACKOFF_MIN_SECONDS", 0.0)
    monkeypatch.setattr(settings, "LEDGER_BACKOFF_MAX_SECONDS", 0.0)
    monkeypatch.setattr(settings, "LEDGER_MAX_ATTEMPTS", 3)


@pytest.fixture
def market_repo() -> InMemoryMarketRepository:
    return InMemoryMarketRepository()


@pytest.fixture
def transaction_repo() -> InMemoryTransactionRepository:
    return InMemoryTransactionRepository()


@pytest.fixture
def ledger_client() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture
def registry(market_repo) -> MarketRegistry:
    return MarketRegistry(repo=market_repo)


@pytest.fixture
def transaction_ledger(transaction_repo, registry) -> TransactionLedger:
    return TransactionLedger(repo=transaction_repo, markets=registry)


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def engine(session_factory, ledger_client, registry, transaction_ledger) -> ReconciliationEngine:
    return ReconciliationEngine(
        session_factory,
        ledger_client,
        registry,
        transaction_ledger,
        stale_after_seconds=60,
        expire_after_seconds=600,
        batch_size=2,
        auto_mature=True,
    )


@pytest.fixture
async def client(registry, transaction_ledger, ledger_client, engine) -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""

    async def _session():
        yield FakeSession()

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_market_registry] = lambda: registry
    app.dependency_overrides[get_transaction_ledger] = lambda: transaction_ledger
    app.dependency_overrides[get_ledger_client] = lambda: ledger_client
    app.dependency_overrides[get_reconciliation_engine] = lambda: engine
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
