# tests/unit/test_market_persistence.py
"""Unit tests for MarketRepository using MagicMock AsyncSession."""
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.bm_market.domain.models import Market
from src.bm_market.infrastructure.persistence import MarketRepository
from tests.fakes import make_pubkey

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _make_market_row(**kwargs):
    """Build a mock DB row with all required fields."""
    row = MagicMock()
    row.market_id = kwargs.get("market_id", "m-1")
    row.issuer = kwargs.get("issuer", make_pubkey(1))
    row.bond_name = "US Treasury 2030"
    row.bond_symbol = kwargs.get("bond_symbol", "USTB30")
    row.total_supply = kwargs.get("total_supply", 1000)
    row.bonds_sold = kwargs.get("bonds_sold", 0)
    row.total_bonds_issued = 0
    row.face_value = 1_000_000
    row.current_price = 980_000
    row.coupon_rate_bps = 850
    row.maturity_date = NOW + timedelta(days=365)
    row.status = kwargs.get("status", "active")
    row.market_account = kwargs.get("market_account")
    row.bond_mint = kwargs.get("bond_mint")
    row.creation_reference = None
    row.created_at = NOW
    row.updated_at = NOW
    return row


def _result(row=None, rows=None, scalar=None) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = row
    result.fetchall.return_value = rows or []
    result.scalar_one.return_value = scalar
    return result


@pytest.fixture
def db():
    return MagicMock()


def _params(db) -> dict:
    return db.execute.call_args.args[1]


def _sql(db) -> str:
    return str(db.execute.call_args.args[0])


class TestGetMarketById:
    async def test_returns_market_when_found(self, db):
        db.execute = AsyncMock(return_value=_result(_make_market_row(market_id="m-9")))

        market = await MarketRepository().get_market_by_id(db, "m-9")

        assert market is not None
        assert market.market_id == "m-9"
        assert market.coupon_rate_bps == 850
        assert _params(db) == {"market_id": "m-9"}

    async def test_returns_none_when_missing(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        assert await MarketRepository().get_market_by_id(db, "nope") is None


class TestInsertMarket:
    async def test_conflict_returns_none(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        market = Market(
            market_id="m-1", issuer=make_pubkey(1), bond_name="B", bond_symbol="B",
            total_supply=10, bonds_sold=0, total_bonds_issued=0, face_value=1,
            current_price=1, coupon_rate_bps=0, maturity_date=NOW, status="active",
            market_account=None, bond_mint=None, creation_reference=None,
            created_at=NOW, updated_at=NOW,
        )

        assert await MarketRepository().insert_market(db, market) is None
        assert "ON CONFLICT (issuer, bond_symbol) DO NOTHING" in _sql(db)


class TestCounters:
    async def test_increment_is_guarded_by_total_supply(self, db):
        db.execute = AsyncMock(return_value=_result(_make_market_row(bonds_sold=100)))

        market = await MarketRepository().increment_bonds_sold(db, "m-1", 100)

        assert market.bonds_sold == 100
        assert "bonds_sold + :quantity <= total_supply" in _sql(db)
        assert _params(db) == {"market_id": "m-1", "quantity": 100}

    async def test_increment_guard_failure_returns_none(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        assert await MarketRepository().increment_bonds_sold(db, "m-1", 5000) is None

    async def test_decrement_is_guarded_at_zero(self, db):
        db.execute = AsyncMock(return_value=_result(None))

        assert await MarketRepository().decrement_bonds_sold(db, "m-1", 1) is None
        assert "bonds_sold >= :quantity" in _sql(db)


class TestUpdateStatus:
    async def test_from_statuses_passed_as_csv(self, db):
        db.execute = AsyncMock(return_value=_result(_make_market_row(status="matured")))

        market = await MarketRepository().update_status(db, "m-1", ["active"], "matured")

        assert market.status == "matured"
        assert _params(db) == {"market_id": "m-1", "from_csv": "active", "to_status": "matured"}


class TestListing:
    async def test_list_passes_filters_and_page(self, db):
        rows = [_make_market_row(market_id=f"m-{i}") for i in range(3)]
        db.execute = AsyncMock(return_value=_result(rows=rows))

        markets = await MarketRepository().list_markets(db, None, "active", 20, 40)

        assert [m.market_id for m in markets] == ["m-0", "m-1", "m-2"]
        assert _params(db) == {"issuer": None, "status": "active", "limit": 20, "offset": 40}
        assert "ORDER BY created_at DESC, market_id DESC" in _sql(db)

    async def test_count(self, db):
        db.execute = AsyncMock(return_value=_result(scalar=42))
        assert await MarketRepository().count_markets(db, make_pubkey(1), None) == 42

    async def test_linked_markets_only(self, db):
        db.execute = AsyncMock(return_value=_result(rows=[]))
        await MarketRepository().list_linked_markets(db, 100, 0)
        assert "market_account IS NOT NULL" in _sql(db)


def test_orm_reference_model_matches_selected_columns():
    from src.bm_market.infrastructure.db_models import MarketORM
    from src.bm_market.infrastructure.persistence import _COLUMNS

    selected = {c.strip() for c in _COLUMNS.split(",")}
    assert selected == set(MarketORM.__table__.columns.keys())
