"""MarketRepository — concrete implementation of MarketRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
Counter and status mutations are single UPDATE ... WHERE <guard> RETURNING
statements, so concurrent callers serialize on the row lock and re-check the
guard; a result of 0 rows means the guard failed.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_market.domain.models import Market

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_COLUMNS = """
    market_id, issuer, bond_name, bond_symbol,
    total_supply, bonds_sold, total_bonds_issued,
    face_value, current_price, coupon_rate_bps, maturity_date, status,
    market_account, bond_mint, creation_reference,
    created_at, updated_at
"""

_INSERT_MARKET_SQL = text(f"""
    INSERT INTO markets (
        market_id, issuer, bond_name, bond_symbol,
        total_supply, bonds_sold, total_bonds_issued,
        face_value, current_price, coupon_rate_bps, maturity_date, status,
        market_account, bond_mint, creation_reference,
        created_at, updated_at)
    VALUES (
        :market_id, :issuer, :bond_name, :bond_symbol,
        :total_supply, 0, 0,
        :face_value, :current_price, :coupon_rate_bps, :maturity_date, :status,
        NULL, NULL, :creation_reference,
        :created_at, :created_at)
    ON CONFLICT (issuer, bond_symbol) DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_MARKET_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM markets
    WHERE market_id = :market_id
""")

_FILTER = """
    WHERE (CAST(:issuer AS TEXT) IS NULL OR issuer = CAST(:issuer AS TEXT))
      AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
"""

_LIST_MARKETS_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM markets
    {_FILTER}
    ORDER BY created_at DESC, market_id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_MARKETS_SQL = text(f"""
    SELECT COUNT(*) AS total
    FROM markets
    {_FILTER}
""")

# Idempotent attach: succeeds when the slots are empty or already hold the same addresses.
_ATTACH_SQL = text(f"""
    UPDATE markets
    SET market_account = :market_account,
        bond_mint = :bond_mint,
        updated_at = NOW()
    WHERE market_id = :market_id
      AND (market_account IS NULL OR market_account = :market_account)
      AND (bond_mint IS NULL OR bond_mint = :bond_mint)
    RETURNING {_COLUMNS}
""")

_INCREMENT_SOLD_SQL = text(f"""
    UPDATE markets
    SET bonds_sold = bonds_sold + :quantity,
        updated_at = NOW()
    WHERE market_id = :market_id
      AND bonds_sold + :quantity <= total_supply
    RETURNING {_COLUMNS}
""")

_DECREMENT_SOLD_SQL = text(f"""
    UPDATE markets
    SET bonds_sold = bonds_sold - :quantity,
        updated_at = NOW()
    WHERE market_id = :market_id
      AND bonds_sold >= :quantity
    RETURNING {_COLUMNS}
""")

_UPDATE_STATUS_SQL = text(f"""
    UPDATE markets
    SET status = :to_status,
        updated_at = NOW()
    WHERE market_id = :market_id
      AND status = ANY(string_to_array(CAST(:from_csv AS TEXT), ','))
    RETURNING {_COLUMNS}
""")

_MATURED_CANDIDATES_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM markets
    WHERE status = 'active' AND maturity_date <= :now
    ORDER BY maturity_date ASC, market_id ASC
    LIMIT :limit
""")

_LINKED_MARKETS_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM markets
    WHERE market_account IS NOT NULL
    ORDER BY created_at ASC, market_id ASC
    LIMIT :limit OFFSET :offset
""")

# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_market(row: Any) -> Market:
    return Market(
        market_id=row.market_id,
        issuer=row.issuer,
        bond_name=row.bond_name,
        bond_symbol=row.bond_symbol,
        total_supply=row.total_supply,
        bonds_sold=row.bonds_sold,
        total_bonds_issued=row.total_bonds_issued,
        face_value=row.face_value,
        current_price=row.current_price,
        coupon_rate_bps=row.coupon_rate_bps,
        maturity_date=row.maturity_date,
        status=row.status,
        market_account=row.market_account,
        bond_mint=row.bond_mint,
        creation_reference=row.creation_reference,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class MarketRepository:
    """Concrete repository — every mutation is atomic at the SQL level."""

    async def insert_market(self, db: AsyncSession, market: Market) -> Market | None:
        result = await db.execute(
            _INSERT_MARKET_SQL,
            {
                "market_id": market.market_id,
                "issuer": market.issuer,
                "bond_name": market.bond_name,
                "bond_symbol": market.bond_symbol,
                "total_supply": market.total_supply,
                "face_value": market.face_value,
                "current_price": market.current_price,
                "coupon_rate_bps": market.coupon_rate_bps,
                "maturity_date": market.maturity_date,
                "status": market.status,
                "creation_reference": market.creation_reference,
                "created_at": market.created_at,
            },
        )
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def get_market_by_id(
        self, db: AsyncSession, market_id: str
    ) -> Market | None:
        result = await db.execute(_GET_MARKET_SQL, {"market_id": market_id})
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def list_markets(
        self,
        db: AsyncSession,
        issuer: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> list[Market]:
        result = await db.execute(
            _LIST_MARKETS_SQL,
            {"issuer": issuer, "status": status, "limit": limit, "offset": offset},
        )
        return [_row_to_market(row) for row in result.fetchall()]

    async def count_markets(
        self, db: AsyncSession, issuer: str | None, status: str | None
    ) -> int:
        result = await db.execute(_COUNT_MARKETS_SQL, {"issuer": issuer, "status": status})
        return int(result.scalar_one())

    async def attach_ledger_accounts(
        self, db: AsyncSession, market_id: str, market_account: str, bond_mint: str
    ) -> Market | None:
        result = await db.execute(
            _ATTACH_SQL,
            {
                "market_id": market_id,
                "market_account": market_account,
                "bond_mint": bond_mint,
            },
        )
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def increment_bonds_sold(
        self, db: AsyncSession, market_id: str, quantity: int
    ) -> Market | None:
        result = await db.execute(
            _INCREMENT_SOLD_SQL, {"market_id": market_id, "quantity": quantity}
        )
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def decrement_bonds_sold(
        self, db: AsyncSession, market_id: str, quantity: int
    ) -> Market | None:
        result = await db.execute(
            _DECREMENT_SOLD_SQL, {"market_id": market_id, "quantity": quantity}
        )
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def update_status(
        self,
        db: AsyncSession,
        market_id: str,
        from_statuses: list[str],
        to_status: str,
    ) -> Market | None:
        result = await db.execute(
            _UPDATE_STATUS_SQL,
            {
                "market_id": market_id,
                "from_csv": ",".join(from_statuses),
                "to_status": to_status,
            },
        )
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def list_matured_candidates(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[Market]:
        result = await db.execute(_MATURED_CANDIDATES_SQL, {"now": now, "limit": limit})
        return [_row_to_market(row) for row in result.fetchall()]

    async def list_linked_markets(
        self, db: AsyncSession, limit: int, offset: int
    ) -> list[Market]:
        result = await db.execute(_LINKED_MARKETS_SQL, {"limit": limit, "offset": offset})
        return [_row_to_market(row) for row in result.fetchall()]
