# src/bm_transaction/infrastructure/persistence.py
"""TransactionRepository — raw SQL persistence implementation.

Idempotent insert is INSERT ... ON CONFLICT (settlement_reference) DO NOTHING
RETURNING: an empty result means the reference is already recorded.
Status transitions are guarded with `AND status = 'pending'` in the same
UPDATE, so a double confirm or confirm-after-fail matches 0 rows.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_transaction.domain.models import Transaction, TransactionFilter

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    transaction_id, market_id, buyer, seller, transaction_type,
    bond_quantity, price_per_bond, total_amount, settlement_reference,
    status, block_number, confirmed_at, created_at, updated_at
"""

_INSERT_IF_ABSENT_SQL = text(f"""
    INSERT INTO transactions (transaction_id, market_id, buyer, seller, transaction_type,
        bond_quantity, price_per_bond, total_amount, settlement_reference,
        status, created_at, updated_at)
    VALUES (:transaction_id, :market_id, :buyer, :seller, :transaction_type,
        :bond_quantity, :price_per_bond, :total_amount, :settlement_reference,
        'pending', :created_at, :created_at)
    ON CONFLICT (settlement_reference) DO NOTHING
    RETURNING {_SELECT_COLUMNS}
""")

_GET_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM transactions WHERE transaction_id = :transaction_id
""")

_GET_BY_REFERENCE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM transactions WHERE settlement_reference = :settlement_reference
""")

_CONFIRM_SQL = text(f"""
    UPDATE transactions
    SET status = 'confirmed',
        block_number = :block_number,
        confirmed_at = :confirmed_at,
        updated_at = NOW()
    WHERE transaction_id = :transaction_id AND status = 'pending'
    RETURNING {_SELECT_COLUMNS}
""")

_MARK_FAILED_SQL = text(f"""
    UPDATE transactions
    SET status = 'failed', updated_at = NOW()
    WHERE transaction_id = :transaction_id AND status = 'pending'
    RETURNING {_SELECT_COLUMNS}
""")

_FILTER = """
    WHERE (CAST(:market_id AS TEXT) IS NULL OR market_id = CAST(:market_id AS TEXT))
      AND (CAST(:buyer AS TEXT) IS NULL OR buyer = CAST(:buyer AS TEXT))
      AND (CAST(:seller AS TEXT) IS NULL OR seller = CAST(:seller AS TEXT))
      AND (CAST(:transaction_type AS TEXT) IS NULL
           OR transaction_type = CAST(:transaction_type AS TEXT))
      AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
"""

_LIST_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM transactions
    {_FILTER}
    ORDER BY created_at DESC, transaction_id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_SQL = text(f"""
    SELECT COUNT(*) AS total
    FROM transactions
    {_FILTER}
""")

_STALE_PENDING_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM transactions
    WHERE status = 'pending' AND created_at < :older_than
      AND (
          CAST(:after_ts AS TIMESTAMPTZ) IS NULL
          OR created_at > CAST(:after_ts AS TIMESTAMPTZ)
          OR (created_at = CAST(:after_ts AS TIMESTAMPTZ)
              AND transaction_id > CAST(:after_id AS TEXT))
      )
    ORDER BY created_at ASC, transaction_id ASC
    LIMIT :limit
""")

_PENDING_BY_MARKET_SQL = text("""
    SELECT market_id, COUNT(*) AS pending
    FROM transactions
    WHERE status = 'pending'
      AND market_id = ANY(string_to_array(CAST(:market_ids_csv AS TEXT), ','))
    GROUP BY market_id
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_transaction(row: Any) -> Transaction:
    """Convert a DB result row to a Transaction domain object."""
    return Transaction(
        transaction_id=row.transaction_id,
        market_id=row.market_id,
        buyer=row.buyer,
        seller=row.seller,
        transaction_type=row.transaction_type,
        bond_quantity=row.bond_quantity,
        price_per_bond=row.price_per_bond,
        total_amount=row.total_amount,
        settlement_reference=row.settlement_reference,
        status=row.status,
        block_number=row.block_number,
        confirmed_at=row.confirmed_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _filter_params(filters: TransactionFilter) -> dict[str, Any]:
    return {
        "market_id": filters.market_id,
        "buyer": filters.buyer,
        "seller": filters.seller,
        "transaction_type": filters.transaction_type,
        "status": filters.status,
    }


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TransactionRepository:
    """Concrete implementation of TransactionRepositoryProtocol using raw SQL."""

    async def insert_if_absent(
        self, db: AsyncSession, txn: Transaction
    ) -> Transaction | None:
        result = await db.execute(
            _INSERT_IF_ABSENT_SQL,
            {
                "transaction_id": txn.transaction_id,
                "market_id": txn.market_id,
                "buyer": txn.buyer,
                "seller": txn.seller,
                "transaction_type": txn.transaction_type,
                "bond_quantity": txn.bond_quantity,
                "price_per_bond": txn.price_per_bond,
                "total_amount": txn.total_amount,
                "settlement_reference": txn.settlement_reference,
                "created_at": txn.created_at,
            },
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def get_by_id(
        self, db: AsyncSession, transaction_id: str
    ) -> Transaction | None:
        result = await db.execute(_GET_BY_ID_SQL, {"transaction_id": transaction_id})
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def get_by_settlement_reference(
        self, db: AsyncSession, settlement_reference: str
    ) -> Transaction | None:
        result = await db.execute(
            _GET_BY_REFERENCE_SQL, {"settlement_reference": settlement_reference}
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def confirm(
        self,
        db: AsyncSession,
        transaction_id: str,
        block_number: int | None,
        confirmed_at: datetime,
    ) -> Transaction | None:
        result = await db.execute(
            _CONFIRM_SQL,
            {
                "transaction_id": transaction_id,
                "block_number": block_number,
                "confirmed_at": confirmed_at,
            },
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def mark_failed(
        self, db: AsyncSession, transaction_id: str
    ) -> Transaction | None:
        result = await db.execute(_MARK_FAILED_SQL, {"transaction_id": transaction_id})
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def list_transactions(
        self, db: AsyncSession, filters: TransactionFilter, limit: int, offset: int
    ) -> list[Transaction]:
        params = _filter_params(filters)
        params.update(limit=limit, offset=offset)
        result = await db.execute(_LIST_SQL, params)
        return [_row_to_transaction(row) for row in result.fetchall()]

    async def count_transactions(
        self, db: AsyncSession, filters: TransactionFilter
    ) -> int:
        result = await db.execute(_COUNT_SQL, _filter_params(filters))
        return int(result.scalar_one())

    async def list_stale_pending(
        self,
        db: AsyncSession,
        older_than: datetime,
        limit: int,
        after: tuple[datetime, str] | None = None,
    ) -> list[Transaction]:
        after_ts, after_id = after if after else (None, None)
        result = await db.execute(
            _STALE_PENDING_SQL,
            {
                "older_than": older_than,
                "limit": limit,
                "after_ts": after_ts,
                "after_id": after_id,
            },
        )
        return [_row_to_transaction(row) for row in result.fetchall()]

    async def count_pending_by_market(
        self, db: AsyncSession, market_ids: list[str]
    ) -> dict[str, int]:
        if not market_ids:
            return {}
        result = await db.execute(
            _PENDING_BY_MARKET_SQL, {"market_ids_csv": ",".join(market_ids)}
        )
        return {row.market_id: int(row.pending) for row in result.fetchall()}
