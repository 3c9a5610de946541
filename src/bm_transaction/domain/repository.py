# src/bm_transaction/domain/repository.py
"""Repository Protocol for trade records.

insert_if_absent is the idempotency primitive: it returns the stored row, or
None when the settlement reference already exists (nothing is written).
confirm / mark_failed only act on pending rows and return None otherwise.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_transaction.domain.models import Transaction, TransactionFilter


class TransactionRepositoryProtocol(Protocol):
    async def insert_if_absent(
        self, db: AsyncSession, txn: Transaction
    ) -> Transaction | None: ...

    async def get_by_id(
        self, db: AsyncSession, transaction_id: str
    ) -> Transaction | None: ...

    async def get_by_settlement_reference(
        self, db: AsyncSession, settlement_reference: str
    ) -> Transaction | None: ...

    async def confirm(
        self,
        db: AsyncSession,
        transaction_id: str,
        block_number: int | None,
        confirmed_at: datetime,
    ) -> Transaction | None: ...

    async def mark_failed(
        self, db: AsyncSession, transaction_id: str
    ) -> Transaction | None: ...

    async def list_transactions(
        self, db: AsyncSession, filters: TransactionFilter, limit: int, offset: int
    ) -> list[Transaction]: ...

    async def count_transactions(
        self, db: AsyncSession, filters: TransactionFilter
    ) -> int: ...

    async def list_stale_pending(
        self,
        db: AsyncSession,
        older_than: datetime,
        limit: int,
        after: tuple[datetime, str] | None = None,
    ) -> list[Transaction]: ...

    async def count_pending_by_market(
        self, db: AsyncSession, market_ids: list[str]
    ) -> dict[str, int]: ...
