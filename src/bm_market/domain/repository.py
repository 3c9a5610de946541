# src/bm_market/domain/repository.py
"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock or an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Every mutating method is a single guarded statement: it returns the updated
row, or None when the guard (existence, capacity, status) did not hold.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_market.domain.models import Market


class MarketRepositoryProtocol(Protocol):
    async def insert_market(self, db: AsyncSession, market: Market) -> Market | None: ...

    async def get_market_by_id(
        self, db: AsyncSession, market_id: str
    ) -> Market | None: ...

    async def list_markets(
        self,
        db: AsyncSession,
        issuer: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> list[Market]: ...

    async def count_markets(
        self, db: AsyncSession, issuer: str | None, status: str | None
    ) -> int: ...

    async def attach_ledger_accounts(
        self, db: AsyncSession, market_id: str, market_account: str, bond_mint: str
    ) -> Market | None: ...

    async def increment_bonds_sold(
        self, db: AsyncSession, market_id: str, quantity: int
    ) -> Market | None: ...

    async def decrement_bonds_sold(
        self, db: AsyncSession, market_id: str, quantity: int
    ) -> Market | None: ...

    async def update_status(
        self,
        db: AsyncSession,
        market_id: str,
        from_statuses: list[str],
        to_status: str,
    ) -> Market | None: ...

    async def list_matured_candidates(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[Market]: ...

    async def list_linked_markets(
        self, db: AsyncSession, limit: int, offset: int
    ) -> list[Market]: ...
