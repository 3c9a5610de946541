"""MarketRegistry — sole owner of market records.

Create, attach and status changes are complete units of work and commit.
record_sale / record_return run inside the caller's transaction (they are
only ever applied as part of a settlement confirmation) and never commit.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.datetime_utils import utc_now
from src.bm_common.enums import MarketStatus
from src.bm_common.errors import (
    DuplicateMarketError,
    InvalidTransitionError,
    LedgerAccountConflictError,
    MarketNotFoundError,
    SupplyExceededError,
    ValidationError,
)
from src.bm_ledger.application.service import ensure_accounts_exist
from src.bm_ledger.domain.client import LedgerClientProtocol
from src.bm_market.application.schemas import CreateMarketRequest
from src.bm_market.domain.models import Market, NewMarket
from src.bm_market.domain.repository import MarketRepositoryProtocol
from src.bm_market.domain.state_machine import allowed_sources, check_transition
from src.bm_market.domain.validation import build_new_market, check_ledger_addresses
from src.bm_market.infrastructure.persistence import MarketRepository

logger = logging.getLogger(__name__)

_STATUS_UPDATE_ATTEMPTS = 3


class MarketRegistry:
    def __init__(
        self,
        repo: MarketRepositoryProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo: MarketRepositoryProtocol = repo or MarketRepository()
        self._clock = clock

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _validate(self, req: CreateMarketRequest) -> NewMarket:
        return build_new_market(
            issuer=req.issuer,
            bond_name=req.bond_name,
            bond_symbol=req.bond_symbol,
            total_supply=req.total_supply,
            face_value=req.face_value,
            current_price=req.current_price,
            coupon_rate=req.coupon_rate,
            maturity_date=req.maturity_date,
            now=self._clock(),
            creation_reference=req.creation_reference,
        )

    async def _insert(self, db: AsyncSession, new: NewMarket) -> Market:
        now = self._clock()
        market = Market(
            market_id=str(uuid.uuid4()),
            issuer=new.issuer,
            bond_name=new.bond_name,
            bond_symbol=new.bond_symbol,
            total_supply=new.total_supply,
            bonds_sold=0,
            total_bonds_issued=0,
            face_value=new.face_value,
            current_price=new.current_price,
            coupon_rate_bps=new.coupon_rate_bps,
            maturity_date=new.maturity_date,
            status=MarketStatus.ACTIVE.value,
            market_account=None,
            bond_mint=None,
            creation_reference=new.creation_reference,
            created_at=now,
            updated_at=now,
        )
        stored = await self._repo.insert_market(db, market)
        if stored is None:
            raise DuplicateMarketError(new.issuer, new.bond_symbol)
        return stored

    async def create_market(self, db: AsyncSession, req: CreateMarketRequest) -> Market:
        """Validate and persist a new active market. No ledger call is made."""
        new = self._validate(req)
        try:
            market = await self._insert(db, new)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Market created: id=%s issuer=%s symbol=%s supply=%d",
            market.market_id, market.issuer, market.bond_symbol, market.total_supply,
        )
        return market

    async def create_and_link_market(
        self,
        db: AsyncSession,
        req: CreateMarketRequest,
        ledger: LedgerClientProtocol,
    ) -> Market:
        """Reserve the record, verify the on-chain accounts, attach, then commit.

        Any failure (validation, missing account, ledger outage) rolls the
        whole thing back: no half-linked market is ever stored.
        """
        if req.market_account is None or req.bond_mint is None:
            raise ValidationError("marketAccount and bondMint must be provided together")
        check_ledger_addresses(req.market_account, req.bond_mint)
        new = self._validate(req)
        try:
            reserved = await self._insert(db, new)
            await ensure_accounts_exist(ledger, req.market_account, req.bond_mint)
            market = await self._attach(db, reserved.market_id, req.market_account, req.bond_mint)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Market created and linked: id=%s account=%s mint=%s",
            market.market_id, market.market_account, market.bond_mint,
        )
        return market

    # ------------------------------------------------------------------
    # Ledger binding
    # ------------------------------------------------------------------

    async def _attach(
        self, db: AsyncSession, market_id: str, market_account: str, bond_mint: str
    ) -> Market:
        market = await self._repo.attach_ledger_accounts(db, market_id, market_account, bond_mint)
        if market is not None:
            return market
        if await self._repo.get_market_by_id(db, market_id) is None:
            raise MarketNotFoundError(market_id)
        raise LedgerAccountConflictError(market_id)

    async def attach_ledger_accounts(
        self, db: AsyncSession, market_id: str, market_account: str, bond_mint: str
    ) -> Market:
        """Idempotent bind; rebinding to different addresses is a ConflictError."""
        check_ledger_addresses(market_account, bond_mint)
        try:
            market = await self._attach(db, market_id, market_account, bond_mint)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return market

    async def link_ledger_accounts(
        self,
        db: AsyncSession,
        market_id: str,
        market_account: str,
        bond_mint: str,
        ledger: LedgerClientProtocol,
    ) -> Market:
        """Confirm both accounts are live on the ledger, then attach them."""
        check_ledger_addresses(market_account, bond_mint)
        # Fail fast on unknown markets before spending ledger round-trips
        await self.get_market(db, market_id)
        await ensure_accounts_exist(ledger, market_account, bond_mint)
        return await self.attach_ledger_accounts(db, market_id, market_account, bond_mint)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_market(self, db: AsyncSession, market_id: str) -> Market:
        market = await self._repo.get_market_by_id(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return market

    async def list_markets(
        self,
        db: AsyncSession,
        issuer: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Market], int]:
        markets = await self._repo.list_markets(db, issuer, status, limit, offset)
        total = await self._repo.count_markets(db, issuer, status)
        return markets, total

    async def list_matured_candidates(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[Market]:
        return await self._repo.list_matured_candidates(db, now, limit)

    async def list_linked_markets(
        self, db: AsyncSession, limit: int, offset: int
    ) -> list[Market]:
        return await self._repo.list_linked_markets(db, limit, offset)

    # ------------------------------------------------------------------
    # Counters (caller's transaction)
    # ------------------------------------------------------------------

    async def record_sale(self, db: AsyncSession, market_id: str, quantity: int) -> Market:
        """Atomically bonds_sold += quantity, bounded by total_supply."""
        if quantity <= 0:
            raise ValidationError(f"quantity must be positive, got {quantity}")
        market = await self._repo.increment_bonds_sold(db, market_id, quantity)
        if market is not None:
            return market
        current = await self._repo.get_market_by_id(db, market_id)
        if current is None:
            raise MarketNotFoundError(market_id)
        raise SupplyExceededError(market_id, quantity, current.available_supply)

    async def record_return(self, db: AsyncSession, market_id: str, quantity: int) -> Market:
        """Atomically bonds_sold -= quantity, bounded below by zero."""
        if quantity <= 0:
            raise ValidationError(f"quantity must be positive, got {quantity}")
        market = await self._repo.decrement_bonds_sold(db, market_id, quantity)
        if market is not None:
            return market
        current = await self._repo.get_market_by_id(db, market_id)
        if current is None:
            raise MarketNotFoundError(market_id)
        raise SupplyExceededError(market_id, quantity, current.bonds_sold)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def set_status(
        self, db: AsyncSession, market_id: str, new_status: MarketStatus | str
    ) -> Market:
        target = MarketStatus(new_status)
        try:
            market = await self._guarded_status_update(db, market_id, target)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Market %s status -> %s", market_id, target.value)
        return market

    async def _guarded_status_update(
        self, db: AsyncSession, market_id: str, target: MarketStatus
    ) -> Market:
        current_status = "unknown"
        for _ in range(_STATUS_UPDATE_ATTEMPTS):
            market = await self._repo.update_status(
                db, market_id, allowed_sources(target), target.value
            )
            if market is not None:
                return market
            current = await self._repo.get_market_by_id(db, market_id)
            if current is None:
                raise MarketNotFoundError(market_id)
            current_status = current.status
            # Raises unless the status moved to a legal source since the UPDATE
            check_transition(current_status, target.value)
        raise InvalidTransitionError("market", current_status, target.value)
