# src/bm_transaction/application/service.py
"""TransactionLedger — sole owner of trade records.

A trade moves pending -> confirmed | failed exactly once. Confirming a buy or
sell also moves the market's bonds_sold counter through MarketRegistry, in the
same DB transaction as the status change: either both land or neither does.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.amounts import total_amount
from src.bm_common.datetime_utils import utc_now
from src.bm_common.enums import TransactionStatus, TransactionType
from src.bm_common.errors import (
    InvalidTransitionError,
    SettlementReferenceConflictError,
    TransactionNotFoundError,
)
from src.bm_market.application.service import MarketRegistry
from src.bm_transaction.application.schemas import CreateTransactionRequest
from src.bm_transaction.domain.models import Transaction, TransactionFilter
from src.bm_transaction.domain.repository import TransactionRepositoryProtocol
from src.bm_transaction.domain.validation import check_block_number, check_intent
from src.bm_transaction.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)


class TransactionLedger:
    def __init__(
        self,
        repo: TransactionRepositoryProtocol | None = None,
        markets: MarketRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo: TransactionRepositoryProtocol = repo or TransactionRepository()
        self._markets = markets or MarketRegistry()
        self._clock = clock

    async def record_intent(
        self, db: AsyncSession, req: CreateTransactionRequest
    ) -> tuple[Transaction, bool]:
        """Insert-or-fetch keyed by settlement reference.

        Returns (transaction, created). A replay of an already-recorded
        reference returns the stored record with created=False; a replay that
        describes a different trade raises SettlementReferenceConflictError.
        """
        check_intent(
            buyer=req.buyer,
            seller=req.seller,
            bond_quantity=req.bond_quantity,
            price_per_bond=req.price_per_bond,
            settlement_reference=req.settlement_reference,
        )
        txn_type = TransactionType(req.transaction_type)
        try:
            await self._markets.get_market(db, req.market_id)
            candidate = Transaction(
                transaction_id=str(uuid.uuid4()),
                market_id=req.market_id,
                buyer=req.buyer,
                seller=req.seller,
                transaction_type=txn_type.value,
                bond_quantity=req.bond_quantity,
                price_per_bond=req.price_per_bond,
                total_amount=total_amount(req.bond_quantity, req.price_per_bond),
                settlement_reference=req.settlement_reference,
                created_at=self._clock(),
            )
            stored = await self._repo.insert_if_absent(db, candidate)
            created = stored is not None
            if stored is None:
                stored = await self._repo.get_by_settlement_reference(
                    db, req.settlement_reference
                )
                if stored is None:
                    raise TransactionNotFoundError(req.settlement_reference)
                if not stored.same_intent(candidate):
                    raise SettlementReferenceConflictError(req.settlement_reference)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if created:
            logger.info(
                "Transaction recorded: id=%s market=%s type=%s qty=%d ref=%s",
                stored.transaction_id, stored.market_id, stored.transaction_type,
                stored.bond_quantity, stored.settlement_reference,
            )
        else:
            logger.info(
                "Transaction idempotency hit: ref=%s id=%s",
                stored.settlement_reference, stored.transaction_id,
            )
        return stored, created

    async def _not_pending(
        self, db: AsyncSession, transaction_id: str, target: TransactionStatus
    ) -> Exception:
        existing = await self._repo.get_by_id(db, transaction_id)
        if existing is None:
            return TransactionNotFoundError(transaction_id)
        return InvalidTransitionError("transaction", existing.status, target.value)

    async def _apply_to_market(self, db: AsyncSession, txn: Transaction) -> None:
        if txn.transaction_type == TransactionType.BUY.value:
            await self._markets.record_sale(db, txn.market_id, txn.bond_quantity)
        elif txn.transaction_type == TransactionType.SELL.value:
            await self._markets.record_return(db, txn.market_id, txn.bond_quantity)
        # coupon_claim / redeem leave supply counters untouched

    async def confirm_settlement(
        self,
        db: AsyncSession,
        transaction_id: str,
        block_number: int | None = None,
    ) -> Transaction:
        check_block_number(block_number)
        try:
            txn = await self._repo.confirm(db, transaction_id, block_number, self._clock())
            if txn is None:
                raise await self._not_pending(db, transaction_id, TransactionStatus.CONFIRMED)
            await self._apply_to_market(db, txn)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Transaction confirmed: id=%s market=%s type=%s qty=%d block=%s",
            txn.transaction_id, txn.market_id, txn.transaction_type,
            txn.bond_quantity, block_number,
        )
        return txn

    async def mark_failed(self, db: AsyncSession, transaction_id: str) -> Transaction:
        try:
            txn = await self._repo.mark_failed(db, transaction_id)
            if txn is None:
                raise await self._not_pending(db, transaction_id, TransactionStatus.FAILED)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Transaction failed: id=%s ref=%s", txn.transaction_id, txn.settlement_reference)
        return txn

    async def update_status(
        self,
        db: AsyncSession,
        transaction_id: str,
        status: TransactionStatus | str,
        block_number: int | None = None,
    ) -> Transaction:
        """Dispatch for the status endpoint: confirmed or failed."""
        target = TransactionStatus(status)
        if target is TransactionStatus.CONFIRMED:
            return await self.confirm_settlement(db, transaction_id, block_number)
        if target is TransactionStatus.FAILED:
            return await self.mark_failed(db, transaction_id)
        raise InvalidTransitionError("transaction", "pending", target.value)

    async def get_transaction(self, db: AsyncSession, transaction_id: str) -> Transaction:
        txn = await self._repo.get_by_id(db, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        return txn

    async def list_transactions(
        self,
        db: AsyncSession,
        filters: TransactionFilter,
        limit: int,
        offset: int,
    ) -> tuple[list[Transaction], int]:
        items = await self._repo.list_transactions(db, filters, limit, offset)
        total = await self._repo.count_transactions(db, filters)
        return items, total

    async def list_stale_pending(
        self,
        db: AsyncSession,
        older_than: datetime,
        limit: int,
        after: tuple[datetime, str] | None = None,
    ) -> list[Transaction]:
        return await self._repo.list_stale_pending(db, older_than, limit, after)

    async def count_pending_by_market(
        self, db: AsyncSession, market_ids: list[str]
    ) -> dict[str, int]:
        return await self._repo.count_pending_by_market(db, market_ids)
