"""ReconciliationEngine — heals local state against the external ledger.

A sweep has three passes:
  1. stale pending transactions: ask the ledger for the settlement status and
     confirm / fail locally (confirming a buy moves bonds_sold, exactly like
     the status endpoint does);
  2. linked markets: check both ledger accounts still exist and classify each
     market as Consistent / PendingConfirmation / Divergent;
  3. maturity: active markets past maturity_date move to matured.

Each record is handled in its own DB session. One bad record is logged and
counted, never aborts the sweep. Every local write goes through the same
guarded transitions the API uses, so a sweep racing a client or another
sweep can only lose, never double-apply.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.bm_common.datetime_utils import ensure_utc, utc_now
from src.bm_common.enums import MarketStatus, ReconciliationState, SettlementState
from src.bm_common.errors import InvalidTransitionError
from src.bm_ledger.application.retry import call_with_retry
from src.bm_ledger.domain.client import LedgerClientProtocol
from src.bm_market.application.service import MarketRegistry
from src.bm_market.domain.models import Market
from src.bm_reconciliation.domain.models import (
    MarketCheck,
    ReconciliationReport,
    TransactionOutcome,
)
from src.bm_transaction.application.service import TransactionLedger
from src.bm_transaction.domain.models import Transaction

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: LedgerClientProtocol,
        markets: MarketRegistry | None = None,
        transactions: TransactionLedger | None = None,
        *,
        stale_after_seconds: int | None = None,
        expire_after_seconds: int | None = None,
        batch_size: int | None = None,
        auto_mature: bool | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._ledger = ledger
        self._markets = markets or MarketRegistry(clock=clock)
        self._transactions = transactions or TransactionLedger(markets=self._markets, clock=clock)
        self._stale_after = timedelta(
            seconds=stale_after_seconds
            if stale_after_seconds is not None
            else settings.RECONCILE_STALE_AFTER_SECONDS
        )
        self._expire_after = timedelta(
            seconds=expire_after_seconds
            if expire_after_seconds is not None
            else settings.RECONCILE_EXPIRE_AFTER_SECONDS
        )
        self._batch_size = batch_size or settings.RECONCILE_BATCH_SIZE
        self._auto_mature = settings.RECONCILE_AUTO_MATURE if auto_mature is None else auto_mature
        self._clock = clock

    async def run_once(self, now: datetime | None = None) -> ReconciliationReport:
        now = now or self._clock()
        report = ReconciliationReport(started_at=now)
        logger.info("Reconciliation sweep started at %s", now.isoformat())

        await self._sweep_transactions(now, report)
        await self._sweep_markets(report)
        if self._auto_mature:
            await self._sweep_maturity(now, report)

        report.finished_at = self._clock()
        logger.info(
            "Reconciliation sweep finished: txns=%d outcomes=%s markets=%d divergent=%d "
            "matured=%d errors=%d",
            report.transactions_checked, report.outcomes, len(report.markets),
            len(report.divergent_markets), len(report.matured_markets), report.errors,
        )
        return report

    # ------------------------------------------------------------------
    # Pass 1: stale pending transactions
    # ------------------------------------------------------------------

    async def _sweep_transactions(self, now: datetime, report: ReconciliationReport) -> None:
        older_than = now - self._stale_after
        expire_before = now - self._expire_after
        after: tuple[datetime, str] | None = None
        while True:
            async with self._session_factory() as db:
                batch = await self._transactions.list_stale_pending(
                    db, older_than, self._batch_size, after
                )
            for txn in batch:
                report.transactions_checked += 1
                try:
                    outcome = await self._reconcile_transaction(txn, expire_before)
                except Exception:
                    report.errors += 1
                    logger.exception(
                        "Reconciliation failed for transaction %s (ref=%s)",
                        txn.transaction_id, txn.settlement_reference,
                    )
                    continue
                report.count(outcome)
            if len(batch) < self._batch_size:
                return
            # Keyset cursor: rows left pending are not re-read this sweep
            after = (batch[-1].created_at, batch[-1].transaction_id)

    async def _reconcile_transaction(
        self, txn: Transaction, expire_before: datetime
    ) -> TransactionOutcome:
        status = await call_with_retry(self._ledger.get_settlement_status, txn.settlement_reference)

        if not status.is_final:
            if status.state is SettlementState.UNKNOWN and ensure_utc(txn.created_at) <= expire_before:
                logger.warning(
                    "Settlement never reached the ledger, expiring: id=%s ref=%s created=%s",
                    txn.transaction_id, txn.settlement_reference, txn.created_at.isoformat(),
                )
                return await self._resolve(
                    txn, TransactionOutcome.EXPIRED,
                    lambda db: self._transactions.mark_failed(db, txn.transaction_id),
                )
            return TransactionOutcome.STILL_PENDING

        if status.state is SettlementState.CONFIRMED:
            return await self._resolve(
                txn, TransactionOutcome.CONFIRMED,
                lambda db: self._transactions.confirm_settlement(
                    db, txn.transaction_id, status.slot
                ),
            )
        logger.warning(
            "Settlement failed on ledger: id=%s ref=%s err=%s",
            txn.transaction_id, txn.settlement_reference, status.error,
        )
        return await self._resolve(
            txn, TransactionOutcome.FAILED,
            lambda db: self._transactions.mark_failed(db, txn.transaction_id),
        )

    async def _resolve(
        self,
        txn: Transaction,
        outcome: TransactionOutcome,
        apply: Callable[[AsyncSession], Awaitable[object]],
    ) -> TransactionOutcome:
        async with self._session_factory() as db:
            try:
                await apply(db)
            except InvalidTransitionError:
                logger.info(
                    "Transaction %s resolved concurrently, skipping", txn.transaction_id
                )
                return TransactionOutcome.ALREADY_RESOLVED
        return outcome

    # ------------------------------------------------------------------
    # Pass 2: linked markets vs ledger accounts
    # ------------------------------------------------------------------

    async def _sweep_markets(self, report: ReconciliationReport) -> None:
        offset = 0
        while True:
            async with self._session_factory() as db:
                batch = await self._markets.list_linked_markets(db, self._batch_size, offset)
                pending = (
                    await self._transactions.count_pending_by_market(
                        db, [m.market_id for m in batch]
                    )
                    if batch
                    else {}
                )
            for market in batch:
                try:
                    check = await self._check_market(market, pending.get(market.market_id, 0))
                except Exception:
                    report.errors += 1
                    logger.exception("Reconciliation failed for market %s", market.market_id)
                    continue
                report.markets.append(check)
            if len(batch) < self._batch_size:
                return
            offset += len(batch)

    async def _check_market(self, market: Market, pending_count: int) -> MarketCheck:
        missing: list[str] = []
        for address in (market.market_account, market.bond_mint):
            if address and not await call_with_retry(self._ledger.account_exists, address):
                missing.append(address)

        if missing:
            logger.error(
                "ALERT market %s diverged from ledger: missing accounts %s",
                market.market_id, ", ".join(missing),
            )
            state = ReconciliationState.DIVERGENT
        elif pending_count > 0:
            state = ReconciliationState.PENDING_CONFIRMATION
        else:
            state = ReconciliationState.CONSISTENT
        return MarketCheck(
            market_id=market.market_id,
            state=state,
            missing_accounts=missing,
            pending_transactions=pending_count,
        )

    # ------------------------------------------------------------------
    # Pass 3: maturity
    # ------------------------------------------------------------------

    async def _sweep_maturity(self, now: datetime, report: ReconciliationReport) -> None:
        seen: set[str] = set()
        while True:
            async with self._session_factory() as db:
                batch = await self._markets.list_matured_candidates(db, now, self._batch_size)
            fresh = [m for m in batch if m.market_id not in seen]
            if not fresh:
                return
            for market in fresh:
                seen.add(market.market_id)
                try:
                    async with self._session_factory() as db:
                        await self._markets.set_status(db, market.market_id, MarketStatus.MATURED)
                except InvalidTransitionError:
                    continue
                except Exception:
                    report.errors += 1
                    logger.exception("Maturity sweep failed for market %s", market.market_id)
                    continue
                report.matured_markets.append(market.market_id)
            if len(batch) < self._batch_size:
                return
