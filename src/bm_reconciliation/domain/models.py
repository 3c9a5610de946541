"""Sweep results. The engine keeps no state between runs; this is its output."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.bm_common.enums import ReconciliationState


class TransactionOutcome(str, Enum):
    CONFIRMED = "confirmed"          # ledger final, confirmed locally
    FAILED = "failed"                # ledger reports an error
    EXPIRED = "expired"              # ledger never saw it within the expiry window
    STILL_PENDING = "still_pending"  # not final yet, try again next sweep
    ALREADY_RESOLVED = "already_resolved"  # someone else resolved it mid-sweep


@dataclass
class MarketCheck:
    market_id: str
    state: ReconciliationState
    missing_accounts: list[str] = field(default_factory=list)
    pending_transactions: int = 0


@dataclass
class ReconciliationReport:
    started_at: datetime
    finished_at: datetime | None = None
    transactions_checked: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)
    markets: list[MarketCheck] = field(default_factory=list)
    matured_markets: list[str] = field(default_factory=list)
    errors: int = 0

    def count(self, outcome: TransactionOutcome) -> None:
        self.outcomes[outcome.value] = self.outcomes.get(outcome.value, 0) + 1

    @property
    def divergent_markets(self) -> list[str]:
        return [m.market_id for m in self.markets if m.state is ReconciliationState.DIVERGENT]
