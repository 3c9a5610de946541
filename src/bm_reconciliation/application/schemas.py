"""Wire format for sweep reports."""

from pydantic import Field

from src.bm_common.response import CamelModel
from src.bm_reconciliation.domain.models import MarketCheck, ReconciliationReport


class MarketCheckOut(CamelModel):
    market_id: str
    state: str
    missing_accounts: list[str] = Field(default_factory=list)
    pending_transactions: int = 0

    @classmethod
    def from_domain(cls, check: MarketCheck) -> "MarketCheckOut":
        return cls(
            market_id=check.market_id,
            state=check.state.value,
            missing_accounts=list(check.missing_accounts),
            pending_transactions=check.pending_transactions,
        )


class ReconciliationReportOut(CamelModel):
    started_at: str
    finished_at: str | None
    transactions_checked: int
    outcomes: dict[str, int]
    markets: list[MarketCheckOut]
    divergent_markets: list[str]
    matured_markets: list[str]
    errors: int

    @classmethod
    def from_domain(cls, report: ReconciliationReport) -> "ReconciliationReportOut":
        return cls(
            started_at=report.started_at.isoformat(),
            finished_at=report.finished_at.isoformat() if report.finished_at else None,
            transactions_checked=report.transactions_checked,
            outcomes=dict(report.outcomes),
            markets=[MarketCheckOut.from_domain(m) for m in report.markets],
            divergent_markets=report.divergent_markets,
            matured_markets=list(report.matured_markets),
            errors=report.errors,
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
