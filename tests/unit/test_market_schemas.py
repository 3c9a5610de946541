from datetime import UTC, datetime

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.bm_common.enums import ReconciliationState
from src.bm_market.application.schemas import CreateMarketRequest, MarketOut
from src.bm_market.domain.models import Market
from src.bm_reconciliation.application.schemas import ReconciliationReportOut
from src.bm_reconciliation.domain.models import MarketCheck, ReconciliationReport
from src.bm_transaction.application.schemas import (
    TransactionOut,
    UpdateTransactionStatusRequest,
)
from src.bm_transaction.domain.models import Transaction
from tests.fakes import make_pubkey

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _make_market(**kwargs) -> Market:
    defaults = dict(
        market_id="m-1",
        issuer=make_pubkey(1),
        bond_name="US Treasury 2030",
        bond_symbol="USTB30",
        total_supply=1000,
        bonds_sold=100,
        total_bonds_issued=0,
        face_value=1_000_000,
        current_price=980_000,
        coupon_rate_bps=850,
        maturity_date=NOW,
        status="active",
        market_account=None,
        bond_mint=None,
        creation_reference=None,
        created_at=NOW,
        updated_at=NOW,
    )
    defaults.update(kwargs)
    return Market(**defaults)


class TestMarketOut:
    def test_wire_is_camel_case(self) -> None:
        wire = MarketOut.from_domain(_make_market()).to_wire()
        assert wire["marketId"] == "m-1"
        assert wire["bondsSold"] == 100
        assert wire["availableSupply"] == 900
        assert "bonds_sold" not in wire

    def test_coupon_exposed_as_percent(self) -> None:
        wire = MarketOut.from_domain(_make_market(coupon_rate_bps=425)).to_wire()
        assert wire["couponRate"] == 4.25
        assert wire["couponRateBps"] == 425

    def test_datetimes_are_iso(self) -> None:
        wire = MarketOut.from_domain(_make_market()).to_wire()
        assert wire["maturityDate"].startswith("2026-01-01T00:00:00")


class TestCreateMarketRequest:
    def test_accepts_snake_case_too(self) -> None:
        req = CreateMarketRequest(
            issuer=make_pubkey(1), bond_name="B", bond_symbol="B", total_supply=1,
            maturity_date=NOW, coupon_rate=1, face_value=1, current_price=1,
        )
        assert req.market_account is None

    def test_missing_field(self) -> None:
        with pytest.raises(PydanticValidationError):
            CreateMarketRequest.model_validate({"issuer": make_pubkey(1)})


class TestTransactionSchemas:
    def test_transaction_wire(self) -> None:
        txn = Transaction(
            transaction_id="t-1", market_id="m-1", buyer=make_pubkey(2), seller=None,
            transaction_type="coupon_claim", bond_quantity=3, price_per_bond=7,
            total_amount=21, settlement_reference="sig", created_at=NOW,
        )
        wire = TransactionOut.from_domain(txn).to_wire()
        assert wire["transactionType"] == "coupon_claim"
        assert wire["totalAmount"] == 21
        assert wire["confirmedAt"] is None

    @pytest.mark.parametrize("status", ["pending", "settled", ""])
    def test_status_update_targets(self, status) -> None:
        with pytest.raises(PydanticValidationError):
            UpdateTransactionStatusRequest.model_validate({"status": status})


class TestReportSchema:
    def test_report_wire(self) -> None:
        report = ReconciliationReport(started_at=NOW, finished_at=NOW, transactions_checked=2)
        report.outcomes = {"confirmed": 2}
        report.markets.append(MarketCheck("m-1", ReconciliationState.DIVERGENT, ["acct"]))

        wire = ReconciliationReportOut.from_domain(report).to_wire()

        assert wire["transactionsChecked"] == 2
        assert wire["divergentMarkets"] == ["m-1"]
        assert wire["markets"][0] == {
            "marketId": "m-1",
            "state": "Divergent",
            "missingAccounts": ["acct"],
            "pendingTransactions": 0,
        }
