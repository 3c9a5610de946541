"""Pydantic schemas for bm_market API requests and responses.

Wire format is camelCase (CamelModel); couponRate travels as a percentage and
is stored as basis points.
"""

from datetime import datetime

from pydantic import AliasChoices, Field

from src.bm_common.amounts import MAX_BIGINT, bps_to_percent
from src.bm_common.enums import MarketStatus
from src.bm_common.response import CamelModel
from src.bm_market.domain.models import Market

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateMarketRequest(CamelModel):
    issuer: str
    bond_name: str
    bond_symbol: str
    total_supply: int = Field(le=MAX_BIGINT)
    maturity_date: datetime
    coupon_rate: float = Field(allow_inf_nan=False)
    face_value: int = Field(le=MAX_BIGINT)
    current_price: int = Field(le=MAX_BIGINT)
    # Ledger signature of the on-chain create_market instruction, if already sent
    creation_reference: str | None = Field(
        None, validation_alias=AliasChoices("creationReference", "solanaTransactionHash")
    )
    market_account: str | None = None
    bond_mint: str | None = None


class AttachLedgerAccountsRequest(CamelModel):
    market_account: str
    bond_mint: str


class SetMarketStatusRequest(CamelModel):
    status: MarketStatus


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class MarketOut(CamelModel):
    market_id: str
    issuer: str
    bond_name: str
    bond_symbol: str
    total_supply: int
    bonds_sold: int
    available_supply: int
    total_bonds_issued: int
    face_value: int
    current_price: int
    coupon_rate: float
    coupon_rate_bps: int
    maturity_date: datetime
    status: str
    market_account: str | None
    bond_mint: str | None
    tradeable: bool
    creation_reference: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, m: Market) -> "MarketOut":
        return cls(
            market_id=m.market_id,
            issuer=m.issuer,
            bond_name=m.bond_name,
            bond_symbol=m.bond_symbol,
            total_supply=m.total_supply,
            bonds_sold=m.bonds_sold,
            available_supply=m.available_supply,
            total_bonds_issued=m.total_bonds_issued,
            face_value=m.face_value,
            current_price=m.current_price,
            coupon_rate=bps_to_percent(m.coupon_rate_bps),
            coupon_rate_bps=m.coupon_rate_bps,
            maturity_date=m.maturity_date,
            status=m.status,
            market_account=m.market_account,
            bond_mint=m.bond_mint,
            tradeable=m.is_tradeable,
            creation_reference=m.creation_reference,
            created_at=m.created_at,
            updated_at=m.updated_at,
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
