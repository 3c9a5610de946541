"""Domain models for bm_market — pure dataclasses, no I/O."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Market:
    market_id: str
    issuer: str
    bond_name: str
    bond_symbol: str
    total_supply: int
    bonds_sold: int
    total_bonds_issued: int
    face_value: int
    current_price: int
    coupon_rate_bps: int
    maturity_date: datetime
    status: str
    market_account: str | None
    bond_mint: str | None
    creation_reference: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def available_supply(self) -> int:
        return self.total_supply - self.bonds_sold

    @property
    def is_tradeable(self) -> bool:
        """Both on-chain counterparts must be attached before trading."""
        return self.market_account is not None and self.bond_mint is not None


@dataclass
class NewMarket:
    """Validated creation input, before an id and timestamps are assigned."""

    issuer: str
    bond_name: str
    bond_symbol: str
    total_supply: int
    face_value: int
    current_price: int
    coupon_rate_bps: int
    maturity_date: datetime
    creation_reference: str | None = None
