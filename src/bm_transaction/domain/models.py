"""Transaction domain model — pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime

from src.bm_common.enums import TransactionStatus


@dataclass
class Transaction:
    transaction_id: str
    market_id: str
    buyer: str
    seller: str | None
    transaction_type: str  # buy / sell / coupon_claim / redeem
    bond_quantity: int
    price_per_bond: int
    total_amount: int  # bond_quantity * price_per_bond, fixed at write time
    settlement_reference: str  # ledger signature, globally unique
    status: str = TransactionStatus.PENDING.value
    block_number: int | None = None
    confirmed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING.value

    def same_intent(self, other: "Transaction") -> bool:
        """True when two records describe the same trade (used for idempotent replays)."""
        return (
            self.market_id == other.market_id
            and self.buyer == other.buyer
            and self.seller == other.seller
            and self.transaction_type == other.transaction_type
            and self.bond_quantity == other.bond_quantity
            and self.price_per_bond == other.price_per_bond
        )


@dataclass
class TransactionFilter:
    market_id: str | None = None
    buyer: str | None = None
    seller: str | None = None
    transaction_type: str | None = None
    status: str | None = None
