"""Global enums — values must match DB CHECK constraints and the public API exactly.

Values are lowercase because they travel verbatim through the HTTP surface.
"""

from enum import Enum


class MarketStatus(str, Enum):
    ACTIVE = "active"
    MATURED = "matured"
    PAUSED = "paused"


class TransactionType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    COUPON_CLAIM = "coupon_claim"
    REDEEM = "redeem"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class SettlementState(str, Enum):
    """What the external ledger says about a settlement reference."""
    CONFIRMED = "confirmed"
    FAILED = "failed"
    PENDING = "pending"   # seen, not yet at the required commitment
    UNKNOWN = "unknown"   # ledger has no record of the signature


class ReconciliationState(str, Enum):
    CONSISTENT = "Consistent"
    PENDING_CONFIRMATION = "PendingConfirmation"
    DIVERGENT = "Divergent"
