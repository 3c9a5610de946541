"""Ledger read models — opaque snapshots of external-ledger state."""

from dataclasses import dataclass

from src.bm_common.enums import SettlementState


@dataclass(frozen=True)
class AccountState:
    """Raw account as returned by the ledger. Decoding `data` is the caller's concern."""

    address: str
    lamports: int
    owner: str
    data: bytes
    executable: bool
    rent_epoch: int | None
    slot: int


@dataclass(frozen=True)
class SettlementStatus:
    reference: str
    state: SettlementState
    slot: int | None = None
    error: str | None = None

    @property
    def is_final(self) -> bool:
        return self.state in (SettlementState.CONFIRMED, SettlementState.FAILED)
