# src/bm_transaction/application/schemas.py
from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, Field

from src.bm_common.amounts import MAX_BIGINT
from src.bm_common.enums import TransactionType
from src.bm_common.response import CamelModel
from src.bm_transaction.domain.models import Transaction


class CreateTransactionRequest(CamelModel):
    market_id: str
    buyer: str
    seller: str | None = None
    transaction_type: TransactionType
    bond_quantity: int = Field(le=MAX_BIGINT)
    price_per_bond: int = Field(le=MAX_BIGINT)
    settlement_reference: str = Field(
        validation_alias=AliasChoices("settlementReference", "solanaTransactionHash")
    )


class UpdateTransactionStatusRequest(CamelModel):
    # pending is only ever an initial state
    status: Literal["confirmed", "failed"]
    block_number: int | None = Field(None, ge=0, le=MAX_BIGINT)


class TransactionOut(CamelModel):
    transaction_id: str
    market_id: str
    buyer: str
    seller: str | None
    transaction_type: str
    bond_quantity: int
    price_per_bond: int
    total_amount: int
    settlement_reference: str
    status: str
    block_number: int | None = None
    confirmed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, t: Transaction) -> "TransactionOut":
        return cls(
            transaction_id=t.transaction_id,
            market_id=t.market_id,
            buyer=t.buyer,
            seller=t.seller,
            transaction_type=t.transaction_type,
            bond_quantity=t.bond_quantity,
            price_per_bond=t.price_per_bond,
            total_amount=t.total_amount,
            settlement_reference=t.settlement_reference,
            status=t.status,
            block_number=t.block_number,
            confirmed_at=t.confirmed_at,
            created_at=t.created_at,
            updated_at=t.updated_at,
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
