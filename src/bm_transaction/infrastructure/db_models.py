"""SQLAlchemy ORM model for the transactions table.

Used for type reference only — persistence.py uses raw text() SQL.
Alembic migrations (002_create_transactions.py) are the authoritative DDL source.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from src.bm_common.database import Base


class TransactionORM(Base):
    __tablename__ = "transactions"

    transaction_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    market_id: Mapped[str] = mapped_column(String(64), nullable=False)
    buyer: Mapped[str] = mapped_column(String(64), nullable=False)
    seller: Mapped[str | None] = mapped_column(String(64))
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    bond_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    price_per_bond: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    settlement_reference: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    block_number: Mapped[int | None] = mapped_column(BigInteger)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
