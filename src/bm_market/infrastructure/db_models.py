"""SQLAlchemy ORM model for the markets table.

Used for type reference only — persistence.py uses raw text() SQL.
Alembic migrations (001_create_markets.py) are the authoritative DDL source.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.bm_common.database import Base


class MarketORM(Base):
    __tablename__ = "markets"

    market_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    issuer: Mapped[str] = mapped_column(String(64), nullable=False)
    bond_name: Mapped[str] = mapped_column(Text, nullable=False)
    bond_symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    total_supply: Mapped[int] = mapped_column(BigInteger, nullable=False)
    bonds_sold: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_bonds_issued: Mapped[int] = mapped_column(BigInteger, nullable=False)
    face_value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    coupon_rate_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    maturity_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    market_account: Mapped[str | None] = mapped_column(String(64))
    bond_mint: Mapped[str | None] = mapped_column(String(64))
    creation_reference: Mapped[str | None] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
