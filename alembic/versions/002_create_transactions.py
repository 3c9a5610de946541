"""002: create transactions table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            transaction_id          VARCHAR(64)     PRIMARY KEY,
            market_id               VARCHAR(64)     NOT NULL REFERENCES markets(market_id),
            buyer                   VARCHAR(64)     NOT NULL,
            seller                  VARCHAR(64),
            transaction_type        VARCHAR(16)     NOT NULL,
            bond_quantity           BIGINT          NOT NULL,
            price_per_bond          BIGINT          NOT NULL,
            total_amount            BIGINT          NOT NULL,
            settlement_reference    VARCHAR(128)    NOT NULL,
            status                  VARCHAR(16)     NOT NULL DEFAULT 'pending',
            block_number            BIGINT,
            confirmed_at            TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_transactions_settlement_ref   UNIQUE (settlement_reference),
            CONSTRAINT ck_transactions_quantity_gt_0    CHECK (bond_quantity > 0),
            CONSTRAINT ck_transactions_price_gt_0       CHECK (price_per_bond > 0),
            CONSTRAINT ck_transactions_total            CHECK (total_amount = bond_quantity * price_per_bond),
            CONSTRAINT ck_transactions_block_gte_0      CHECK (block_number IS NULL OR block_number >= 0),
            CONSTRAINT ck_transactions_type CHECK (
                transaction_type IN ('buy', 'sell', 'coupon_claim', 'redeem')
            ),
            CONSTRAINT ck_transactions_status CHECK (
                status IN ('pending', 'confirmed', 'failed')
            ),
            CONSTRAINT ck_transactions_confirmed_at CHECK (
                (status = 'confirmed') = (confirmed_at IS NOT NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_transactions_market ON transactions (market_id, created_at DESC);")
    op.execute("CREATE INDEX idx_transactions_buyer ON transactions (buyer);")
    op.execute("CREATE INDEX idx_transactions_seller ON transactions (seller);")
    op.execute("CREATE INDEX idx_transactions_created ON transactions (created_at DESC, transaction_id DESC);")
    op.execute("""
        CREATE INDEX idx_transactions_pending ON transactions (created_at, transaction_id)
            WHERE status = 'pending';
    """)
    op.execute("""
        CREATE TRIGGER trg_transactions_updated_at
            BEFORE UPDATE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE transactions IS 'Trade intents keyed by ledger settlement reference';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
