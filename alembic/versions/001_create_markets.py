"""001: create markets table

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_touch_updated_at()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE markets (
            market_id               VARCHAR(64)     PRIMARY KEY,
            issuer                  VARCHAR(64)     NOT NULL,
            bond_name               TEXT            NOT NULL,
            bond_symbol             VARCHAR(16)     NOT NULL,
            total_supply            BIGINT          NOT NULL,
            bonds_sold              BIGINT          NOT NULL DEFAULT 0,
            total_bonds_issued      BIGINT          NOT NULL DEFAULT 0,
            face_value              BIGINT          NOT NULL,
            current_price           BIGINT          NOT NULL,
            coupon_rate_bps         INT             NOT NULL,
            maturity_date           TIMESTAMPTZ     NOT NULL,
            status                  VARCHAR(16)     NOT NULL DEFAULT 'active',
            market_account          VARCHAR(64),
            bond_mint               VARCHAR(64),
            creation_reference      VARCHAR(128),
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_markets_issuer_symbol     UNIQUE (issuer, bond_symbol),
            CONSTRAINT ck_markets_supply_gte_0      CHECK (total_supply >= 0),
            CONSTRAINT ck_markets_sold_range        CHECK (bonds_sold >= 0 AND bonds_sold <= total_supply),
            CONSTRAINT ck_markets_issued_gte_0      CHECK (total_bonds_issued >= 0),
            CONSTRAINT ck_markets_money_gte_0       CHECK (face_value >= 0 AND current_price >= 0),
            CONSTRAINT ck_markets_coupon_range      CHECK (coupon_rate_bps >= 0 AND coupon_rate_bps <= 10000),
            CONSTRAINT ck_markets_status CHECK (
                status IN ('active', 'matured', 'paused')
            ),
            CONSTRAINT ck_markets_accounts_paired CHECK (
                (market_account IS NULL) = (bond_mint IS NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_markets_issuer ON markets (issuer);")
    op.execute("CREATE INDEX idx_markets_status ON markets (status);")
    op.execute("CREATE INDEX idx_markets_created ON markets (created_at DESC, market_id DESC);")
    op.execute("""
        CREATE INDEX idx_markets_maturity_active ON markets (maturity_date)
            WHERE status = 'active';
    """)
    op.execute("""
        CREATE TRIGGER trg_markets_updated_at
            BEFORE UPDATE ON markets
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE markets IS 'Bond markets: supply counters, lifecycle status, ledger binding';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS markets CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_touch_updated_at();")
