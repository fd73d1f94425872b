"""002: create merchants table

Revision ID: 002
Revises: 001
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE merchants (
            id                      VARCHAR(64)     PRIMARY KEY,
            email                   VARCHAR(255)    NOT NULL,
            shop_name               VARCHAR(200),
            platform_fee_bps        INT             NOT NULL DEFAULT 500,
            payment_account_id      VARCHAR(100),
            payment_account_status  VARCHAR(20)     NOT NULL DEFAULT 'none',
            onboarding_complete     BOOLEAN         NOT NULL DEFAULT FALSE,
            is_active               BOOLEAN         NOT NULL DEFAULT TRUE,
            preferred_language      VARCHAR(5)      NOT NULL DEFAULT 'en',
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_merchants_email               UNIQUE (email),
            CONSTRAINT uq_merchants_payment_account     UNIQUE (payment_account_id),
            CONSTRAINT ck_merchants_fee_bps             CHECK (platform_fee_bps BETWEEN 0 AND 10000),
            CONSTRAINT ck_merchants_account_status      CHECK (
                payment_account_status IN ('none', 'pending', 'active')
            ),
            CONSTRAINT ck_merchants_language            CHECK (preferred_language IN ('en', 'de'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_merchants_updated_at
            BEFORE UPDATE ON merchants
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE merchants IS 'Shops using the widget; profile owned by the dashboard';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS merchants CASCADE;")
