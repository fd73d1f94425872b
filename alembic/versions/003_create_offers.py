"""003: create offers table

Revision ID: 003
Revises: 002
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Priority uniqueness is deferred so a cascade shift can pass through
    # duplicate values mid-statement.
    op.execute("""
        CREATE TABLE offers (
            id                  VARCHAR(64)     PRIMARY KEY,
            merchant_id         VARCHAR(64)     NOT NULL REFERENCES merchants(id) ON DELETE CASCADE,
            product_name        VARCHAR(200)    NOT NULL,
            product_sku         VARCHAR(100),
            headline            VARCHAR(200),
            subheadline         VARCHAR(300),
            image_url           TEXT,
            min_selling_price   BIGINT          NOT NULL,
            fixed_price         BIGINT          NOT NULL,
            bid_range_min       BIGINT          NOT NULL,
            bid_range_max       BIGINT          NOT NULL,
            stock_quantity      INT             NOT NULL DEFAULT 0,
            priority            INT             NOT NULL DEFAULT 1,
            is_active           BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_offers_prices_positive    CHECK (
                min_selling_price > 0 AND fixed_price > 0 AND bid_range_min > 0
            ),
            CONSTRAINT ck_offers_bid_range          CHECK (bid_range_max > bid_range_min),
            CONSTRAINT ck_offers_stock_gte_0        CHECK (stock_quantity >= 0),
            CONSTRAINT ck_offers_priority_gte_1     CHECK (priority >= 1),
            CONSTRAINT uq_offers_merchant_priority  UNIQUE (merchant_id, priority)
                DEFERRABLE INITIALLY DEFERRED
        );
    """)
    op.execute("""
        CREATE INDEX idx_offers_widget
        ON offers (merchant_id, priority)
        WHERE is_active AND stock_quantity > 0;
    """)
    op.execute("""
        CREATE TRIGGER trg_offers_updated_at
            BEFORE UPDATE ON offers
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE offers IS 'Upsell offers; min_selling_price is never sent to the widget';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS offers CASCADE;")
