"""006: create widget_views table

Revision ID: 006
Revises: 005
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Append-only: no updated_at, no trigger.
    op.execute("""
        CREATE TABLE widget_views (
            id              VARCHAR(64)     PRIMARY KEY,
            merchant_id     VARCHAR(64)     NOT NULL REFERENCES merchants(id) ON DELETE CASCADE,
            offer_id        VARCHAR(64)     REFERENCES offers(id) ON DELETE SET NULL,
            product_id      VARCHAR(200),
            visitor_id      VARCHAR(200),
            ip_address      VARCHAR(64),
            user_agent      VARCHAR(500),
            referer         VARCHAR(500),
            view_type       VARCHAR(20)     NOT NULL DEFAULT 'shown',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_widget_views_type CHECK (view_type IN ('shown', 'no_offers', 'out_of_stock'))
        );
    """)
    op.execute("CREATE INDEX idx_widget_views_merchant ON widget_views (merchant_id, created_at DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS widget_views CASCADE;")
