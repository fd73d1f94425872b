"""004: create bid_intents table

Revision ID: 004
Revises: 003
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bid_intents (
            id                  VARCHAR(64)     PRIMARY KEY,
            bid_id              VARCHAR(64)     NOT NULL,
            offer_id            VARCHAR(64)     NOT NULL REFERENCES offers(id) ON DELETE CASCADE,
            merchant_id         VARCHAR(64)     NOT NULL REFERENCES merchants(id) ON DELETE CASCADE,
            amount              BIGINT          NOT NULL,
            platform_fee_amount BIGINT          NOT NULL,
            capture_mode        VARCHAR(10)     NOT NULL,
            stock_reserved      BOOLEAN         NOT NULL DEFAULT FALSE,
            status              VARCHAR(20)     NOT NULL DEFAULT 'OPEN',
            payment_reference   VARCHAR(100),
            failure_reason      VARCHAR(500),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_bid_intents_bid_id        UNIQUE (bid_id),
            CONSTRAINT ck_bid_intents_amount        CHECK (amount > 0),
            CONSTRAINT ck_bid_intents_fee           CHECK (platform_fee_amount BETWEEN 0 AND amount),
            CONSTRAINT ck_bid_intents_capture_mode  CHECK (capture_mode IN ('automatic', 'manual')),
            CONSTRAINT ck_bid_intents_status        CHECK (
                status IN ('OPEN', 'FINALIZED', 'FAILED', 'ORPHANED', 'RECONCILED')
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_bid_intents_unsettled
        ON bid_intents (created_at)
        WHERE status IN ('OPEN', 'ORPHANED');
    """)
    op.execute("""
        CREATE TRIGGER trg_bid_intents_updated_at
            BEFORE UPDATE ON bid_intents
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("""
        CREATE TRIGGER trg_bid_intents_terminal_status
            BEFORE UPDATE OF status ON bid_intents
            FOR EACH ROW EXECUTE FUNCTION fn_reject_terminal_reversal('OPEN', 'ORPHANED');
    """)
    op.execute("COMMENT ON TABLE bid_intents IS 'Write-ahead record around the gateway authorization';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bid_intents CASCADE;")
