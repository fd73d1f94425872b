"""005: create bids table

Revision ID: 005
Revises: 004
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bids (
            id                      VARCHAR(64)     PRIMARY KEY,
            merchant_id             VARCHAR(64)     NOT NULL REFERENCES merchants(id) ON DELETE CASCADE,
            offer_id                VARCHAR(64)     NOT NULL REFERENCES offers(id) ON DELETE CASCADE,
            intent_id               VARCHAR(64)     NOT NULL REFERENCES bid_intents(id),
            customer_email          VARCHAR(255)    NOT NULL,
            customer_name           VARCHAR(200)    NOT NULL,
            shipping_address        JSONB,
            locale                  VARCHAR(5)      NOT NULL DEFAULT 'en',
            amount                  BIGINT          NOT NULL,
            currency                VARCHAR(3)      NOT NULL DEFAULT 'eur',
            platform_fee_amount     BIGINT          NOT NULL,
            merchant_amount         BIGINT          NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'pending',
            capture_mode            VARCHAR(10)     NOT NULL,
            payment_reference       VARCHAR(100),
            settlement_reference    VARCHAR(100),
            captured_at             TIMESTAMPTZ,
            refunded_at             TIMESTAMPTZ,
            stock_reserved          BOOLEAN         NOT NULL DEFAULT FALSE,
            resolution_source       VARCHAR(20),
            claim_token             VARCHAR(64),
            claimed_at              TIMESTAMPTZ,
            swept_at                TIMESTAMPTZ,
            sweep_attempts          INT             NOT NULL DEFAULT 0,
            last_sweep_error        VARCHAR(500),
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            resolved_at             TIMESTAMPTZ,
            CONSTRAINT uq_bids_intent               UNIQUE (intent_id),
            CONSTRAINT uq_bids_payment_reference    UNIQUE (payment_reference),
            CONSTRAINT ck_bids_amount               CHECK (amount > 0),
            CONSTRAINT ck_bids_fee_split            CHECK (
                platform_fee_amount >= 0 AND merchant_amount >= 0
                AND platform_fee_amount + merchant_amount = amount
            ),
            CONSTRAINT ck_bids_status               CHECK (status IN ('pending', 'accepted', 'declined')),
            CONSTRAINT ck_bids_capture_mode         CHECK (capture_mode IN ('automatic', 'manual')),
            CONSTRAINT ck_bids_locale               CHECK (locale IN ('en', 'de')),
            CONSTRAINT ck_bids_resolution_source    CHECK (
                resolution_source IS NULL
                OR resolution_source IN ('instant', 'merchant', 'sweep', 'webhook')
            ),
            CONSTRAINT ck_bids_resolved_consistency CHECK (
                (status = 'pending' AND resolved_at IS NULL) OR
                (status <> 'pending' AND resolved_at IS NOT NULL AND resolution_source IS NOT NULL)
            ),
            CONSTRAINT ck_bids_accepted_captured    CHECK (status <> 'accepted' OR captured_at IS NOT NULL)
        );
    """)
    op.execute("CREATE INDEX idx_bids_merchant_id ON bids (merchant_id, id DESC);")
    op.execute("""
        CREATE INDEX idx_bids_pending_sweep_order
        ON bids (sweep_attempts, created_at)
        WHERE status = 'pending';
    """)
    op.execute("""
        CREATE TRIGGER trg_bids_updated_at
            BEFORE UPDATE ON bids
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("""
        CREATE TRIGGER trg_bids_terminal_status
            BEFORE UPDATE OF status ON bids
            FOR EACH ROW EXECUTE FUNCTION fn_reject_terminal_reversal('pending');
    """)
    op.execute("COMMENT ON TABLE bids IS 'Shopper bids; pending -> accepted | declined, both terminal';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bids CASCADE;")
