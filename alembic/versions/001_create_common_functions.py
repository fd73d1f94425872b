"""001: trigger functions shared by the bid schema

fn_touch_updated_at keeps updated_at current on every row update.
fn_reject_terminal_reversal stops a bid or intent that reached a terminal
status from being moved to another status by any writer, including
manual SQL during incident handling.

Revision ID: 001
Revises:
Create Date: 2026-10-05
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
            NEW.updated_at := NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    # TG_ARGV lists the statuses that may still change.
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_reject_terminal_reversal()
        RETURNS TRIGGER AS $$
        BEGIN
            IF NEW.status IS DISTINCT FROM OLD.status
               AND NOT (OLD.status = ANY (TG_ARGV)) THEN
                RAISE EXCEPTION '% % is % and cannot become %',
                    TG_TABLE_NAME, OLD.id, OLD.status, NEW.status
                    USING ERRCODE = 'check_violation';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS fn_reject_terminal_reversal();")
    op.execute("DROP FUNCTION IF EXISTS fn_touch_updated_at();")
