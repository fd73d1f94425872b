# src/up_bid/infrastructure/persistence.py
"""BidRepository / IntentRepository: raw SQL persistence implementation.

Every bid transition goes through two compare-and-set statements:
  claim:    pending and no live claim  -> claim_token set
  finalize: pending and our claim      -> terminal status, claim cleared
Zero rows from either means somebody else got there first.
"""
import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_bid.domain.models import Bid, BidIntent, Resolution
from src.up_common.enums import (
    BidStatus,
    CaptureMode,
    IntentStatus,
    Locale,
    ResolutionSource,
)

# ---------------------------------------------------------------------------
# SQL statements: bids
# ---------------------------------------------------------------------------

_BID_COLUMNS = """
    id, merchant_id, offer_id, intent_id, customer_email, customer_name,
    shipping_address, locale, amount, currency, platform_fee_amount,
    merchant_amount, status, capture_mode, payment_reference,
    settlement_reference, captured_at, refunded_at, stock_reserved,
    resolution_source, claim_token, claimed_at, swept_at, sweep_attempts,
    last_sweep_error, created_at, updated_at, resolved_at
"""

_INSERT_BID_SQL = text("""
    INSERT INTO bids (id, merchant_id, offer_id, intent_id, customer_email,
        customer_name, shipping_address, locale, amount, currency,
        platform_fee_amount, merchant_amount, status, capture_mode,
        payment_reference, settlement_reference, captured_at, stock_reserved,
        resolution_source, resolved_at, created_at)
    VALUES (:id, :merchant_id, :offer_id, :intent_id, :customer_email,
        :customer_name, CAST(:shipping_address AS JSONB), :locale, :amount, :currency,
        :platform_fee_amount, :merchant_amount, :status, :capture_mode,
        :payment_reference, :settlement_reference, :captured_at, :stock_reserved,
        :resolution_source, :resolved_at, COALESCE(:created_at, NOW()))
""")

_GET_BID_SQL = text(f"SELECT {_BID_COLUMNS} FROM bids WHERE id = :id")

_GET_BID_BY_PAYMENT_SQL = text(
    f"SELECT {_BID_COLUMNS} FROM bids WHERE payment_reference = :payment_reference"
)

# A claim older than stale_before is an abandoned lease and may be taken over.
_CLAIM_BID_SQL = text("""
    UPDATE bids
    SET claim_token = :token, claimed_at = :now, updated_at = NOW()
    WHERE id = :id
      AND status = 'pending'
      AND (claim_token IS NULL OR claimed_at < :stale_before)
    RETURNING id
""")

_RELEASE_CLAIM_SQL = text("""
    UPDATE bids
    SET claim_token = NULL, claimed_at = NULL, updated_at = NOW()
    WHERE id = :id AND claim_token = :token
""")

_MARK_STOCK_RESERVED_SQL = text("""
    UPDATE bids
    SET stock_reserved = :reserved, updated_at = NOW()
    WHERE id = :id AND claim_token = :token
""")

# Written as soon as the processor acknowledges a capture, before finalize, so a
# failed finalize can never lead to cancelling money that already moved.
_MARK_CAPTURED_SQL = text("""
    UPDATE bids
    SET captured_at = :captured_at,
        settlement_reference = COALESCE(:settlement_reference, settlement_reference),
        updated_at = NOW()
    WHERE id = :id AND status = 'pending' AND captured_at IS NULL
""")

_FINALIZE_BID_SQL = text(f"""
    UPDATE bids
    SET status = :status,
        resolution_source = :source,
        resolved_at = :resolved_at,
        stock_reserved = :stock_reserved,
        captured_at = COALESCE(:captured_at, captured_at),
        settlement_reference = COALESCE(:settlement_reference, settlement_reference),
        refunded_at = COALESCE(:refunded_at, refunded_at),
        swept_at = CASE WHEN :swept THEN :resolved_at ELSE swept_at END,
        claim_token = NULL,
        claimed_at = NULL,
        updated_at = NOW()
    WHERE id = :id AND status = 'pending' AND claim_token = :token
    RETURNING {_BID_COLUMNS}
""")

_SET_SHIPPING_SQL = text("""
    UPDATE bids
    SET shipping_address = CAST(:shipping_address AS JSONB), updated_at = NOW()
    WHERE id = :id AND shipping_address IS NULL
    RETURNING id
""")

_LIST_SWEEP_CANDIDATES_SQL = text(f"""
    SELECT {_BID_COLUMNS}
    FROM bids
    WHERE status = 'pending'
      AND created_at <= :window_end
      AND (:include_overdue OR created_at >= :window_start)
      AND (claim_token IS NULL OR claimed_at < :stale_before)
    ORDER BY sweep_attempts ASC, created_at ASC
    LIMIT :limit
""")

_LIST_BY_MERCHANT_SQL = text(f"""
    SELECT {_BID_COLUMNS}
    FROM bids
    WHERE merchant_id = :merchant_id
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor AS TEXT) IS NULL OR id < :cursor)
    ORDER BY id DESC
    LIMIT :limit
""")

_RECORD_SWEEP_ATTEMPT_SQL = text("""
    UPDATE bids
    SET sweep_attempts = sweep_attempts + 1,
        last_sweep_error = :error,
        updated_at = NOW()
    WHERE id = :id
""")

# ---------------------------------------------------------------------------
# SQL statements: bid_intents
# ---------------------------------------------------------------------------

_INTENT_COLUMNS = """
    id, bid_id, offer_id, merchant_id, amount, platform_fee_amount,
    capture_mode, stock_reserved, status, payment_reference, failure_reason,
    created_at, updated_at
"""

_INSERT_INTENT_SQL = text("""
    INSERT INTO bid_intents (id, bid_id, offer_id, merchant_id, amount,
        platform_fee_amount, capture_mode, stock_reserved, status)
    VALUES (:id, :bid_id, :offer_id, :merchant_id, :amount,
        :platform_fee_amount, :capture_mode, :stock_reserved, 'OPEN')
""")

_MARK_FINALIZED_SQL = text("""
    UPDATE bid_intents
    SET status = 'FINALIZED', payment_reference = :payment_reference, updated_at = NOW()
    WHERE id = :id
""")

_MARK_AUTHORIZED_SQL = text("""
    UPDATE bid_intents
    SET payment_reference = :payment_reference, updated_at = NOW()
    WHERE id = :id AND status = 'OPEN'
""")

_MARK_FAILED_SQL = text("""
    UPDATE bid_intents
    SET status = 'FAILED', failure_reason = :reason, stock_reserved = FALSE,
        updated_at = NOW()
    WHERE id = :id
""")

_MARK_ORPHANED_SQL = text("""
    UPDATE bid_intents
    SET status = 'ORPHANED',
        payment_reference = COALESCE(:payment_reference, payment_reference),
        failure_reason = :reason,
        stock_reserved = :stock_reserved,
        updated_at = NOW()
    WHERE id = :id
""")

# OPEN intents are crashed submissions, ORPHANED ones failed to void. Either
# may lack a payment reference; reconciliation recovers it from the gateway.
_LIST_STALE_INTENTS_SQL = text(f"""
    SELECT {_INTENT_COLUMNS}
    FROM bid_intents i
    WHERE i.created_at < :older_than
      AND (i.status = 'OPEN'
           OR i.status = 'ORPHANED')
      AND NOT EXISTS (SELECT 1 FROM bids b WHERE b.id = i.bid_id)
    ORDER BY i.created_at ASC
    LIMIT :limit
""")

_MARK_RECONCILED_SQL = text("""
    UPDATE bid_intents
    SET status = 'RECONCILED',
        payment_reference = COALESCE(:payment_reference, payment_reference),
        stock_reserved = FALSE,
        updated_at = NOW()
    WHERE id = :id
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _load_json(value: Any) -> dict[str, Any] | None:
    # asyncpg hands JSONB back as str unless a codec is registered
    if value is None or isinstance(value, dict):
        return value
    return json.loads(value)


def _row_to_bid(row: Any) -> Bid:
    return Bid(
        id=row.id,
        merchant_id=row.merchant_id,
        offer_id=row.offer_id,
        intent_id=row.intent_id,
        customer_email=row.customer_email,
        customer_name=row.customer_name,
        shipping_address=_load_json(row.shipping_address),
        locale=Locale(row.locale),
        amount=row.amount,
        currency=row.currency,
        platform_fee_amount=row.platform_fee_amount,
        merchant_amount=row.merchant_amount,
        status=BidStatus(row.status),
        capture_mode=CaptureMode(row.capture_mode),
        payment_reference=row.payment_reference,
        settlement_reference=row.settlement_reference,
        captured_at=row.captured_at,
        refunded_at=row.refunded_at,
        stock_reserved=row.stock_reserved,
        resolution_source=(
            ResolutionSource(row.resolution_source) if row.resolution_source else None
        ),
        claim_token=row.claim_token,
        claimed_at=row.claimed_at,
        swept_at=row.swept_at,
        sweep_attempts=row.sweep_attempts,
        last_sweep_error=row.last_sweep_error,
        created_at=row.created_at,
        updated_at=row.updated_at,
        resolved_at=row.resolved_at,
    )


def _row_to_intent(row: Any) -> BidIntent:
    return BidIntent(
        id=row.id,
        bid_id=row.bid_id,
        offer_id=row.offer_id,
        merchant_id=row.merchant_id,
        amount=row.amount,
        platform_fee_amount=row.platform_fee_amount,
        capture_mode=CaptureMode(row.capture_mode),
        stock_reserved=row.stock_reserved,
        status=IntentStatus(row.status),
        payment_reference=row.payment_reference,
        failure_reason=row.failure_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class BidRepository:
    async def insert(self, bid: Bid, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_BID_SQL,
            {
                "id": bid.id,
                "merchant_id": bid.merchant_id,
                "offer_id": bid.offer_id,
                "intent_id": bid.intent_id,
                "customer_email": bid.customer_email,
                "customer_name": bid.customer_name,
                "shipping_address": (
                    json.dumps(bid.shipping_address) if bid.shipping_address else None
                ),
                "locale": bid.locale.value,
                "amount": bid.amount,
                "currency": bid.currency,
                "platform_fee_amount": bid.platform_fee_amount,
                "merchant_amount": bid.merchant_amount,
                "status": bid.status.value,
                "capture_mode": bid.capture_mode.value,
                "payment_reference": bid.payment_reference,
                "settlement_reference": bid.settlement_reference,
                "captured_at": bid.captured_at,
                "stock_reserved": bid.stock_reserved,
                "resolution_source": (
                    bid.resolution_source.value if bid.resolution_source else None
                ),
                "resolved_at": bid.resolved_at,
                "created_at": bid.created_at,
            },
        )

    async def get_by_id(self, bid_id: str, db: AsyncSession) -> Bid | None:
        result = await db.execute(_GET_BID_SQL, {"id": bid_id})
        row = result.fetchone()
        return _row_to_bid(row) if row else None

    async def get_by_payment_reference(
        self, payment_reference: str, db: AsyncSession
    ) -> Bid | None:
        result = await db.execute(
            _GET_BID_BY_PAYMENT_SQL, {"payment_reference": payment_reference}
        )
        row = result.fetchone()
        return _row_to_bid(row) if row else None

    async def claim(
        self, bid_id: str, token: str, now: datetime, stale_before: datetime, db: AsyncSession
    ) -> bool:
        result = await db.execute(
            _CLAIM_BID_SQL,
            {"id": bid_id, "token": token, "now": now, "stale_before": stale_before},
        )
        return result.fetchone() is not None

    async def release_claim(self, bid_id: str, token: str, db: AsyncSession) -> None:
        await db.execute(_RELEASE_CLAIM_SQL, {"id": bid_id, "token": token})

    async def mark_stock_reserved(
        self, bid_id: str, token: str, reserved: bool, db: AsyncSession
    ) -> None:
        await db.execute(
            _MARK_STOCK_RESERVED_SQL, {"id": bid_id, "token": token, "reserved": reserved}
        )

    async def mark_captured(
        self,
        bid_id: str,
        captured_at: datetime,
        settlement_reference: str | None,
        db: AsyncSession,
    ) -> None:
        await db.execute(
            _MARK_CAPTURED_SQL,
            {
                "id": bid_id,
                "captured_at": captured_at,
                "settlement_reference": settlement_reference,
            },
        )

    async def finalize(
        self, bid_id: str, token: str, resolution: Resolution, db: AsyncSession
    ) -> Bid | None:
        result = await db.execute(
            _FINALIZE_BID_SQL,
            {
                "id": bid_id,
                "token": token,
                "status": resolution.status.value,
                "source": resolution.source.value,
                "resolved_at": resolution.resolved_at,
                "stock_reserved": resolution.stock_reserved,
                "captured_at": resolution.captured_at,
                "settlement_reference": resolution.settlement_reference,
                "refunded_at": resolution.refunded_at,
                "swept": resolution.swept,
            },
        )
        row = result.fetchone()
        return _row_to_bid(row) if row else None

    async def set_shipping_address(
        self, bid_id: str, address: dict[str, Any], db: AsyncSession
    ) -> bool:
        result = await db.execute(
            _SET_SHIPPING_SQL, {"id": bid_id, "shipping_address": json.dumps(address)}
        )
        return result.fetchone() is not None

    async def list_sweep_candidates(
        self,
        window_start: datetime,
        window_end: datetime,
        include_overdue: bool,
        stale_before: datetime,
        limit: int,
        db: AsyncSession,
    ) -> list[Bid]:
        result = await db.execute(
            _LIST_SWEEP_CANDIDATES_SQL,
            {
                "window_start": window_start,
                "window_end": window_end,
                "include_overdue": include_overdue,
                "stale_before": stale_before,
                "limit": limit,
            },
        )
        return [_row_to_bid(row) for row in result.fetchall()]

    async def list_by_merchant(
        self,
        merchant_id: str,
        status: BidStatus | None,
        cursor: str | None,
        limit: int,
        db: AsyncSession,
    ) -> list[Bid]:
        result = await db.execute(
            _LIST_BY_MERCHANT_SQL,
            {
                "merchant_id": merchant_id,
                "status": status.value if status else None,
                "cursor": cursor,
                "limit": limit,
            },
        )
        return [_row_to_bid(row) for row in result.fetchall()]

    async def record_sweep_attempt(self, bid_id: str, error: str, db: AsyncSession) -> None:
        await db.execute(_RECORD_SWEEP_ATTEMPT_SQL, {"id": bid_id, "error": error[:500]})


class IntentRepository:
    async def create(self, intent: BidIntent, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_INTENT_SQL,
            {
                "id": intent.id,
                "bid_id": intent.bid_id,
                "offer_id": intent.offer_id,
                "merchant_id": intent.merchant_id,
                "amount": intent.amount,
                "platform_fee_amount": intent.platform_fee_amount,
                "capture_mode": intent.capture_mode.value,
                "stock_reserved": intent.stock_reserved,
            },
        )

    async def mark_finalized(
        self, intent_id: str, payment_reference: str, db: AsyncSession
    ) -> None:
        await db.execute(
            _MARK_FINALIZED_SQL, {"id": intent_id, "payment_reference": payment_reference}
        )

    async def mark_authorized(
        self, intent_id: str, payment_reference: str, db: AsyncSession
    ) -> None:
        await db.execute(
            _MARK_AUTHORIZED_SQL, {"id": intent_id, "payment_reference": payment_reference}
        )

    async def mark_failed(self, intent_id: str, reason: str, db: AsyncSession) -> None:
        await db.execute(_MARK_FAILED_SQL, {"id": intent_id, "reason": reason[:500]})

    async def mark_orphaned(
        self,
        intent_id: str,
        payment_reference: str | None,
        reason: str,
        stock_reserved: bool,
        db: AsyncSession,
    ) -> None:
        await db.execute(
            _MARK_ORPHANED_SQL,
            {
                "id": intent_id,
                "payment_reference": payment_reference,
                "reason": reason[:500],
                "stock_reserved": stock_reserved,
            },
        )

    async def list_stale(
        self, older_than: datetime, limit: int, db: AsyncSession
    ) -> list[BidIntent]:
        result = await db.execute(
            _LIST_STALE_INTENTS_SQL, {"older_than": older_than, "limit": limit}
        )
        return [_row_to_intent(row) for row in result.fetchall()]

    async def mark_reconciled(
        self, intent_id: str, payment_reference: str | None, db: AsyncSession
    ) -> None:
        await db.execute(
            _MARK_RECONCILED_SQL, {"id": intent_id, "payment_reference": payment_reference}
        )
