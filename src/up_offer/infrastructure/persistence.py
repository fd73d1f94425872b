# src/up_offer/infrastructure/persistence.py
"""OfferRepository: raw SQL persistence implementation.

stock_quantity is never written here except on insert; decrements and
releases go through StockLedger.
"""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_offer.domain.models import Offer
from src.up_offer.domain.rules import PriorityShift

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, merchant_id, product_name, product_sku, headline, subheadline, image_url,
    min_selling_price, fixed_price, bid_range_min, bid_range_max,
    stock_quantity, priority, is_active, created_at, updated_at
"""

_GET_OFFER_SQL = text(f"SELECT {_SELECT_COLUMNS} FROM offers WHERE id = :id")

_GET_WIDGET_OFFER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM offers
    WHERE merchant_id = :merchant_id AND is_active AND stock_quantity > 0
    ORDER BY priority ASC
    LIMIT 1
""")

_COUNT_ACTIVE_SQL = text("""
    SELECT COUNT(*) AS n FROM offers WHERE merchant_id = :merchant_id AND is_active
""")

# Serializes priority edits for one merchant; returns the sibling count.
_LOCK_MERCHANT_OFFERS_SQL = text("""
    SELECT id FROM offers WHERE merchant_id = :merchant_id FOR UPDATE
""")

_INSERT_OFFER_SQL = text("""
    INSERT INTO offers (id, merchant_id, product_name, product_sku, headline,
        subheadline, image_url, min_selling_price, fixed_price,
        bid_range_min, bid_range_max, stock_quantity, priority, is_active)
    VALUES (:id, :merchant_id, :product_name, :product_sku, :headline,
        :subheadline, :image_url, :min_selling_price, :fixed_price,
        :bid_range_min, :bid_range_max, :stock_quantity, :priority, :is_active)
""")

_UPDATE_OFFER_SQL = text("""
    UPDATE offers
    SET product_name = :product_name, product_sku = :product_sku,
        headline = :headline, subheadline = :subheadline, image_url = :image_url,
        min_selling_price = :min_selling_price, fixed_price = :fixed_price,
        bid_range_min = :bid_range_min, bid_range_max = :bid_range_max,
        priority = :priority, is_active = :is_active, updated_at = NOW()
    WHERE id = :id
""")

_SHIFT_PRIORITIES_SQL = text("""
    UPDATE offers
    SET priority = priority + :delta, updated_at = NOW()
    WHERE merchant_id = :merchant_id
      AND priority >= :lo
      AND (CAST(:hi AS INTEGER) IS NULL OR priority <= :hi)
      AND (CAST(:exclude_id AS TEXT) IS NULL OR id <> :exclude_id)
""")

# Bids and intents go with the offer (ON DELETE CASCADE).
_DELETE_OFFER_SQL = text("DELETE FROM offers WHERE id = :id")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_offer(row: Any) -> Offer:
    return Offer(
        id=row.id,
        merchant_id=row.merchant_id,
        product_name=row.product_name,
        product_sku=row.product_sku,
        headline=row.headline,
        subheadline=row.subheadline,
        image_url=row.image_url,
        min_selling_price=row.min_selling_price,
        fixed_price=row.fixed_price,
        bid_range_min=row.bid_range_min,
        bid_range_max=row.bid_range_max,
        stock_quantity=row.stock_quantity,
        priority=row.priority,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _offer_params(offer: Offer) -> dict[str, Any]:
    return {
        "id": offer.id,
        "merchant_id": offer.merchant_id,
        "product_name": offer.product_name,
        "product_sku": offer.product_sku,
        "headline": offer.headline,
        "subheadline": offer.subheadline,
        "image_url": offer.image_url,
        "min_selling_price": offer.min_selling_price,
        "fixed_price": offer.fixed_price,
        "bid_range_min": offer.bid_range_min,
        "bid_range_max": offer.bid_range_max,
        "stock_quantity": offer.stock_quantity,
        "priority": offer.priority,
        "is_active": offer.is_active,
    }


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OfferRepository:
    async def get_by_id(self, offer_id: str, db: AsyncSession) -> Offer | None:
        result = await db.execute(_GET_OFFER_SQL, {"id": offer_id})
        row = result.fetchone()
        return _row_to_offer(row) if row else None

    async def get_widget_offer(self, merchant_id: str, db: AsyncSession) -> Offer | None:
        result = await db.execute(_GET_WIDGET_OFFER_SQL, {"merchant_id": merchant_id})
        row = result.fetchone()
        return _row_to_offer(row) if row else None

    async def count_active(self, merchant_id: str, db: AsyncSession) -> int:
        result = await db.execute(_COUNT_ACTIVE_SQL, {"merchant_id": merchant_id})
        return int(result.scalar_one())

    async def lock_merchant_offers(self, merchant_id: str, db: AsyncSession) -> int:
        result = await db.execute(_LOCK_MERCHANT_OFFERS_SQL, {"merchant_id": merchant_id})
        return len(result.fetchall())

    async def insert(self, offer: Offer, db: AsyncSession) -> None:
        await db.execute(_INSERT_OFFER_SQL, _offer_params(offer))

    async def update(self, offer: Offer, db: AsyncSession) -> None:
        params = _offer_params(offer)
        params.pop("merchant_id")
        params.pop("stock_quantity")
        await db.execute(_UPDATE_OFFER_SQL, params)

    async def shift_priorities(
        self, merchant_id: str, shift: PriorityShift, exclude_id: str | None, db: AsyncSession
    ) -> None:
        await db.execute(
            _SHIFT_PRIORITIES_SQL,
            {
                "merchant_id": merchant_id,
                "lo": shift.lo,
                "hi": shift.hi,
                "delta": shift.delta,
                "exclude_id": exclude_id,
            },
        )

    async def delete(self, offer_id: str, db: AsyncSession) -> None:
        await db.execute(_DELETE_OFFER_SQL, {"id": offer_id})
