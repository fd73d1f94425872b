"""StockLedger: atomic conditional updates on offers.stock_quantity.

Each mutation is one UPDATE statement; the WHERE clause is the check.
0 rows from try_reserve means the offer is sold out (or gone), never that
the counter went negative.

Transaction ownership: the CALLER commits.
"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_common.errors import InternalError

logger = logging.getLogger(__name__)

_RESERVE_SQL = text("""
    UPDATE offers
    SET stock_quantity = stock_quantity - 1,
        updated_at = NOW()
    WHERE id = :offer_id AND stock_quantity > 0
    RETURNING stock_quantity
""")

_RELEASE_SQL = text("""
    UPDATE offers
    SET stock_quantity = stock_quantity + 1,
        updated_at = NOW()
    WHERE id = :offer_id
    RETURNING stock_quantity
""")


class StockLedger:
    async def try_reserve(self, offer_id: str, db: AsyncSession) -> bool:
        result = await db.execute(_RESERVE_SQL, {"offer_id": offer_id})
        row = result.fetchone()
        if row is None:
            logger.info("stock reserve refused for offer %s (sold out)", offer_id)
            return False
        logger.debug("reserved 1 unit of offer %s, %d left", offer_id, row.stock_quantity)
        return True

    async def release(self, offer_id: str, db: AsyncSession) -> None:
        result = await db.execute(_RELEASE_SQL, {"offer_id": offer_id})
        if result.fetchone() is None:
            raise InternalError(f"Cannot release stock: offer {offer_id} not found")
