"""OfferApplicationService: offer writes with the priority cascade.

Every write that touches priorities locks the merchant's offer rows first
(SELECT ... FOR UPDATE) so concurrent edits renumber one at a time.
"""
import dataclasses

from sqlalchemy.ext.asyncio import AsyncSession

from src.up_common.enums import WidgetViewType
from src.up_common.errors import OfferNotFoundError
from src.up_common.id_generator import generate_id
from src.up_offer.application.schemas import (
    OfferCreateRequest,
    OfferDetail,
    OfferUpdateRequest,
    WidgetOffer,
)
from src.up_offer.domain.models import Offer
from src.up_offer.domain.repository import OfferRepositoryProtocol
from src.up_offer.domain.rules import (
    clamp_priority,
    shift_for_delete,
    shift_for_insert,
    shift_for_move,
    validate_offer,
)
from src.up_offer.infrastructure.persistence import OfferRepository

# request field -> Offer attribute
_UPDATE_FIELDS = {
    "product_name": "product_name",
    "product_sku": "product_sku",
    "headline": "headline",
    "subheadline": "subheadline",
    "image_url": "image_url",
    "min_selling_price_cents": "min_selling_price",
    "fixed_price_cents": "fixed_price",
    "bid_range_min_cents": "bid_range_min",
    "bid_range_max_cents": "bid_range_max",
    "is_active": "is_active",
}


class OfferApplicationService:
    def __init__(self, repo: OfferRepositoryProtocol | None = None) -> None:
        self._repo: OfferRepositoryProtocol = repo or OfferRepository()

    async def _get_owned(self, db: AsyncSession, merchant_id: str, offer_id: str) -> Offer:
        offer = await self._repo.get_by_id(offer_id, db)
        if offer is None or offer.merchant_id != merchant_id:
            raise OfferNotFoundError(offer_id)
        return offer

    async def create_offer(
        self, db: AsyncSession, merchant_id: str, req: OfferCreateRequest
    ) -> OfferDetail:
        offer = Offer(
            id=generate_id("off"),
            merchant_id=merchant_id,
            product_name=req.product_name,
            product_sku=req.product_sku,
            headline=req.headline,
            subheadline=req.subheadline,
            image_url=req.image_url,
            min_selling_price=req.min_selling_price_cents,
            fixed_price=req.fixed_price_cents,
            bid_range_min=req.bid_range_min_cents,
            bid_range_max=req.bid_range_max_cents,
            stock_quantity=req.stock_quantity,
            priority=req.priority or 1,
            is_active=req.is_active,
        )
        validate_offer(offer)
        try:
            siblings = await self._repo.lock_merchant_offers(merchant_id, db)
            offer.priority = clamp_priority(req.priority, siblings + 1)
            await self._repo.shift_priorities(
                merchant_id, shift_for_insert(offer.priority), None, db
            )
            await self._repo.insert(offer, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return OfferDetail.from_domain(offer)

    async def update_offer(
        self, db: AsyncSession, merchant_id: str, offer_id: str, req: OfferUpdateRequest
    ) -> OfferDetail:
        current = await self._get_owned(db, merchant_id, offer_id)
        changes = req.model_dump(exclude_unset=True)
        updated = dataclasses.replace(
            current,
            **{_UPDATE_FIELDS[k]: v for k, v in changes.items() if k in _UPDATE_FIELDS},
        )
        validate_offer(updated)
        try:
            if "priority" in changes:
                siblings = await self._repo.lock_merchant_offers(merchant_id, db)
                updated.priority = clamp_priority(req.priority, siblings)
                shift = shift_for_move(current.priority, updated.priority)
                if shift is not None:
                    await self._repo.shift_priorities(merchant_id, shift, offer_id, db)
            await self._repo.update(updated, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return OfferDetail.from_domain(updated)

    async def delete_offer(self, db: AsyncSession, merchant_id: str, offer_id: str) -> None:
        offer = await self._get_owned(db, merchant_id, offer_id)
        try:
            await self._repo.lock_merchant_offers(merchant_id, db)
            await self._repo.delete(offer_id, db)
            await self._repo.shift_priorities(
                merchant_id, shift_for_delete(offer.priority), None, db
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def get_widget_offer(
        self, db: AsyncSession, merchant_id: str
    ) -> tuple[WidgetOffer | None, WidgetViewType]:
        """Pick the single offer to show and the view outcome tag for analytics."""
        offer = await self._repo.get_widget_offer(merchant_id, db)
        if offer is not None:
            return WidgetOffer.from_domain(offer), WidgetViewType.SHOWN
        if await self._repo.count_active(merchant_id, db) > 0:
            return None, WidgetViewType.OUT_OF_STOCK
        return None, WidgetViewType.NO_OFFERS

    async def set_active(
        self, db: AsyncSession, merchant_id: str, offer_id: str, is_active: bool
    ) -> OfferDetail:
        return await self.update_offer(
            db, merchant_id, offer_id, OfferUpdateRequest(is_active=is_active)
        )


_service = OfferApplicationService()


def get_offer_service() -> OfferApplicationService:
    return _service
