"""WidgetService: the single offer shown to a shopper, plus view tracking.

View tracking is analytics: a failed insert is logged and the shopper still
gets the offer.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.up_common.enums import WidgetViewType
from src.up_common.errors import MerchantNotFoundError
from src.up_common.id_generator import generate_id
from src.up_merchant.domain.repository import MerchantRepositoryProtocol
from src.up_merchant.infrastructure.persistence import MerchantRepository
from src.up_offer.application.service import OfferApplicationService, get_offer_service
from src.up_widget.application.schemas import (
    TrackViewRequest,
    VisitorContext,
    WidgetOfferResponse,
)
from src.up_widget.domain.models import WidgetView
from src.up_widget.domain.repository import WidgetViewRepositoryProtocol
from src.up_widget.infrastructure.persistence import WidgetViewRepository

logger = logging.getLogger(__name__)


class WidgetService:
    def __init__(
        self,
        offer_service: OfferApplicationService | None = None,
        merchant_repo: MerchantRepositoryProtocol | None = None,
        view_repo: WidgetViewRepositoryProtocol | None = None,
    ) -> None:
        self._offers = offer_service or get_offer_service()
        self._merchants: MerchantRepositoryProtocol = merchant_repo or MerchantRepository()
        self._views: WidgetViewRepositoryProtocol = view_repo or WidgetViewRepository()

    async def get_offer(
        self,
        db: AsyncSession,
        merchant_id: str,
        visitor: VisitorContext,
        product_id: str | None = None,
        visitor_id: str | None = None,
    ) -> WidgetOfferResponse:
        merchant = await self._merchants.get_by_id(merchant_id, db)
        if merchant is None or not merchant.is_active:
            raise MerchantNotFoundError(merchant_id)

        offer, view_type = await self._offers.get_widget_offer(db, merchant_id)
        await self._append(
            db,
            WidgetView(
                id=generate_id("wv"),
                merchant_id=merchant_id,
                view_type=view_type,
                offer_id=offer.id if offer else None,
                product_id=product_id,
                visitor_id=visitor_id,
                ip_address=visitor.ip_address,
                user_agent=visitor.user_agent,
                referer=visitor.referer,
            ),
        )
        return WidgetOfferResponse(
            offer=offer,
            view_type=view_type,
            preferred_language=merchant.preferred_language,
        )

    async def track_view(
        self, db: AsyncSession, req: TrackViewRequest, visitor: VisitorContext
    ) -> bool:
        return await self._append(
            db,
            WidgetView(
                id=generate_id("wv"),
                merchant_id=req.merchant_id,
                view_type=req.view_type,
                offer_id=req.offer_id,
                product_id=req.product_id,
                visitor_id=req.visitor_id,
                ip_address=visitor.ip_address,
                user_agent=visitor.user_agent,
                referer=visitor.referer,
            ),
        )

    async def _append(self, db: AsyncSession, view: WidgetView) -> bool:
        try:
            await self._views.append(view, db)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("widget view for merchant %s not recorded", view.merchant_id)
            return False
        return True


_service: WidgetService | None = None


def get_widget_service() -> WidgetService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = WidgetService()
    return _service
