# src/up_widget/infrastructure/persistence.py
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_widget.domain.models import WidgetView

_INSERT_VIEW_SQL = text("""
    INSERT INTO widget_views (id, merchant_id, offer_id, product_id, visitor_id,
        ip_address, user_agent, referer, view_type)
    VALUES (:id, :merchant_id, :offer_id, :product_id, :visitor_id,
        :ip_address, :user_agent, :referer, :view_type)
""")


class WidgetViewRepository:
    async def append(self, view: WidgetView, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_VIEW_SQL,
            {
                "id": view.id,
                "merchant_id": view.merchant_id,
                "offer_id": view.offer_id,
                "product_id": view.product_id,
                "visitor_id": view.visitor_id,
                "ip_address": view.ip_address,
                "user_agent": (view.user_agent or "")[:500] or None,
                "referer": (view.referer or "")[:500] or None,
                "view_type": view.view_type.value,
            },
        )
