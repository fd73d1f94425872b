# src/up_widget/application/schemas.py
from pydantic import BaseModel, Field

from src.up_common.enums import WidgetViewType
from src.up_offer.application.schemas import WidgetOffer


class VisitorContext(BaseModel):
    """Request metadata recorded with every view."""

    ip_address: str | None = None
    user_agent: str | None = None
    referer: str | None = None


class TrackViewRequest(BaseModel):
    merchant_id: str
    offer_id: str | None = None
    product_id: str | None = Field(None, max_length=200)
    visitor_id: str | None = Field(None, max_length=200)
    view_type: WidgetViewType = WidgetViewType.SHOWN


class WidgetOfferResponse(BaseModel):
    offer: WidgetOffer | None
    view_type: WidgetViewType
    preferred_language: str
