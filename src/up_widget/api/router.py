"""Public widget endpoints, called from the merchant's thank-you page."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_common.database import get_db_session
from src.up_common.response import ApiResponse, success_response
from src.up_widget.application.schemas import TrackViewRequest, VisitorContext
from src.up_widget.application.service import WidgetService, get_widget_service

router = APIRouter(prefix="/widget", tags=["widget"])


def visitor_context(request: Request) -> VisitorContext:
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else request.headers.get("x-real-ip")
    if ip is None and request.client is not None:
        ip = request.client.host
    return VisitorContext(
        ip_address=ip,
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
    )


@router.get("/offer")
async def get_widget_offer(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[WidgetService, Depends(get_widget_service)],
    visitor: Annotated[VisitorContext, Depends(visitor_context)],
    request: Request,
    merchant_id: str = Query(..., description="Merchant showing the widget"),
    product_id: str | None = Query(None, description="Product just purchased"),
    visitor_id: str | None = Query(None, description="Anonymous visitor id"),
) -> ApiResponse:
    data = await service.get_offer(db, merchant_id, visitor, product_id, visitor_id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/track-view")
async def track_view(
    body: TrackViewRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[WidgetService, Depends(get_widget_service)],
    visitor: Annotated[VisitorContext, Depends(visitor_context)],
    request: Request,
) -> ApiResponse:
    tracked = await service.track_view(db, body, visitor)
    return success_response({"tracked": tracked}, request)
