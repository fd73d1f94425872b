"""up_offer REST API: merchant offer writes, all require a merchant token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_common.database import get_db_session
from src.up_common.response import ApiResponse, success_response
from src.up_gateway.auth.dependencies import get_current_merchant
from src.up_merchant.domain.models import Merchant
from src.up_offer.application.schemas import (
    OfferCreateRequest,
    OfferUpdateRequest,
    SetActiveRequest,
)
from src.up_offer.application.service import OfferApplicationService, get_offer_service

router = APIRouter(prefix="/offers", tags=["offers"])


@router.post("", status_code=201)
async def create_offer(
    body: OfferCreateRequest,
    merchant: Annotated[Merchant, Depends(get_current_merchant)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OfferApplicationService, Depends(get_offer_service)],
    request: Request,
) -> ApiResponse:
    data = await service.create_offer(db, merchant.id, body)
    return success_response(data.model_dump(mode="json"), request)


@router.patch("/{offer_id}")
async def update_offer(
    offer_id: str,
    body: OfferUpdateRequest,
    merchant: Annotated[Merchant, Depends(get_current_merchant)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OfferApplicationService, Depends(get_offer_service)],
    request: Request,
) -> ApiResponse:
    data = await service.update_offer(db, merchant.id, offer_id, body)
    return success_response(data.model_dump(mode="json"), request)


@router.put("/{offer_id}/active")
async def set_offer_active(
    offer_id: str,
    body: SetActiveRequest,
    merchant: Annotated[Merchant, Depends(get_current_merchant)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OfferApplicationService, Depends(get_offer_service)],
    request: Request,
) -> ApiResponse:
    data = await service.set_active(db, merchant.id, offer_id, body.is_active)
    return success_response(data.model_dump(mode="json"), request)


@router.delete("/{offer_id}")
async def delete_offer(
    offer_id: str,
    merchant: Annotated[Merchant, Depends(get_current_merchant)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OfferApplicationService, Depends(get_offer_service)],
    request: Request,
) -> ApiResponse:
    await service.delete_offer(db, merchant.id, offer_id)
    return success_response({"offer_id": offer_id, "deleted": True}, request)
