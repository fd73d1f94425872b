"""up_bid REST API.

Widget endpoints (submit, status, shipping) are public and addressed by the
unguessable bid id; listing and decisions require a merchant token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_bid.application.schemas import SubmitBidRequest, UpdateShippingRequest
from src.up_bid.application.service import BidService, get_bid_service
from src.up_common.database import get_db_session
from src.up_common.enums import BidDecision, BidStatus
from src.up_common.response import ApiResponse, success_response
from src.up_gateway.auth.dependencies import get_current_merchant
from src.up_merchant.domain.models import Merchant

router = APIRouter(prefix="/bids", tags=["bids"])


@router.post("", status_code=201)
async def submit_bid(
    body: SubmitBidRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[BidService, Depends(get_bid_service)],
    request: Request,
) -> ApiResponse:
    data = await service.submit(db, body)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/{bid_id}/status")
async def get_bid_status(
    bid_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[BidService, Depends(get_bid_service)],
    request: Request,
) -> ApiResponse:
    data = await service.get_status(db, bid_id)
    return success_response(data.model_dump(mode="json"), request)


@router.patch("/{bid_id}/shipping")
async def update_shipping(
    bid_id: str,
    body: UpdateShippingRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[BidService, Depends(get_bid_service)],
    request: Request,
) -> ApiResponse:
    data = await service.update_shipping(db, bid_id, body.shipping_address)
    return success_response(data.model_dump(mode="json"), request)


@router.get("")
async def list_bids(
    merchant: Annotated[Merchant, Depends(get_current_merchant)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[BidService, Depends(get_bid_service)],
    request: Request,
    status: BidStatus | None = Query(None, description="Filter by bid status"),
    cursor: str | None = Query(None, description="Pagination cursor (bid ID)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await service.list_bids(db, merchant.id, status, cursor, limit)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{bid_id}/accept")
async def accept_bid(
    bid_id: str,
    merchant: Annotated[Merchant, Depends(get_current_merchant)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[BidService, Depends(get_bid_service)],
    request: Request,
) -> ApiResponse:
    data = await service.decide(db, bid_id, BidDecision.ACCEPT, merchant.id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{bid_id}/decline")
async def decline_bid(
    bid_id: str,
    merchant: Annotated[Merchant, Depends(get_current_merchant)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[BidService, Depends(get_bid_service)],
    request: Request,
) -> ApiResponse:
    data = await service.decide(db, bid_id, BidDecision.DECLINE, merchant.id)
    return success_response(data.model_dump(mode="json"), request)
