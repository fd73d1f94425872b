"""POST /payments/connect/onboard: start or resume merchant payment onboarding."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_common.database import get_db_session
from src.up_common.response import ApiResponse, success_response
from src.up_gateway.auth.dependencies import get_current_merchant
from src.up_merchant.domain.models import Merchant
from src.up_payment.application.onboarding import OnboardingService, get_onboarding_service

router = APIRouter(prefix="/payments/connect", tags=["payments"])


@router.post("/onboard")
async def start_onboarding(
    merchant: Annotated[Merchant, Depends(get_current_merchant)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OnboardingService, Depends(get_onboarding_service)],
    request: Request,
) -> ApiResponse:
    data = await service.start(db, merchant)
    return success_response(data.model_dump(mode="json"), request)
