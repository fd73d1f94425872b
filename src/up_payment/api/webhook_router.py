"""POST /webhooks/stripe: signature-verified Stripe event intake."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_common.database import get_db_session
from src.up_common.response import ApiResponse, success_response
from src.up_payment.application.webhook import (
    WebhookService,
    get_webhook_secret,
    get_webhook_service,
    parse_event,
)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[WebhookService, Depends(get_webhook_service)],
    secret: Annotated[str, Depends(get_webhook_secret)],
    stripe_signature: Annotated[str | None, Header()] = None,
) -> ApiResponse:
    event = parse_event(await request.body(), stripe_signature, secret)
    outcome = await service.handle(db, event)
    return success_response({"received": True, "outcome": outcome}, request)
