"""Stripe webhook intake.

Only two event types change state here:
  account.updated                 -> merchant onboarding flag
  payment_intent.payment_failed   -> decline the pending bid holding that intent
Everything else is logged and acknowledged so Stripe stops retrying.
"""
import json
import logging
from typing import Any

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.up_bid.application.service import BidService, get_bid_service
from src.up_bid.domain.repository import BidRepositoryProtocol
from src.up_bid.infrastructure.persistence import BidRepository
from src.up_common.enums import BidStatus, ResolutionSource
from src.up_common.errors import (
    AlreadyResolvedError,
    BidResolutionInProgressError,
    InvalidWebhookError,
)
from src.up_merchant.domain.repository import MerchantRepositoryProtocol
from src.up_merchant.infrastructure.persistence import MerchantRepository

logger = logging.getLogger(__name__)


def parse_event(payload: bytes, signature: str | None, secret: str) -> dict[str, Any]:
    """Verify the Stripe-Signature header and return the event as a dict.

    With no secret configured (local dev) the body is parsed unverified.
    """
    if secret:
        if not signature:
            raise InvalidWebhookError("missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as e:
            raise InvalidWebhookError("invalid signature") from e
        except ValueError as e:
            raise InvalidWebhookError("invalid payload") from e
    else:
        logger.warning("STRIPE_WEBHOOK_SECRET not set, accepting unverified webhook")
    try:
        event = json.loads(payload)
    except json.JSONDecodeError as e:
        raise InvalidWebhookError("invalid JSON") from e
    if not isinstance(event, dict) or "type" not in event:
        raise InvalidWebhookError("not an event object")
    return event


class WebhookService:
    def __init__(
        self,
        bid_service: BidService | None = None,
        bid_repo: BidRepositoryProtocol | None = None,
        merchant_repo: MerchantRepositoryProtocol | None = None,
    ) -> None:
        self._bid_service = bid_service or get_bid_service()
        self._bids: BidRepositoryProtocol = bid_repo or BidRepository()
        self._merchants: MerchantRepositoryProtocol = merchant_repo or MerchantRepository()

    async def handle(self, db: AsyncSession, event: dict[str, Any]) -> str:
        """Apply one event; returns a short outcome tag for the response and logs."""
        event_type = event.get("type", "unknown")
        obj = event.get("data", {}).get("object", {})
        logger.info("stripe webhook %s (%s)", event_type, event.get("id"))

        match event_type:
            case "account.updated":
                return await self._account_updated(db, obj)
            case "payment_intent.payment_failed":
                return await self._payment_failed(db, obj)
            case _:
                return "ignored"

    async def _account_updated(self, db: AsyncSession, account: dict[str, Any]) -> str:
        complete = bool(account.get("charges_enabled") and account.get("details_submitted"))
        try:
            merchant = await self._merchants.set_onboarding_by_account(account["id"], complete, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if merchant is None:
            logger.warning("account.updated for unknown account %s", account.get("id"))
            return "unknown_account"
        logger.info("merchant %s onboarding_complete=%s", merchant.id, complete)
        return "onboarding_updated"

    async def _payment_failed(self, db: AsyncSession, intent: dict[str, Any]) -> str:
        bid = await self._bids.get_by_payment_reference(intent.get("id", ""), db)
        if bid is None:
            logger.warning("payment_failed for unknown payment %s", intent.get("id"))
            return "unknown_payment"
        if bid.status != BidStatus.PENDING:
            return "already_resolved"
        try:
            await self._bid_service.decline(db, bid.id, ResolutionSource.WEBHOOK)
        except (AlreadyResolvedError, BidResolutionInProgressError) as e:
            logger.info("payment_failed for bid %s not applied: %s", bid.id, e.message)
            return "already_resolved"
        return "bid_declined"


_service: WebhookService | None = None


def get_webhook_service() -> WebhookService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = WebhookService()
    return _service


def get_webhook_secret() -> str:
    return settings.STRIPE_WEBHOOK_SECRET
