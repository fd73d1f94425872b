# src/up_bid/application/service.py
"""BidService: submission and the pending -> accepted | declined state machine.

Submission is write-ahead:
  1. BidIntent (+ stock reservation on the instant path) committed
  2. gateway authorization, idempotency key = intent id; the payment
     reference is committed onto the intent as soon as it is known
  3. Bid row + intent FINALIZED committed together
A failure after (1) is compensated explicitly; whatever a crash leaves
behind is found by ResolutionSweeper.reconcile_intents.

Every transition of an existing bid is claim -> gateway -> finalize. The
claim is a leased compare-and-set on the row, so the merchant, the sweep and
the webhook can race on one bid and exactly one of them moves it.

Transaction ownership: this service commits; repositories never do.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import assert_never

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.up_bid.application.schemas import (
    BidListResponse,
    BidStatusResponse,
    DecisionResponse,
    ShippingAddress,
    SubmitBidRequest,
    SubmitBidResponse,
    auto_resolves_at,
    to_summary,
)
from src.up_bid.domain.models import Bid, BidIntent, Resolution
from src.up_bid.domain.repository import BidRepositoryProtocol, IntentRepositoryProtocol
from src.up_bid.infrastructure.persistence import BidRepository, IntentRepository
from src.up_common.cents import cents_to_display
from src.up_common.datetime_utils import utc_now
from src.up_common.enums import BidDecision, BidStatus, ResolutionSource
from src.up_common.errors import (
    AlreadyResolvedError,
    BidNotFoundError,
    BidResolutionInProgressError,
    ForbiddenError,
    GatewayError,
    GatewayTimeoutError,
    MerchantNotFoundError,
    OfferNotFoundError,
    OfferUnavailableError,
    PaymentAlreadyCapturedError,
    PaymentNotConfiguredError,
    ShippingAlreadySetError,
    StockExhaustedError,
)
from src.up_common.id_generator import generate_id
from src.up_merchant.domain.models import Merchant
from src.up_merchant.domain.repository import MerchantRepositoryProtocol
from src.up_merchant.infrastructure.persistence import MerchantRepository
from src.up_notify.application.service import NotificationService, get_notification_service
from src.up_notify.domain.events import NotificationEvent, NotificationPayload
from src.up_offer.domain.models import Offer
from src.up_offer.domain.repository import OfferRepositoryProtocol
from src.up_offer.infrastructure.persistence import OfferRepository
from src.up_payment.application.service import get_payment_gateway
from src.up_payment.domain.gateway import Authorization, PaymentGatewayProtocol
from src.up_pricing.domain.policy import (
    Classification,
    capture_mode_for,
    classify,
    split_fee,
    validate_range,
)
from src.up_stock.domain.repository import StockLedgerProtocol
from src.up_stock.infrastructure.ledger import StockLedger

logger = logging.getLogger(__name__)


class BidService:
    def __init__(
        self,
        bid_repo: BidRepositoryProtocol | None = None,
        intent_repo: IntentRepositoryProtocol | None = None,
        offer_repo: OfferRepositoryProtocol | None = None,
        merchant_repo: MerchantRepositoryProtocol | None = None,
        stock: StockLedgerProtocol | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        notifier: NotificationService | None = None,
        claim_lease_seconds: int | None = None,
        currency: str | None = None,
        auto_resolve_after_seconds: int | None = None,
    ) -> None:
        self._bids: BidRepositoryProtocol = bid_repo or BidRepository()
        self._intents: IntentRepositoryProtocol = intent_repo or IntentRepository()
        self._offers: OfferRepositoryProtocol = offer_repo or OfferRepository()
        self._merchants: MerchantRepositoryProtocol = merchant_repo or MerchantRepository()
        self._stock: StockLedgerProtocol = stock or StockLedger()
        self._gateway: PaymentGatewayProtocol = gateway or get_payment_gateway()
        self._notifier = notifier or get_notification_service()
        self._lease = timedelta(seconds=claim_lease_seconds or settings.BID_CLAIM_LEASE_SECONDS)
        self._currency = currency or settings.CURRENCY
        self._auto_resolve_after = (
            auto_resolve_after_seconds or settings.SWEEP_WINDOW_MIN_SECONDS
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(
        self, db: AsyncSession, req: SubmitBidRequest, now: datetime | None = None
    ) -> SubmitBidResponse:
        amount = req.amount_in_cents()

        offer = await self._offers.get_by_id(req.offer_id, db)
        if offer is None:
            raise OfferNotFoundError(req.offer_id)
        merchant = await self._merchants.get_by_id(offer.merchant_id, db)
        if not offer.is_active:
            raise OfferUnavailableError(offer.id, "not active")
        if not offer.has_stock:
            raise OfferUnavailableError(offer.id, "out of stock")
        if merchant is None or not merchant.is_active:
            raise OfferUnavailableError(offer.id, "not offered by an active merchant")
        if not merchant.can_receive_payments:
            raise PaymentNotConfiguredError(merchant.id)

        validate_range(offer, amount)
        platform_fee, merchant_amount = split_fee(amount, merchant.platform_fee_bps)
        classification = classify(offer, amount)
        instant = classification is Classification.INSTANT_ACCEPT

        intent = BidIntent(
            id=generate_id("int"),
            bid_id=generate_id("bid"),
            offer_id=offer.id,
            merchant_id=merchant.id,
            amount=amount,
            platform_fee_amount=platform_fee,
            capture_mode=capture_mode_for(classification),
            stock_reserved=instant,
        )
        await self._open_intent(db, intent)
        auth = await self._authorize(db, intent, merchant)

        now = now or utc_now()
        bid = Bid(
            id=intent.bid_id,
            merchant_id=merchant.id,
            offer_id=offer.id,
            intent_id=intent.id,
            customer_email=req.customer_email,
            customer_name=req.customer_name,
            shipping_address=(
                req.shipping_address.model_dump(exclude_none=True)
                if req.shipping_address
                else None
            ),
            locale=req.locale,
            amount=amount,
            currency=self._currency,
            platform_fee_amount=platform_fee,
            merchant_amount=merchant_amount,
            capture_mode=intent.capture_mode,
            status=BidStatus.ACCEPTED if instant else BidStatus.PENDING,
            payment_reference=auth.payment_reference,
            captured_at=now if auth.captured else None,
            stock_reserved=instant,
            resolution_source=ResolutionSource.INSTANT if instant else None,
            created_at=now,
            resolved_at=now if instant else None,
        )
        try:
            await self._bids.insert(bid, db)
            await self._intents.mark_finalized(intent.id, auth.payment_reference, db)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.exception("finalizing bid %s failed, voiding authorization", bid.id)
            await self._void_authorization(db, intent, auth, merchant, repr(e))
            raise

        logger.info(
            "bid %s submitted: offer=%s amount=%d fee=%d status=%s",
            bid.id,
            offer.id,
            amount,
            platform_fee,
            bid.status.value,
        )
        payload = self._payload(bid, offer, merchant)
        await self._notifier.notify(NotificationEvent.BID_SUBMITTED, payload)
        if instant:
            await self._notify_accepted(payload)

        return SubmitBidResponse(
            bid_id=bid.id,
            status=bid.status,
            amount_cents=amount,
            amount_display=cents_to_display(amount),
            currency=bid.currency,
            client_secret=auth.client_secret,
            auto_resolves_at=auto_resolves_at(bid, self._auto_resolve_after),
        )

    async def _open_intent(self, db: AsyncSession, intent: BidIntent) -> None:
        try:
            if intent.stock_reserved and not await self._stock.try_reserve(intent.offer_id, db):
                raise StockExhaustedError(intent.offer_id)
            await self._intents.create(intent, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def _gateway_authorize(self, intent: BidIntent, merchant: Merchant) -> Authorization:
        # Built from the intent alone so a replay with the same idempotency
        # key sends identical parameters.
        return await self._gateway.authorize(
            amount=intent.amount,
            merchant_account=merchant.payment_account_id or "",
            platform_fee_amount=intent.platform_fee_amount,
            capture_mode=intent.capture_mode,
            currency=self._currency,
            metadata={
                "intent_id": intent.id,
                "bid_id": intent.bid_id,
                "offer_id": intent.offer_id,
                "merchant_id": intent.merchant_id,
            },
            idempotency_key=intent.id,
        )

    async def _authorize(
        self, db: AsyncSession, intent: BidIntent, merchant: Merchant
    ) -> Authorization:
        try:
            auth = await self._gateway_authorize(intent, merchant)
        except GatewayError as e:
            await self._abandon_intent(db, intent, e)
            raise
        try:
            await self._intents.mark_authorized(intent.id, auth.payment_reference, db)
            await db.commit()
        except Exception:
            # mark_finalized writes the reference too; if that fails as well,
            # reconciliation recovers it by replaying the idempotency key.
            await db.rollback()
            logger.exception("could not record authorization for intent %s", intent.id)
        intent.payment_reference = auth.payment_reference
        return auth

    async def recover_authorization(self, intent: BidIntent, merchant: Merchant) -> Authorization:
        """Replay an intent's authorize call to learn which payment it made.

        The idempotency key is the intent id, so the gateway hands back the
        original payment. If the first request never reached the processor a
        fresh one is created, which the caller voids straight away.
        """
        if not merchant.payment_account_id:
            raise PaymentNotConfiguredError(merchant.id)
        return await self._gateway_authorize(intent, merchant)

    async def _abandon_intent(self, db: AsyncSession, intent: BidIntent, error: GatewayError) -> None:
        """Authorization failed: give the stock unit back and close the intent.

        A timeout is ambiguous (the processor may have authorized anyway), so
        the intent is left ORPHANED; reconciliation replays the authorize
        call to find out and voids whatever it returns.
        """
        try:
            if intent.stock_reserved:
                await self._stock.release(intent.offer_id, db)
            if isinstance(error, GatewayTimeoutError):
                await self._intents.mark_orphaned(intent.id, None, error.reason, False, db)
            else:
                await self._intents.mark_failed(intent.id, error.reason, db)
            await db.commit()
        except Exception:
            # Intent stays OPEN; reconcile_intents releases the unit later.
            await db.rollback()
            logger.exception("could not close intent %s after gateway failure", intent.id)

    async def _void_authorization(
        self,
        db: AsyncSession,
        intent: BidIntent,
        auth: Authorization,
        merchant: Merchant,
        reason: str,
    ) -> None:
        account = merchant.payment_account_id or ""
        try:
            if auth.captured:
                await self._gateway.refund(auth.payment_reference, account)
            else:
                await self._gateway.cancel(auth.payment_reference, account)
        except GatewayError as e:
            logger.error(
                "void of %s for intent %s failed (%s), orphaning",
                auth.payment_reference,
                intent.id,
                e.reason,
            )
            try:
                await self._intents.mark_orphaned(
                    intent.id,
                    auth.payment_reference,
                    f"finalize failed: {reason}; void failed: {e.reason}",
                    intent.stock_reserved,
                    db,
                )
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("could not orphan intent %s", intent.id)
            return

        try:
            if intent.stock_reserved:
                await self._stock.release(intent.offer_id, db)
            await self._intents.mark_failed(intent.id, f"finalize failed: {reason}", db)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("could not close intent %s after void", intent.id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def accept(
        self,
        db: AsyncSession,
        bid_id: str,
        source: ResolutionSource,
        now: datetime | None = None,
    ) -> Bid:
        """Capture the hold and move the bid to accepted.

        Stock is reserved once per bid: a bid that already holds a unit
        (stock_reserved) is never charged another. Any failure before the
        capture is acknowledged leaves the bid pending and the stock as it was.
        An acknowledged capture is recorded on the bid before finalize, so a
        bid left pending after one is finished by the next accept and refunded
        (not cancelled) by a decline.
        """
        now = now or utc_now()
        bid = await self._load(db, bid_id)
        merchant = await self._merchant_for(db, bid)
        token = await self._claim(db, bid, now)

        reserved_here = False
        if not bid.stock_reserved:
            try:
                reserved = await self._stock.try_reserve(bid.offer_id, db)
                if reserved:
                    await self._bids.mark_stock_reserved(bid.id, token, True, db)
                else:
                    await self._bids.release_claim(bid.id, token, db)
                await db.commit()
            except Exception:
                await db.rollback()
                await self._release_claim(db, bid.id, token)
                raise
            if not reserved:
                raise StockExhaustedError(bid.offer_id)
            reserved_here = True

        if bid.captured_at is not None:
            # An earlier accept captured but never finalized; finish it.
            settlement = bid.settlement_reference
            captured_at = bid.captured_at
        else:
            try:
                settlement = await self._gateway.capture(
                    bid.payment_reference or "", merchant.payment_account_id or ""
                )
            except GatewayError as e:
                logger.warning("capture failed for bid %s: %s", bid.id, e.reason)
                await self._undo_reservation(db, bid, token, reserved_here)
                raise
            captured_at = now
            await self._record_capture(db, bid, captured_at, settlement)

        final = await self._finalize(
            db,
            bid,
            token,
            Resolution(
                status=BidStatus.ACCEPTED,
                source=source,
                resolved_at=now,
                stock_reserved=True,
                captured_at=captured_at,
                settlement_reference=settlement,
                swept=source is ResolutionSource.SWEEP,
            ),
        )
        logger.info("bid %s accepted via %s", bid.id, source.value)
        offer = await self._offers.get_by_id(bid.offer_id, db)
        await self._notify_accepted(self._payload(final, offer, merchant))
        return final

    async def decline(
        self,
        db: AsyncSession,
        bid_id: str,
        source: ResolutionSource,
        now: datetime | None = None,
    ) -> Bid:
        """Release the hold (or refund a captured payment) and decline."""
        now = now or utc_now()
        bid = await self._load(db, bid_id)
        merchant = await self._merchant_for(db, bid)
        token = await self._claim(db, bid, now)

        refunded_at = None
        try:
            if bid.captured_at is None:
                try:
                    await self._gateway.cancel(
                        bid.payment_reference or "", merchant.payment_account_id or ""
                    )
                except PaymentAlreadyCapturedError:
                    # Captured by an accept whose bookkeeping never landed.
                    logger.warning("bid %s was captured without a record, refunding", bid.id)
                    bid.captured_at = now
            if bid.captured_at is not None:
                await self._gateway.refund(bid.payment_reference or "", merchant.payment_account_id)
                refunded_at = now
        except GatewayError as e:
            logger.warning("void failed for bid %s: %s", bid.id, e.reason)
            await self._release_claim(db, bid.id, token)
            raise

        final = await self._finalize(
            db,
            bid,
            token,
            Resolution(
                status=BidStatus.DECLINED,
                source=source,
                resolved_at=now,
                stock_reserved=False,
                refunded_at=refunded_at,
                swept=source is ResolutionSource.SWEEP,
            ),
            release_stock=bid.stock_reserved,
        )
        logger.info("bid %s declined via %s", bid.id, source.value)
        offer = await self._offers.get_by_id(bid.offer_id, db)
        await self._notifier.notify(
            NotificationEvent.BID_DECLINED, self._payload(final, offer, merchant)
        )
        return final

    async def decide(
        self, db: AsyncSession, bid_id: str, decision: BidDecision, merchant_id: str
    ) -> DecisionResponse:
        """Merchant decision. Repeating a decision that already holds is a no-op."""
        bid = await self._load(db, bid_id)
        if bid.merchant_id != merchant_id:
            raise ForbiddenError("Bid belongs to another merchant")

        target = decision.target_status
        if bid.is_terminal:
            if bid.status == target:
                return _decision(bid, no_op=True)
            raise AlreadyResolvedError(bid.id, bid.status.value)

        try:
            match decision:
                case BidDecision.ACCEPT:
                    final = await self.accept(db, bid_id, ResolutionSource.MERCHANT)
                case BidDecision.DECLINE:
                    final = await self.decline(db, bid_id, ResolutionSource.MERCHANT)
                case _:
                    assert_never(decision)
        except AlreadyResolvedError as e:
            # Lost the race to the sweep or a second click; same outcome is fine.
            if e.status != target.value:
                raise
            current = await self._load(db, bid_id)
            return _decision(current, no_op=True)
        return _decision(final, no_op=False)

    # ------------------------------------------------------------------
    # Queries and shipping
    # ------------------------------------------------------------------

    async def update_shipping(
        self, db: AsyncSession, bid_id: str, address: ShippingAddress
    ) -> BidStatusResponse:
        bid = await self._load(db, bid_id)
        if bid.shipping_address is not None:
            raise ShippingAlreadySetError(bid_id)
        try:
            updated = await self._bids.set_shipping_address(
                bid_id, address.model_dump(exclude_none=True), db
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if not updated:
            raise ShippingAlreadySetError(bid_id)
        bid.shipping_address = address.model_dump(exclude_none=True)
        return self._status(bid)

    async def get_status(self, db: AsyncSession, bid_id: str) -> BidStatusResponse:
        return self._status(await self._load(db, bid_id))

    async def list_bids(
        self,
        db: AsyncSession,
        merchant_id: str,
        status: BidStatus | None = None,
        cursor: str | None = None,
        limit: int = 20,
        now: datetime | None = None,
    ) -> BidListResponse:
        now = now or utc_now()
        rows = await self._bids.list_by_merchant(merchant_id, status, cursor, limit + 1, db)
        has_more = len(rows) > limit
        rows = rows[:limit]
        return BidListResponse(
            items=[to_summary(b, self._auto_resolve_after, now) for b in rows],
            next_cursor=rows[-1].id if has_more and rows else None,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, db: AsyncSession, bid_id: str) -> Bid:
        bid = await self._bids.get_by_id(bid_id, db)
        if bid is None:
            raise BidNotFoundError(bid_id)
        return bid

    async def _merchant_for(self, db: AsyncSession, bid: Bid) -> Merchant:
        merchant = await self._merchants.get_by_id(bid.merchant_id, db)
        if merchant is None:
            raise MerchantNotFoundError(bid.merchant_id)
        return merchant

    async def _claim(self, db: AsyncSession, bid: Bid, now: datetime) -> str:
        if bid.is_terminal:
            raise AlreadyResolvedError(bid.id, bid.status.value)
        token = secrets.token_hex(16)
        try:
            claimed = await self._bids.claim(bid.id, token, now, now - self._lease, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if claimed:
            return token
        current = await self._bids.get_by_id(bid.id, db)
        if current is not None and current.is_terminal:
            raise AlreadyResolvedError(bid.id, current.status.value)
        raise BidResolutionInProgressError(bid.id)

    async def _release_claim(self, db: AsyncSession, bid_id: str, token: str) -> None:
        try:
            await self._bids.release_claim(bid_id, token, db)
            await db.commit()
        except Exception:
            # The lease expires on its own.
            await db.rollback()
            logger.exception("could not release claim on bid %s", bid_id)

    async def _record_capture(
        self,
        db: AsyncSession,
        bid: Bid,
        captured_at: datetime,
        settlement: str | None,
    ) -> None:
        try:
            await self._bids.mark_captured(bid.id, captured_at, settlement, db)
            await db.commit()
        except Exception:
            # Finalize still carries captured_at; if both writes are lost, a
            # later cancel reports the capture and the decline refunds.
            await db.rollback()
            logger.exception("could not record capture for bid %s", bid.id)

    async def _undo_reservation(
        self, db: AsyncSession, bid: Bid, token: str, reserved_here: bool
    ) -> None:
        try:
            if reserved_here:
                await self._stock.release(bid.offer_id, db)
                await self._bids.mark_stock_reserved(bid.id, token, False, db)
            await self._bids.release_claim(bid.id, token, db)
            await db.commit()
        except Exception:
            # stock_reserved stays true, so the unit is reused by the next
            # accept or released by a decline.
            await db.rollback()
            logger.exception("could not undo reservation for bid %s", bid.id)

    async def _finalize(
        self,
        db: AsyncSession,
        bid: Bid,
        token: str,
        resolution: Resolution,
        release_stock: bool = False,
    ) -> Bid:
        try:
            if release_stock:
                await self._stock.release(bid.offer_id, db)
            final = await self._bids.finalize(bid.id, token, resolution, db)
            if final is None:
                raise BidResolutionInProgressError(bid.id)
            await db.commit()
        except BidResolutionInProgressError:
            await db.rollback()
            logger.error(
                "claim on bid %s expired before finalize (%s after gateway call)",
                bid.id,
                resolution.status.value,
            )
            raise
        except Exception:
            await db.rollback()
            raise
        return final

    async def _notify_accepted(self, payload: NotificationPayload) -> None:
        await self._notifier.notify(NotificationEvent.BID_ACCEPTED, payload)
        await self._notifier.notify(NotificationEvent.MERCHANT_ORDER_RECEIVED, payload)

    def _payload(self, bid: Bid, offer: Offer | None, merchant: Merchant) -> NotificationPayload:
        return NotificationPayload(
            bid_id=bid.id,
            customer_email=bid.customer_email,
            customer_name=bid.customer_name,
            product_name=offer.product_name if offer else bid.offer_id,
            product_sku=offer.product_sku if offer else None,
            amount=bid.amount,
            locale=bid.locale,
            merchant_email=merchant.email,
            shop_name=merchant.shop_name,
            shipping_address=bid.shipping_address,
        )

    def _status(self, bid: Bid) -> BidStatusResponse:
        return BidStatusResponse(
            bid_id=bid.id,
            status=bid.status,
            amount_cents=bid.amount,
            amount_display=cents_to_display(bid.amount),
            created_at=bid.created_at,
            resolved_at=bid.resolved_at,
            auto_resolves_at=auto_resolves_at(bid, self._auto_resolve_after),
            has_shipping_address=bid.shipping_address is not None,
        )


def _decision(bid: Bid, no_op: bool) -> DecisionResponse:
    return DecisionResponse(
        bid_id=bid.id,
        status=bid.status,
        no_op=no_op,
        resolution_source=bid.resolution_source.value if bid.resolution_source else None,
    )


_service: BidService | None = None


def get_bid_service() -> BidService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = BidService()
    return _service
