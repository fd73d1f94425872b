# src/up_sweep/application/service.py
"""ResolutionSweeper: auto-resolves pending bids after the review window.

A bid created between W_max and W_min ago that nobody decided on is
accepted when it clears the offer's secret floor and stock remains,
otherwise declined. Bids older than W_max (missed runs, earlier failures)
are picked up too unless SWEEP_INCLUDE_OVERDUE is off. A bid whose payment
was already captured is always accepted, and a bid that holds its own stock
unit does not need another. Bids that keep failing sort behind fresh ones.

Each bid goes through the same BidService transitions the merchant uses,
so the claim decides who wins when both act at once. One bad bid never
stops the batch.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.up_bid.application.service import BidService, get_bid_service
from src.up_bid.domain.models import Bid, BidIntent
from src.up_bid.domain.repository import BidRepositoryProtocol, IntentRepositoryProtocol
from src.up_bid.infrastructure.persistence import BidRepository, IntentRepository
from src.up_common.datetime_utils import utc_now
from src.up_common.enums import BidDecision, CaptureMode, ResolutionSource
from src.up_common.errors import (
    AlreadyResolvedError,
    BidResolutionInProgressError,
    MerchantNotFoundError,
    StockExhaustedError,
)
from src.up_merchant.domain.repository import MerchantRepositoryProtocol
from src.up_merchant.infrastructure.persistence import MerchantRepository
from src.up_offer.domain.repository import OfferRepositoryProtocol
from src.up_offer.infrastructure.persistence import OfferRepository
from src.up_payment.application.service import get_payment_gateway
from src.up_payment.domain.gateway import PaymentGatewayProtocol
from src.up_pricing.domain.policy import sweep_outcome
from src.up_stock.domain.repository import StockLedgerProtocol
from src.up_stock.infrastructure.ledger import StockLedger
from src.up_sweep.application.schemas import SweepError, SweepResult
from src.up_sweep.domain.lock import SweepLockProtocol
from src.up_sweep.infrastructure.lock import RedisSweepLock

logger = logging.getLogger(__name__)


class ResolutionSweeper:
    def __init__(
        self,
        bid_service: BidService | None = None,
        bid_repo: BidRepositoryProtocol | None = None,
        intent_repo: IntentRepositoryProtocol | None = None,
        offer_repo: OfferRepositoryProtocol | None = None,
        merchant_repo: MerchantRepositoryProtocol | None = None,
        stock: StockLedgerProtocol | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        lock: SweepLockProtocol | None = None,
        window_min_seconds: int | None = None,
        window_max_seconds: int | None = None,
        batch_size: int | None = None,
        include_overdue: bool | None = None,
    ) -> None:
        self._bid_service = bid_service or get_bid_service()
        self._bids: BidRepositoryProtocol = bid_repo or BidRepository()
        self._intents: IntentRepositoryProtocol = intent_repo or IntentRepository()
        self._offers: OfferRepositoryProtocol = offer_repo or OfferRepository()
        self._merchants: MerchantRepositoryProtocol = merchant_repo or MerchantRepository()
        self._stock: StockLedgerProtocol = stock or StockLedger()
        self._gateway: PaymentGatewayProtocol = gateway or get_payment_gateway()
        self._lock: SweepLockProtocol = lock or RedisSweepLock()
        self._window_min = timedelta(seconds=window_min_seconds or settings.SWEEP_WINDOW_MIN_SECONDS)
        self._window_max = timedelta(seconds=window_max_seconds or settings.SWEEP_WINDOW_MAX_SECONDS)
        self._batch_size = batch_size or settings.SWEEP_BATCH_SIZE
        self._include_overdue = (
            settings.SWEEP_INCLUDE_OVERDUE if include_overdue is None else include_overdue
        )
        self._lease = timedelta(seconds=settings.BID_CLAIM_LEASE_SECONDS)
        self._reconcile_after = timedelta(seconds=settings.INTENT_RECONCILE_AFTER_SECONDS)

    async def run_sweep(self, db: AsyncSession, now: datetime | None = None) -> SweepResult:
        now = now or utc_now()
        result = SweepResult(run_at=now)

        token = await self._lock.acquire(settings.SWEEP_LOCK_TTL_SECONDS)
        if token is None:
            logger.info("sweep skipped: another run holds the lock")
            result.skipped_run = True
            return result

        try:
            candidates = await self._bids.list_sweep_candidates(
                window_start=now - self._window_max,
                window_end=now - self._window_min,
                include_overdue=self._include_overdue,
                stale_before=now - self._lease,
                limit=self._batch_size,
                db=db,
            )
            for bid in candidates:
                await self._resolve_one(db, bid, now, result)
            result.reconciled = await self.reconcile_intents(db, now)
        finally:
            await self._lock.release(token)

        logger.info(
            "sweep done: processed=%d accepted=%d declined=%d skipped=%d errors=%d reconciled=%d",
            result.processed,
            result.accepted,
            result.declined,
            result.skipped,
            result.errors,
            result.reconciled,
        )
        return result

    async def _resolve_one(
        self, db: AsyncSession, bid: Bid, now: datetime, result: SweepResult
    ) -> None:
        result.processed += 1
        try:
            decision = await self._decide(db, bid)
            if decision is BidDecision.ACCEPT:
                try:
                    await self._bid_service.accept(db, bid.id, ResolutionSource.SWEEP, now)
                    result.accepted += 1
                    result.accepted_ids.append(bid.id)
                    return
                except StockExhaustedError:
                    logger.info("bid %s lost the last unit, declining", bid.id)
            await self._bid_service.decline(db, bid.id, ResolutionSource.SWEEP, now)
            result.declined += 1
            result.declined_ids.append(bid.id)
        except (AlreadyResolvedError, BidResolutionInProgressError) as e:
            logger.info("bid %s skipped: %s", bid.id, e.message)
            result.skipped += 1
            result.skipped_ids.append(bid.id)
        except Exception as e:
            logger.exception("sweep failed for bid %s", bid.id)
            result.errors += 1
            result.error_details.append(SweepError(bid_id=bid.id, error=str(e)))
            await self._record_attempt(db, bid.id, str(e))

    async def _decide(self, db: AsyncSession, bid: Bid) -> BidDecision:
        if bid.captured_at is not None:
            # The money already moved under an earlier accept; finish it.
            return BidDecision.ACCEPT
        offer = await self._offers.get_by_id(bid.offer_id, db)
        if offer is None:
            return BidDecision.DECLINE
        return sweep_outcome(offer, bid.amount, holds_unit=bid.stock_reserved)

    async def _record_attempt(self, db: AsyncSession, bid_id: str, error: str) -> None:
        try:
            await self._bids.record_sweep_attempt(bid_id, error, db)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("could not record sweep attempt for bid %s", bid_id)

    async def reconcile_intents(self, db: AsyncSession, now: datetime | None = None) -> int:
        """Void and release what crashed or failed submissions left behind.

        Returns the number of intents marked RECONCILED. An intent that never
        learned its payment reference (crash or timeout around authorize)
        gets it by replaying the authorize call under the same idempotency
        key; whatever payment comes back is voided. One that cannot be
        resolved stays where it is and is retried on the next run.
        """
        now = now or utc_now()
        stale = await self._intents.list_stale(now - self._reconcile_after, self._batch_size, db)
        reconciled = 0
        for intent in stale:
            try:
                await self._reconcile_one(db, intent)
                await db.commit()
                reconciled += 1
            except Exception:
                await db.rollback()
                logger.exception("reconcile failed for intent %s", intent.id)
                await self._release_intent_stock(db, intent)
        if stale:
            logger.info("reconciled %d of %d stale intents", reconciled, len(stale))
        return reconciled

    async def _reconcile_one(self, db: AsyncSession, intent: BidIntent) -> None:
        merchant = await self._merchants.get_by_id(intent.merchant_id, db)
        if merchant is None:
            raise MerchantNotFoundError(intent.merchant_id)
        reference = intent.payment_reference
        if reference is None:
            auth = await self._bid_service.recover_authorization(intent, merchant)
            reference = auth.payment_reference
            logger.info("intent %s recovered payment %s", intent.id, reference)
        account = merchant.payment_account_id
        if intent.capture_mode is CaptureMode.AUTOMATIC:
            await self._gateway.refund(reference, account)
        else:
            await self._gateway.cancel(reference, account or "")
        if intent.stock_reserved:
            await self._stock.release(intent.offer_id, db)
        await self._intents.mark_reconciled(intent.id, reference, db)

    async def _release_intent_stock(self, db: AsyncSession, intent: BidIntent) -> None:
        # The payment is retried next run; the unit need not wait for it.
        if not intent.stock_reserved:
            return
        try:
            await self._stock.release(intent.offer_id, db)
            await self._intents.mark_orphaned(
                intent.id, intent.payment_reference, "void pending retry", False, db
            )
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("could not release stock for intent %s", intent.id)


_sweeper: ResolutionSweeper | None = None


def get_sweeper() -> ResolutionSweeper:
    global _sweeper  # noqa: PLW0603
    if _sweeper is None:
        _sweeper = ResolutionSweeper()
    return _sweeper
