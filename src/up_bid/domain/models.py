"""Bid domain models: pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.up_common.enums import BidStatus, CaptureMode, IntentStatus, Locale, ResolutionSource


@dataclass
class Bid:
    id: str
    merchant_id: str
    offer_id: str
    intent_id: str
    customer_email: str
    customer_name: str
    amount: int  # cents
    platform_fee_amount: int  # frozen at creation
    merchant_amount: int
    capture_mode: CaptureMode
    currency: str = "eur"
    status: BidStatus = BidStatus.PENDING
    locale: Locale = Locale.EN
    shipping_address: dict[str, Any] | None = None
    payment_reference: str | None = None
    settlement_reference: str | None = None
    captured_at: datetime | None = None
    refunded_at: datetime | None = None
    stock_reserved: bool = False
    resolution_source: ResolutionSource | None = None
    claim_token: str | None = None
    claimed_at: datetime | None = None
    swept_at: datetime | None = None
    sweep_attempts: int = 0
    last_sweep_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != BidStatus.PENDING


@dataclass
class BidIntent:
    """Write-ahead record persisted before the authorization call.

    An intent that never reaches FINALIZED tells reconciliation which hold to
    void and which stock unit to give back.
    """

    id: str
    bid_id: str  # pre-generated; the bid row uses it on finalize
    offer_id: str
    merchant_id: str
    amount: int
    platform_fee_amount: int
    capture_mode: CaptureMode
    stock_reserved: bool = False
    status: IntentStatus = IntentStatus.OPEN
    payment_reference: str | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Resolution:
    """Fields written by the finalize compare-and-set."""

    status: BidStatus
    source: ResolutionSource
    resolved_at: datetime
    stock_reserved: bool
    captured_at: datetime | None = None
    settlement_reference: str | None = None
    refunded_at: datetime | None = None
    swept: bool = False
