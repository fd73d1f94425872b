# src/up_bid/application/schemas.py
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from src.up_bid.domain.models import Bid
from src.up_common.cents import cents_to_display, decimal_to_cents
from src.up_common.datetime_utils import seconds_between
from src.up_common.enums import BidStatus, Locale
from src.up_common.errors import InvalidAmountError


class ShippingAddress(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    street: str = Field(..., min_length=1, max_length=300)
    address_line2: str | None = Field(None, max_length=300)
    postal_code: str = Field(..., min_length=1, max_length=20)
    city: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=2, max_length=2, description="ISO 3166-1 alpha-2")


class SubmitBidRequest(BaseModel):
    offer_id: str
    amount_cents: int | None = None
    amount: Decimal | None = Field(None, description="Decimal amount, max 2 places")
    customer_email: EmailStr
    customer_name: str = Field(..., min_length=1, max_length=200)
    shipping_address: ShippingAddress | None = None
    locale: Locale = Locale.EN

    def amount_in_cents(self) -> int:
        """Resolve the one amount field given, raising InvalidAmountError otherwise."""
        if (self.amount_cents is None) == (self.amount is None):
            raise InvalidAmountError("provide exactly one of amount_cents or amount")
        if self.amount_cents is not None:
            cents = self.amount_cents
        else:
            try:
                cents = decimal_to_cents(self.amount)
            except ValueError as e:
                raise InvalidAmountError(str(e)) from e
        if cents <= 0:
            raise InvalidAmountError("amount must be positive")
        return cents


class SubmitBidResponse(BaseModel):
    bid_id: str
    status: BidStatus
    amount_cents: int
    amount_display: str
    currency: str
    client_secret: str | None
    auto_resolves_at: datetime | None = None


class UpdateShippingRequest(BaseModel):
    shipping_address: ShippingAddress


class BidStatusResponse(BaseModel):
    bid_id: str
    status: BidStatus
    amount_cents: int
    amount_display: str
    created_at: datetime | None
    resolved_at: datetime | None
    auto_resolves_at: datetime | None
    has_shipping_address: bool


class BidSummary(BaseModel):
    id: str
    offer_id: str
    customer_email: str
    customer_name: str
    shipping_address: dict[str, Any] | None
    amount_cents: int
    amount_display: str
    platform_fee_cents: int
    merchant_amount_cents: int
    status: BidStatus
    resolution_source: str | None
    created_at: datetime | None
    resolved_at: datetime | None
    auto_resolves_at: datetime | None
    seconds_until_auto_resolution: int | None


class BidListResponse(BaseModel):
    items: list[BidSummary]
    next_cursor: str | None


class DecisionResponse(BaseModel):
    bid_id: str
    status: BidStatus
    no_op: bool
    resolution_source: str | None


def auto_resolves_at(bid: Bid, delay_seconds: int) -> datetime | None:
    """Earliest time the sweep picks the bid up; None once resolved."""
    if bid.status != BidStatus.PENDING or bid.created_at is None:
        return None
    return bid.created_at + timedelta(seconds=delay_seconds)


def to_summary(bid: Bid, delay_seconds: int, now: datetime) -> BidSummary:
    deadline = auto_resolves_at(bid, delay_seconds)
    return BidSummary(
        id=bid.id,
        offer_id=bid.offer_id,
        customer_email=bid.customer_email,
        customer_name=bid.customer_name,
        shipping_address=bid.shipping_address,
        amount_cents=bid.amount,
        amount_display=cents_to_display(bid.amount),
        platform_fee_cents=bid.platform_fee_amount,
        merchant_amount_cents=bid.merchant_amount,
        status=bid.status,
        resolution_source=bid.resolution_source.value if bid.resolution_source else None,
        created_at=bid.created_at,
        resolved_at=bid.resolved_at,
        auto_resolves_at=deadline,
        seconds_until_auto_resolution=seconds_between(now, deadline) if deadline else None,
    )
