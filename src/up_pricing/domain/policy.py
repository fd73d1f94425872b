"""Pricing policy: pure functions over an Offer and a bid amount in cents.

classify() and sweep_outcome() deliberately use different thresholds:
  - classify:      instant accept only at or above fixed_price
  - sweep_outcome: accept at or above min_selling_price after the delay
A bid between the two is held for merchant review and auto-accepts if
nobody touches it before the sweep.
"""

from enum import Enum

from src.up_common.cents import apply_bps_half_up
from src.up_common.enums import BidDecision, CaptureMode
from src.up_common.errors import OutOfRangeError
from src.up_offer.domain.models import Offer


class Classification(str, Enum):
    INSTANT_ACCEPT = "INSTANT_ACCEPT"
    PENDING_REVIEW = "PENDING_REVIEW"


def validate_range(offer: Offer, amount: int) -> None:
    """Raise OutOfRangeError unless amount is within the slider or equals fixed_price."""
    if amount == offer.fixed_price:
        return
    if not (offer.bid_range_min <= amount <= offer.bid_range_max):
        raise OutOfRangeError(amount, offer.bid_range_min, offer.bid_range_max)


def classify(offer: Offer, amount: int) -> Classification:
    if amount >= offer.fixed_price and offer.stock_quantity > 0:
        return Classification.INSTANT_ACCEPT
    return Classification.PENDING_REVIEW


def capture_mode_for(classification: Classification) -> CaptureMode:
    """Capture mode must be fixed before authorization; it cannot change afterwards."""
    match classification:
        case Classification.INSTANT_ACCEPT:
            return CaptureMode.AUTOMATIC
        case Classification.PENDING_REVIEW:
            return CaptureMode.MANUAL


def split_fee(amount: int, fee_bps: int) -> tuple[int, int]:
    """Return (platform_fee_amount, merchant_amount).

    The fee is rounded half-up to the cent; the merchant share is derived by
    subtraction so the two always sum to amount exactly.
    """
    if amount < 0:
        raise ValueError(f"amount must be non-negative, got {amount}")
    if not (0 <= fee_bps <= 10000):
        raise ValueError(f"fee_bps must be between 0 and 10000, got {fee_bps}")
    platform_fee = apply_bps_half_up(amount, fee_bps)
    return platform_fee, amount - platform_fee


def sweep_outcome(offer: Offer, amount: int, holds_unit: bool = False) -> BidDecision:
    """holds_unit: the bid already reserved a unit, so zero stock left is its own."""
    has_unit = holds_unit or offer.stock_quantity > 0
    if amount >= offer.min_selling_price and has_unit:
        return BidDecision.ACCEPT
    return BidDecision.DECLINE
