"""Tests for up_pricing.domain.policy: range, classification, fees, sweep outcome."""

import pytest

from src.up_common.enums import BidDecision, CaptureMode
from src.up_common.errors import OutOfRangeError
from src.up_offer.domain.models import Offer
from src.up_pricing.domain.policy import (
    Classification,
    capture_mode_for,
    classify,
    split_fee,
    sweep_outcome,
    validate_range,
)


def _offer(**kwargs) -> Offer:
    defaults = dict(
        id="off_1",
        merchant_id="mer_1",
        product_name="Socks",
        min_selling_price=3000,
        fixed_price=3750,
        bid_range_min=2700,
        bid_range_max=3750,
        stock_quantity=5,
    )
    defaults.update(kwargs)
    return Offer(**defaults)


class TestValidateRange:
    @pytest.mark.parametrize("amount", [2700, 3200, 3750])
    def test_inside_range(self, amount: int) -> None:
        validate_range(_offer(), amount)

    def test_below_min_raises(self) -> None:
        with pytest.raises(OutOfRangeError):
            validate_range(_offer(), 2699)

    def test_above_max_raises(self) -> None:
        with pytest.raises(OutOfRangeError):
            validate_range(_offer(), 3751)

    def test_fixed_price_outside_slider_allowed(self) -> None:
        validate_range(_offer(fixed_price=4000), 4000)


class TestClassify:
    def test_at_fixed_price_instant(self) -> None:
        assert classify(_offer(), 3750) is Classification.INSTANT_ACCEPT

    def test_above_fixed_price_instant(self) -> None:
        assert classify(_offer(bid_range_max=5000), 4000) is Classification.INSTANT_ACCEPT

    def test_below_fixed_price_pending(self) -> None:
        assert classify(_offer(), 3749) is Classification.PENDING_REVIEW

    def test_no_stock_pending(self) -> None:
        assert classify(_offer(stock_quantity=0), 3750) is Classification.PENDING_REVIEW


class TestCaptureModeFor:
    def test_instant_is_automatic(self) -> None:
        assert capture_mode_for(Classification.INSTANT_ACCEPT) is CaptureMode.AUTOMATIC

    def test_pending_is_manual(self) -> None:
        assert capture_mode_for(Classification.PENDING_REVIEW) is CaptureMode.MANUAL


class TestSplitFee:
    def test_five_percent(self) -> None:
        assert split_fee(10000, 500) == (500, 9500)

    def test_half_cent_rounds_up(self) -> None:
        assert split_fee(3750, 500) == (188, 3562)

    @pytest.mark.parametrize("amount", [1, 99, 2700, 3201, 3333, 3750, 99999])
    @pytest.mark.parametrize("bps", [0, 1, 250, 500, 1234, 10000])
    def test_parts_sum_to_amount(self, amount: int, bps: int) -> None:
        fee, merchant = split_fee(amount, bps)
        assert fee + merchant == amount
        assert fee >= 0
        assert merchant >= 0

    def test_negative_amount_raises(self) -> None:
        with pytest.raises(ValueError):
            split_fee(-1, 500)

    def test_bps_over_100_percent_raises(self) -> None:
        with pytest.raises(ValueError):
            split_fee(1000, 10001)


class TestSweepOutcome:
    def test_above_floor_accepts(self) -> None:
        assert sweep_outcome(_offer(), 3200) is BidDecision.ACCEPT

    def test_at_floor_accepts(self) -> None:
        assert sweep_outcome(_offer(), 3000) is BidDecision.ACCEPT

    def test_below_floor_declines(self) -> None:
        assert sweep_outcome(_offer(), 2800) is BidDecision.DECLINE

    def test_no_stock_declines(self) -> None:
        assert sweep_outcome(_offer(stock_quantity=0), 3200) is BidDecision.DECLINE

    def test_own_reserved_unit_counts_as_stock(self) -> None:
        offer = _offer(stock_quantity=0)
        assert sweep_outcome(offer, 3200, holds_unit=True) is BidDecision.ACCEPT

    def test_own_unit_does_not_lift_floor(self) -> None:
        offer = _offer(stock_quantity=0)
        assert sweep_outcome(offer, 2800, holds_unit=True) is BidDecision.DECLINE

    def test_between_floor_and_fixed_price_differs_from_classify(self) -> None:
        offer = _offer()
        assert classify(offer, 3200) is Classification.PENDING_REVIEW
        assert sweep_outcome(offer, 3200) is BidDecision.ACCEPT
