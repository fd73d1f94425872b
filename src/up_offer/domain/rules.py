"""Offer write-time invariants and the priority cascade arithmetic.

Priorities per merchant are a dense ordering 1..n. Moving, inserting or
removing one offer shifts a contiguous block of siblings by one.
"""
from dataclasses import dataclass

from src.up_common.errors import InvalidOfferConfigError
from src.up_offer.domain.models import Offer


@dataclass(frozen=True)
class PriorityShift:
    """Shift siblings with lo <= priority <= hi (hi=None: unbounded) by delta."""

    lo: int
    hi: int | None
    delta: int


def validate_offer(offer: Offer) -> None:
    for name in ("min_selling_price", "fixed_price", "bid_range_min", "bid_range_max"):
        if getattr(offer, name) <= 0:
            raise InvalidOfferConfigError(f"{name} must be positive")
    if offer.bid_range_max <= offer.bid_range_min:
        raise InvalidOfferConfigError("bid_range_max must be greater than bid_range_min")
    if offer.stock_quantity < 0:
        raise InvalidOfferConfigError("stock_quantity cannot be negative")
    if offer.priority < 1:
        raise InvalidOfferConfigError("priority must be >= 1")


def clamp_priority(requested: int | None, upper: int) -> int:
    """Clamp a requested slot into 1..upper; None means the last slot."""
    if requested is None:
        return upper
    return max(1, min(requested, upper))


def shift_for_insert(priority: int) -> PriorityShift:
    return PriorityShift(lo=priority, hi=None, delta=1)


def shift_for_delete(priority: int) -> PriorityShift:
    return PriorityShift(lo=priority + 1, hi=None, delta=-1)


def shift_for_move(old: int, new: int) -> PriorityShift | None:
    if new == old:
        return None
    if new < old:
        # Moving up: the block it jumps over moves down one slot.
        return PriorityShift(lo=new, hi=old - 1, delta=1)
    return PriorityShift(lo=old + 1, hi=new, delta=-1)
