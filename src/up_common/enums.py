"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class BidDecision(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"

    @property
    def target_status(self) -> BidStatus:
        match self:
            case BidDecision.ACCEPT:
                return BidStatus.ACCEPTED
            case BidDecision.DECLINE:
                return BidStatus.DECLINED


class CaptureMode(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class ResolutionSource(str, Enum):
    INSTANT = "instant"
    MERCHANT = "merchant"
    SWEEP = "sweep"
    WEBHOOK = "webhook"


class IntentStatus(str, Enum):
    """Write-ahead record around the gateway authorization call."""
    OPEN = "OPEN"
    FINALIZED = "FINALIZED"
    FAILED = "FAILED"
    ORPHANED = "ORPHANED"
    RECONCILED = "RECONCILED"


class WidgetViewType(str, Enum):
    SHOWN = "shown"
    NO_OFFERS = "no_offers"
    OUT_OF_STOCK = "out_of_stock"


class Locale(str, Enum):
    EN = "en"
    DE = "de"
