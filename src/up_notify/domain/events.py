"""Notification events and the data every template draws from."""
from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.up_common.enums import Locale


class NotificationEvent(str, Enum):
    BID_SUBMITTED = "BID_SUBMITTED"
    BID_ACCEPTED = "BID_ACCEPTED"
    BID_DECLINED = "BID_DECLINED"
    MERCHANT_ORDER_RECEIVED = "MERCHANT_ORDER_RECEIVED"


@dataclass(frozen=True)
class NotificationPayload:
    bid_id: str
    customer_email: str
    customer_name: str
    product_name: str
    amount: int  # cents
    locale: Locale = Locale.EN
    product_sku: str | None = None
    merchant_email: str | None = None
    shop_name: str | None = None
    shipping_address: dict[str, Any] | None = None
