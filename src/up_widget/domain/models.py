"""WidgetView: append-only analytics fact, never updated."""
from dataclasses import dataclass
from datetime import datetime

from src.up_common.enums import WidgetViewType


@dataclass(frozen=True)
class WidgetView:
    id: str
    merchant_id: str
    view_type: WidgetViewType
    offer_id: str | None = None
    product_id: str | None = None
    visitor_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    referer: str | None = None
    created_at: datetime | None = None
