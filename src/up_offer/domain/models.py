"""Offer domain model: pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime


@dataclass
class Offer:
    id: str
    merchant_id: str
    product_name: str
    # Prices, all cents
    min_selling_price: int  # secret floor, never sent to the widget
    fixed_price: int  # "buy it now": bids at or above accept instantly
    bid_range_min: int  # slider bounds shown to the shopper
    bid_range_max: int
    stock_quantity: int = 0
    priority: int = 1  # lower value = shown first
    is_active: bool = True
    product_sku: str | None = None
    headline: str | None = None
    subheadline: str | None = None
    image_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_stock(self) -> bool:
        return self.stock_quantity > 0

    @property
    def is_available(self) -> bool:
        return self.is_active and self.has_stock
