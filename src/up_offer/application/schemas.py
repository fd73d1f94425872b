"""Pydantic schemas for offer writes and the widget offer view."""
from pydantic import BaseModel, Field, model_validator

from src.up_common.cents import cents_to_display
from src.up_offer.domain.models import Offer


class OfferCreateRequest(BaseModel):
    product_name: str = Field(..., min_length=3, max_length=200)
    product_sku: str | None = Field(None, max_length=100)
    headline: str | None = Field(None, max_length=200)
    subheadline: str | None = Field(None, max_length=300)
    image_url: str | None = None
    min_selling_price_cents: int = Field(..., gt=0)
    fixed_price_cents: int = Field(..., gt=0)
    bid_range_min_cents: int = Field(..., gt=0)
    bid_range_max_cents: int = Field(..., gt=0)
    stock_quantity: int = Field(..., ge=0)
    priority: int | None = Field(None, ge=1, description="Slot to insert at; default last")
    is_active: bool = True

    @model_validator(mode="after")
    def _range_ordered(self) -> "OfferCreateRequest":
        if self.bid_range_max_cents <= self.bid_range_min_cents:
            raise ValueError("bid_range_max_cents must be greater than bid_range_min_cents")
        return self


class OfferUpdateRequest(BaseModel):
    """Partial update. Stock is not editable here; it moves only with bids."""

    product_name: str | None = Field(None, min_length=3, max_length=200)
    product_sku: str | None = Field(None, max_length=100)
    headline: str | None = Field(None, max_length=200)
    subheadline: str | None = Field(None, max_length=300)
    image_url: str | None = None
    min_selling_price_cents: int | None = Field(None, gt=0)
    fixed_price_cents: int | None = Field(None, gt=0)
    bid_range_min_cents: int | None = Field(None, gt=0)
    bid_range_max_cents: int | None = Field(None, gt=0)
    priority: int | None = Field(None, ge=1)
    is_active: bool | None = None


class OfferDetail(BaseModel):
    id: str
    merchant_id: str
    product_name: str
    product_sku: str | None
    headline: str | None
    subheadline: str | None
    image_url: str | None
    min_selling_price_cents: int
    fixed_price_cents: int
    bid_range_min_cents: int
    bid_range_max_cents: int
    stock_quantity: int
    priority: int
    is_active: bool

    @classmethod
    def from_domain(cls, o: Offer) -> "OfferDetail":
        return cls(
            id=o.id,
            merchant_id=o.merchant_id,
            product_name=o.product_name,
            product_sku=o.product_sku,
            headline=o.headline,
            subheadline=o.subheadline,
            image_url=o.image_url,
            min_selling_price_cents=o.min_selling_price,
            fixed_price_cents=o.fixed_price,
            bid_range_min_cents=o.bid_range_min,
            bid_range_max_cents=o.bid_range_max,
            stock_quantity=o.stock_quantity,
            priority=o.priority,
            is_active=o.is_active,
        )


class WidgetOffer(BaseModel):
    """What the shopper's browser may see: no min_selling_price."""

    id: str
    product_name: str
    product_sku: str | None
    headline: str | None
    subheadline: str | None
    image_url: str | None
    fixed_price_cents: int
    fixed_price_display: str
    bid_range_min_cents: int
    bid_range_min_display: str
    bid_range_max_cents: int
    bid_range_max_display: str

    @classmethod
    def from_domain(cls, o: Offer) -> "WidgetOffer":
        return cls(
            id=o.id,
            product_name=o.product_name,
            product_sku=o.product_sku,
            headline=o.headline,
            subheadline=o.subheadline,
            image_url=o.image_url,
            fixed_price_cents=o.fixed_price,
            fixed_price_display=cents_to_display(o.fixed_price),
            bid_range_min_cents=o.bid_range_min,
            bid_range_min_display=cents_to_display(o.bid_range_min),
            bid_range_max_cents=o.bid_range_max,
            bid_range_max_display=cents_to_display(o.bid_range_max),
        )


class SetActiveRequest(BaseModel):
    is_active: bool
