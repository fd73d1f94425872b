# tests/unit/test_offer_persistence.py
"""Unit tests for OfferRepository, StockLedger and MerchantRepository."""
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.up_common.errors import InternalError
from src.up_merchant.infrastructure.persistence import MerchantRepository
from src.up_offer.domain.models import Offer
from src.up_offer.domain.rules import PriorityShift
from src.up_offer.infrastructure.persistence import OfferRepository
from src.up_stock.infrastructure.ledger import StockLedger


def _make_offer_row(**kwargs):
    row = MagicMock()
    row.id = kwargs.get("id", "off_1")
    row.merchant_id = "mer_1"
    row.product_name = "Premium Socks"
    row.product_sku = None
    row.headline = None
    row.subheadline = None
    row.image_url = None
    row.min_selling_price = 3000
    row.fixed_price = 3750
    row.bid_range_min = 2700
    row.bid_range_max = 3750
    row.stock_quantity = kwargs.get("stock_quantity", 5)
    row.priority = kwargs.get("priority", 1)
    row.is_active = True
    row.created_at = datetime.now(UTC)
    row.updated_at = datetime.now(UTC)
    return row


def _result(fetchone=None):
    result = MagicMock()
    result.fetchone.return_value = fetchone
    return result


@pytest.fixture
def db():
    return MagicMock()


class TestOfferRepository:
    async def test_get_widget_offer(self, db):
        db.execute = AsyncMock(return_value=_result(_make_offer_row(priority=2)))
        offer = await OfferRepository().get_widget_offer("mer_1", db)
        assert offer.priority == 2
        assert offer.min_selling_price == 3000

    async def test_count_active(self, db):
        result = MagicMock()
        result.scalar_one.return_value = 3
        db.execute = AsyncMock(return_value=result)
        assert await OfferRepository().count_active("mer_1", db) == 3

    async def test_lock_returns_sibling_count(self, db):
        result = MagicMock()
        result.fetchall.return_value = [MagicMock(), MagicMock()]
        db.execute = AsyncMock(return_value=result)
        assert await OfferRepository().lock_merchant_offers("mer_1", db) == 2

    async def test_update_never_writes_stock(self, db):
        db.execute = AsyncMock()
        offer = Offer(
            id="off_1",
            merchant_id="mer_1",
            product_name="Socks",
            min_selling_price=3000,
            fixed_price=3750,
            bid_range_min=2700,
            bid_range_max=3750,
            stock_quantity=99,
        )
        await OfferRepository().update(offer, db)
        params = db.execute.call_args.args[1]
        assert "stock_quantity" not in params
        assert "merchant_id" not in params

    async def test_shift_params(self, db):
        db.execute = AsyncMock()
        await OfferRepository().shift_priorities("mer_1", PriorityShift(2, 4, -1), "off_9", db)
        params = db.execute.call_args.args[1]
        assert params == {"merchant_id": "mer_1", "lo": 2, "hi": 4, "delta": -1, "exclude_id": "off_9"}


class TestStockLedger:
    async def test_reserve_succeeds(self, db):
        row = MagicMock()
        row.stock_quantity = 4
        db.execute = AsyncMock(return_value=_result(row))
        assert await StockLedger().try_reserve("off_1", db) is True

    async def test_reserve_sold_out(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        assert await StockLedger().try_reserve("off_1", db) is False

    async def test_release_missing_offer(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        with pytest.raises(InternalError):
            await StockLedger().release("off_gone", db)


class TestMerchantRepository:
    def _row(self):
        row = MagicMock()
        row.id = "mer_1"
        row.email = "owner@shop.example"
        row.shop_name = "Test Shop"
        row.platform_fee_bps = 500
        row.payment_account_id = "acct_1"
        row.payment_account_status = "active"
        row.onboarding_complete = True
        row.is_active = True
        row.preferred_language = "de"
        row.created_at = None
        row.updated_at = None
        return row

    async def test_get_by_id(self, db):
        db.execute = AsyncMock(return_value=_result(self._row()))
        merchant = await MerchantRepository().get_by_id("mer_1", db)
        assert merchant.can_receive_payments is True
        assert merchant.preferred_language == "de"

    async def test_set_onboarding_status_param(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        result = await MerchantRepository().set_onboarding_by_account("acct_1", False, db)
        assert result is None
        assert db.execute.call_args.args[1]["account_status"] == "pending"

    async def test_set_payment_account_only_when_unset(self, db):
        db.execute = AsyncMock(return_value=_result(self._row()))
        merchant = await MerchantRepository().set_payment_account("mer_1", "acct_1", db)
        assert merchant.payment_account_id == "acct_1"
        sql = str(db.execute.call_args.args[0])
        assert "payment_account_id IS NULL" in sql
        assert "'pending'" in sql
        assert db.execute.call_args.args[1] == {"id": "mer_1", "payment_account_id": "acct_1"}
