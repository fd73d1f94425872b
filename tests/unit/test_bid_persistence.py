# tests/unit/test_bid_persistence.py
"""Unit tests for BidRepository / IntentRepository using MagicMock AsyncSession."""
import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.up_bid.domain.models import Bid, BidIntent, Resolution
from src.up_bid.infrastructure.persistence import BidRepository, IntentRepository
from src.up_common.enums import (
    BidStatus,
    CaptureMode,
    IntentStatus,
    Locale,
    ResolutionSource,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _make_bid_row(**kwargs):
    """Build a mock DB row with all bid columns."""
    row = MagicMock()
    row.id = kwargs.get("id", "bid_1")
    row.merchant_id = "mer_1"
    row.offer_id = "off_1"
    row.intent_id = "int_1"
    row.customer_email = "shopper@mail.example"
    row.customer_name = "Sam"
    row.shipping_address = kwargs.get("shipping_address")
    row.locale = kwargs.get("locale", "en")
    row.amount = 3200
    row.currency = "eur"
    row.platform_fee_amount = 160
    row.merchant_amount = 3040
    row.status = kwargs.get("status", "pending")
    row.capture_mode = "manual"
    row.payment_reference = "pi_1"
    row.settlement_reference = None
    row.captured_at = None
    row.refunded_at = None
    row.stock_reserved = False
    row.resolution_source = kwargs.get("resolution_source")
    row.claim_token = None
    row.claimed_at = None
    row.swept_at = None
    row.sweep_attempts = 0
    row.last_sweep_error = None
    row.created_at = NOW
    row.updated_at = NOW
    row.resolved_at = None
    return row


def _result(fetchone=None, fetchall=None):
    result = MagicMock()
    result.fetchone.return_value = fetchone
    result.fetchall.return_value = fetchall or []
    return result


@pytest.fixture
def db():
    return MagicMock()


class TestBidReads:
    async def test_get_by_id_maps_row(self, db):
        db.execute = AsyncMock(
            return_value=_result(_make_bid_row(locale="de", shipping_address='{"city": "Berlin"}'))
        )
        bid = await BidRepository().get_by_id("bid_1", db)

        assert bid.status is BidStatus.PENDING
        assert bid.capture_mode is CaptureMode.MANUAL
        assert bid.locale is Locale.DE
        assert bid.shipping_address == {"city": "Berlin"}
        assert bid.resolution_source is None

    async def test_get_by_id_missing(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        assert await BidRepository().get_by_id("bid_x", db) is None

    async def test_jsonb_already_decoded(self, db):
        db.execute = AsyncMock(
            return_value=_result(_make_bid_row(shipping_address={"city": "Paris"}))
        )
        bid = await BidRepository().get_by_id("bid_1", db)
        assert bid.shipping_address == {"city": "Paris"}

    async def test_list_by_merchant_params(self, db):
        db.execute = AsyncMock(return_value=_result(fetchall=[_make_bid_row(), _make_bid_row(id="bid_0")]))
        bids = await BidRepository().list_by_merchant("mer_1", BidStatus.PENDING, "bid_9", 21, db)

        assert [b.id for b in bids] == ["bid_1", "bid_0"]
        params = db.execute.call_args.args[1]
        assert params == {"merchant_id": "mer_1", "status": "pending", "cursor": "bid_9", "limit": 21}


class TestBidWrites:
    async def test_insert_serializes_enums_and_address(self, db):
        db.execute = AsyncMock()
        bid = Bid(
            id="bid_1",
            merchant_id="mer_1",
            offer_id="off_1",
            intent_id="int_1",
            customer_email="s@mail.example",
            customer_name="Sam",
            amount=3750,
            platform_fee_amount=188,
            merchant_amount=3562,
            capture_mode=CaptureMode.AUTOMATIC,
            status=BidStatus.ACCEPTED,
            resolution_source=ResolutionSource.INSTANT,
            shipping_address={"city": "Berlin"},
        )
        await BidRepository().insert(bid, db)

        params = db.execute.call_args.args[1]
        assert params["status"] == "accepted"
        assert params["capture_mode"] == "automatic"
        assert params["resolution_source"] == "instant"
        assert json.loads(params["shipping_address"]) == {"city": "Berlin"}

    async def test_claim_won(self, db):
        db.execute = AsyncMock(return_value=_result(MagicMock()))
        assert await BidRepository().claim("bid_1", "tok", NOW, NOW, db) is True

    async def test_claim_lost(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        assert await BidRepository().claim("bid_1", "tok", NOW, NOW, db) is False

    async def test_finalize_returns_updated_bid(self, db):
        row = _make_bid_row(status="accepted", resolution_source="sweep")
        db.execute = AsyncMock(return_value=_result(row))
        resolution = Resolution(
            status=BidStatus.ACCEPTED,
            source=ResolutionSource.SWEEP,
            resolved_at=NOW,
            stock_reserved=True,
            captured_at=NOW,
            swept=True,
        )
        bid = await BidRepository().finalize("bid_1", "tok", resolution, db)

        assert bid.status is BidStatus.ACCEPTED
        params = db.execute.call_args.args[1]
        assert params["token"] == "tok"
        assert params["source"] == "sweep"
        assert params["swept"] is True

    async def test_finalize_lost_claim(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        resolution = Resolution(
            status=BidStatus.DECLINED,
            source=ResolutionSource.MERCHANT,
            resolved_at=NOW,
            stock_reserved=False,
        )
        assert await BidRepository().finalize("bid_1", "tok", resolution, db) is None

    async def test_set_shipping_only_once(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        assert await BidRepository().set_shipping_address("bid_1", {"city": "x"}, db) is False

    async def test_sweep_attempt_error_truncated(self, db):
        db.execute = AsyncMock()
        await BidRepository().record_sweep_attempt("bid_1", "x" * 2000, db)
        assert len(db.execute.call_args.args[1]["error"]) == 500


    async def test_mark_captured_guards_pending_uncaptured(self, db):
        db.execute = AsyncMock()
        await BidRepository().mark_captured("bid_1", NOW, "ch_1", db)
        sql = str(db.execute.call_args.args[0])
        assert "status = 'pending'" in sql
        assert "captured_at IS NULL" in sql
        assert db.execute.call_args.args[1] == {
            "id": "bid_1",
            "captured_at": NOW,
            "settlement_reference": "ch_1",
        }

    async def test_sweep_candidates_put_repeat_failures_last(self, db):
        db.execute = AsyncMock(return_value=_result(fetchall=[]))
        await BidRepository().list_sweep_candidates(NOW, NOW, True, NOW, 10, db)
        sql = str(db.execute.call_args.args[0])
        assert "ORDER BY sweep_attempts ASC, created_at ASC" in sql


class TestIntentRepository:
    async def test_create(self, db):
        db.execute = AsyncMock()
        intent = BidIntent(
            id="int_1",
            bid_id="bid_1",
            offer_id="off_1",
            merchant_id="mer_1",
            amount=3750,
            platform_fee_amount=188,
            capture_mode=CaptureMode.AUTOMATIC,
            stock_reserved=True,
        )
        await IntentRepository().create(intent, db)
        params = db.execute.call_args.args[1]
        assert params["capture_mode"] == "automatic"
        assert params["stock_reserved"] is True

    async def test_list_stale_maps_rows(self, db):
        row = MagicMock()
        row.id = "int_1"
        row.bid_id = "bid_1"
        row.offer_id = "off_1"
        row.merchant_id = "mer_1"
        row.amount = 3750
        row.platform_fee_amount = 188
        row.capture_mode = "automatic"
        row.stock_reserved = True
        row.status = "ORPHANED"
        row.payment_reference = "pi_1"
        row.failure_reason = "void failed"
        row.created_at = NOW
        row.updated_at = NOW
        db.execute = AsyncMock(return_value=_result(fetchall=[row]))

        (intent,) = await IntentRepository().list_stale(NOW, 50, db)

        assert intent.status is IntentStatus.ORPHANED
        assert intent.capture_mode is CaptureMode.AUTOMATIC
        assert db.execute.call_args.args[1] == {"older_than": NOW, "limit": 50}

    async def test_mark_orphaned_params(self, db):
        db.execute = AsyncMock()
        await IntentRepository().mark_orphaned("int_1", None, "timeout", False, db)
        params = db.execute.call_args.args[1]
        assert params["payment_reference"] is None
        assert params["stock_reserved"] is False

    async def test_mark_authorized_only_touches_open_intent(self, db):
        db.execute = AsyncMock()
        await IntentRepository().mark_authorized("int_1", "pi_9", db)
        sql = str(db.execute.call_args.args[0])
        assert "status = 'OPEN'" in sql
        assert db.execute.call_args.args[1] == {"id": "int_1", "payment_reference": "pi_9"}

    async def test_mark_reconciled_keeps_recovered_reference(self, db):
        db.execute = AsyncMock()
        await IntentRepository().mark_reconciled("int_1", "pi_9", db)
        assert db.execute.call_args.args[1]["payment_reference"] == "pi_9"

    async def test_list_stale_includes_orphans_without_reference(self, db):
        db.execute = AsyncMock(return_value=_result(fetchall=[]))
        await IntentRepository().list_stale(NOW, 50, db)
        sql = str(db.execute.call_args.args[0])
        assert "payment_reference IS NOT NULL" not in sql
        assert "i.status = 'ORPHANED'" in sql
