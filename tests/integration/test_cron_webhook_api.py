"""HTTP tests for the sweep trigger and the Stripe webhook."""

from datetime import timedelta

from src.up_bid.application.schemas import SubmitBidRequest
from src.up_common.datetime_utils import utc_now
from src.up_common.enums import BidStatus


async def _aged_bid(bid_service, db, amount: int) -> str:
    req = SubmitBidRequest(
        offer_id="off_1",
        amount_cents=amount,
        customer_email="shopper@mail.example",
        customer_name="Sam",
    )
    resp = await bid_service.submit(db, req, now=utc_now() - timedelta(minutes=15))
    return resp.bid_id


class TestCron:
    async def test_requires_secret(self, api):
        resp = await api.post("/api/v1/cron/resolve-bids")
        assert resp.status_code == 401
        assert resp.json()["code"] == 1006

    async def test_wrong_secret(self, api):
        resp = await api.post(
            "/api/v1/cron/resolve-bids", headers={"Authorization": "Bearer guess"}
        )
        assert resp.status_code == 401

    async def test_sweep_resolves(self, api, bid_service, store, offer, db, cron_headers):
        accepted = await _aged_bid(bid_service, db, 3200)
        declined = await _aged_bid(bid_service, db, 2800)

        resp = await api.post("/api/v1/cron/resolve-bids", headers=cron_headers)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["accepted_ids"] == [accepted]
        assert data["declined_ids"] == [declined]
        assert store.bids[accepted].status == BidStatus.ACCEPTED
        assert store.bids[declined].status == BidStatus.DECLINED

    async def test_get_also_accepted(self, api, offer, cron_headers):
        resp = await api.get("/api/v1/cron/resolve-bids", headers=cron_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["processed"] == 0

    async def test_lock_held(self, api, offer, sweep_lock, cron_headers):
        sweep_lock.holder = "other"
        resp = await api.post("/api/v1/cron/resolve-bids", headers=cron_headers)
        assert resp.json()["data"]["skipped_run"] is True


class TestStripeWebhook:
    async def test_payment_failed_declines(self, api, bid_service, store, offer, db):
        bid_id = await _aged_bid(bid_service, db, 3200)
        event = {
            "id": "evt_1",
            "type": "payment_intent.payment_failed",
            "data": {"object": {"id": store.bids[bid_id].payment_reference}},
        }

        resp = await api.post("/api/v1/webhooks/stripe", json=event)

        assert resp.status_code == 200
        assert resp.json()["data"] == {"received": True, "outcome": "bid_declined"}
        assert store.bids[bid_id].status == BidStatus.DECLINED

    async def test_account_updated(self, api, store, merchant):
        store.merchants["mer_1"].onboarding_complete = False
        event = {
            "id": "evt_2",
            "type": "account.updated",
            "data": {
                "object": {"id": "acct_1", "charges_enabled": True, "details_submitted": True}
            },
        }
        resp = await api.post("/api/v1/webhooks/stripe", json=event)
        assert resp.json()["data"]["outcome"] == "onboarding_updated"
        assert store.merchants["mer_1"].onboarding_complete is True

    async def test_malformed_body(self, api):
        resp = await api.post("/api/v1/webhooks/stripe", content=b"{{{")
        assert resp.status_code == 400
        assert resp.json()["code"] == 6003


async def test_health(client):
    resp = await client.get("/health")
    assert resp.json() == {"status": "ok", "version": "0.1.0"}


async def test_inbound_request_id_is_reused(client):
    resp = await client.get("/health", headers={"X-Request-ID": "edge-7f3a9c21"})
    assert resp.headers["X-Request-ID"] == "edge-7f3a9c21"


async def test_malformed_inbound_request_id_is_replaced(client):
    resp = await client.get("/health", headers={"X-Request-ID": "bad id!"})
    assert resp.headers["X-Request-ID"].startswith("req_")
