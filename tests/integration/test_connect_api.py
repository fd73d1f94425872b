"""HTTP tests for merchant payment onboarding."""


class TestOnboard:
    async def test_requires_token(self, api, merchant):
        resp = await api.post("/api/v1/payments/connect/onboard")
        assert resp.status_code == 401
        assert resp.json()["code"] == 1003

    async def test_new_merchant_gets_account_and_link(
        self, api, store, merchant, gateway, merchant_headers
    ):
        merchant.payment_account_id = None
        merchant.onboarding_complete = False

        resp = await api.post("/api/v1/payments/connect/onboard", headers=merchant_headers)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["created"] is True
        assert data["url"]
        assert store.merchants["mer_1"].payment_account_id == data["payment_account_id"]
        assert store.merchants["mer_1"].payment_account_status == "pending"

    async def test_onboarded_merchant_gets_fresh_link(
        self, api, merchant, gateway, merchant_headers
    ):
        resp = await api.post("/api/v1/payments/connect/onboard", headers=merchant_headers)

        data = resp.json()["data"]
        assert data["created"] is False
        assert data["payment_account_id"] == "acct_1"
        assert gateway.count("create_account") == 0

    async def test_gateway_failure_is_502(self, api, merchant, gateway, merchant_headers):
        gateway.fail_next("onboarding_link", "platform not enabled")
        resp = await api.post("/api/v1/payments/connect/onboard", headers=merchant_headers)
        assert resp.status_code == 502
        assert resp.json()["code"] == 6001
