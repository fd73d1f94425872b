"""Tests for OnboardingService against the fake merchant store."""

import dataclasses

import pytest

from src.up_common.errors import GatewayError
from src.up_payment.application.onboarding import OnboardingService
from tests.fakes import FakeMerchantRepository


@pytest.fixture
def onboarding(store, gateway) -> OnboardingService:
    return OnboardingService(
        merchant_repo=FakeMerchantRepository(store),
        gateway=gateway,
        refresh_url="https://dash.example/profile",
        return_url="https://dash.example/profile?done=1",
    )


@pytest.fixture
def new_merchant(store, merchant):
    merchant.payment_account_id = None
    merchant.payment_account_status = "none"
    merchant.onboarding_complete = False
    return merchant


class TestStart:
    async def test_opens_account_and_stores_it_pending(
        self, onboarding, store, new_merchant, gateway, db
    ) -> None:
        resp = await onboarding.start(db, store.merchants["mer_1"])

        assert resp.created is True
        stored = store.merchants["mer_1"]
        assert stored.payment_account_id == resp.payment_account_id
        assert stored.payment_account_status == "pending"
        assert stored.onboarding_complete is False
        assert stored.can_receive_payments is False
        assert resp.payment_account_id in resp.url
        assert db.commits == 1

    async def test_existing_account_only_gets_new_link(
        self, onboarding, store, merchant, gateway, db
    ) -> None:
        resp = await onboarding.start(db, store.merchants["mer_1"])

        assert resp.created is False
        assert resp.payment_account_id == "acct_1"
        assert gateway.count("create_account") == 0
        assert gateway.count("onboarding_link") == 1

    async def test_repeat_reuses_stored_account(
        self, onboarding, store, new_merchant, gateway, db
    ) -> None:
        first = await onboarding.start(db, store.merchants["mer_1"])
        second = await onboarding.start(db, store.merchants["mer_1"])

        assert second.created is False
        assert second.payment_account_id == first.payment_account_id
        assert gateway.count("create_account") == 1

    async def test_concurrent_attach_keeps_first_account(
        self, onboarding, store, new_merchant, gateway, db
    ) -> None:
        stale = store.merchants["mer_1"]
        store.merchants["mer_1"] = dataclasses.replace(stale, payment_account_id="acct_other")

        resp = await onboarding.start(db, stale)

        assert resp.payment_account_id == "acct_other"
        assert resp.created is False
        assert store.merchants["mer_1"].payment_account_id == "acct_other"

    async def test_gateway_failure_stores_nothing(
        self, onboarding, store, new_merchant, gateway, db
    ) -> None:
        gateway.fail_next("create_account", "platform not enabled")

        with pytest.raises(GatewayError):
            await onboarding.start(db, store.merchants["mer_1"])

        assert store.merchants["mer_1"].payment_account_id is None
        assert gateway.count("onboarding_link") == 0
